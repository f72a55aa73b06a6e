"""S3 output store for sites hosted from a bucket."""
import logging
from typing import Dict, List

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from processor.models import OutputStoreError
from storage.output_store import DOCUMENT_SUFFIX, OutputStore

logger = logging.getLogger(__name__)


class S3OutputStore(OutputStore):
    """Stores documents as objects under a prefix of an S3 bucket."""

    BATCH_SIZE = 1000  # S3 DeleteObjects limit
    CONTENT_TYPE = 'text/html; charset=utf-8'

    def __init__(self, bucket_name: str, prefix: str = 'explore', sitemap_key: str = 'sitemap.events.xml'):
        """
        Initialize S3 client.

        Args:
            bucket_name: Name of the S3 bucket
            prefix: Key prefix holding the folder tree
            sitemap_key: Key the sitemap is written to
        """
        self.bucket_name = bucket_name
        self.prefix = prefix.strip('/') + '/' if prefix.strip('/') else ''
        self.sitemap_key = sitemap_key
        self.s3 = boto3.client('s3')
        logger.info(f"Initialized S3OutputStore for s3://{bucket_name}/{self.prefix}")

    def list_documents(self) -> Dict[str, str]:
        """
        List documents under the prefix.

        Returns:
            Mapping of document path to ETag digest
        """
        documents = {}
        try:
            paginator = self.s3.get_paginator('list_objects_v2')
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=self.prefix):
                for item in page.get('Contents', []):
                    relative = item['Key'][len(self.prefix):]
                    if not relative.endswith(DOCUMENT_SUFFIX) or relative.count('/') > 1:
                        continue
                    path = relative[:-len(DOCUMENT_SUFFIX)]
                    documents[path] = item.get('ETag', '').strip('"')
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error listing s3://{self.bucket_name}/{self.prefix}: {e}")
            raise OutputStoreError(f"Could not list S3 documents: {e}") from e

        logger.info(f"Found {len(documents)} existing documents in S3")
        return documents

    def write_document(self, path: str, content: str) -> None:
        self._put(self.prefix + path + DOCUMENT_SUFFIX, content, self.CONTENT_TYPE)

    def delete_document(self, path: str) -> None:
        self.delete_documents([path])

    def delete_documents(self, paths: List[str]) -> int:
        """
        Delete documents in batches of 1000 keys.

        Args:
            paths: Document paths to delete

        Returns:
            Count of deleted documents
        """
        deleted = 0
        for i in range(0, len(paths), self.BATCH_SIZE):
            batch = paths[i:i + self.BATCH_SIZE]
            objects = [{'Key': self.prefix + path + DOCUMENT_SUFFIX} for path in batch]
            try:
                response = self.s3.delete_objects(
                    Bucket=self.bucket_name,
                    Delete={'Objects': objects, 'Quiet': True}
                )
            except (BotoCoreError, ClientError) as e:
                logger.error(f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}")
                raise OutputStoreError(f"Could not delete S3 documents: {e}") from e

            errors = response.get('Errors', [])
            if errors:
                keys = ', '.join(error.get('Key', '?') for error in errors)
                raise OutputStoreError(f"S3 refused to delete: {keys}")
            deleted += len(batch)
        return deleted

    def write_sitemap(self, content: str) -> None:
        self._put(self.sitemap_key, content, 'application/xml')
        logger.info(f"Sitemap written to s3://{self.bucket_name}/{self.sitemap_key}")

    def _put(self, key: str, content: str, content_type: str) -> None:
        try:
            self.s3.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content.encode('utf-8'),
                ContentType=content_type
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error writing s3://{self.bucket_name}/{key}: {e}")
            raise OutputStoreError(f"Could not write {key}: {e}") from e
