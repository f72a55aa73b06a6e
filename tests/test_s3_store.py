"""Unit tests for S3OutputStore."""
import boto3
import pytest
from moto import mock_aws

from processor.models import OutputManifest, OutputStoreError, RenderedDocument
from storage.s3_store import S3OutputStore

BUCKET = 'test-explore-site'


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so nothing can reach a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def s3_client(aws_credentials):
    """Create a mock S3 bucket for testing."""
    with mock_aws():
        client = boto3.client('s3', region_name='us-east-1')
        client.create_bucket(Bucket=BUCKET)
        yield client


@pytest.fixture
def s3_store(s3_client):
    """Create S3OutputStore instance with mock bucket."""
    return S3OutputStore(BUCKET, prefix='explore', sitemap_key='sitemap.events.xml')


def keys(client):
    response = client.list_objects_v2(Bucket=BUCKET)
    return sorted(item['Key'] for item in response.get('Contents', []))


class TestS3OutputStore:
    """Test cases for S3OutputStore class."""

    def test_write_and_list_documents(self, s3_store, s3_client):
        """Test that written documents are listed by path."""
        s3_store.write_document('B/bushy-park', '<html>bushy</html>')

        documents = s3_store.list_documents()

        assert list(documents) == ['B/bushy-park']
        assert keys(s3_client) == ['explore/B/bushy-park.html']
        head = s3_client.head_object(Bucket=BUCKET, Key='explore/B/bushy-park.html')
        assert head['ContentType'] == 'text/html; charset=utf-8'

    def test_list_ignores_other_keys(self, s3_store, s3_client):
        """Test that only documents under the prefix are listed."""
        s3_client.put_object(Bucket=BUCKET, Key='explore/B/bushy-park.html', Body=b'x')
        s3_client.put_object(Bucket=BUCKET, Key='explore/bushy-park.html', Body=b'x')
        s3_client.put_object(Bucket=BUCKET, Key='explore/B/image.png', Body=b'x')
        s3_client.put_object(Bucket=BUCKET, Key='index.html', Body=b'x')

        assert sorted(s3_store.list_documents()) == ['B/bushy-park', 'bushy-park']

    def test_sync_documents(self, s3_store, s3_client):
        """Test add, update, unchanged and delete against the bucket."""
        s3_client.put_object(Bucket=BUCKET, Key='explore/A/albert.html', Body=b'removed event')
        s3_client.put_object(Bucket=BUCKET, Key='explore/B/brockwell.html', Body=b'old')
        s3_client.put_object(Bucket=BUCKET, Key='explore/C/crane-park.html', Body=b'same')
        manifest = OutputManifest()
        for bucket, slug in [('B', 'brockwell'), ('B', 'bushy-park'), ('C', 'crane-park')]:
            manifest.add(bucket, slug)
        documents = [
            RenderedDocument('B/brockwell', 'new'),
            RenderedDocument('B/bushy-park', 'added'),
            RenderedDocument('C/crane-park', 'same'),
        ]

        result = s3_store.sync_documents(documents, manifest)

        assert (result.added, result.updated, result.unchanged, result.deleted) == (1, 1, 1, 1)
        assert keys(s3_client) == [
            'explore/B/brockwell.html',
            'explore/B/bushy-park.html',
            'explore/C/crane-park.html',
        ]
        body = s3_client.get_object(Bucket=BUCKET, Key='explore/B/brockwell.html')['Body'].read()
        assert body == b'new'

    def test_delete_documents_in_batches(self, s3_store, s3_client, monkeypatch):
        """Test that deletes are split into batches."""
        monkeypatch.setattr(S3OutputStore, 'BATCH_SIZE', 2)
        paths = [f"A/event-{i}" for i in range(5)]
        for path in paths:
            s3_store.write_document(path, 'x')

        deleted = s3_store.delete_documents(paths)

        assert deleted == 5
        assert keys(s3_client) == []

    def test_write_sitemap(self, s3_store, s3_client):
        """Test that the sitemap is written to its own key."""
        s3_store.write_sitemap('<urlset/>')

        obj = s3_client.get_object(Bucket=BUCKET, Key='sitemap.events.xml')
        assert obj['Body'].read() == b'<urlset/>'
        assert obj['ContentType'] == 'application/xml'

    def test_missing_bucket_raises_store_error(self, s3_client):
        """Test that S3 errors surface as OutputStoreError."""
        store = S3OutputStore('no-such-bucket')

        with pytest.raises(OutputStoreError):
            store.list_documents()
        with pytest.raises(OutputStoreError):
            store.write_document('B/bushy-park', 'content')
