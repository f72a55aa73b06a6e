"""Output stores for generated documents."""
import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from processor.models import (
    OutputManifest,
    OutputStoreError,
    ReconcileResult,
    RenderedDocument,
)

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = '.html'


def content_digest(content: str) -> str:
    """MD5 hex digest of document content, comparable with S3 ETags."""
    return hashlib.md5(content.encode('utf-8')).hexdigest()


class OutputStore:
    """
    Base class for stores holding ``<bucket>/<slug>.html`` documents.

    Subclasses implement listing, writing and deleting; reconciling the
    store with a pass's manifest is shared.
    """

    def list_documents(self) -> Dict[str, str]:
        """
        List existing documents.

        Returns:
            Mapping of document path without suffix to content digest.
            Loose documents outside any bucket appear without a slash.
        """
        raise NotImplementedError

    def write_document(self, path: str, content: str) -> None:
        raise NotImplementedError

    def delete_document(self, path: str) -> None:
        raise NotImplementedError

    def delete_documents(self, paths: List[str]) -> int:
        for path in paths:
            self.delete_document(path)
            logger.info(f"Deleted stale document: {path}")
        return len(paths)

    def write_sitemap(self, content: str) -> None:
        raise NotImplementedError

    def sync_documents(
        self,
        documents: List[RenderedDocument],
        manifest: OutputManifest,
        existing: Optional[Dict[str, str]] = None
    ) -> ReconcileResult:
        """
        Reconcile the store with a pass's manifest.

        The whole plan is computed from a complete listing before anything
        is deleted. Documents outside the manifest are deleted, then staged
        documents whose content changed are written.

        Args:
            documents: Staged documents for this pass
            manifest: Paths that must exist after the pass
            existing: Listing already taken this pass (listed here when omitted)

        Returns:
            ReconcileResult with counts of added, updated, unchanged and
            deleted documents

        Raises:
            OutputStoreError: If listing, a write or a delete fails
        """
        logger.info(f"Starting reconcile with {len(documents)} staged documents")
        if existing is None:
            existing = self.list_documents()

        paths_to_delete = sorted(
            path for path in existing
            if path not in manifest
        )
        documents_to_add = []
        documents_to_update = []
        unchanged = 0
        for document in documents:
            digest = existing.get(document.relative_path)
            if digest is None:
                documents_to_add.append(document)
            elif digest != content_digest(document.content):
                documents_to_update.append(document)
            else:
                unchanged += 1

        logger.info(
            f"Reconcile plan: {len(documents_to_add)} to add, "
            f"{len(documents_to_update)} to update, "
            f"{len(paths_to_delete)} to delete, {unchanged} unchanged"
        )

        if paths_to_delete:
            self.delete_documents(paths_to_delete)

        for document in documents_to_add + documents_to_update:
            self.write_document(document.relative_path, document.content)

        logger.info(
            f"Reconcile complete: {len(documents_to_add)} added, "
            f"{len(documents_to_update)} updated, {len(paths_to_delete)} deleted"
        )
        return ReconcileResult(
            added=len(documents_to_add),
            updated=len(documents_to_update),
            unchanged=unchanged,
            deleted=len(paths_to_delete)
        )


class LocalDirectoryStore(OutputStore):
    """Stores documents in a local directory tree."""

    def __init__(self, root, sitemap_path):
        """
        Initialize the store.

        Args:
            root: Output directory holding the bucket folders
            sitemap_path: File the sitemap is written to
        """
        self.root = Path(root)
        self.sitemap_path = Path(sitemap_path)

    def list_documents(self) -> Dict[str, str]:
        documents = {}
        if not self.root.exists():
            return documents
        try:
            for item in sorted(self.root.iterdir()):
                if item.is_file() and item.name.endswith(DOCUMENT_SUFFIX):
                    documents[item.name[:-len(DOCUMENT_SUFFIX)]] = self._digest(item)
                elif item.is_dir():
                    for document in sorted(item.iterdir()):
                        if not document.is_file() or not document.name.endswith(DOCUMENT_SUFFIX):
                            continue
                        slug = document.name[:-len(DOCUMENT_SUFFIX)]
                        documents[f"{item.name}/{slug}"] = self._digest(document)
        except OSError as e:
            raise OutputStoreError(f"Could not list {self.root}: {e}") from e
        logger.info(f"Found {len(documents)} existing documents in {self.root}")
        return documents

    def write_document(self, path: str, content: str) -> None:
        target = self.root / (path + DOCUMENT_SUFFIX)
        self._atomic_write(target, content)
        logger.debug(f"Wrote {target}")

    def delete_document(self, path: str) -> None:
        target = self.root / (path + DOCUMENT_SUFFIX)
        try:
            target.unlink()
            folder = target.parent
            if folder != self.root and not any(folder.iterdir()):
                folder.rmdir()
        except FileNotFoundError:
            logger.warning(f"Document already gone: {target}")
        except OSError as e:
            raise OutputStoreError(f"Could not delete {target}: {e}") from e

    def write_sitemap(self, content: str) -> None:
        self._atomic_write(self.sitemap_path, content)
        logger.info(f"Sitemap written to {self.sitemap_path}")

    def _digest(self, path: Path) -> str:
        return hashlib.md5(path.read_bytes()).hexdigest()

    def _atomic_write(self, target: Path, content: str) -> None:
        """Write via a temporary file so a failed write leaves the old file intact."""
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix='.tmp-')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8', newline='') as handle:
                    handle.write(content)
                os.chmod(tmp_name, 0o644)
                os.replace(tmp_name, target)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise OutputStoreError(f"Could not write {target}: {e}") from e
