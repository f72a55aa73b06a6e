"""Capacity-bounded folder assignment for event slugs."""
import logging
import re
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from processor.models import EventRecord

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 999
NUMERIC_BUCKET = '0-9'

_BUCKET_RE = re.compile(r'(?:[A-Z]|0-9)[0-9]*')


def default_bucket(slug: str) -> str:
    """Uppercase first letter of the slug, or the shared numeric bucket."""
    first = slug[:1]
    if 'a' <= first <= 'z':
        return first.upper()
    return NUMERIC_BUCKET


def is_valid_bucket(bucket: Any) -> bool:
    """Whether ``bucket`` is a folder name this allocator could produce."""
    return isinstance(bucket, str) and _BUCKET_RE.fullmatch(bucket) is not None


class FolderAllocator:
    """
    Assign slugs to folder buckets for a single pass.

    Counters start at zero for every allocator. A bucket at capacity
    overflows into ``<bucket>2``, ``<bucket>3`` and so on.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        prior_mapping: Optional[Mapping[str, str]] = None
    ):
        """
        Initialize the allocator.

        Args:
            capacity: Maximum documents per bucket
            prior_mapping: Optional slug -> bucket mapping from an earlier
                pass; mapped slugs keep their bucket. Entries naming a
                folder the allocator could not produce are ignored

        Raises:
            ValueError: If capacity is not positive
        """
        if capacity < 1:
            raise ValueError(f"Folder capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.prior_mapping = {}
        for slug, bucket in (prior_mapping or {}).items():
            if is_valid_bucket(bucket):
                self.prior_mapping[slug] = bucket
            else:
                logger.warning(f"Ignoring prior bucket {bucket!r} for '{slug}'")
        self._counts: Dict[str, int] = {}
        self._assigned: Dict[str, str] = {}

    def allocate(self, slug: str) -> str:
        """
        Assign a bucket to a slug.

        Repeated calls for an already assigned slug return the same bucket
        without counting it twice.

        Args:
            slug: Event slug

        Returns:
            Bucket name
        """
        if slug in self._assigned:
            return self._assigned[slug]

        bucket = self.prior_mapping.get(slug)
        if bucket is None:
            bucket = self._first_open_bucket(default_bucket(slug))
        elif self._counts.get(bucket, 0) >= self.capacity:
            logger.warning(
                f"Prior mapping places '{slug}' in full bucket {bucket} "
                f"({self._counts[bucket]}/{self.capacity})"
            )

        self._counts[bucket] = self._counts.get(bucket, 0) + 1
        self._assigned[slug] = bucket
        return bucket

    def bucket_for(self, slug: str) -> str:
        """
        Look up a slug's bucket without allocating it.

        Used for links to events outside the rendered subset.
        """
        if slug in self._assigned:
            return self._assigned[slug]
        if slug in self.prior_mapping:
            return self.prior_mapping[slug]
        return default_bucket(slug)

    @property
    def folder_counts(self) -> Dict[str, int]:
        return dict(self._counts)

    @property
    def mapping(self) -> Dict[str, str]:
        return dict(self._assigned)

    def _first_open_bucket(self, bucket: str) -> str:
        if self._counts.get(bucket, 0) < self.capacity:
            return bucket
        suffix = 2
        while self._counts.get(f"{bucket}{suffix}", 0) >= self.capacity:
            suffix += 1
        overflow = f"{bucket}{suffix}"
        logger.debug(f"Bucket {bucket} is full, overflowing into {overflow}")
        return overflow


def sort_for_allocation(
    items: Iterable[Any],
    record: Callable[[Any], EventRecord] = lambda item: item
) -> list:
    """
    Order items by lowercased feed name so allocation is reproducible.

    Args:
        items: EventRecords, or anything ``record`` maps to one
        record: Returns the EventRecord of an item
    """
    return sorted(items, key=lambda item: record(item).sort_key)


def build_folder_mapping(
    records: Iterable[EventRecord],
    capacity: int = DEFAULT_CAPACITY
) -> Dict[str, str]:
    """
    Compute bucket assignments for an entire feed.

    Args:
        records: Every record in the feed, regardless of what gets rendered
        capacity: Maximum documents per bucket

    Returns:
        slug -> bucket mapping
    """
    allocator = FolderAllocator(capacity=capacity)
    for record in sort_for_allocation(records):
        allocator.allocate(record.slug)
    logger.info(
        f"Computed folder mapping for {len(allocator.mapping)} slugs "
        f"across {len(allocator.folder_counts)} folders"
    )
    return allocator.mapping
