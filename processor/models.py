"""Data models for event page generation."""
import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


class GeneratorError(Exception):
    """Base error for a regeneration pass."""


class FeedFetchError(GeneratorError):
    """The source feed could not be fetched or parsed."""


class FeedStructureError(FeedFetchError):
    """The source feed parsed but has an unrecognized JSON shape."""


class ConfigurationError(GeneratorError):
    """A setting is missing a usable value."""


class OutputStoreError(GeneratorError):
    """A write or delete against the output store failed."""


class EventCategory(enum.Enum):
    """Category used to keep nearby suggestions like-for-like."""
    STANDARD = 'standard'
    JUNIOR = 'junior'


class PassState(enum.Enum):
    """Stages of a regeneration pass."""
    FETCHING = 'fetching'
    INDEXING = 'indexing'
    ALLOCATING = 'allocating'
    SYNTHESIZING = 'synthesizing'
    RECONCILING = 'reconciling'
    DONE = 'done'
    FAILED = 'failed'


@dataclass
class EventRecord:
    """Normalized event from the source feed."""
    name: str
    long_name: str
    location: str
    latitude: float
    longitude: float
    description: str
    slug: str
    category: EventCategory
    sort_key: str

    @property
    def is_junior(self) -> bool:
        return self.category is EventCategory.JUNIOR


@dataclass(frozen=True)
class LocaleInfo:
    """Resolved locale: external site domain and region code."""
    domain: Optional[str]
    code: str


@dataclass(frozen=True)
class LocaleEntry:
    """One row of the locale table.

    ``bounds`` is ``(min_lon, min_lat, max_lon, max_lat)``. A ``domain`` of
    None marks a catch-all region with no external site of its own.
    """
    code: str
    domain: Optional[str]
    bounds: Tuple[float, float, float, float]

    def contains(self, latitude: float, longitude: float) -> bool:
        min_lon, min_lat, max_lon, max_lat = self.bounds
        return min_lon <= longitude <= max_lon and min_lat <= latitude <= max_lat


@dataclass
class IndexedEvent:
    """Event plus the locale code it resolved to, as held in the full index."""
    record: EventRecord
    locale_code: str


@dataclass
class NearbyEntry:
    """A nearby event suggestion."""
    slug: str
    long_name: str
    distance_km: float
    bucket: Optional[str] = None


@dataclass
class DescriptionLookup:
    """Outcome of an external description lookup."""
    text: Optional[str] = None
    error: Optional[str] = None
    source_url: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.text)


@dataclass
class RenderedDocument:
    """Document body staged for writing at ``relative_path``."""
    relative_path: str
    content: str


def path_slug(path: str) -> str:
    """Slug part of a document path; loose top-level paths are all slug."""
    return path.rsplit('/', 1)[-1]


@dataclass
class OutputManifest:
    """Ordered document paths (``<bucket>/<slug>``) a pass must leave in place."""
    entries: Dict[str, None] = field(default_factory=dict)

    def add(self, bucket: str, slug: str) -> str:
        return self.add_path(f"{bucket}/{slug}")

    def add_path(self, path: str) -> str:
        self.entries[path] = None
        return path

    @property
    def paths(self) -> List[str]:
        return list(self.entries)

    def __contains__(self, path: str) -> bool:
        return path in self.entries

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class ReconcileResult:
    """Result of reconciling staged documents with the output store."""
    added: int
    updated: int
    unchanged: int
    deleted: int


@dataclass
class RegenerationResult:
    """Summary of a regeneration pass."""
    state: PassState
    feed_events: int = 0
    rendered_events: int = 0
    sitemap_urls: int = 0
    reconcile: Optional[ReconcileResult] = None
    folder_counts: Dict[str, int] = field(default_factory=dict)
    collisions: list[str] = field(default_factory=list)
    enrichment_failures: list[str] = field(default_factory=list)
    render_failures: list[str] = field(default_factory=list)
