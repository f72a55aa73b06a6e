"""Regeneration pass: feed in, documents and sitemap out."""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple

from processor.event_processor import EventProcessor
from processor.folder_allocator import (
    DEFAULT_CAPACITY,
    FolderAllocator,
    build_folder_mapping,
    sort_for_allocation,
)
from processor.geo_locale import GeoLocaleResolver
from processor.models import (
    DescriptionLookup,
    FeedFetchError,
    IndexedEvent,
    OutputManifest,
    PassState,
    RegenerationResult,
    RenderedDocument,
    path_slug,
)
from processor.nearby import NearbySelector
from render.sitemap import generate_sitemap_xml
from storage.folder_mapping import save_folder_mapping

logger = logging.getLogger(__name__)


def fetch_feed(feed_client) -> List[Any]:
    """
    Fetch raw records, normalizing every failure to FeedFetchError.

    Raises:
        FeedFetchError: If the feed cannot be fetched, decoded or unwrapped
    """
    try:
        return feed_client.fetch_records()
    except FeedFetchError:
        raise
    except Exception as e:
        raise FeedFetchError(f"Failed to fetch events feed: {e}") from e


class RegenerationController:
    """
    Runs one regeneration pass.

    The pass moves through FETCHING, INDEXING, ALLOCATING, SYNTHESIZING and
    RECONCILING to DONE. Only a feed failure ends in FAILED, and it happens
    before the output store is touched.
    """

    def __init__(
        self,
        feed_client,
        renderer,
        store,
        base_url: str,
        resolver: Optional[GeoLocaleResolver] = None,
        selector: Optional[NearbySelector] = None,
        description_client=None,
        prior_mapping: Optional[Mapping[str, str]] = None,
        capacity: int = DEFAULT_CAPACITY,
        max_events: Optional[int] = None,
        enrich_workers: int = 4,
        run_date: Optional[date] = None,
        processor: Optional[EventProcessor] = None
    ):
        """
        Initialize the controller.

        Args:
            feed_client: Object with ``fetch_records()`` returning raw records
            renderer: PageRenderer producing documents
            store: OutputStore holding the documents and sitemap
            base_url: Public URL of the folder tree, used in the sitemap
            resolver: Locale resolver (default table when omitted)
            selector: Nearby selector (4 locale and category matches when omitted)
            description_client: Optional object with ``lookup(title)``
            prior_mapping: Optional slug -> bucket mapping from a mapping pass
            capacity: Maximum documents per bucket
            max_events: Render only the first N feed records (all when None)
            enrich_workers: Threads used for description lookups
            run_date: Date stamped into the sitemap
            processor: EventProcessor used to normalize records
        """
        self.feed_client = feed_client
        self.renderer = renderer
        self.store = store
        self.base_url = base_url
        self.resolver = resolver or GeoLocaleResolver()
        self.selector = selector or NearbySelector()
        self.description_client = description_client
        self.prior_mapping = dict(prior_mapping or {})
        self.capacity = capacity
        self.max_events = max_events
        self.enrich_workers = max(1, enrich_workers)
        self.run_date = run_date or date.today()
        self.processor = processor or EventProcessor()
        self.state = PassState.FETCHING

    def run(self) -> RegenerationResult:
        """
        Execute a full pass.

        Returns:
            RegenerationResult summarizing the pass

        Raises:
            FeedFetchError: If the feed fails; the store is left untouched
            OutputStoreError: If reconciling the store fails
        """
        result = RegenerationResult(state=self.state)

        self._transition(PassState.FETCHING, result)
        try:
            raw_records = fetch_feed(self.feed_client)
        except FeedFetchError as e:
            self._transition(PassState.FAILED, result)
            logger.error(f"Regeneration aborted, output left untouched: {e}")
            raise
        result.feed_events = len(raw_records)

        self._transition(PassState.INDEXING, result)
        index = self._build_index(raw_records)
        subset = index if self.max_events is None else index[:self.max_events]

        self._transition(PassState.ALLOCATING, result)
        allocator = FolderAllocator(capacity=self.capacity, prior_mapping=self.prior_mapping)
        ordered = sort_for_allocation(subset, record=lambda indexed: indexed.record)
        placements = []
        seen = set()
        for indexed in ordered:
            slug = indexed.record.slug
            if slug in seen:
                logger.warning(
                    f"Slug collision: '{indexed.record.name}' also maps to '{slug}', "
                    f"last record wins"
                )
                result.collisions.append(slug)
            seen.add(slug)
            bucket = allocator.allocate(slug)
            placements.append((indexed, f"{bucket}/{slug}"))
        result.rendered_events = len(placements)
        result.folder_counts = allocator.folder_counts

        self._transition(PassState.SYNTHESIZING, result)
        lookups = self._lookup_descriptions([indexed for indexed, _ in placements], result)
        staged: Dict[str, RenderedDocument] = {}
        for (indexed, path), lookup in zip(placements, lookups):
            document = self._synthesize(indexed, path, index, allocator, lookup, result)
            if document is not None:
                staged[path] = document

        self._transition(PassState.RECONCILING, result)
        existing = self.store.list_documents()
        manifest = self._build_manifest(placements, staged, existing)
        result.reconcile = self.store.sync_documents(
            list(staged.values()),
            manifest,
            existing=existing
        )

        sitemap = generate_sitemap_xml(manifest.paths, self.base_url, self.run_date)
        self.store.write_sitemap(sitemap)
        result.sitemap_urls = len(manifest)

        self._transition(PassState.DONE, result)
        self._log_summary(result)
        return result

    def _transition(self, state: PassState, result: RegenerationResult) -> None:
        self.state = state
        result.state = state
        logger.debug(f"Regeneration state: {state.value}")

    def _build_manifest(
        self,
        placements: List[Tuple[IndexedEvent, str]],
        staged: Dict[str, RenderedDocument],
        existing: Dict[str, str]
    ) -> OutputManifest:
        """
        Collect the document paths the store must hold after this pass.

        Staged documents are always kept. An event that failed to render keeps
        the page it already has, at its new path or in an old bucket; with no
        page on disk it is left out of the manifest and the sitemap.
        """
        manifest = OutputManifest()
        for indexed, path in placements:
            if path in staged or path in existing:
                manifest.add_path(path)
                continue
            slug = indexed.record.slug
            previous = [old for old in existing if path_slug(old) == slug]
            if not previous:
                logger.warning(f"No existing document for {path}, leaving it out of the sitemap")
            for old in previous:
                logger.warning(f"Keeping {old} for '{slug}' until it renders at {path}")
                manifest.add_path(old)
        return manifest

    def _build_index(self, raw_records: List[Any]) -> List[IndexedEvent]:
        records = self.processor.process_records(raw_records)
        return [
            IndexedEvent(
                record=record,
                locale_code=self.resolver.resolve(record.latitude, record.longitude).code
            )
            for record in records
        ]

    def _lookup_descriptions(
        self,
        events: List[IndexedEvent],
        result: RegenerationResult
    ) -> List[Optional[DescriptionLookup]]:
        """
        Run description lookups concurrently.

        Only events that carry a description of their own are looked up.
        Lookup errors never propagate.

        Returns:
            One lookup (or None when not attempted) per event, in order
        """
        lookups: List[Optional[DescriptionLookup]] = [None] * len(events)
        if self.description_client is None:
            return lookups

        wanted = [
            position for position, indexed in enumerate(events)
            if self.renderer.has_description(indexed.record)
        ]
        if not wanted:
            return lookups

        logger.info(f"Looking up descriptions for {len(wanted)} events")
        with ThreadPoolExecutor(max_workers=self.enrich_workers) as executor:
            futures = {
                position: executor.submit(self.description_client.lookup, events[position].record.name)
                for position in wanted
            }
            for position, future in futures.items():
                try:
                    lookup = future.result()
                except Exception as e:
                    lookup = DescriptionLookup(error=str(e))
                if not lookup.ok:
                    name = events[position].record.name
                    logger.warning(
                        f"Description lookup failed for '{name}', using feed description: "
                        f"{lookup.error}"
                    )
                    result.enrichment_failures.append(name)
                lookups[position] = lookup
        return lookups

    def _synthesize(
        self,
        indexed: IndexedEvent,
        path: str,
        index: List[IndexedEvent],
        allocator: FolderAllocator,
        lookup: Optional[DescriptionLookup],
        result: RegenerationResult
    ) -> Optional[RenderedDocument]:
        """
        Render one event, falling back to the raw description on failure.

        Returns:
            RenderedDocument, or None when the event could not be rendered
        """
        record = indexed.record
        locale = self.resolver.resolve_domain(record.latitude, record.longitude)
        nearby = self.selector.select(indexed, index)
        for entry in nearby:
            entry.bucket = allocator.bucket_for(entry.slug)

        try:
            return self.renderer.render(record, path, locale, nearby, lookup)
        except Exception as e:
            if lookup is None:
                logger.error(f"Failed to render {path}: {e}", exc_info=True)
                result.render_failures.append(path)
                return None
            logger.warning(f"Rendering {path} with enriched description failed: {e}")

        try:
            return self.renderer.render(record, path, locale, nearby, None)
        except Exception as e:
            logger.error(f"Failed to render {path}: {e}", exc_info=True)
            result.render_failures.append(path)
            return None

    def _log_summary(self, result: RegenerationResult) -> None:
        for folder, count in sorted(result.folder_counts.items()):
            logger.debug(f"Folder {folder}: {count}/{self.capacity} documents")
        logger.info(
            f"Generated {result.rendered_events} event documents across "
            f"{len(result.folder_counts)} folders",
            extra={
                'feed_events': result.feed_events,
                'collisions': len(result.collisions),
                'enrichment_failures': len(result.enrichment_failures),
                'render_failures': len(result.render_failures)
            }
        )


def run_mapping_pass(
    feed_client,
    mapping_path,
    capacity: int = DEFAULT_CAPACITY,
    store=None,
    base_url: Optional[str] = None,
    run_date: Optional[date] = None,
    processor: Optional[EventProcessor] = None
) -> Dict[str, str]:
    """
    Compute and persist bucket assignments for the entire feed.

    When a store and base URL are given, a sitemap covering every feed event
    is written as well.

    Args:
        feed_client: Object with ``fetch_records()``
        mapping_path: JSON file the mapping is written to
        capacity: Maximum documents per bucket
        store: Optional OutputStore for the full-feed sitemap
        base_url: Public URL of the folder tree
        run_date: Date stamped into the sitemap
        processor: EventProcessor used to normalize records

    Returns:
        slug -> bucket mapping

    Raises:
        FeedFetchError: If the feed fails; nothing is written
    """
    raw_records = fetch_feed(feed_client)
    records = (processor or EventProcessor()).process_records(raw_records)
    mapping = build_folder_mapping(records, capacity=capacity)
    save_folder_mapping(mapping_path, mapping)

    if store is not None and base_url:
        paths = [f"{mapping[record.slug]}/{record.slug}" for record in sort_for_allocation(records)]
        paths = list(dict.fromkeys(paths))
        store.write_sitemap(generate_sitemap_xml(paths, base_url, run_date))
    return mapping
