"""Nearby-event selection."""
from typing import Iterable, List

from processor.distance import distance_km
from processor.models import IndexedEvent, NearbyEntry

DEFAULT_NEARBY_COUNT = 4


class NearbySelector:
    """Rank the closest events to a target event."""

    def __init__(
        self,
        k: int = DEFAULT_NEARBY_COUNT,
        match_locale: bool = True,
        match_category: bool = True
    ):
        """
        Initialize the selector.

        Args:
            k: Maximum number of suggestions
            match_locale: Only suggest events in the target's locale
            match_category: Only suggest events of the target's category
        """
        self.k = k
        self.match_locale = match_locale
        self.match_category = match_category

    def select(
        self,
        target: IndexedEvent,
        candidates: Iterable[IndexedEvent]
    ) -> List[NearbyEntry]:
        """
        Return up to ``k`` candidates ordered by distance from the target.

        Candidates sharing the target's slug are excluded. Ties keep input
        order.

        Args:
            target: Event the suggestions are for
            candidates: Full event index

        Returns:
            List of NearbyEntry objects, nearest first
        """
        if self.k <= 0:
            return []

        record = target.record
        ranked = []
        for candidate in candidates:
            other = candidate.record
            if other.slug == record.slug:
                continue
            if self.match_locale and candidate.locale_code != target.locale_code:
                continue
            if self.match_category and other.category is not record.category:
                continue
            distance = distance_km(
                record.latitude, record.longitude,
                other.latitude, other.longitude
            )
            ranked.append((distance, other))

        ranked.sort(key=lambda pair: pair[0])
        return [
            NearbyEntry(slug=other.slug, long_name=other.long_name, distance_km=distance)
            for distance, other in ranked[:self.k]
        ]


def nearby(
    target: IndexedEvent,
    all_events: Iterable[IndexedEvent],
    k: int = DEFAULT_NEARBY_COUNT
) -> List[NearbyEntry]:
    """Nearest ``k`` events to ``target`` with locale and category matching."""
    return NearbySelector(k=k).select(target, all_events)
