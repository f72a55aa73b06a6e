"""Event processor for normalizing raw feed records."""
import logging
import math
import re
from typing import Any, List

from processor.models import EventCategory, EventRecord

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r'\s+')
_UNSAFE_RE = re.compile(r'[^a-z0-9\-]')


def slugify(name: str) -> str:
    """
    Derive a URL-safe slug from an event name.

    Lowercases, collapses whitespace runs to a single hyphen and drops any
    character outside ``[a-z0-9-]``. The result may be empty.
    """
    slug = _WHITESPACE_RE.sub('-', name.lower())
    return _UNSAFE_RE.sub('', slug)


class EventProcessor:
    """Processor for normalizing raw feed records into EventRecords."""

    PLACEHOLDER_NAME = 'Unknown event'
    JUNIOR_TOKEN = 'junior'

    def process_records(self, raw_records: List[Any]) -> List[EventRecord]:
        """
        Normalize raw feed records.

        Malformed fields are defaulted rather than rejected, so every raw
        record yields exactly one EventRecord.

        Args:
            raw_records: Feature-like dicts from the source feed

        Returns:
            List of EventRecord objects in feed order
        """
        records = [self.process_record(raw) for raw in raw_records]
        logger.info(f"Normalized {len(records)} feed records")
        return records

    def process_record(self, raw: Any) -> EventRecord:
        """
        Normalize a single feed record.

        Args:
            raw: Feature-like dict with ``properties`` and ``geometry``

        Returns:
            EventRecord object
        """
        properties = self._mapping(raw, 'properties')
        geometry = self._mapping(raw, 'geometry')

        raw_name = self._text(properties.get('eventname'))
        name = raw_name or self.PLACEHOLDER_NAME
        long_name = self._text(properties.get('EventLongName')) or name

        coordinates = geometry.get('coordinates')
        if not isinstance(coordinates, (list, tuple)):
            coordinates = []
        longitude = self._coordinate(coordinates, 0)
        latitude = self._coordinate(coordinates, 1)

        if not raw_name:
            logger.debug(f"Feed record has no eventname, using '{name}'")

        return EventRecord(
            name=name,
            long_name=long_name,
            location=self._text(properties.get('EventLocation')),
            latitude=latitude,
            longitude=longitude,
            description=self._text(properties.get('EventDescription')),
            slug=slugify(raw_name),
            category=self.categorize(long_name),
            sort_key=raw_name.lower()
        )

    def categorize(self, display_name: str) -> EventCategory:
        """Return JUNIOR when the display name mentions junior."""
        if self.JUNIOR_TOKEN in display_name.lower():
            return EventCategory.JUNIOR
        return EventCategory.STANDARD

    def _mapping(self, raw: Any, key: str) -> dict:
        if not isinstance(raw, dict):
            return {}
        value = raw.get(key)
        return value if isinstance(value, dict) else {}

    def _text(self, value: Any) -> str:
        if value is None:
            return ''
        return value if isinstance(value, str) else str(value)

    def _coordinate(self, coordinates: list, index: int) -> float:
        """
        Read one coordinate, defaulting to 0 when missing or not numeric.

        Args:
            coordinates: ``[longitude, latitude]`` list from the feed
            index: 0 for longitude, 1 for latitude

        Returns:
            Coordinate as a float
        """
        if index >= len(coordinates):
            return 0.0
        value = coordinates[index]
        if isinstance(value, bool):
            return 0.0
        try:
            number = float(value)
        except (TypeError, ValueError):
            logger.debug(f"Non-numeric coordinate {value!r}, defaulting to 0")
            return 0.0
        if not math.isfinite(number):
            return 0.0
        return number
