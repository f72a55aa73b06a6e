"""Client for the source events feed."""
import json
import logging
import time
from pathlib import Path
from typing import Any, List

import requests

from processor.models import FeedFetchError, FeedStructureError

logger = logging.getLogger(__name__)


def extract_features(data: Any) -> List[Any]:
    """
    Pull the list of event features out of a decoded feed.

    Accepts a bare array, ``{"features": [...]}`` or
    ``{"events": {"features": [...]}}``.

    Args:
        data: Decoded JSON document

    Returns:
        List of feature-like records

    Raises:
        FeedStructureError: If the document has any other shape
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if isinstance(data.get('features'), list):
            return data['features']
        events = data.get('events')
        if isinstance(events, dict) and isinstance(events.get('features'), list):
            return events['features']
    raise FeedStructureError('Unexpected JSON structure in events feed')


class EventsFeedClient:
    """Fetches the events feed from a URL or a local file."""

    MAX_RETRIES = 3
    BASE_DELAY = 1  # seconds

    def __init__(self, source: str, timeout: int = 30):
        """
        Initialize the feed client.

        Args:
            source: http(s) URL or filesystem path of the feed
            timeout: HTTP request timeout in seconds (default: 30)
        """
        self.source = source
        self.timeout = timeout

    def fetch_records(self) -> List[Any]:
        """
        Fetch and unwrap the feed.

        Returns:
            List of raw feature records

        Raises:
            FeedFetchError: If the feed cannot be fetched or decoded
            FeedStructureError: If the feed has an unrecognized shape
        """
        logger.info(f"Fetching events feed from {self.source}")
        if self._is_url():
            text = self._fetch_url()
        else:
            text = self._read_file()

        try:
            data = json.loads(text)
        except ValueError as e:
            raise FeedFetchError(f"Events feed is not valid JSON: {e}") from e

        records = extract_features(data)
        logger.info(f"Fetched {len(records)} records from events feed")
        return records

    def _is_url(self) -> bool:
        return self.source.startswith(('http://', 'https://'))

    def _read_file(self) -> str:
        try:
            return Path(self.source).read_text(encoding='utf-8')
        except OSError as e:
            raise FeedFetchError(f"Could not read events feed {self.source}: {e}") from e

    def _fetch_url(self) -> str:
        """
        Fetch the feed over HTTP with retry logic.

        Returns:
            Response body as text

        Raises:
            FeedFetchError: If all retry attempts fail
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                logger.info(f"Fetching events feed (attempt {attempt + 1}/{self.MAX_RETRIES})")
                response = requests.get(self.source, timeout=self.timeout)
                response.raise_for_status()
                return response.text

            except requests.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = self.BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.MAX_RETRIES} retry attempts failed. Last error: {e}"
                    )
                    raise FeedFetchError(f"Failed to fetch events feed: {e}") from e
