"""Wikipedia lookup for event descriptions."""
import logging
from urllib.parse import quote

import requests

from processor.models import DescriptionLookup

logger = logging.getLogger(__name__)


class WikipediaDescriptionClient:
    """Fetches the introductory extract of a Wikipedia article."""

    API_URL = 'https://en.wikipedia.org/w/api.php'
    ARTICLE_URL = 'https://en.wikipedia.org/wiki/'
    MIN_EXTRACT_LENGTH = 50

    def __init__(self, timeout: int = 10, session: requests.Session = None):
        """
        Initialize the client.

        Args:
            timeout: Per-lookup HTTP timeout in seconds
            session: Optional requests session to reuse connections
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    def lookup(self, title: str) -> DescriptionLookup:
        """
        Look up the extract for an article title.

        Never raises; failures come back as a DescriptionLookup with
        ``error`` set.

        Args:
            title: Article title, usually the event name

        Returns:
            DescriptionLookup with the extract text or an error message
        """
        params = {
            'action': 'query',
            'format': 'json',
            'prop': 'extracts',
            'exintro': '',
            'explaintext': '',
            'titles': title,
        }
        try:
            response = self.session.get(self.API_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Wikipedia lookup failed for '{title}': {e}")
            return DescriptionLookup(error=str(e))

        try:
            pages = data['query']['pages']
            page_id = next(iter(pages))
        except (KeyError, TypeError, StopIteration):
            return DescriptionLookup(error='Unexpected Wikipedia response structure')

        if page_id == '-1':
            return DescriptionLookup(error=f"No Wikipedia article for '{title}'")

        extract = (pages[page_id] or {}).get('extract') or ''
        if len(extract) <= self.MIN_EXTRACT_LENGTH:
            return DescriptionLookup(error=f"Wikipedia extract for '{title}' too short")
        return DescriptionLookup(text=extract, source_url=self.article_url(title))

    def article_url(self, title: str) -> str:
        """Public article URL for a title."""
        return self.ARTICLE_URL + quote(title.replace(' ', '_'))
