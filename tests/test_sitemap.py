"""Unit tests for sitemap generation."""
from datetime import date
from xml.etree import ElementTree

from render.sitemap import clean_path, generate_sitemap_xml

NS = {'sm': 'http://www.sitemaps.org/schemas/sitemap/0.9'}


class TestSitemap:
    """Test cases for generate_sitemap_xml."""

    def test_one_url_per_path(self):
        """Test every manifest path becomes a url entry."""
        xml = generate_sitemap_xml(
            ['B/bushy-park', 'B/bushy-park-junior'],
            'https://www.example.com/explore/',
            run_date=date(2026, 10, 19)
        )

        root = ElementTree.fromstring(xml)
        urls = root.findall('sm:url', NS)
        assert len(urls) == 2
        assert [u.find('sm:loc', NS).text for u in urls] == [
            'https://www.example.com/explore/B/bushy-park',
            'https://www.example.com/explore/B/bushy-park-junior',
        ]
        for url in urls:
            assert url.find('sm:lastmod', NS).text == '2026-10-19'
            assert url.find('sm:changefreq', NS).text == 'monthly'
            assert url.find('sm:priority', NS).text == '0.8'

    def test_empty_manifest(self):
        """Test that an empty manifest yields a valid, empty urlset."""
        root = ElementTree.fromstring(generate_sitemap_xml([], 'https://www.example.com'))

        assert root.findall('sm:url', NS) == []

    def test_locations_are_escaped(self):
        """Test that XML special characters in paths are escaped."""
        xml = generate_sitemap_xml(['A/a&b'], 'https://www.example.com')

        assert '<loc>https://www.example.com/A/a&amp;b</loc>' in xml
        ElementTree.fromstring(xml)

    def test_clean_path(self):
        """Test that .html suffixes and trailing slashes are dropped."""
        assert clean_path('B/bushy-park.html') == 'B/bushy-park'
        assert clean_path('0-9/') == '0-9'
        assert clean_path('B/bushy-park') == 'B/bushy-park'
