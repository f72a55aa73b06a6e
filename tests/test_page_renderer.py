"""Unit tests for PageRenderer."""
from datetime import date

import pytest

from processor.event_processor import EventProcessor
from processor.models import DescriptionLookup, LocaleInfo, NearbyEntry
from render.page_renderer import PageRenderer, clean_description, next_friday

EXPLORE_URL = 'https://www.example.com/explore'
UK = LocaleInfo(domain='www.parkrun.org.uk', code='97')


def make_record(name='bushy', long_name='Bushy Park', description='', location=''):
    return EventProcessor().process_record({
        'properties': {
            'eventname': name,
            'EventLongName': long_name,
            'EventDescription': description,
            'EventLocation': location,
        },
        'geometry': {'coordinates': [-0.34, 51.41]}
    })


@pytest.fixture
def renderer():
    return PageRenderer(EXPLORE_URL, site_url='https://www.example.com', run_date=date(2026, 10, 19))


class TestPageRenderer:
    """Test cases for PageRenderer class."""

    def test_render_basic_page(self, renderer):
        """Test the rendered page carries the event context."""
        nearby = [NearbyEntry(slug='richmond-park', long_name='Richmond Park', distance_km=4.26, bucket='R')]

        document = renderer.render(make_record(location='Teddington'), 'B/bushy', UK, nearby)

        assert document.relative_path == 'B/bushy'
        assert '<h1>Accommodation near Bushy Park</h1>' in document.content
        assert 'Teddington' in document.content
        assert f'<link rel="canonical" href="{EXPLORE_URL}/B/bushy" />' in document.content
        assert 'https://www.parkrun.org.uk/bushy/course/' in document.content
        assert f'<a href="{EXPLORE_URL}/R/richmond-park">Richmond Park</a>' in document.content
        assert '4.3 km' in document.content
        assert 'richmond park' in document.content
        assert 'checkin=2026-10-23' in document.content

    def test_render_escapes_feed_text(self, renderer):
        """Test that feed text cannot inject markup."""
        record = make_record(long_name='Bushy <script>alert(1)</script> Park')

        document = renderer.render(record, 'B/bushy', UK, [])

        assert '<script>alert(1)</script>' not in document.content
        assert '&lt;script&gt;' in document.content

    def test_render_junior_event_type(self, renderer):
        """Test that junior events use the junior map view."""
        record = make_record(name='bushy-juniors', long_name='Bushy Park Junior')

        document = renderer.render(record, 'B/bushy-juniors', UK, [])

        assert '/main?Junior&' in document.content

    def test_render_without_description(self, renderer):
        """Test that no description block is rendered for an empty description."""
        document = renderer.render(make_record(description='No description available.'), 'B/bushy', UK, [])

        assert 'class="description"' not in document.content

    def test_render_with_enriched_description(self, renderer):
        """Test that a successful lookup replaces the feed description."""
        lookup = DescriptionLookup(
            text='Bushy Park is a royal park.',
            source_url='https://en.wikipedia.org/wiki/Bushy_Park'
        )

        document = renderer.render(make_record(description='Feed text'), 'B/bushy', UK, [], lookup)

        assert 'Bushy Park is a royal park.' in document.content
        assert 'https://en.wikipedia.org/wiki/Bushy_Park' in document.content
        assert 'Feed text' not in document.content

    def test_render_falls_back_to_raw_description(self, renderer):
        """Test that a failed lookup renders the feed description."""
        lookup = DescriptionLookup(error='timed out')

        document = renderer.render(make_record(description='<b>Flat</b> course'), 'B/bushy', UK, [], lookup)

        assert '<p>Flat course</p>' in document.content
        assert 'Wikipedia' not in document.content

    def test_has_description(self, renderer):
        """Test which descriptions are worth enriching."""
        assert renderer.has_description(make_record(description='A flat course'))
        assert not renderer.has_description(make_record(description='   '))
        assert not renderer.has_description(make_record(description='No description available.'))


class TestHelpers:
    """Test cases for rendering helpers."""

    @pytest.mark.parametrize('today,expected', [
        (date(2026, 10, 19), date(2026, 10, 23)),
        (date(2026, 10, 23), date(2026, 10, 30)),
        (date(2026, 10, 24), date(2026, 10, 30)),
    ])
    def test_next_friday(self, today, expected):
        """Test that the next Friday is always in the future."""
        assert next_friday(today) == expected

    def test_clean_description(self):
        """Test that markup is stripped from descriptions."""
        assert clean_description('<p>Two <em>laps</em></p>') == 'Two laps'
        assert clean_description('') == ''
