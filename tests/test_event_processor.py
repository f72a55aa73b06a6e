"""Unit tests for EventProcessor and slugify."""
import pytest

from processor.event_processor import EventProcessor, slugify
from processor.models import EventCategory


def make_feature(name=None, lon=-0.34, lat=51.41, **properties):
    """Build a feed feature."""
    props = dict(properties)
    if name is not None:
        props['eventname'] = name
    return {
        'type': 'Feature',
        'properties': props,
        'geometry': {'type': 'Point', 'coordinates': [lon, lat]}
    }


class TestSlugify:
    """Test cases for slug derivation."""

    @pytest.mark.parametrize('name,expected', [
        ('Bushy Park', 'bushy-park'),
        ('Bushy  Park\tJunior', 'bushy-park-junior'),
        ("St. Peter's Field", 'st-peters-field'),
        ('Parc Montsouris (Paris)', 'parc-montsouris-paris'),
        ('5K Riverside', '5k-riverside'),
        ('Zürich', 'zrich'),
        ('', ''),
        ('!!!', ''),
    ])
    def test_slugify(self, name, expected):
        """Test slug normalization rules."""
        assert slugify(name) == expected

    @pytest.mark.parametrize('name', [
        'Bushy Park', '  Leading space', 'Trailing space  ', 'Mixed-CASE & Symbols #1', ''
    ])
    def test_slugify_idempotent(self, name):
        """Test that slugifying a slug changes nothing."""
        once = slugify(name)
        assert slugify(once) == once

    def test_slug_only_contains_safe_characters(self):
        """Test that slugs only contain lowercase letters, digits and hyphens."""
        slug = slugify('Ünïcode — Park / Trail?')
        assert all(c.isdigit() or c == '-' or 'a' <= c <= 'z' for c in slug)


class TestEventProcessor:
    """Test cases for EventProcessor class."""

    def test_process_record_valid_feature(self):
        """Test normalizing a complete feature."""
        processor = EventProcessor()

        record = processor.process_record(make_feature(
            'bushy',
            lon=-0.3356,
            lat=51.4106,
            EventLongName='Bushy Park',
            EventLocation='Teddington Lock',
            EventDescription='The first parkrun.'
        ))

        assert record.name == 'bushy'
        assert record.long_name == 'Bushy Park'
        assert record.location == 'Teddington Lock'
        assert record.latitude == 51.4106
        assert record.longitude == -0.3356
        assert record.description == 'The first parkrun.'
        assert record.slug == 'bushy'
        assert record.category is EventCategory.STANDARD
        assert record.sort_key == 'bushy'

    def test_long_name_defaults_to_name(self):
        """Test that the display name falls back to the event name."""
        record = EventProcessor().process_record(make_feature('Bushy Park'))

        assert record.long_name == 'Bushy Park'

    def test_junior_category_from_display_name(self):
        """Test that junior events are categorized once at ingestion."""
        processor = EventProcessor()

        junior = processor.process_record(make_feature('bushy-juniors', EventLongName='Bushy Park JUNIOR'))
        standard = processor.process_record(make_feature('bushy', EventLongName='Bushy Park'))

        assert junior.category is EventCategory.JUNIOR
        assert junior.is_junior
        assert standard.category is EventCategory.STANDARD
        assert not standard.is_junior

    def test_empty_eventname_gets_placeholder_and_empty_slug(self):
        """Test that an empty event name still yields a record."""
        record = EventProcessor().process_record(make_feature(''))

        assert record.name == 'Unknown event'
        assert record.long_name == 'Unknown event'
        assert record.slug == ''
        assert record.sort_key == ''

    def test_missing_properties_and_geometry(self):
        """Test that a bare record is defaulted, not rejected."""
        record = EventProcessor().process_record({})

        assert record.name == 'Unknown event'
        assert record.slug == ''
        assert record.latitude == 0.0
        assert record.longitude == 0.0
        assert record.location == ''
        assert record.description == ''

    @pytest.mark.parametrize('coordinates', [
        None,
        [],
        ['abc', None],
        [float('nan'), float('inf')],
        [True, False],
        'not-a-list',
    ])
    def test_malformed_coordinates_default_to_zero(self, coordinates):
        """Test that bad coordinates default to 0."""
        feature = make_feature('Bushy Park')
        feature['geometry']['coordinates'] = coordinates

        record = EventProcessor().process_record(feature)

        assert record.latitude == 0.0
        assert record.longitude == 0.0

    def test_numeric_string_coordinates_are_parsed(self):
        """Test that numeric strings are accepted as coordinates."""
        feature = make_feature('Bushy Park')
        feature['geometry']['coordinates'] = ['-0.34', '51.41']

        record = EventProcessor().process_record(feature)

        assert record.longitude == -0.34
        assert record.latitude == 51.41

    def test_process_records_keeps_every_record_in_order(self):
        """Test that every raw record yields exactly one EventRecord."""
        raw = [make_feature('Bushy Park'), 'garbage', make_feature(''), make_feature('Albert Park')]

        records = EventProcessor().process_records(raw)

        assert [r.slug for r in records] == ['bushy-park', '', '', 'albert-park']
