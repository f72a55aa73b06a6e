"""HTML page rendering for individual events."""
import logging
from datetime import date, timedelta
from typing import List, Optional
from urllib.parse import quote

from bs4 import BeautifulSoup
from jinja2 import Environment

from processor.models import (
    DescriptionLookup,
    EventRecord,
    LocaleInfo,
    NearbyEntry,
    RenderedDocument,
)

logger = logging.getLogger(__name__)

_jinja_env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)

EMPTY_DESCRIPTIONS = {'', 'No description available.'}

PAGE_TEMPLATE = _jinja_env.from_string("""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Accommodation near {{ long_name }} | Hotels, Weather & Course Map</title>
  <meta name="description" content="Planning a visit to {{ long_name }}? Find the best hotels, check live weather forecasts, view the course map, and see event status updates." />
  <meta name="keywords" content="accommodation near {{ long_name }}, hotels near {{ name | lower }}, parkrun tourist{% if nearby %}, {{ nearby | map(attribute='long_name') | map('lower') | join(', ') }}{% endif %}" />
  <link rel="canonical" href="{{ canonical_url }}" />
  <link rel="icon" type="image/x-icon" href="{{ site_url }}/favicon.ico">
</head>
<body>
<header><a href="{{ site_url }}">parkrunner tourist</a></header>
<main>
  <h1>Accommodation near {{ long_name }}</h1>
{% if location %}
  <p class="event-location">{{ location }}</p>
{% endif %}

  <div class="parkrun-actions">
    <a href="https://{{ domain }}/{{ slug }}/course/" target="_blank" rel="noopener" class="action-btn">Course Map</a>
    <a href="https://{{ domain }}/{{ slug }}/futureroster/" target="_blank" rel="noopener" class="action-btn">Volunteer Roster</a>
    <a href="https://www.google.com/maps/dir/?api=1&destination={{ latitude }},{{ longitude }}" target="_blank" rel="noopener" class="action-btn">Directions</a>
  </div>

{% if show_description %}
  <div class="description">
{% if wiki_text %}
    <p>{{ wiki_text }}</p>
    <p><em>Source: <a href="{{ wiki_url }}" target="_blank" rel="noopener noreferrer">Wikipedia</a></em></p>
{% else %}
    <p>{{ description }}</p>
{% endif %}
  </div>
{% endif %}

  <section id="weather-section">
    <h2>Weather This Week</h2>
    <iframe data-src="{{ site_url }}/weather?lat={{ latitude }}&lon={{ longitude }}"></iframe>
  </section>

  <section id="location-section">
    <h2>parkrun Location</h2>
    <iframe data-src="{{ site_url }}/main?{{ event_type }}&lat={{ latitude }}&lon={{ longitude }}&zoom=13"></iframe>
  </section>

  <section id="hotels-section">
    <h2>Hotel Prices</h2>
    <iframe scrolling="no" src="https://www.stay22.com/embed/gm?aid=parkrunnertourist&lat={{ latitude }}&lng={{ longitude }}&checkin={{ checkin }}&maincolor=7dd856&venue={{ venue }}&viewmode=listview"></iframe>
  </section>

  <section id="nearby-section">
    <h2>Nearby parkruns</h2>
    <div class="nearby-list">
{% for entry in nearby %}
      <div class="nearby-item">
        <a href="{{ explore_url }}/{{ entry.bucket }}/{{ entry.slug }}">{{ entry.long_name }}</a>
        <span>{{ '%.1f' | format(entry.distance_km) }} km</span>
      </div>
{% endfor %}
    </div>
  </section>
</main>
</body>
</html>
""")


def clean_description(raw: str) -> str:
    """Strip any markup from a feed description, leaving plain text."""
    if not raw:
        return ''
    return BeautifulSoup(raw, 'html.parser').get_text(' ', strip=True)


def next_friday(today: date) -> date:
    """The next Friday strictly after ``today``."""
    days_until = (4 - today.weekday()) % 7 or 7
    return today + timedelta(days=days_until)


class PageRenderer:
    """Renders one event page from its resolved context."""

    def __init__(
        self,
        explore_url: str,
        site_url: str = 'https://www.parkrunnertourist.com',
        run_date: Optional[date] = None
    ):
        """
        Initialize the renderer.

        Args:
            explore_url: Public URL of the folder tree, used for links
            site_url: Public URL of the site root
            run_date: Date of the pass, used for booking widgets
        """
        self.explore_url = explore_url.rstrip('/')
        self.site_url = site_url.rstrip('/')
        self.run_date = run_date or date.today()

    def has_description(self, record: EventRecord) -> bool:
        """Whether the record carries a usable description worth enriching."""
        return record.description.strip() not in EMPTY_DESCRIPTIONS

    def render(
        self,
        record: EventRecord,
        relative_path: str,
        locale: LocaleInfo,
        nearby: List[NearbyEntry],
        lookup: Optional[DescriptionLookup] = None
    ) -> RenderedDocument:
        """
        Render an event page.

        A failed or missing lookup falls back to the feed's own description.

        Args:
            record: Event being rendered
            relative_path: ``<bucket>/<slug>`` of the page
            locale: Locale carrying the external course domain
            nearby: Nearby suggestions with buckets filled in
            lookup: Optional enrichment outcome

        Returns:
            RenderedDocument for the page
        """
        show_description = self.has_description(record)
        wiki_text = None
        wiki_url = None
        if show_description and lookup is not None and lookup.ok:
            wiki_text = lookup.text
            wiki_url = lookup.source_url

        content = PAGE_TEMPLATE.render(
            name=record.name,
            long_name=record.long_name,
            slug=record.slug,
            location=record.location,
            latitude=record.latitude,
            longitude=record.longitude,
            domain=locale.domain,
            show_description=show_description,
            description=clean_description(record.description),
            wiki_text=wiki_text,
            wiki_url=wiki_url,
            nearby=nearby,
            event_type='Junior' if record.is_junior else '5k',
            checkin=next_friday(self.run_date).isoformat(),
            venue=quote(record.long_name),
            canonical_url=f"{self.explore_url}/{relative_path}",
            explore_url=self.explore_url,
            site_url=self.site_url,
        )
        logger.debug(f"Rendered {relative_path} ({len(nearby)} nearby)")
        return RenderedDocument(relative_path=relative_path, content=content)
