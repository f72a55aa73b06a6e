"""Bounding-box locale resolution for event coordinates."""
import logging
import math
from typing import Iterable, Optional, Tuple

from processor.models import LocaleEntry, LocaleInfo

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = LocaleInfo(domain='www.parkrun.org.uk', code='97')

# Order matters: the first box containing a point wins, and the world
# catch-all overlaps every country box after it.
DEFAULT_LOCALE_TABLE: Tuple[LocaleEntry, ...] = (
    LocaleEntry('0', None, (-141.002, -47.29, 180, 83.1132)),
    LocaleEntry('3', 'www.parkrun.com.au', (112.921, -43.6432, 153.639, -10.0591)),
    LocaleEntry('4', 'www.parkrun.co.at', (9.53095, 46.3727, 17.1621, 49.0212)),
    LocaleEntry('14', 'www.parkrun.ca', (-141.002, 41.6766, -52.6191, 83.1132)),
    LocaleEntry('23', 'www.parkrun.dk', (8.07251, 54.5591, 15.157, 57.3282)),
    LocaleEntry('30', 'www.parkrun.fi', (20.5486, 59.8078, 31.5867, 70.0923)),
    LocaleEntry('32', 'www.parkrun.com.de', (5.86632, 47.2701, 15.0418, 55.0584)),
    LocaleEntry('42', 'www.parkrun.ie', (-10.48, 51.4475, -5.99805, 55.3829)),
    LocaleEntry('44', 'www.parkrun.it', (6.62662, 36.6441, 18.5204, 47.0918)),
    LocaleEntry('46', 'www.parkrun.jp', (122.934, 24.2552, 145.817, 45.523)),
    LocaleEntry('54', 'www.parkrun.lt', (20.9415, 53.8968, 26.8355, 56.4504)),
    LocaleEntry('57', 'www.parkrun.my', (99.6407, 0.855001, 119.27, 7.36334)),
    LocaleEntry('64', 'www.parkrun.co.nl', (3.35838, 50.7504, 7.2275, 53.5157)),
    LocaleEntry('65', 'www.parkrun.co.nz', (166.724, -47.29, 180, -34.3928)),
    LocaleEntry('67', 'www.parkrun.no', (4.64182, 57.9799, 31.0637, 71.1855)),
    LocaleEntry('74', 'www.parkrun.pl', (14.1229, 49.002, 24.1458, 54.8358)),
    LocaleEntry('82', 'www.parkrun.sg', (103.606, 1.21065, 104.044, 1.47077)),
    LocaleEntry('85', 'www.parkrun.co.za', (16.4519, -34.8342, 32.945, -22.125)),
    LocaleEntry('88', 'www.parkrun.se', (11.1095, 55.3374, 24.1552, 69.06)),
    LocaleEntry('97', 'www.parkrun.org.uk', (-8.61772, 49.9029, 1.76891, 59.3608)),
    LocaleEntry('98', 'www.parkrun.us', (-124.733, 24.5439, -66.9492, 49.3845)),
)


class GeoLocaleResolver:
    """
    Resolve coordinates to a locale via an ordered bounding-box table.

    Boxes may overlap; the first entry in table order that contains the
    point wins. Resolution is best-effort and never raises.
    """

    def __init__(
        self,
        table: Iterable[LocaleEntry] = DEFAULT_LOCALE_TABLE,
        default: LocaleInfo = DEFAULT_LOCALE
    ):
        """
        Initialize the resolver.

        Args:
            table: Ordered locale entries, first match wins
            default: Locale returned when no entry matches
        """
        self.table = tuple(table)
        self.default = default

    def resolve(self, latitude: float, longitude: float) -> LocaleInfo:
        """
        Resolve a locale, accepting catch-all entries without a domain.

        Args:
            latitude: Latitude in degrees
            longitude: Longitude in degrees

        Returns:
            LocaleInfo of the first containing entry, or the default
        """
        entry = self._first_match(latitude, longitude, require_domain=False)
        if entry is None:
            return self.default
        return LocaleInfo(domain=entry.domain, code=entry.code)

    def resolve_domain(self, latitude: float, longitude: float) -> LocaleInfo:
        """
        Resolve a locale that has a concrete external domain.

        Catch-all entries are skipped; the default locale is the last resort.

        Args:
            latitude: Latitude in degrees
            longitude: Longitude in degrees

        Returns:
            LocaleInfo with a non-null domain whenever the default has one
        """
        entry = self._first_match(latitude, longitude, require_domain=True)
        if entry is None:
            return self.default
        return LocaleInfo(domain=entry.domain, code=entry.code)

    def _first_match(
        self,
        latitude: float,
        longitude: float,
        require_domain: bool
    ) -> Optional[LocaleEntry]:
        try:
            latitude = float(latitude)
            longitude = float(longitude)
        except (TypeError, ValueError):
            logger.debug(f"Unresolvable coordinates ({latitude!r}, {longitude!r})")
            return None
        if not (math.isfinite(latitude) and math.isfinite(longitude)):
            return None

        for entry in self.table:
            if require_domain and entry.domain is None:
                continue
            if entry.contains(latitude, longitude):
                return entry
        return None
