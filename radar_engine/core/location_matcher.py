"""
Best-effort location filtering of listings.

Ad location strings are free text ("Campinas - SP", "Austin, TX"), so the
matcher errs on the side of keeping a listing: only a clear mismatch skips it.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern

# Patterns exclusive to each country; abbreviations shared by BR and US
# states (AL, PA, MA, SC, MT, MS) are left out of both
COUNTRY_PATTERNS: Dict[str, List[Pattern[str]]] = {
    "BR": [
        re.compile(r"\b(AC|AP|AM|BA|CE|DF|ES|GO|MG|PB|PR|PE|PI|RJ|RN|RS|RO|RR|SP|SE|TO)\b"),
        re.compile(
            r"\b(Acre|Alagoas|Amapá|Amazonas|Bahia|Ceará|Espírito Santo|Goiás|Maranhão|"
            r"Mato Grosso|Minas Gerais|Pará|Paraíba|Paraná|Pernambuco|Piauí|Rio de Janeiro|"
            r"Rio Grande|Rondônia|Roraima|Santa Catarina|São Paulo|Sergipe|Tocantins|"
            r"Distrito Federal)\b",
            re.IGNORECASE,
        ),
        re.compile(r"\b(Brasil|Brazil)\b", re.IGNORECASE),
    ],
    "US": [
        re.compile(
            r"\b(AK|AZ|AR|CA|CO|CT|DE|FL|GA|HI|ID|IL|IN|IA|KS|KY|LA|ME|MD|MI|MN|MO|NE|NV|NH|"
            r"NJ|NM|NY|NC|ND|OH|OK|OR|RI|SD|TN|TX|UT|VT|VA|WA|WV|WI|WY)\b"
        ),
        re.compile(r"\b(United States|USA)\b", re.IGNORECASE),
    ],
}

WORLDWIDE = "WORLDWIDE"

COUNTRY_MISMATCH = "location_country_mismatch"
STATE_MISMATCH = "location_state_mismatch"
CITY_MISMATCH = "location_city_mismatch"


@dataclass(frozen=True)
class LocationMatch:
    """Result of :func:`match_location`. ``reason`` is set only on mismatch."""

    match: bool
    reason: Optional[str] = None


MATCH = LocationMatch(match=True)


def _matches_any(patterns: List[Pattern[str]], text: str) -> bool:
    return any(p.search(text) for p in patterns)


def match_location(
    ad_location: Optional[str],
    country: Optional[str] = None,
    state_region: Optional[str] = None,
    city: Optional[str] = None,
) -> LocationMatch:
    """
    Match an ad's location text against a monitor's location filter.

    Rules, in order:
    1. No country (or WORLDWIDE) matches everything.
    2. An empty ad location matches.
    3. For BR and US, a location matching only the other country's
       exclusive patterns is a country mismatch. Other countries skip this.
    4. A state/region must appear as a whole word.
    5. A city must appear as a substring.

    Args:
        ad_location: Location text scraped from the ad.
        country: ISO 3166-1 alpha-2 code, WORLDWIDE, or None.
        state_region: State or region filter.
        city: City filter.
    """
    country = (country or "").strip().upper()
    if not country or country == WORLDWIDE:
        return MATCH

    if not ad_location or not ad_location.strip():
        return MATCH

    location = ad_location.strip()

    own_patterns = COUNTRY_PATTERNS.get(country)
    if own_patterns is not None:
        matches_own = _matches_any(own_patterns, location)
        matches_other = any(
            _matches_any(patterns, location)
            for other, patterns in COUNTRY_PATTERNS.items()
            if other != country
        )
        if matches_other and not matches_own:
            return LocationMatch(match=False, reason=COUNTRY_MISMATCH)

    if state_region and state_region.strip():
        state = re.escape(state_region.strip().upper())
        if not re.search(rf"\b{state}\b", location, re.IGNORECASE):
            return LocationMatch(match=False, reason=STATE_MISMATCH)

    if city and city.strip():
        if city.strip().lower() not in location.lower():
            return LocationMatch(match=False, reason=CITY_MISMATCH)

    return MATCH
