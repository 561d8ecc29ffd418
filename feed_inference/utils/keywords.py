"""
Keyword dictionaries used to classify field names.

Real-estate feeds in the wild mix English and Russian field names, so each
category lists both. Matching is a case-insensitive substring test against
the last segment of a field path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Tuple

from .naming import last_segment, to_snake_case


@dataclass(frozen=True)
class KeywordSet:
    """A named group of field-name fragments."""

    name: str
    keywords: Tuple[str, ...]

    def matches(self, field: str) -> bool:
        """True when any keyword occurs in ``field`` (case-insensitive)."""
        lower = field.lower()
        return any(keyword.lower() in lower for keyword in self.keywords)

    def matches_path(self, path: str) -> bool:
        return self.matches(last_segment(path))

    def matching_paths(self, paths: Iterable[str]) -> List[str]:
        return [path for path in paths if self.matches_path(path)]


PRICE = KeywordSet(
    "price",
    (
        "price", "cost", "amount", "sum",
        "цена", "стоимость", "сумма",
        "price_from", "price_to", "price_min", "price_max",
        "price_base", "price_sale",
    ),
)

AREA = KeywordSet(
    "area",
    (
        "area", "square", "space", "footage",
        "площадь", "метраж",
        "total_area", "living_area", "kitchen_area",
        "area_total", "area_living", "area_kitchen",
    ),
)

ROOMS = KeywordSet(
    "rooms",
    (
        "rooms", "room_count", "rooms_count", "bedrooms", "flat_type",
        "комнат", "комнатность", "studio",
    ),
)

REGION = KeywordSet(
    "region",
    (
        "region", "city", "district", "municipality",
        "region_id", "city_id", "district_id",
        "регион", "город", "район", "okrug",
    ),
)

METRO = KeywordSet(
    "metro",
    (
        "metro", "subway", "station", "metro_id", "subway_id",
        "метро", "станция", "nearest_metro",
    ),
)

FINISHING = KeywordSet(
    "finishing",
    (
        "finishing", "decoration", "finish", "interior",
        "отделка", "ремонт", "finishing_type",
    ),
)

DATE = KeywordSet(
    "date",
    (
        "date", "deadline", "handover", "completion", "delivery", "quarter",
        "срок", "квартал", "delivery_year", "delivery_quarter", "built_year",
    ),
)

TEXT = KeywordSet(
    "text",
    (
        "description", "text", "about", "info", "content",
        "name", "title", "address", "location",
        "описание", "название", "адрес",
    ),
)

GEO = KeywordSet(
    "geo",
    (
        "lat", "latitude", "lng", "lon", "longitude",
        "coords", "coordinates", "geo", "gps",
        "latitude_center", "longitude_center",
    ),
)

# Filter categories in report order: (flag name, paths key, keyword set)
FILTER_CATEGORIES: Tuple[Tuple[str, str, KeywordSet], ...] = (
    ("price", "price_fields", PRICE),
    ("area", "area_fields", AREA),
    ("rooms", "rooms_fields", ROOMS),
    ("region", "region_fields", REGION),
    ("metro", "metro_fields", METRO),
    ("finishings", "finishing_fields", FINISHING),
    ("completion_date", "date_fields", DATE),
)


_TOKEN_SPLIT_RE = re.compile(r"[^0-9a-z\u0430-\u044f\u0451]+")
_LATITUDE_TOKENS: FrozenSet[str] = frozenset({"lat", "latitude"})
_LONGITUDE_TOKENS: FrozenSet[str] = frozenset({"lng", "lon", "long", "longitude"})


def name_tokens(column: str) -> List[str]:
    """
    Split a field name into lower-case words on separators and camelCase.

    Examples:
        >>> name_tokens("geoLat")
        ['geo', 'lat']
        >>> name_tokens("latitude-center")
        ['latitude', 'center']
    """
    return [token for token in _TOKEN_SPLIT_RE.split(to_snake_case(column)) if token]


def is_latitude(column: str) -> bool:
    """Whether the name has a ``lat`` or ``latitude`` word (``plate`` does not)."""
    return any(token in _LATITUDE_TOKENS for token in name_tokens(column))


def is_longitude(column: str) -> bool:
    return any(token in _LONGITUDE_TOKENS for token in name_tokens(column))
