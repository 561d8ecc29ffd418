"""
Application constants for the feed inference toolkit.

This module contains default values and fixed lookup lists used by the
schema mapper, relationship analyzer, report builder and discovery.
"""

from __future__ import annotations

# Schema mapping defaults
DEFAULT_MAX_DEPTH = 10
DEFAULT_ARRAY_SAMPLE_SIZE = 20
DEFAULT_EXAMPLE_MAX_LENGTH = 200
DEFAULT_ENUM_THRESHOLD = 20
NUMERIC_ENUM_MAX_DISTINCT = 10  # Numeric fields need a tighter bound
DISTINCT_VALUE_MAX_LENGTH = 100  # chars kept per histogram key

# Relationship confidence levels
NESTING_CONFIDENCE = 1.0
FOREIGN_KEY_CONFIDENCE = 0.85
UNRESOLVED_FK_CONFIDENCE = 0.5
CIRCULAR_DEPENDENCY_REASON = "Circular dependency detected - verify manually"

# Report builder limits
REQUIRED_OCCURRENCE_RATIO = 0.95
TEXT_CANDIDATE_LIMIT = 30
GEO_CANDIDATE_LIMIT = 20
TEXT_EXAMPLE_MIN_LENGTH = 30
EMBEDDED_ARRAY_MIN_DEPTH = 2

# HTTP defaults
DEFAULT_REQUEST_TIMEOUT = 120  # seconds
DEFAULT_RETRY_TIMES = 3
DEFAULT_RETRY_SLEEP_MS = 2000
DEFAULT_USER_AGENT = "feed-inference/0.1 (+schema discovery)"

# Discovery defaults
DEFAULT_MAX_PAGES = 50
EMBEDDED_URL_MIN_LENGTH = 10
EMBEDDED_SCAN_CHILDREN = 3  # items inspected per nested container

PAGE_PARAMS = ("page", "p", "pg", "offset", "Page", "PAGE")

NEXT_URL_KEYS = (
    "pagination.next_page_url",
    "pagination.next",
    "meta.next_page_url",
    "links.next",
    "next_page_url",
    "next",
    "nextPage",
    "nextPageUrl",
)

CURRENT_PAGE_KEYS = (
    "pagination.current_page",
    "meta.current_page",
    "current_page",
    "page",
)

TOTAL_PAGES_KEYS = (
    "pagination.total_pages",
    "pagination.last_page",
    "meta.last_page",
    "meta.total_pages",
    "total_pages",
    "last_page",
    "pages",
    "pageCount",
)

HAS_NEXT_KEYS = ("has_next_page", "hasNextPage", "has_more", "hasMore")

REGION_KEYS = ("region", "city", "city_id", "region_id", "location", "area")

REGION_TRIAL_PARAMS = (
    ("region", "moscow"),
    ("city", "moscow"),
    ("city_id", "1"),
    ("region_id", "1"),
)

ERROR_PAYLOAD_KEYS = ("error", "message", "detail", "status", "code")

PROBE_ENTITY_NAMES = (
    "blocks",
    "buildings",
    "apartments",
    "flats",
    "units",
    "builders",
    "developers",
    "companies",
    "regions",
    "districts",
    "cities",
    "subways",
    "metro",
    "metros",
    "subway_stations",
    "finishings",
    "finishing",
    "decoration",
    "buildingtypes",
    "building_types",
    "house_types",
    "object_types",
    "complexes",
    "projects",
    "newbuildings",
    "newbuild",
    "sections",
    "sections_types",
    "amenities",
    "advantages",
    "promotions",
    "specials",
)

# Logging configuration
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(run_id)s] - %(message)s"
