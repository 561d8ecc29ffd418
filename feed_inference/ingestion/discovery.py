"""
Endpoint discovery for an unfamiliar JSON feed.

Starting from one primary URL, discovery:

1. fetches and stores the primary payload
2. detects pagination and downloads the remaining pages
3. detects region filtering (root keys, then trial query parameters)
4. follows same-host URLs embedded in the payload
5. probes well-known entity sub-resources (``/blocks``, ``/buildings``, ...)

Every successful fetch is stored and listed in the manifest; every failure
is recorded in ``manifest.errors`` and never aborts the run. Discovery is
sequential: page N+1 is only known after page N is decoded.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional
from urllib.parse import parse_qs, quote_plus, urlparse

import httpx

from ..models.discovery import (
    CollectedFile,
    DiscoveryErrorEntry,
    DiscoveryManifest,
    PaginationInfo,
    RegionFilter,
)
from ..utils.constants import (
    CURRENT_PAGE_KEYS,
    DEFAULT_MAX_PAGES,
    EMBEDDED_SCAN_CHILDREN,
    EMBEDDED_URL_MIN_LENGTH,
    ERROR_PAYLOAD_KEYS,
    HAS_NEXT_KEYS,
    NEXT_URL_KEYS,
    PAGE_PARAMS,
    PROBE_ENTITY_NAMES,
    REGION_KEYS,
    REGION_TRIAL_PARAMS,
    TOTAL_PAGES_KEYS,
)
from ..utils.exceptions import FeedInferenceError
from ..utils.naming import slugify
from .feed_client import FeedClient, FetchResult

if TYPE_CHECKING:
    from ..storage.feed_storage import FeedFileStorage

logger = logging.getLogger(__name__)

DISCOVERY_LOG_NAME = "discovery_log.json"

_URL_RE = re.compile(r"https?://[^\s\"'<>]+")
_FILE_EXTENSION_RE = re.compile(r"\.[a-z]{2,4}$", re.IGNORECASE)

# Failures a single fetch may raise without aborting discovery
FETCH_ERRORS = (FeedInferenceError, httpx.HTTPError, OSError)


@dataclass
class DiscoveryOptions:
    max_pages: int = DEFAULT_MAX_PAGES
    probe_entities: bool = True
    detect_region: bool = True


@dataclass
class Fetched:
    """A fetched, decoded and stored payload."""

    result: FetchResult
    decoded: Any
    path: str


# ----------------------------------------------------------------------
# Payload inspection helpers
# ----------------------------------------------------------------------


def extract_nested_key(decoded: Any, paths: Iterable[str]) -> Any:
    """
    First non-null value found at any of the dot-notation ``paths``.

    Example:
        >>> extract_nested_key({"links": {"next": "u"}}, ["next", "links.next"])
        'u'
    """
    for path in paths:
        value = decoded
        for key in path.split("."):
            if not isinstance(value, dict) or key not in value:
                value = None
                break
            value = value[key]
        if value is not None:
            return value
    return None


def is_valid_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def count_root_items(decoded: Any) -> int:
    """Length of a root list, or of the largest list directly under a root object."""
    if isinstance(decoded, list):
        return len(decoded)
    if isinstance(decoded, dict):
        return max((len(value) for value in decoded.values() if isinstance(value, list)), default=0)
    return 0


def is_useful_payload(decoded: Any, http_status: int) -> bool:
    """True when a probe response looks like real data rather than an error page."""
    if not 200 <= http_status < 300:
        return False
    if not decoded:
        return False
    if isinstance(decoded, dict):
        keys = set(decoded)
        if len(keys) <= 2 and keys & set(ERROR_PAYLOAD_KEYS):
            return False
        return count_root_items(decoded) > 0 or len(decoded) > 2
    return count_root_items(decoded) > 0


def _as_int(value: Any) -> Optional[int]:
    """Integer value of a numeric JSON value or numeric string, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return None


def _query_params(url: str) -> Dict[str, List[str]]:
    return parse_qs(urlparse(url).query, keep_blank_values=True)


def guess_page_param(url: str) -> Optional[str]:
    params = _query_params(url)
    for param in PAGE_PARAMS:
        if param in params:
            return param
    return None


def append_query_param(url: str, param: str, value: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{quote_plus(param)}={quote_plus(value)}"


def build_page_url(base_url: str, page_param: str, page: int) -> str:
    """Replace (or add) the page parameter of ``base_url``."""
    url = re.sub(r"([?&])" + re.escape(page_param) + r"=\d+", r"\1", base_url)
    url = re.sub(r"&&+", "&", url).replace("?&", "?").rstrip("?&")
    return append_query_param(url, page_param, str(page))


def strip_page_param(url: str) -> str:
    """URL with every known page parameter removed."""
    for param in PAGE_PARAMS:
        url = re.sub(r"([?&])" + re.escape(param) + r"=\d+", r"\1", url)
    return re.sub(r"&&+", "&", url).replace("?&", "?").rstrip("?&")


def extract_base_url(url: str) -> str:
    """Scheme, host and path, with a trailing file extension removed."""
    parsed = urlparse(url)
    path = _FILE_EXTENSION_RE.sub("", parsed.path)
    return f"{parsed.scheme or 'https'}://{parsed.netloc}{path}"


def detect_pagination(decoded: Any, url: str) -> Optional[PaginationInfo]:
    """
    Detect pagination markers in a decoded page.

    Checked in priority order: a next-page URL, numeric current/total pages,
    then a boolean has-next flag.
    """
    if not isinstance(decoded, dict):
        return None

    next_url = extract_nested_key(decoded, NEXT_URL_KEYS)
    if is_valid_url(next_url):
        current = _as_int(extract_nested_key(decoded, CURRENT_PAGE_KEYS))
        total = _as_int(extract_nested_key(decoded, TOTAL_PAGES_KEYS))
        return PaginationInfo(
            type="next_url",
            current_page=current if current is not None else 1,
            total_pages=total or None,
            next_url=next_url,
            page_param=guess_page_param(next_url) or "page",
        )

    current = _as_int(extract_nested_key(decoded, CURRENT_PAGE_KEYS))
    total = _as_int(extract_nested_key(decoded, TOTAL_PAGES_KEYS))
    if current is not None and total is not None and total > 1:
        return PaginationInfo(
            type="numeric",
            current_page=current,
            total_pages=total,
            page_param=guess_page_param(url) or "page",
        )

    has_next = extract_nested_key(decoded, HAS_NEXT_KEYS)
    if has_next is True or (has_next == 1 and not isinstance(has_next, bool)):
        return PaginationInfo(type="has_next", page_param=guess_page_param(url) or "page")

    return None


# ----------------------------------------------------------------------
# Discovery service
# ----------------------------------------------------------------------


class FeedDiscoveryService:
    """
    Crawl one feed and produce a ``DiscoveryManifest``.

    Args:
        client: HTTP collaborator with ``async fetch(url) -> FetchResult``
        storage: Storage collaborator with ``save_raw`` and ``save_json``
    """

    def __init__(self, client: FeedClient, storage: "FeedFileStorage"):
        self.client = client
        self.storage = storage
        self._manifest: Optional[DiscoveryManifest] = None

    async def discover(
        self,
        primary_url: str,
        options: Optional[DiscoveryOptions] = None,
    ) -> DiscoveryManifest:
        """
        Run full discovery for a primary endpoint.

        Args:
            primary_url: Feed URL to start from
            options: Page limit and which optional steps to run

        Returns:
            DiscoveryManifest, also saved as ``discovery_log.json``
        """
        options = options or DiscoveryOptions()
        manifest = DiscoveryManifest(
            primary_url=primary_url,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        self._manifest = manifest
        logger.info(f"Starting discovery for {primary_url}")

        primary = await self._fetch_and_save(primary_url, "primary")
        if primary is not None:
            await self._explore(primary_url, primary.decoded, options)

        manifest.finalize(datetime.now(timezone.utc).isoformat())
        await asyncio.to_thread(self.storage.save_json, DISCOVERY_LOG_NAME, manifest)
        logger.info(
            f"Discovery finished: {manifest.total_files} files, "
            f"{manifest.total_endpoints} endpoints, {len(manifest.errors)} errors"
        )
        return manifest

    async def _explore(self, primary_url: str, decoded: Any, options: DiscoveryOptions) -> None:
        manifest = self._require_manifest()

        pagination = detect_pagination(decoded, primary_url)
        if pagination is not None:
            logger.info(
                f"Pagination detected ({pagination.type}, param={pagination.page_param}, "
                f"total={pagination.total_pages or 'unknown'})"
            )
            manifest.pagination_info[primary_url] = pagination
            await self._download_pages(primary_url, pagination, options.max_pages)

        if options.detect_region:
            region = await self.detect_region_filter(decoded, primary_url)
            if region is not None:
                manifest.region_filter = region
                logger.info(f"Region filter detected: {region.note}")
                if region.filtered_url and region.filtered_url != primary_url:
                    await self._fetch_and_save(region.filtered_url, "primary_region")

        for label, url in self.detect_embedded_urls(decoded, primary_url).items():
            await self._fetch_and_save(url, f"embedded_{label}")

        if options.probe_entities:
            await self._probe_known_entities(primary_url)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _require_manifest(self) -> DiscoveryManifest:
        if self._manifest is None:
            raise RuntimeError("discover() must be called first")
        return self._manifest

    def _record_error(self, url: str, label: str, error: BaseException) -> None:
        message = str(error) or type(error).__name__
        self._require_manifest().errors.append(
            DiscoveryErrorEntry(url=url, label=label, message=message)
        )
        logger.warning(f"[{label}] {url} failed: {message}")

    async def _save(self, result: FetchResult, decoded: Any, label: str) -> Fetched:
        manifest = self._require_manifest()
        path = await asyncio.to_thread(self.storage.save_raw, result)
        manifest.collected_files.append(
            CollectedFile(
                url=result.url,
                label=label,
                path=path,
                bytes=result.size_bytes(),
                human=result.human_size(),
                checksum=result.checksum(),
                http=result.http_status,
                seconds=result.elapsed_seconds,
            )
        )
        manifest.discovered_endpoints.append(result.url)
        logger.info(f"[{label}] saved {result.human_size()} from {result.url}")
        return Fetched(result=result, decoded=decoded, path=path)

    async def _fetch_and_save(self, url: str, label: str) -> Optional[Fetched]:
        """Fetch, decode and store ``url``; record and swallow failures."""
        try:
            result = await self.client.fetch(url)
            decoded = result.decoded()
            return await self._save(result, decoded, label)
        except FETCH_ERRORS as e:
            self._record_error(url, label, e)
            return None

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    async def _download_pages(self, base_url: str, pagination: PaginationInfo, max_pages: int) -> None:
        if pagination.type == "next_url":
            page = 2
            url = pagination.next_url
            while url and page <= max_pages:
                fetched = await self._fetch_and_save(url, f"page_{page}")
                if fetched is None:
                    break
                next_url = None
                if isinstance(fetched.decoded, dict):
                    next_url = extract_nested_key(fetched.decoded, NEXT_URL_KEYS)
                url = next_url if is_valid_url(next_url) else None
                page += 1
            return

        limit = min(pagination.total_pages, max_pages) if pagination.total_pages else max_pages
        for page in range(2, limit + 1):
            url = build_page_url(base_url, pagination.page_param, page)
            fetched = await self._fetch_and_save(url, f"page_{page}")
            if fetched is None:
                break
            if count_root_items(fetched.decoded) == 0:
                logger.info(f"Page {page} returned 0 items, stopping")
                break

    # ------------------------------------------------------------------
    # Region filter
    # ------------------------------------------------------------------

    async def detect_region_filter(self, decoded: Any, base_url: str) -> Optional[RegionFilter]:
        """
        Detect whether the feed is, or can be, narrowed to one region.

        A region key at the root means the payload is already filtered.
        Otherwise each trial parameter is fetched and its item count compared
        with the baseline; the first that changes a non-empty result wins.
        """
        if isinstance(decoded, dict):
            for key in REGION_KEYS:
                if decoded.get(key) is not None:
                    return RegionFilter(
                        detected_key=key,
                        value=decoded[key],
                        note=f"Feed already returns region-specific data (key: {key})",
                    )

        base_count = count_root_items(decoded)
        for param, value in REGION_TRIAL_PARAMS:
            test_url = append_query_param(base_url, param, value)
            try:
                result = await self.client.fetch(test_url)
                test_count = count_root_items(result.decoded())
            except FETCH_ERRORS as e:
                self._record_error(test_url, f"region_{param}", e)
                continue

            if test_count != base_count and test_count > 0:
                return RegionFilter(
                    detected_key=param,
                    value=value,
                    filtered_url=test_url,
                    base_count=base_count,
                    filtered_count=test_count,
                    note=f"Filter ?{param}={value} returns {test_count} items vs base {base_count}",
                )
        return None

    # ------------------------------------------------------------------
    # Sub-endpoints
    # ------------------------------------------------------------------

    def detect_embedded_urls(self, decoded: Any, base_url: str) -> Dict[str, str]:
        """
        Same-host URLs embedded in the payload, keyed by a label.

        Root-level values are scanned; nested containers contribute their
        first few children only. Already collected URLs are skipped.
        """
        found: Dict[str, str] = {}
        if not isinstance(decoded, dict):
            return found

        base_host = urlparse(base_url).hostname or ""
        known = set(self._manifest.discovered_endpoints) if self._manifest else set()
        seen_paths = set()

        # Explicit stack of values still to scan
        stack: List[Any] = list(reversed(list(decoded.values())))
        while stack:
            value = stack.pop()
            if isinstance(value, str):
                if len(value) <= EMBEDDED_URL_MIN_LENGTH:
                    continue
                match = _URL_RE.search(value)
                if not match:
                    continue
                url = match.group(0)
                parsed = urlparse(url)
                if (parsed.hostname or "") != base_host or url in known or parsed.path in seen_paths:
                    continue
                seen_paths.add(parsed.path)
                label = slugify(parsed.path) or "root"
                found.setdefault(label, url)
            elif isinstance(value, dict):
                children = list(value.values())[:EMBEDDED_SCAN_CHILDREN]
                stack.extend(reversed(children))
            elif isinstance(value, list):
                children = value[:EMBEDDED_SCAN_CHILDREN]
                stack.extend(reversed(children))
        return found

    async def _probe_known_entities(self, primary_url: str) -> None:
        manifest = self._require_manifest()
        base_url = extract_base_url(primary_url).rstrip("/")
        logger.info(f"Probing known entity endpoints under {base_url}")

        for entity in PROBE_ENTITY_NAMES:
            url = f"{base_url}/{entity}"
            if url in manifest.discovered_endpoints:
                continue

            try:
                result = await self.client.fetch(url)
                decoded = result.decoded()
            except FETCH_ERRORS as e:
                self._record_error(url, entity, e)
                continue

            if not is_useful_payload(decoded, result.http_status):
                logger.debug(f"Probe {url} returned no usable data")
                continue

            logger.info(f"Found entity endpoint [{entity}]: {count_root_items(decoded)} items")
            try:
                await self._save(result, decoded, entity)
            except FETCH_ERRORS as e:
                self._record_error(url, entity, e)
