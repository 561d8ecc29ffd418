"""Models for endpoint discovery output."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

PaginationType = Literal["next_url", "numeric", "has_next"]


class CollectedFile(BaseModel):
    """One successfully fetched and stored payload."""

    url: str
    label: str
    path: str = Field(..., description="Storage path of the raw payload")
    bytes: int = 0
    human: str = ""
    checksum: str = ""
    http: int = 200
    seconds: float = 0.0


class DiscoveryErrorEntry(BaseModel):
    """A fetch that failed during discovery."""

    url: str
    label: str
    message: str


class PaginationInfo(BaseModel):
    type: PaginationType
    current_page: int = 1
    total_pages: Optional[int] = None
    next_url: Optional[str] = None
    page_param: str = "page"


class RegionFilter(BaseModel):
    """How the feed can be narrowed to one region."""

    detected_key: str
    value: Any = None
    filtered_url: Optional[str] = Field(
        None, description="URL returning region-filtered data, None when already filtered"
    )
    base_count: Optional[int] = None
    filtered_count: Optional[int] = None
    note: str = ""


class DiscoveryManifest(BaseModel):
    """The outcome of crawling one feed."""

    primary_url: str
    started_at: str
    finished_at: Optional[str] = None
    collected_files: List[CollectedFile] = Field(default_factory=list)
    discovered_endpoints: List[str] = Field(default_factory=list)
    pagination_info: Dict[str, PaginationInfo] = Field(default_factory=dict)
    region_filter: Optional[RegionFilter] = None
    errors: List[DiscoveryErrorEntry] = Field(default_factory=list)
    total_files: int = 0
    total_bytes: int = 0
    total_size_mb: float = 0.0
    total_endpoints: int = 0

    def finalize(self, finished_at: str) -> "DiscoveryManifest":
        """Fill in the totals from the collected files."""
        self.finished_at = finished_at
        self.total_files = len(self.collected_files)
        self.total_bytes = sum(entry.bytes for entry in self.collected_files)
        self.total_size_mb = round(self.total_bytes / (1024 * 1024), 3)
        self.total_endpoints = len(set(self.discovered_endpoints))
        return self


class EndpointCompleteness(BaseModel):
    label: str
    url: str
    bytes: int = 0
    item_count: int = 0


class CompletenessReport(BaseModel):
    """Item counts per collected file, rolled up by entity label."""

    total_files: int = 0
    total_bytes: int = 0
    total_mb: float = 0.0
    endpoints: List[EndpointCompleteness] = Field(default_factory=list)
    entity_counts: Dict[str, int] = Field(default_factory=dict)
    region_filter: Optional[RegionFilter] = None
    pagination: Dict[str, PaginationInfo] = Field(default_factory=dict)
