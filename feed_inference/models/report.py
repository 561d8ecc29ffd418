"""Models for the final cross-endpoint report."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .discovery import DiscoveryErrorEntry, PaginationInfo, RegionFilter


class EnumCandidate(BaseModel):
    field: str
    values: List[str] = Field(default_factory=list)


class ReportEntity(BaseModel):
    """An entity merged across every endpoint it was seen in."""

    name: str
    table_name: str
    path: str
    paths: List[str] = Field(default_factory=list)
    source_url: str = ""
    count: int = 0
    id_field: Optional[str] = None
    parent: Optional[str] = None
    children: List[str] = Field(default_factory=list)
    fields_count: int = 0
    nullable_fields: List[str] = Field(default_factory=list)
    required_fields: List[str] = Field(default_factory=list)
    enum_candidates: List[EnumCandidate] = Field(default_factory=list)
    geo_fields: List[str] = Field(default_factory=list)
    text_fields: List[str] = Field(default_factory=list)
    numeric_fields: List[str] = Field(default_factory=list)
    date_fields: List[str] = Field(default_factory=list)
    foreign_keys: List[str] = Field(default_factory=list)
    suggested_fk_columns: List[str] = Field(default_factory=list)


class HierarchyLink(BaseModel):
    parent: str
    child: str
    cardinality: str = "one_to_many"
    source_url: str = ""
    note: str = ""


class ForeignKeyLink(BaseModel):
    from_entity: str
    fk_field: str = ""
    to_entity: Optional[str] = None
    to_id_field: str = "id"
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    resolved: bool = True
    note: str = ""


class ConfidenceScore(BaseModel):
    relation: str
    confidence: float
    reason: str = ""


class RelationshipSummary(BaseModel):
    hierarchy: List[HierarchyLink] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyLink] = Field(default_factory=list)
    confidence_scores: List[ConfidenceScore] = Field(default_factory=list)
    suggested_table_order: List[str] = Field(default_factory=list)


class FilterCandidates(BaseModel):
    """Which user-facing filters the feed can support, and from which paths."""

    price: bool = False
    area: bool = False
    rooms: bool = False
    region: bool = False
    metro: bool = False
    finishings: bool = False
    completion_date: bool = False
    price_fields: List[str] = Field(default_factory=list)
    area_fields: List[str] = Field(default_factory=list)
    rooms_fields: List[str] = Field(default_factory=list)
    region_fields: List[str] = Field(default_factory=list)
    metro_fields: List[str] = Field(default_factory=list)
    finishing_fields: List[str] = Field(default_factory=list)
    date_fields: List[str] = Field(default_factory=list)

    def all_paths(self) -> List[str]:
        paths: List[str] = []
        for group in (
            self.price_fields,
            self.area_fields,
            self.rooms_fields,
            self.region_fields,
            self.metro_fields,
            self.finishing_fields,
            self.date_fields,
        ):
            for path in group:
                if path not in paths:
                    paths.append(path)
        return paths


class TextCandidate(BaseModel):
    path: str
    field: str
    example_len: int = 0
    occurrences: int = 0


class GeoCandidate(BaseModel):
    path: str
    field: str
    type: str
    example: Optional[str] = None
    occurrences: int = 0


class SearchCandidates(BaseModel):
    text_fields: List[TextCandidate] = Field(default_factory=list)
    geo_fields: List[GeoCandidate] = Field(default_factory=list)


class IndexRecommendation(BaseModel):
    table: str
    column: str
    type: str
    reason: str = ""


class EnumSummary(BaseModel):
    path: str
    unique_count: int
    values: List[str] = Field(default_factory=list)


class MixedTypeField(BaseModel):
    path: str
    type: str


class EndpointStats(BaseModel):
    url: str
    total_fields: int = 0
    total_entities: int = 0
    max_depth: int = 0
    nullable_count: int = 0
    enum_count: int = 0


class DataQuality(BaseModel):
    total_fields: int = 0
    nullable_count: int = 0
    nullable_ratio: float = 0.0
    type_distribution: Dict[str, int] = Field(default_factory=dict)
    max_depth: int = 0
    enum_candidates: List[EnumSummary] = Field(default_factory=list)
    dynamic_key_paths: List[str] = Field(default_factory=list)
    embedded_arrays: List[str] = Field(default_factory=list)
    mixed_type_fields: List[MixedTypeField] = Field(default_factory=list)
    per_endpoint_stats: List[EndpointStats] = Field(default_factory=list)


class ReportMeta(BaseModel):
    generated_at: str
    downloaded_at: Optional[str] = None
    total_size_mb: float = 0.0
    total_endpoints: int = 0
    total_files: int = 0
    total_entities_detected: int = 0
    total_fields_analyzed: int = 0
    primary_url: Optional[str] = None
    region_filter: Optional[RegionFilter] = None
    pagination_info: Dict[str, PaginationInfo] = Field(default_factory=dict)
    errors: List[DiscoveryErrorEntry] = Field(default_factory=list)
    endpoints_analyzed: List[str] = Field(default_factory=list)


class Report(BaseModel):
    """Final cross-endpoint inference."""

    meta: ReportMeta
    entities: List[ReportEntity] = Field(default_factory=list)
    relationships: RelationshipSummary = Field(default_factory=RelationshipSummary)
    filter_candidates: FilterCandidates = Field(default_factory=FilterCandidates)
    search_candidates: SearchCandidates = Field(default_factory=SearchCandidates)
    index_recommendations: List[IndexRecommendation] = Field(default_factory=list)
    data_quality: DataQuality = Field(default_factory=DataQuality)

    def entity(self, table_name: str) -> Optional[ReportEntity]:
        for entity in self.entities:
            if entity.table_name == table_name:
                return entity
        return None
