"""Pydantic models for every artifact the pipeline produces."""

from __future__ import annotations

from .discovery import (
    CollectedFile,
    CompletenessReport,
    DiscoveryErrorEntry,
    DiscoveryManifest,
    EndpointCompleteness,
    PaginationInfo,
    RegionFilter,
)
from .graph import (
    CombinedRelationships,
    CombinedRelationshipsMeta,
    EntityNode,
    HierarchyForest,
    HierarchyNode,
    RelationshipEdge,
    RelationshipGraph,
    SuggestedTable,
)
from .report import (
    DataQuality,
    FilterCandidates,
    IndexRecommendation,
    RelationshipSummary,
    Report,
    ReportEntity,
    SearchCandidates,
)
from .schema import (
    EntityDescriptor,
    FieldDescriptor,
    ForeignKeyCandidate,
    SchemaReport,
    SchemaStats,
)

__all__ = [
    # Discovery
    "CollectedFile",
    "CompletenessReport",
    "DiscoveryErrorEntry",
    "DiscoveryManifest",
    "EndpointCompleteness",
    "PaginationInfo",
    "RegionFilter",
    # Graph
    "CombinedRelationships",
    "CombinedRelationshipsMeta",
    "EntityNode",
    "HierarchyForest",
    "HierarchyNode",
    "RelationshipEdge",
    "RelationshipGraph",
    "SuggestedTable",
    # Report
    "DataQuality",
    "FilterCandidates",
    "IndexRecommendation",
    "RelationshipSummary",
    "Report",
    "ReportEntity",
    "SearchCandidates",
    # Schema
    "EntityDescriptor",
    "FieldDescriptor",
    "ForeignKeyCandidate",
    "SchemaReport",
    "SchemaStats",
]
