"""Inference services and the end-to-end pipeline."""

from __future__ import annotations

from .schema_mapper import SchemaMapper
from .relationship_analyzer import RelationshipAnalyzer
from .report_builder import ReportBuilder, merge_fields
from .feed_pipeline import FeedPipeline, PipelineOptions, PipelineResult

__all__ = [
    "SchemaMapper",
    "RelationshipAnalyzer",
    "ReportBuilder",
    "merge_fields",
    "FeedPipeline",
    "PipelineOptions",
    "PipelineResult",
]
