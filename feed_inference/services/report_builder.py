"""
Cross-endpoint report assembly.

Merges every endpoint's schema report and relationship graph into one
``Report``: unified entities, consolidated relationships, filter and search
candidates, index recommendations and data quality metrics.

Pure in-memory work. The builder is not thread-safe and is meant to run once,
after the per-endpoint mapping has finished.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..models.discovery import DiscoveryManifest
from ..models.graph import RelationshipGraph
from ..models.report import (
    ConfidenceScore,
    DataQuality,
    EndpointStats,
    EnumCandidate,
    EnumSummary,
    FilterCandidates,
    ForeignKeyLink,
    GeoCandidate,
    HierarchyLink,
    IndexRecommendation,
    MixedTypeField,
    RelationshipSummary,
    Report,
    ReportEntity,
    ReportMeta,
    SearchCandidates,
    TextCandidate,
)
from ..models.schema import FieldDescriptor, SchemaReport
from ..utils import keywords, naming
from ..utils.constants import (
    DEFAULT_ENUM_THRESHOLD,
    EMBEDDED_ARRAY_MIN_DEPTH,
    GEO_CANDIDATE_LIMIT,
    REQUIRED_OCCURRENCE_RATIO,
    TEXT_CANDIDATE_LIMIT,
    TEXT_EXAMPLE_MIN_LENGTH,
)

logger = logging.getLogger(__name__)

NUMERIC_TYPES = ("int", "float")


def _append_unique(items: List[str], values: Iterable[str]) -> None:
    for value in values:
        if value not in items:
            items.append(value)


def merge_fields(
    schemas: Mapping[str, SchemaReport],
    enum_threshold: int = DEFAULT_ENUM_THRESHOLD,
) -> Dict[str, FieldDescriptor]:
    """
    Union every endpoint's field map by path.

    Colliding paths sum their occurrence and null counts and sum their enum
    histograms; differing resolved types become ``mixed``. A summed histogram
    with more than ``enum_threshold`` distinct values is dropped.
    """
    merged: Dict[str, FieldDescriptor] = {}

    for schema in schemas.values():
        for path, descriptor in schema.fields.items():
            existing = merged.get(path)
            if existing is None:
                merged[path] = descriptor.model_copy(deep=True)
                continue

            existing.occurrences += descriptor.occurrences
            existing.null_count += descriptor.null_count
            existing.is_nullable = existing.is_nullable or descriptor.is_nullable
            existing.is_always_present = existing.null_count == 0
            existing.null_ratio = (
                round(existing.null_count / existing.occurrences, 4) if existing.occurrences else 0.0
            )
            if existing.type != descriptor.type:
                if existing.type == "null":
                    existing.type = descriptor.type
                elif descriptor.type != "null":
                    existing.type = "mixed"
            if existing.example is None:
                existing.example = descriptor.example

            histogram = Counter(existing.enum_values)
            histogram.update(descriptor.enum_values)
            if len(histogram) > enum_threshold:
                histogram.clear()
            existing.enum_values = dict(histogram.most_common())

    return merged


class ReportBuilder:
    """Assemble the final report from per-endpoint inference results."""

    def __init__(self, enum_threshold: int = DEFAULT_ENUM_THRESHOLD):
        self.enum_threshold = enum_threshold

    def build(
        self,
        manifest: Optional[DiscoveryManifest],
        schemas: Mapping[str, SchemaReport],
        graphs: Mapping[str, RelationshipGraph],
    ) -> Report:
        """
        Build the unified report.

        Args:
            manifest: Discovery manifest, or None for in-memory analysis
            schemas: Source URL to schema report
            graphs: Source URL to relationship graph

        Returns:
            Report
        """
        fields = merge_fields(schemas, self.enum_threshold)
        entities = self._build_entities(schemas, graphs, fields)
        relationships = self._consolidate_relationships(graphs)
        filters = self._filter_candidates(fields)
        search = self._search_candidates(fields)
        entity_tables = self._entity_tables(schemas, graphs)
        indexes = self._index_recommendations(
            entities, relationships, filters, search, entity_tables
        )
        quality = self._data_quality(fields, schemas)

        meta = ReportMeta(
            generated_at=datetime.now(timezone.utc).isoformat(),
            total_entities_detected=len(entities),
            total_fields_analyzed=len(fields),
            endpoints_analyzed=list(schemas),
        )
        if manifest is not None:
            meta.downloaded_at = manifest.started_at
            meta.total_size_mb = manifest.total_size_mb
            meta.total_endpoints = manifest.total_endpoints
            meta.total_files = manifest.total_files
            meta.primary_url = manifest.primary_url
            meta.region_filter = manifest.region_filter
            meta.pagination_info = dict(manifest.pagination_info)
            meta.errors = list(manifest.errors)

        logger.info(
            f"Report built: {len(entities)} entities, {len(fields)} fields, "
            f"{len(indexes)} index recommendations"
        )

        return Report(
            meta=meta,
            entities=entities,
            relationships=relationships,
            filter_candidates=filters,
            search_candidates=search,
            index_recommendations=indexes,
            data_quality=quality,
        )

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def _build_entities(
        self,
        schemas: Mapping[str, SchemaReport],
        graphs: Mapping[str, RelationshipGraph],
        fields: Dict[str, FieldDescriptor],
    ) -> List[ReportEntity]:
        entities: Dict[str, ReportEntity] = {}

        for url, graph in graphs.items():
            for path, node in graph.entities.items():
                entity = entities.get(node.table_name)
                if entity is None:
                    entity = ReportEntity(
                        name=node.name,
                        table_name=node.table_name,
                        path=path,
                        source_url=url,
                    )
                    entities[node.table_name] = entity

                entity.count = max(entity.count, node.item_count)
                entity.id_field = node.id_field or entity.id_field
                entity.parent = node.parent or entity.parent
                _append_unique(entity.paths, [path])
                _append_unique(entity.children, node.children)
                _append_unique(entity.foreign_keys, [fk.field for fk in node.foreign_keys])
                if node.parent and node.parent in graph.entities:
                    parent_table = graph.entities[node.parent].table_name
                    _append_unique(entity.suggested_fk_columns, [f"{parent_table}_id"])

                self._enrich_from_fields(entity, path, fields)

        # Entities the relationship pass never saw still become tables
        for url, schema in schemas.items():
            for path, descriptor in schema.entities.items():
                table = naming.table_name(path)
                if table in entities:
                    continue

                entity = ReportEntity(
                    name=naming.entity_name(path),
                    table_name=table,
                    path=path,
                    paths=[path],
                    source_url=url,
                    count=descriptor.item_count,
                    id_field=descriptor.id_field,
                    parent=descriptor.parent,
                    fields_count=len(descriptor.direct_fields),
                    foreign_keys=[fk.field for fk in descriptor.foreign_keys],
                )
                if descriptor.parent:
                    entity.suggested_fk_columns = [f"{naming.table_name(descriptor.parent)}_id"]
                entities[table] = entity
                self._enrich_from_fields(entity, path, fields)

        return sorted(entities.values(), key=lambda entity: entity.count, reverse=True)

    @staticmethod
    def _enrich_from_fields(
        entity: ReportEntity,
        entity_path: str,
        fields: Dict[str, FieldDescriptor],
    ) -> None:
        prefix = naming.entity_prefix(entity_path)
        owned = [(path, meta) for path, meta in fields.items() if path.startswith(prefix)]
        if not owned:
            return

        entity.fields_count = max(entity.fields_count, len(owned))
        max_occurrences = max(meta.occurrences for _, meta in owned)
        enum_fields = {candidate.field for candidate in entity.enum_candidates}

        for path, meta in owned:
            column = naming.last_segment(path)

            if meta.is_nullable:
                _append_unique(entity.nullable_fields, [column])
                if column in entity.required_fields:
                    entity.required_fields.remove(column)
            elif (
                max_occurrences
                and meta.occurrences >= max_occurrences * REQUIRED_OCCURRENCE_RATIO
                and column not in entity.nullable_fields
            ):
                _append_unique(entity.required_fields, [column])

            if meta.enum_values and column not in enum_fields:
                entity.enum_candidates.append(
                    EnumCandidate(field=column, values=list(meta.enum_values))
                )
                enum_fields.add(column)

            if keywords.GEO.matches(column):
                _append_unique(entity.geo_fields, [column])
            if meta.type == "string" and keywords.TEXT.matches(column):
                _append_unique(entity.text_fields, [column])
            if meta.type in NUMERIC_TYPES:
                _append_unique(entity.numeric_fields, [column])
            if keywords.DATE.matches(column):
                _append_unique(entity.date_fields, [column])

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    @staticmethod
    def _consolidate_relationships(graphs: Mapping[str, RelationshipGraph]) -> RelationshipSummary:
        summary = RelationshipSummary()
        hierarchy_seen = set()
        fk_seen = set()

        for url, graph in graphs.items():
            for edge in graph.relationships:
                if edge.via == "nesting" and edge.type == "one_to_many":
                    key = (edge.from_path, edge.to_path)
                    if key in hierarchy_seen:
                        continue
                    hierarchy_seen.add(key)
                    summary.hierarchy.append(
                        HierarchyLink(
                            parent=edge.from_path,
                            child=edge.to_path or "",
                            source_url=url,
                            note=edge.note,
                        )
                    )
                elif edge.via == "foreign_key":
                    fk_field = edge.field or ""
                    relation = f"{edge.from_path}.{edge.field_name or ''}->{edge.to_path or '?'}"
                    key = (edge.from_path, fk_field, edge.to_path or f"?{edge.target_hint}")
                    if key in fk_seen:
                        continue
                    fk_seen.add(key)

                    to_id_field = "id"
                    target = graph.entities.get(edge.to_path) if edge.to_path else None
                    if target is not None and target.id_field:
                        to_id_field = naming.last_segment(target.id_field)

                    summary.foreign_keys.append(
                        ForeignKeyLink(
                            from_entity=edge.from_path,
                            fk_field=fk_field,
                            to_entity=edge.to_path,
                            to_id_field=to_id_field,
                            confidence=edge.confidence,
                            resolved=edge.resolved,
                            note=edge.note,
                        )
                    )
                    summary.confidence_scores.append(
                        ConfidenceScore(relation=relation, confidence=edge.confidence, reason=edge.note)
                    )

            _append_unique(
                summary.suggested_table_order,
                [table.table_name for table in graph.suggested_tables if table.table_name],
            )

        return summary

    # ------------------------------------------------------------------
    # Filter and search candidates
    # ------------------------------------------------------------------

    @staticmethod
    def _filter_candidates(fields: Dict[str, FieldDescriptor]) -> FilterCandidates:
        values = {}
        for flag, paths_key, keyword_set in keywords.FILTER_CATEGORIES:
            matching = keyword_set.matching_paths(fields)
            values[flag] = bool(matching)
            values[paths_key] = matching
        return FilterCandidates(**values)

    @staticmethod
    def _search_candidates(fields: Dict[str, FieldDescriptor]) -> SearchCandidates:
        text_fields: List[TextCandidate] = []
        geo_fields: List[GeoCandidate] = []

        for path, meta in fields.items():
            column = naming.last_segment(path)

            if meta.type == "string":
                example_len = len(meta.example or "")
                if example_len > TEXT_EXAMPLE_MIN_LENGTH or keywords.TEXT.matches(column):
                    text_fields.append(
                        TextCandidate(
                            path=path,
                            field=column,
                            example_len=example_len,
                            occurrences=meta.occurrences,
                        )
                    )

            if keywords.GEO.matches(column):
                geo_fields.append(
                    GeoCandidate(
                        path=path,
                        field=column,
                        type=meta.type,
                        example=meta.example,
                        occurrences=meta.occurrences,
                    )
                )

        text_fields.sort(key=lambda candidate: candidate.occurrences, reverse=True)
        geo_fields.sort(key=lambda candidate: candidate.occurrences, reverse=True)
        return SearchCandidates(
            text_fields=text_fields[:TEXT_CANDIDATE_LIMIT],
            geo_fields=geo_fields[:GEO_CANDIDATE_LIMIT],
        )

    # ------------------------------------------------------------------
    # Index recommendations
    # ------------------------------------------------------------------

    @staticmethod
    def _entity_tables(
        schemas: Mapping[str, SchemaReport],
        graphs: Mapping[str, RelationshipGraph],
    ) -> Dict[str, str]:
        tables: Dict[str, str] = {}
        for graph in graphs.values():
            for path, node in graph.entities.items():
                tables.setdefault(path, node.table_name)
        for schema in schemas.values():
            for path in schema.entities:
                tables.setdefault(path, naming.table_name(path))
        return tables

    @staticmethod
    def guess_table(path: str, entity_tables: Mapping[str, str]) -> str:
        """
        Table owning a field: the deepest entity whose prefix encloses the path,
        else the snake-cased first path segment.
        """
        best: Optional[str] = None
        for entity_path in entity_tables:
            if path.startswith(naming.entity_prefix(entity_path)):
                if best is None or len(entity_path) > len(best):
                    best = entity_path
        if best is not None:
            return entity_tables[best]

        parts = [part for part in path.replace(naming.ARRAY_MARKER, "").split(".") if part]
        return naming.to_snake_case(parts[0]) if parts else "unknown"

    def _index_recommendations(
        self,
        entities: List[ReportEntity],
        relationships: RelationshipSummary,
        filters: FilterCandidates,
        search: SearchCandidates,
        entity_tables: Mapping[str, str],
    ) -> List[IndexRecommendation]:
        recs: List[IndexRecommendation] = []

        for entity in entities:
            column = naming.last_segment(entity.id_field) if entity.id_field else "id"
            recs.append(
                IndexRecommendation(
                    table=entity.table_name,
                    column=column,
                    type="PRIMARY KEY",
                    reason=f"primary key of {entity.table_name}",
                )
            )

        for link in relationships.hierarchy:
            parent = naming.table_name(link.parent)
            child = naming.table_name(link.child)
            if parent and child:
                recs.append(
                    IndexRecommendation(
                        table=child,
                        column=f"{parent}_id",
                        type="INDEX (FK)",
                        reason=f"foreign key -> {parent}.id (nested hierarchy)",
                    )
                )

        for fk in relationships.foreign_keys:
            from_table = naming.table_name(fk.from_entity)
            column = naming.last_segment(fk.fk_field) if fk.fk_field else ""
            if from_table and column:
                target = naming.table_name(fk.to_entity) if fk.to_entity else "unresolved"
                recs.append(
                    IndexRecommendation(
                        table=from_table,
                        column=column,
                        type="INDEX (FK)",
                        reason=f"FK -> {target}",
                    )
                )

        for entity in entities:
            for fk_path in entity.foreign_keys:
                recs.append(
                    IndexRecommendation(
                        table=entity.table_name,
                        column=naming.last_segment(fk_path),
                        type="INDEX (FK)",
                        reason="entity-level foreign key",
                    )
                )

        for path in filters.all_paths():
            recs.append(
                IndexRecommendation(
                    table=self.guess_table(path, entity_tables),
                    column=naming.last_segment(path),
                    type="INDEX (filter)",
                    reason="WHERE / ORDER BY / range filter candidate",
                )
            )

        for candidate in search.text_fields:
            recs.append(
                IndexRecommendation(
                    table=self.guess_table(candidate.path, entity_tables),
                    column=candidate.field,
                    type="FULLTEXT",
                    reason="text field suitable for full-text search",
                )
            )

        geo_by_table: Dict[str, List[str]] = {}
        for candidate in search.geo_fields:
            table = self.guess_table(candidate.path, entity_tables)
            _append_unique(geo_by_table.setdefault(table, []), [candidate.field])

        for table, columns in geo_by_table.items():
            has_lat = any(keywords.is_latitude(column) for column in columns)
            has_lng = any(keywords.is_longitude(column) for column in columns)
            if has_lat and has_lng:
                recs.append(
                    IndexRecommendation(
                        table=table,
                        column=f"coordinates (POINT from {'+'.join(columns)})",
                        type="SPATIAL INDEX",
                        reason="lat/lng pair: store as POINT and add a SPATIAL INDEX",
                    )
                )
                continue
            for column in columns:
                recs.append(
                    IndexRecommendation(
                        table=table,
                        column=column,
                        type="INDEX (geo)",
                        reason="geo coordinate field",
                    )
                )

        return self._deduplicate(recs)

    @staticmethod
    def _deduplicate(recs: List[IndexRecommendation]) -> List[IndexRecommendation]:
        seen: set = set()
        unique: List[IndexRecommendation] = []
        for rec in recs:
            signature: Tuple[str, str, str] = (rec.table, rec.column, rec.type)
            if signature in seen:
                continue
            seen.add(signature)
            unique.append(rec)
        return unique

    # ------------------------------------------------------------------
    # Data quality
    # ------------------------------------------------------------------

    @staticmethod
    def dynamic_key_parent(path: str) -> Optional[str]:
        """
        Prefix before the first purely numeric path segment, or None.

        Numeric keys (``prices.2023.value``) are data, not schema, and must
        not become column names. A numeric root key reports ``$``.
        """
        parts = path.split(".")
        for position, part in enumerate(parts):
            if part.replace(naming.ARRAY_MARKER, "").isdigit():
                return ".".join(parts[:position]) or "$"
        return None

    def _data_quality(
        self,
        fields: Dict[str, FieldDescriptor],
        schemas: Mapping[str, SchemaReport],
    ) -> DataQuality:
        per_endpoint = [
            EndpointStats(
                url=url,
                total_fields=schema.stats.total_fields,
                total_entities=schema.stats.total_entities,
                max_depth=schema.stats.max_depth,
                nullable_count=schema.stats.nullable_fields,
                enum_count=schema.stats.enum_candidates,
            )
            for url, schema in schemas.items()
        ]

        total = len(fields)
        if total == 0:
            return DataQuality(per_endpoint_stats=per_endpoint)

        type_distribution: Counter = Counter()
        nullable = 0
        max_depth = 0
        enums: List[EnumSummary] = []
        dynamic: List[str] = []
        embedded: List[str] = []
        mixed: List[MixedTypeField] = []

        for path, meta in fields.items():
            type_distribution[meta.type] += 1
            max_depth = max(max_depth, meta.depth)
            if meta.is_nullable:
                nullable += 1
            if meta.enum_values:
                enums.append(
                    EnumSummary(
                        path=path,
                        unique_count=len(meta.enum_values),
                        values=list(meta.enum_values),
                    )
                )
            parent = self.dynamic_key_parent(path)
            if parent is not None and parent not in dynamic:
                dynamic.append(parent)
            if meta.type == "array" and meta.depth > EMBEDDED_ARRAY_MIN_DEPTH:
                embedded.append(path)
            if meta.type == "mixed":
                mixed.append(MixedTypeField(path=path, type=meta.type))

        return DataQuality(
            total_fields=total,
            nullable_count=nullable,
            nullable_ratio=round(nullable / total, 3),
            type_distribution=dict(type_distribution.most_common()),
            max_depth=max_depth,
            enum_candidates=enums,
            dynamic_key_paths=dynamic,
            embedded_arrays=embedded,
            mixed_type_fields=mixed,
            per_endpoint_stats=per_endpoint,
        )


def build(
    manifest: Optional[DiscoveryManifest],
    schemas: Mapping[str, SchemaReport],
    graphs: Mapping[str, RelationshipGraph],
) -> Report:
    """Convenience wrapper around ``ReportBuilder().build``."""
    return ReportBuilder().build(manifest, schemas, graphs)
