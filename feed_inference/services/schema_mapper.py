"""
Schema inference for a single decoded JSON document.

The mapper walks the document once and produces a flat map of every field
path it saw (type, occurrence and null counts, an example, enum candidates)
together with the "entities" of the document: array-of-objects paths that
would become relational tables.

Paths use dot-separated keys with a ``[]`` suffix per array level::

    projects[].buildings[].id
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..models.schema import (
    EntityDescriptor,
    FieldDescriptor,
    ForeignKeyCandidate,
    SchemaMeta,
    SchemaReport,
    SchemaStats,
)
from ..utils import naming
from ..utils.constants import (
    DEFAULT_ARRAY_SAMPLE_SIZE,
    DEFAULT_ENUM_THRESHOLD,
    DEFAULT_EXAMPLE_MAX_LENGTH,
    DEFAULT_MAX_DEPTH,
    DISTINCT_VALUE_MAX_LENGTH,
    NUMERIC_ENUM_MAX_DISTINCT,
)
from ..utils.types import EntityPath, FieldPath, JSONValue, ValueHistogram

logger = logging.getLogger(__name__)

# (value, path, depth)
Frame = Tuple[Any, str, int]


def detect_type(value: JSONValue) -> str:
    """Map a decoded JSON value to its schema type name."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "string"


def scalar_to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass
class FieldObservation:
    """Running statistics for one field path."""

    depth: int
    occurrences: int = 0
    null_count: int = 0
    example: Optional[str] = None
    types_seen: Counter = field(default_factory=Counter)
    distinct_values: ValueHistogram = field(default_factory=dict)

    def resolved_type(self) -> str:
        non_null = [name for name in self.types_seen if name != "null"]
        if len(non_null) == 1:
            return non_null[0]
        if len(non_null) > 1:
            return "mixed"
        return "null"


@dataclass
class TraversalState:
    """Accumulator owned by a single ``analyze`` call."""

    fields: Dict[FieldPath, FieldObservation] = field(default_factory=dict)
    entities: Dict[EntityPath, int] = field(default_factory=dict)

    def register_entity(self, path: str, item_count: int) -> None:
        # Keep the highest count seen for this entity path
        if item_count > self.entities.get(path, -1):
            self.entities[path] = item_count


class SchemaMapper:
    """
    Infer a flat field map and entity descriptors from a decoded JSON value.

    The traversal is an explicit-stack walk, so arbitrarily deep input cannot
    exhaust the interpreter stack, and all state lives in a ``TraversalState``
    created per call, so one mapper may be shared between threads.

    Args:
        max_depth: Containers deeper than this are recorded but not descended into
        array_sample_size: Number of list items inspected per list
        example_max_length: Truncation length for example values
        enum_threshold: Maximum distinct values for an enum candidate
    """

    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        array_sample_size: int = DEFAULT_ARRAY_SAMPLE_SIZE,
        example_max_length: int = DEFAULT_EXAMPLE_MAX_LENGTH,
        enum_threshold: int = DEFAULT_ENUM_THRESHOLD,
    ):
        self.max_depth = max_depth
        self.array_sample_size = array_sample_size
        self.example_max_length = example_max_length
        self.enum_threshold = enum_threshold

    @classmethod
    def from_settings(cls, settings: Any) -> "SchemaMapper":
        """Build a mapper from a ``SchemaSettings`` instance."""
        return cls(
            max_depth=settings.max_depth,
            array_sample_size=settings.array_sample_size,
            example_max_length=settings.example_max_length,
            enum_threshold=settings.enum_threshold,
        )

    def analyze(self, document: Any, source_url: str = "") -> SchemaReport:
        """
        Analyze one decoded JSON document.

        Never raises for a decodable value: empty containers and scalar roots
        produce a report with no fields.

        Args:
            document: Decoded JSON value (object, list or scalar)
            source_url: Endpoint the document came from (metadata only)

        Returns:
            SchemaReport with fields, entities and derived field lists
        """
        started = time.perf_counter()
        state = TraversalState()
        self._walk(document, state)
        elapsed = round(time.perf_counter() - started, 4)

        report = self._build_report(document, state, source_url, elapsed)
        logger.debug(
            f"Mapped {source_url or '<document>'}: "
            f"{report.stats.total_fields} fields, {report.stats.total_entities} entities"
        )
        return report

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _walk(self, document: Any, state: TraversalState) -> None:
        stack: List[Frame] = []

        if isinstance(document, list):
            # Root list: the list itself is the entity, item keys start at depth 1
            state.register_entity(naming.ROOT_LIST_PATH, len(document))
            for item in reversed(document[: self.array_sample_size]):
                if isinstance(item, dict):
                    self._push_object(stack, item, naming.ROOT_LIST_PATH, 1)
        elif isinstance(document, dict):
            self._push_object(stack, document, "", 0)

        while stack:
            value, path, depth = stack.pop()
            self._record(state, path, value, depth)

            if isinstance(value, dict):
                if depth + 1 <= self.max_depth:
                    self._push_object(stack, value, path, depth + 1)
            elif isinstance(value, (list, tuple)):
                self._expand_list(stack, state, value, path, depth)

    def _push_object(self, stack: List[Frame], obj: Dict[str, Any], path: str, depth: int) -> None:
        # Reverse so keys pop in document order
        for key, value in reversed(list(obj.items())):
            stack.append((value, naming.child_path(path, str(key)), depth))

    def _expand_list(
        self,
        stack: List[Frame],
        state: TraversalState,
        items: Any,
        path: str,
        depth: int,
    ) -> None:
        if depth + 1 > self.max_depth:
            return

        item_path = naming.array_path(path)
        sample = list(items[: self.array_sample_size])
        for item in reversed(sample):
            stack.append((item, item_path, depth + 1))

        if sample and isinstance(sample[0], dict):
            state.register_entity(item_path, len(items))

    def _record(self, state: TraversalState, path: str, value: Any, depth: int) -> None:
        observation = state.fields.get(path)
        if observation is None:
            observation = FieldObservation(depth=depth)
            state.fields[path] = observation

        value_type = detect_type(value)
        observation.occurrences += 1
        observation.types_seen[value_type] += 1

        if value is None:
            observation.null_count += 1
            return
        if value_type in ("array", "object"):
            return

        text = scalar_to_string(value)
        if observation.example is None:
            observation.example = text[: self.example_max_length]

        key = text[:DISTINCT_VALUE_MAX_LENGTH]
        distinct = observation.distinct_values
        if key in distinct:
            distinct[key] += 1
        elif len(distinct) <= self.enum_threshold:
            distinct[key] = 1

    # ------------------------------------------------------------------
    # Report assembly
    # ------------------------------------------------------------------

    def _build_report(
        self,
        document: Any,
        state: TraversalState,
        source_url: str,
        elapsed: float,
    ) -> SchemaReport:
        fields: Dict[str, FieldDescriptor] = {}
        type_distribution: Counter = Counter()
        max_depth = 0

        for path, observation in state.fields.items():
            resolved = observation.resolved_type()
            type_distribution[resolved] += 1
            max_depth = max(max_depth, observation.depth)

            occurrences = observation.occurrences
            null_ratio = round(observation.null_count / occurrences, 4) if occurrences else 0.0
            fields[path] = FieldDescriptor(
                path=path,
                type=resolved,
                depth=observation.depth,
                occurrences=occurrences,
                null_count=observation.null_count,
                null_ratio=null_ratio,
                is_nullable=observation.null_count > 0,
                is_always_present=observation.null_count == 0,
                is_id_field=naming.is_id_field_name(path),
                example=observation.example,
                enum_values=self._enum_values(observation, resolved),
            )

        entities = self._build_entities(state.entities, fields)

        id_fields = [path for path, f in fields.items() if f.is_id_field]
        nullable_fields = [path for path, f in fields.items() if f.is_nullable]
        always_present = [path for path, f in fields.items() if f.is_always_present]
        enum_candidates = [path for path, f in fields.items() if f.enum_values]

        root_is_list = isinstance(document, list)
        root_keys = [str(key) for key in document] if isinstance(document, dict) else []

        return SchemaReport(
            meta=SchemaMeta(
                generated_at=datetime.now(timezone.utc).isoformat(),
                source_url=source_url,
                analysis_seconds=elapsed,
                max_depth_reached=max_depth,
                array_sample_size=self.array_sample_size,
            ),
            stats=SchemaStats(
                total_fields=len(fields),
                total_entities=len(entities),
                max_depth=max_depth,
                id_fields_count=len(id_fields),
                nullable_fields=len(nullable_fields),
                enum_candidates=len(enum_candidates),
                type_distribution=dict(type_distribution.most_common()),
                root_is_list=root_is_list,
                root_keys=root_keys,
            ),
            entities=entities,
            fields=fields,
            id_fields=id_fields,
            nullable_fields=nullable_fields,
            always_present=always_present,
            enum_candidates=enum_candidates,
        )

    def _enum_values(self, observation: FieldObservation, resolved: str) -> Dict[str, int]:
        distinct = observation.distinct_values
        count = len(distinct)
        if count < 2 or count > self.enum_threshold:
            return {}
        if resolved in ("int", "float") and count > NUMERIC_ENUM_MAX_DISTINCT:
            return {}
        return dict(sorted(distinct.items(), key=lambda item: item[1], reverse=True))

    def _build_entities(
        self,
        registered: Dict[str, int],
        fields: Dict[str, FieldDescriptor],
    ) -> Dict[str, EntityDescriptor]:
        descriptors: List[EntityDescriptor] = []

        for entity_path, item_count in registered.items():
            direct = [path for path in fields if naming.is_direct_field(entity_path, path)]
            id_field = self._find_id_field(entity_path, direct)
            parent = naming.parent_entity_path(entity_path)
            if parent is not None and parent not in registered:
                parent = None

            descriptors.append(
                EntityDescriptor(
                    path=entity_path,
                    item_count=item_count,
                    id_field=id_field,
                    parent=parent,
                    direct_fields=direct,
                    foreign_keys=self._find_foreign_keys(entity_path, direct, id_field),
                )
            )

        # Shallowest first; sort is stable so ties keep discovery order
        descriptors.sort(key=lambda entity: entity.path.count("["))
        return {entity.path: entity for entity in descriptors}

    @staticmethod
    def _find_id_field(entity_path: str, direct_fields: List[str]) -> Optional[str]:
        exact = naming.entity_prefix(entity_path) + "id"
        if exact in direct_fields:
            return exact
        for path in direct_fields:
            if path.endswith(".id") or path.endswith("_id"):
                return path
        return None

    @staticmethod
    def _find_foreign_keys(
        entity_path: str,
        direct_fields: List[str],
        id_field: Optional[str],
    ) -> List[ForeignKeyCandidate]:
        candidates = []
        for path in direct_fields:
            name = naming.field_name(entity_path, path)
            if name == "id" or path == id_field:
                continue
            if name.endswith("_id") or name.endswith("Id"):
                candidates.append(
                    ForeignKeyCandidate(
                        field=path,
                        field_name=name,
                        target_hint=naming.strip_id_suffix(name),
                    )
                )
        return candidates


def analyze(document: Any, source_url: str = "", **options: Any) -> SchemaReport:
    """Convenience wrapper: ``SchemaMapper(**options).analyze(document, source_url)``."""
    return SchemaMapper(**options).analyze(document, source_url)
