"""
Entity relationship inference over a schema report.

Two kinds of links are detected:

* nesting - an entity path nested inside another entity path. This is
  structural fact, so both directions are emitted at confidence 1.0.
* foreign_key - a ``*_id`` / ``*Id`` field whose stripped name matches a
  known table name. This is a naming heuristic and carries 0.85; references
  that match nothing are kept as ``unresolved_fk`` edges at 0.5.

The resolved ``many_to_one`` edges then drive a Kahn topological sort that
proposes a table creation order, parents first.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple, Union

from ..models.graph import (
    EntityNode,
    GraphMeta,
    HierarchyForest,
    HierarchyNode,
    RelationshipEdge,
    RelationshipGraph,
    SuggestedTable,
)
from ..models.schema import SchemaReport
from ..utils import naming
from ..utils.constants import (
    CIRCULAR_DEPENDENCY_REASON,
    FOREIGN_KEY_CONFIDENCE,
    NESTING_CONFIDENCE,
    UNRESOLVED_FK_CONFIDENCE,
)

logger = logging.getLogger(__name__)

NO_ENTITIES_NOTE = "No entities detected in schema. Feed may be a flat document."


class RelationshipAnalyzer:
    """Build an entity graph, hierarchy and table creation order."""

    def analyze(self, schema: SchemaReport, source_url: str = "") -> RelationshipGraph:
        """
        Build the relationship graph for one schema report.

        Args:
            schema: Output of ``SchemaMapper.analyze``
            source_url: Endpoint URL (metadata only); defaults to the report's own

        Returns:
            RelationshipGraph. When the schema has no entities the graph is
            empty, ``hierarchy`` is None and ``note`` explains why.
        """
        meta = GraphMeta(
            generated_at=datetime.now(timezone.utc).isoformat(),
            source_url=source_url or schema.meta.source_url,
        )

        if not schema.entities:
            return RelationshipGraph(meta=meta, note=NO_ENTITIES_NOTE)

        entities = self._build_nodes(schema)
        relationships = self._merge(
            self._nesting_relationships(entities),
            self._foreign_key_relationships(entities),
        )
        self._attach_children(entities, relationships)

        graph = RelationshipGraph(
            meta=meta,
            entities=entities,
            relationships=relationships,
            hierarchy=self._build_hierarchy(entities),
            suggested_tables=self._table_creation_order(entities, relationships),
        )
        logger.debug(
            f"Graph for {meta.source_url}: {len(entities)} entities, {len(relationships)} relationships"
        )
        return graph

    # ------------------------------------------------------------------
    # Nodes and edges
    # ------------------------------------------------------------------

    @staticmethod
    def _build_nodes(schema: SchemaReport) -> Dict[str, EntityNode]:
        nodes: Dict[str, EntityNode] = {}
        for path, entity in schema.entities.items():
            parent = entity.parent if entity.parent in schema.entities else None
            nodes[path] = EntityNode(
                path=path,
                name=naming.entity_name(path),
                table_name=naming.table_name(path),
                id_field=entity.id_field,
                parent=parent,
                item_count=entity.item_count,
                direct_fields=list(entity.direct_fields),
                foreign_keys=list(entity.foreign_keys),
                depth=naming.nesting_depth(path),
            )
        return nodes

    @staticmethod
    def _nesting_relationships(entities: Dict[str, EntityNode]) -> List[RelationshipEdge]:
        edges: List[RelationshipEdge] = []
        for path, node in entities.items():
            parent = node.parent
            if parent is None or parent not in entities:
                continue
            parent_node = entities[parent]
            edges.append(
                RelationshipEdge(
                    from_path=path,
                    to_path=parent,
                    type="many_to_one",
                    via="nesting",
                    confidence=NESTING_CONFIDENCE,
                    note=(
                        f"{node.name} is nested inside {parent_node.name}: one "
                        f"{parent_node.table_name} has many {node.table_name}"
                    ),
                )
            )
            edges.append(
                RelationshipEdge(
                    from_path=parent,
                    to_path=path,
                    type="one_to_many",
                    via="nesting",
                    confidence=NESTING_CONFIDENCE,
                    note=f"One {parent_node.table_name} can contain many {node.table_name}",
                )
            )
        return edges

    @staticmethod
    def _table_index(entities: Dict[str, EntityNode]) -> Dict[str, str]:
        """Map table names and their singular forms to entity paths."""
        index: Dict[str, str] = {}
        for path, node in entities.items():
            index.setdefault(node.table_name, path)
            index.setdefault(naming.singularize(node.table_name), path)
        return index

    @staticmethod
    def _resolve_hint(hint: str, index: Dict[str, str]) -> Optional[str]:
        snake = naming.to_snake_case(hint)
        for candidate in (hint, naming.pluralize(hint), snake, naming.pluralize(snake)):
            if candidate in index:
                return index[candidate]
        return None

    def _foreign_key_relationships(self, entities: Dict[str, EntityNode]) -> List[RelationshipEdge]:
        index = self._table_index(entities)
        edges: List[RelationshipEdge] = []

        for from_path, node in entities.items():
            for fk in node.foreign_keys:
                hint = fk.target_hint
                if not hint:
                    continue

                target = self._resolve_hint(hint, index)
                if target == from_path:
                    # Self-references never become edges
                    continue

                if target is None:
                    edges.append(
                        RelationshipEdge(
                            from_path=from_path,
                            to_path=None,
                            type="unresolved_fk",
                            via="foreign_key",
                            confidence=UNRESOLVED_FK_CONFIDENCE,
                            field=fk.field,
                            field_name=fk.field_name,
                            target_hint=hint,
                            note=(
                                f"Field '{fk.field_name}' looks like a foreign key but "
                                f"target entity '{hint}' was not found in the schema"
                            ),
                        )
                    )
                    continue

                edges.append(
                    RelationshipEdge(
                        from_path=from_path,
                        to_path=target,
                        type="many_to_one",
                        via="foreign_key",
                        confidence=FOREIGN_KEY_CONFIDENCE,
                        field=fk.field,
                        field_name=fk.field_name,
                        target_hint=hint,
                        note=f"{node.name}.{fk.field_name} references {entities[target].name}.id",
                    )
                )
        return edges

    @staticmethod
    def _merge(
        nesting: List[RelationshipEdge],
        foreign_keys: List[RelationshipEdge],
    ) -> List[RelationshipEdge]:
        """Deduplicate on (from, to, via); nesting edges first, then by confidence."""
        seen: Set[Tuple[str, str, str]] = set()
        merged: List[RelationshipEdge] = []

        for edge in nesting + foreign_keys:
            # Unresolved edges share to=None, so the hint keeps distinct ones apart
            to_key = edge.to_path if edge.to_path is not None else f"?{edge.target_hint}"
            key = (edge.from_path, to_key, edge.via)
            if key in seen:
                continue
            seen.add(key)
            merged.append(edge)

        merged.sort(key=lambda edge: (edge.via != "nesting", -edge.confidence))
        return merged

    @staticmethod
    def _attach_children(
        entities: Dict[str, EntityNode],
        relationships: List[RelationshipEdge],
    ) -> None:
        for edge in relationships:
            if edge.via != "nesting" or edge.type != "one_to_many":
                continue
            parent = entities.get(edge.from_path)
            if parent is not None and edge.to_path and edge.to_path not in parent.children:
                parent.children.append(edge.to_path)

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    @staticmethod
    def _build_hierarchy(
        entities: Dict[str, EntityNode],
    ) -> Optional[Union[HierarchyNode, HierarchyForest]]:
        roots = [path for path, node in entities.items() if node.parent is None]
        if not roots:
            return None

        built: Dict[str, HierarchyNode] = {}
        # Children before parents: deepest paths first
        for path in sorted(entities, key=lambda p: entities[p].depth, reverse=True):
            node = entities[path]
            built[path] = HierarchyNode(
                path=path,
                name=node.name,
                table_name=node.table_name,
                item_count=node.item_count,
                children=[built[child] for child in node.children if child in built],
            )

        if len(roots) == 1:
            return built[roots[0]]
        return HierarchyForest(roots=[built[path] for path in roots])

    # ------------------------------------------------------------------
    # Table creation order
    # ------------------------------------------------------------------

    @staticmethod
    def _table_creation_order(
        entities: Dict[str, EntityNode],
        relationships: List[RelationshipEdge],
    ) -> List[SuggestedTable]:
        """
        Kahn's algorithm over resolved many_to_one edges.

        An entity depends on every distinct entity it points at. Ready
        entities are taken shallowest first, ties in discovery order. Whatever
        never becomes ready sits on a cycle and is appended, flagged.
        """
        order = {path: position for position, path in enumerate(entities)}
        deps: Dict[str, Set[str]] = {path: set() for path in entities}
        dependents: Dict[str, Set[str]] = {path: set() for path in entities}

        for edge in relationships:
            if edge.type != "many_to_one" or edge.to_path is None:
                continue
            if edge.from_path not in entities or edge.to_path not in entities:
                continue
            if edge.from_path == edge.to_path:
                continue
            deps[edge.from_path].add(edge.to_path)
            dependents[edge.to_path].add(edge.from_path)

        in_degree = {path: len(parents) for path, parents in deps.items()}
        ready = [path for path, degree in in_degree.items() if degree == 0]
        result: List[SuggestedTable] = []
        placed: Set[str] = set()

        while ready:
            ready.sort(key=lambda p: (entities[p].depth, order[p]))
            path = ready.pop(0)
            node = entities[path]
            placed.add(path)

            if node.parent:
                reason = f"Depends on parent entity: {entities[node.parent].table_name}"
            elif deps[path]:
                targets = ", ".join(sorted(entities[p].table_name for p in deps[path]))
                reason = f"Referenced tables first: {targets}"
            else:
                reason = "Root entity - create first"

            result.append(
                SuggestedTable(
                    table_name=node.table_name,
                    path=path,
                    depth=node.depth,
                    id_field=node.id_field,
                    item_count=node.item_count,
                    reason=reason,
                )
            )

            for child in dependents[path]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    ready.append(child)

        for path, node in entities.items():
            if path in placed:
                continue
            logger.debug(f"Entity {path} is part of a dependency cycle")
            result.append(
                SuggestedTable(
                    table_name=node.table_name,
                    path=path,
                    depth=node.depth,
                    id_field=node.id_field,
                    item_count=node.item_count,
                    reason=CIRCULAR_DEPENDENCY_REASON,
                    circular=True,
                )
            )

        return result


def analyze(schema: SchemaReport, source_url: str = "") -> RelationshipGraph:
    """Convenience wrapper around ``RelationshipAnalyzer().analyze``."""
    return RelationshipAnalyzer().analyze(schema, source_url)
