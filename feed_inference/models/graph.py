"""Models for the entity relationship graph."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .schema import ForeignKeyCandidate

RelationshipType = Literal["one_to_many", "many_to_one", "unresolved_fk"]
RelationshipVia = Literal["nesting", "foreign_key"]


class EntityNode(BaseModel):
    """Graph node for one entity path."""

    path: str
    name: str
    table_name: str
    id_field: Optional[str] = None
    parent: Optional[str] = None
    children: List[str] = Field(default_factory=list)
    item_count: int = 0
    direct_fields: List[str] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyCandidate] = Field(default_factory=list)
    depth: int = 0


class RelationshipEdge(BaseModel):
    """A detected link between two entities."""

    model_config = ConfigDict(populate_by_name=True)

    from_path: str = Field(..., alias="from")
    to_path: Optional[str] = Field(None, alias="to")
    type: RelationshipType
    via: RelationshipVia
    confidence: float = Field(..., gt=0.0, le=1.0)
    note: str = ""
    field: Optional[str] = None
    field_name: Optional[str] = None
    target_hint: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.to_path is not None


class HierarchyNode(BaseModel):
    path: str
    name: str
    table_name: str
    item_count: int = 0
    children: List["HierarchyNode"] = Field(default_factory=list)


class HierarchyForest(BaseModel):
    type: Literal["forest"] = "forest"
    roots: List[HierarchyNode]


class SuggestedTable(BaseModel):
    """One step of the dependency-respecting table creation order."""

    table_name: str
    path: str
    depth: int = 0
    id_field: Optional[str] = None
    item_count: int = 0
    reason: str = ""
    circular: bool = False


class GraphMeta(BaseModel):
    generated_at: str
    source_url: str


class RelationshipGraph(BaseModel):
    """Inferred entity graph for one schema report."""

    meta: GraphMeta
    entities: Dict[str, EntityNode] = Field(default_factory=dict)
    relationships: List[RelationshipEdge] = Field(default_factory=list)
    hierarchy: Optional[Union[HierarchyNode, HierarchyForest]] = None
    suggested_tables: List[SuggestedTable] = Field(default_factory=list)
    note: Optional[str] = None

    def to_json_dict(self) -> dict:
        """Dump with ``from``/``to`` keys as consumed downstream."""
        return self.model_dump(mode="json", by_alias=True)


class CombinedRelationshipsMeta(BaseModel):
    generated_at: str
    endpoint_count: int = 0


class CombinedRelationships(BaseModel):
    """Every endpoint's relationship graph, keyed by source URL."""

    meta: CombinedRelationshipsMeta
    endpoints: Dict[str, RelationshipGraph] = Field(default_factory=dict)

    @classmethod
    def combine(cls, graphs: Mapping[str, RelationshipGraph]) -> "CombinedRelationships":
        return cls(
            meta=CombinedRelationshipsMeta(
                generated_at=datetime.now(timezone.utc).isoformat(),
                endpoint_count=len(graphs),
            ),
            endpoints=dict(graphs),
        )


HierarchyNode.model_rebuild()
