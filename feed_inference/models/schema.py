"""Models for schema mapper output."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

FieldType = Literal["null", "bool", "int", "float", "string", "array", "object", "mixed"]


class FieldDescriptor(BaseModel):
    """One unique field path observed anywhere in a document."""

    path: str = Field(..., description="Dot/bracket path of the field")
    type: FieldType = Field("null", description="Resolved JSON type")
    depth: int = Field(0, ge=0, description="Object nesting depth (root keys are 0)")
    occurrences: int = Field(0, ge=0)
    null_count: int = Field(0, ge=0)
    null_ratio: float = Field(0.0, ge=0.0, le=1.0)
    is_nullable: bool = False
    is_always_present: bool = True
    is_id_field: bool = False
    example: Optional[str] = Field(None, description="First non-null scalar, truncated")
    enum_values: Dict[str, int] = Field(
        default_factory=dict,
        description="Distinct value histogram when the field is an enum candidate",
    )

    @property
    def is_enum_candidate(self) -> bool:
        return bool(self.enum_values)


class ForeignKeyCandidate(BaseModel):
    """A direct field whose name suggests a reference to another entity."""

    field: str = Field(..., description="Full field path")
    field_name: str = Field(..., description="Field name relative to the entity")
    target_hint: str = Field(..., description="Field name with the id suffix stripped")


class EntityDescriptor(BaseModel):
    """An array-of-objects path: a candidate relational table."""

    path: str
    item_count: int = Field(0, ge=0)
    id_field: Optional[str] = None
    parent: Optional[str] = None
    direct_fields: List[str] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyCandidate] = Field(default_factory=list)


class SchemaMeta(BaseModel):
    generated_at: str
    source_url: str
    analysis_seconds: float = 0.0
    max_depth_reached: int = 0
    array_sample_size: int = 0


class SchemaStats(BaseModel):
    total_fields: int = 0
    total_entities: int = 0
    max_depth: int = 0
    id_fields_count: int = 0
    nullable_fields: int = 0
    enum_candidates: int = 0
    type_distribution: Dict[str, int] = Field(default_factory=dict)
    root_is_list: bool = False
    root_keys: List[str] = Field(default_factory=list)


class SchemaReport(BaseModel):
    """Inferred schema for one decoded document."""

    meta: SchemaMeta
    stats: SchemaStats = Field(default_factory=SchemaStats)
    entities: Dict[str, EntityDescriptor] = Field(default_factory=dict)
    fields: Dict[str, FieldDescriptor] = Field(default_factory=dict)
    id_fields: List[str] = Field(default_factory=list)
    nullable_fields: List[str] = Field(default_factory=list)
    always_present: List[str] = Field(default_factory=list)
    enum_candidates: List[str] = Field(default_factory=list)
