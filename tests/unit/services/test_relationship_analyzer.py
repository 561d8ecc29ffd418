"""Unit tests for RelationshipAnalyzer."""

import pytest

from feed_inference.models.graph import HierarchyForest, HierarchyNode
from feed_inference.services import relationship_analyzer
from feed_inference.services.relationship_analyzer import NO_ENTITIES_NOTE, RelationshipAnalyzer
from feed_inference.services.schema_mapper import SchemaMapper
from feed_inference.utils.constants import CIRCULAR_DEPENDENCY_REASON


def graph_for(document, url="https://x.test/feed"):
    return RelationshipAnalyzer().analyze(SchemaMapper().analyze(document, url))


def edges_of(graph, via=None, edge_type=None):
    return [
        edge
        for edge in graph.relationships
        if (via is None or edge.via == via) and (edge_type is None or edge.type == edge_type)
    ]


def table_order(graph):
    return [table.table_name for table in graph.suggested_tables]


class TestForeignKeys:
    """Test naming-based foreign key detection."""

    def test_resolved_foreign_key(self):
        graph = graph_for(
            {
                "projects": [
                    {"id": 1, "name": "X", "developer_id": 9},
                    {"id": 2, "name": "Y", "developer_id": 9},
                ],
                "developers": [{"id": 9, "name": "Z"}],
            }
        )

        fks = edges_of(graph, via="foreign_key")
        assert len(fks) == 1
        edge = fks[0]
        assert edge.from_path == "projects[]"
        assert edge.to_path == "developers[]"
        assert edge.type == "many_to_one"
        assert edge.confidence == pytest.approx(0.85)
        assert edge.field == "projects[].developer_id"
        assert edge.resolved
        assert table_order(graph) == ["developers", "projects"]

    def test_unresolved_foreign_key(self):
        graph = graph_for({"listings": [{"id": 1, "owner_id": 5}]})

        assert len(graph.relationships) == 1
        edge = graph.relationships[0]
        assert edge.type == "unresolved_fk"
        assert edge.via == "foreign_key"
        assert edge.to_path is None
        assert edge.confidence == pytest.approx(0.5)
        assert edge.target_hint == "owner"
        assert not edge.resolved

    def test_unresolved_edges_keep_distinct_hints(self):
        graph = graph_for({"listings": [{"id": 1, "owner_id": 5, "agent_id": 7}]})

        hints = sorted(edge.target_hint for edge in edges_of(graph, edge_type="unresolved_fk"))
        assert hints == ["agent", "owner"]

    def test_edges_serialize_with_from_and_to(self):
        graph = graph_for({"listings": [{"id": 1, "owner_id": 5}]})
        payload = graph.to_json_dict()

        edge = payload["relationships"][0]
        assert edge["from"] == "listings[]"
        assert edge["to"] is None
        assert "from_path" not in edge

    def test_camel_case_hint_resolves_to_snake_table(self):
        graph = graph_for(
            {
                "units": [{"id": 1, "buildingTypeId": 3}],
                "building_types": [{"id": 3}],
            }
        )

        fks = edges_of(graph, via="foreign_key")
        assert [(edge.from_path, edge.to_path) for edge in fks] == [("units[]", "building_types[]")]

    def test_singular_hint_matches_plural_table(self):
        graph = graph_for({"flats": [{"id": 1, "city_id": 2}], "cities": [{"id": 2}]})

        fks = edges_of(graph, via="foreign_key")
        assert fks[0].to_path == "cities[]"

    def test_self_reference_is_skipped(self):
        graph = graph_for({"categories": [{"id": 1, "category_id": 2}]})

        assert graph.relationships == []
        assert table_order(graph) == ["categories"]

    def test_duplicate_foreign_keys_are_merged(self):
        graph = graph_for(
            {
                "units": [{"id": 1, "building_id": 1, "buildingId": 1}],
                "buildings": [{"id": 1}],
            }
        )

        assert len(edges_of(graph, via="foreign_key")) == 1


class TestNesting:
    """Test nesting-derived relationships and hierarchy."""

    NESTED = {
        "projects": [
            {"id": 1, "buildings": [{"id": 10, "floors": 9}, {"id": 11, "floors": 12}]}
        ]
    }

    def test_nesting_edges_in_both_directions(self):
        graph = graph_for(self.NESTED)
        nesting = edges_of(graph, via="nesting")

        pairs = {(edge.from_path, edge.to_path, edge.type) for edge in nesting}
        assert pairs == {
            ("projects[].buildings[]", "projects[]", "many_to_one"),
            ("projects[]", "projects[].buildings[]", "one_to_many"),
        }
        assert all(edge.confidence == 1.0 for edge in nesting)

    def test_children_attached(self):
        graph = graph_for(self.NESTED)

        assert graph.entities["projects[]"].children == ["projects[].buildings[]"]
        assert graph.entities["projects[].buildings[]"].parent == "projects[]"
        assert graph.entities["projects[].buildings[]"].depth == 2

    def test_single_root_tree(self):
        graph = graph_for(self.NESTED)

        assert isinstance(graph.hierarchy, HierarchyNode)
        assert graph.hierarchy.path == "projects[]"
        assert [child.path for child in graph.hierarchy.children] == ["projects[].buildings[]"]
        assert graph.hierarchy.children[0].table_name == "buildings"

    def test_multiple_roots_build_forest(self):
        graph = graph_for({"a": [{"id": 1}], "b": [{"id": 2}]})

        assert isinstance(graph.hierarchy, HierarchyForest)
        assert [root.path for root in graph.hierarchy.roots] == ["a[]", "b[]"]
        assert graph.to_json_dict()["hierarchy"]["type"] == "forest"

    def test_nesting_edges_come_before_foreign_keys(self):
        graph = graph_for(
            {
                "projects": [{"id": 1, "buildings": [{"id": 2, "developer_id": 3}]}],
                "developers": [{"id": 3}],
            }
        )

        vias = [edge.via for edge in graph.relationships]
        assert vias == sorted(vias, key=lambda via: via != "nesting")

    def test_nesting_and_foreign_key_to_same_parent(self):
        graph = graph_for({"projects": [{"id": 1, "buildings": [{"id": 2, "project_id": 1}]}]})

        child_edges = [
            edge for edge in graph.relationships if edge.from_path == "projects[].buildings[]"
        ]
        assert {edge.via for edge in child_edges} == {"nesting", "foreign_key"}


class TestNoEntities:
    """Test the explicit empty result."""

    def test_flat_document(self):
        graph = graph_for({"a": {"b": {"c": 1}}})

        assert graph.entities == {}
        assert graph.relationships == []
        assert graph.hierarchy is None
        assert graph.suggested_tables == []
        assert graph.note == NO_ENTITIES_NOTE

    def test_source_url_defaults_to_schema(self):
        schema = SchemaMapper().analyze({}, "https://x.test/empty")

        assert RelationshipAnalyzer().analyze(schema).meta.source_url == "https://x.test/empty"


class TestTableOrder:
    """Test the topological table creation order."""

    def test_shallow_tables_first(self):
        graph = graph_for(
            {
                "projects": [{"id": 1, "buildings": [{"id": 2}]}],
                "developers": [{"id": 3}],
            }
        )

        assert table_order(graph) == ["projects", "developers", "buildings"]
        buildings = graph.suggested_tables[-1]
        assert buildings.reason == "Depends on parent entity: projects"
        assert graph.suggested_tables[0].reason == "Root entity - create first"

    def test_cycle_is_flagged_not_dropped(self):
        graph = graph_for(
            {
                "authors": [{"id": 1, "book_id": 1}],
                "books": [{"id": 1, "author_id": 1}],
            }
        )

        assert sorted(table_order(graph)) == ["authors", "books"]
        assert all(table.circular for table in graph.suggested_tables)
        assert all(table.reason == CIRCULAR_DEPENDENCY_REASON for table in graph.suggested_tables)

    def test_cycle_does_not_block_independent_tables(self):
        graph = graph_for(
            {
                "authors": [{"id": 1, "book_id": 1}],
                "books": [{"id": 1, "author_id": 1}],
                "regions": [{"id": 1}],
            }
        )

        assert table_order(graph)[0] == "regions"
        assert not graph.suggested_tables[0].circular

    @pytest.mark.parametrize(
        "document",
        [
            {"projects": [{"id": 1, "developer_id": 1}], "developers": [{"id": 1}]},
            {
                "complexes": [
                    {
                        "id": 1,
                        "region_id": 1,
                        "buildings": [{"id": 2, "flats": [{"id": 3, "finishing_id": 1}]}],
                    }
                ],
                "regions": [{"id": 1}],
                "finishings": [{"id": 1}],
            },
            {"a": [{"id": 1, "b_id": 1}], "b": [{"id": 1, "c_id": 1}], "c": [{"id": 1}]},
        ],
    )
    def test_targets_precede_sources(self, document):
        graph = graph_for(document)
        position = {table.path: index for index, table in enumerate(graph.suggested_tables)}

        assert sorted(position) == sorted(graph.entities)
        for edge in graph.relationships:
            if edge.type != "many_to_one" or edge.to_path is None:
                continue
            source = graph.suggested_tables[position[edge.from_path]]
            if source.circular:
                continue
            assert position[edge.to_path] < position[edge.from_path]

    def test_module_level_analyze(self):
        schema = SchemaMapper().analyze({"a": [{"id": 1}]})

        assert table_order(relationship_analyzer.analyze(schema)) == ["a"]
