"""Unit tests for SchemaMapper."""

import pytest

from feed_inference.services import schema_mapper
from feed_inference.services.schema_mapper import SchemaMapper, detect_type, scalar_to_string

PROJECTS_DOC = {
    "projects": [
        {"id": 1, "name": "X", "developer_id": 9},
        {"id": 2, "name": "Y", "developer_id": 9},
    ],
    "developers": [{"id": 9, "name": "Z"}],
}

NESTED_DOC = {
    "projects": [
        {
            "id": 1,
            "title": "Riverside",
            "buildings": [
                {"id": 10, "project_id": 1, "floors": 12},
                {"id": 11, "project_id": 1, "floors": None},
            ],
        }
    ]
}


def _nested(levels):
    document = {"leaf": 1}
    for _ in range(levels):
        document = {"k": document}
    return document


SAMPLE_DOCUMENTS = [
    {},
    [],
    42,
    "plain string",
    None,
    True,
    PROJECTS_DOC,
    NESTED_DOC,
    [{"id": 1, "tags": ["a", "b"]}, {"id": 2, "tags": []}],
    [1, 2, 3],
    {"a": {"b": {"c": 1}}},
    {"mixed": [{"v": 1}, {"v": "a"}, {"v": None}, {"v": [1]}, {"v": {"x": 1}}]},
    {"matrix": [[1, 2], [3, 4]], "objects": [[{"id": 1}]]},
    {"prices": {"2023": {"value": 1}, "2024": {"value": 2}}},
]


class TestTypeDetection:
    """Test scalar type names and example rendering."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, "null"),
            (True, "bool"),
            (False, "bool"),
            (3, "int"),
            (2.5, "float"),
            ("x", "string"),
            ([1], "array"),
            ({"a": 1}, "object"),
        ],
    )
    def test_detect_type(self, value, expected):
        assert detect_type(value) == expected

    def test_booleans_render_lowercase(self):
        assert scalar_to_string(True) == "true"
        assert scalar_to_string(False) == "false"
        assert scalar_to_string(12) == "12"


class TestEntityDetection:
    """Test detection of array-of-object entities."""

    def test_two_root_entities(self):
        report = SchemaMapper().analyze(PROJECTS_DOC, "https://x.test/feed")

        assert set(report.entities) == {"projects[]", "developers[]"}
        assert report.entities["projects[]"].item_count == 2
        assert report.entities["developers[]"].item_count == 1
        assert report.stats.total_entities == 2
        assert report.meta.source_url == "https://x.test/feed"

    def test_id_field_and_foreign_keys(self):
        report = SchemaMapper().analyze(PROJECTS_DOC)
        projects = report.entities["projects[]"]

        assert projects.id_field == "projects[].id"
        assert projects.parent is None
        assert len(projects.foreign_keys) == 1
        fk = projects.foreign_keys[0]
        assert fk.field == "projects[].developer_id"
        assert fk.field_name == "developer_id"
        assert fk.target_hint == "developer"

    def test_direct_fields(self):
        report = SchemaMapper().analyze(NESTED_DOC)
        projects = report.entities["projects[]"]

        assert "projects[].id" in projects.direct_fields
        assert "projects[].title" in projects.direct_fields
        assert "projects[].buildings" in projects.direct_fields
        assert "projects[].buildings[].id" not in projects.direct_fields

    def test_nested_entity_parent(self):
        report = SchemaMapper().analyze(NESTED_DOC)
        buildings = report.entities["projects[].buildings[]"]

        assert buildings.parent == "projects[]"
        assert buildings.item_count == 2
        assert buildings.id_field == "projects[].buildings[].id"
        assert [fk.target_hint for fk in buildings.foreign_keys] == ["project"]

    def test_entities_sorted_by_nesting_depth(self):
        document = {"outer": [{"inner": [{"id": 1}]}], "flat": [{"id": 2}]}
        report = SchemaMapper().analyze(document)

        depths = [path.count("[") for path in report.entities]
        assert depths == sorted(depths)
        assert list(report.entities)[-1] == "outer[].inner[]"

    def test_camel_case_foreign_key(self):
        report = SchemaMapper().analyze({"units": [{"id": 1, "buildingTypeId": 4}]})
        fk = report.entities["units[]"].foreign_keys[0]

        assert fk.field_name == "buildingTypeId"
        assert fk.target_hint == "buildingType"

    def test_suffix_id_used_when_no_exact_id(self):
        report = SchemaMapper().analyze({"blocks": [{"block_id": 5, "name": "A"}]})
        block = report.entities["blocks[]"]

        assert block.id_field == "blocks[].block_id"
        assert block.foreign_keys == []

    def test_max_item_count_is_kept(self):
        document = {
            "groups": [
                {"members": [{"id": 1}]},
                {"members": [{"id": 2}, {"id": 3}, {"id": 4}]},
            ]
        }
        report = SchemaMapper().analyze(document)

        assert report.entities["groups[].members[]"].item_count == 3

    def test_list_of_scalars_is_not_an_entity(self):
        report = SchemaMapper().analyze({"tags": ["a", "b"]})

        assert report.entities == {}
        assert report.fields["tags"].type == "array"
        assert report.fields["tags[]"].type == "string"


class TestRootShapes:
    """Test root lists, scalars and empty containers."""

    def test_root_list_is_synthetic_entity(self):
        document = [{"id": 1, "tags": ["a", "b"]}, {"id": 2}]
        report = SchemaMapper().analyze(document)

        assert list(report.entities) == ["[]"]
        root = report.entities["[]"]
        assert root.item_count == 2
        assert root.id_field == "[].id"
        assert report.fields["[].id"].depth == 1
        assert report.fields["[].id"].occurrences == 2
        assert report.fields["[].tags[]"].occurrences == 2
        assert report.stats.root_is_list is True

    def test_empty_root_list(self):
        report = SchemaMapper().analyze([])

        assert report.fields == {}
        assert report.entities["[]"].item_count == 0

    @pytest.mark.parametrize("document", [{}, 42, "text", None, 1.5, False])
    def test_degenerate_documents(self, document):
        report = SchemaMapper().analyze(document)

        assert report.fields == {}
        assert report.entities == {}
        assert report.stats.total_fields == 0

    def test_root_keys_recorded(self):
        report = SchemaMapper().analyze(PROJECTS_DOC)

        assert report.stats.root_keys == ["projects", "developers"]
        assert report.stats.root_is_list is False


class TestFieldStatistics:
    """Test per-field observations."""

    def test_flat_nesting_depths(self):
        report = SchemaMapper().analyze({"a": {"b": {"c": 1}}})

        assert report.entities == {}
        assert report.fields["a"].depth == 0
        assert report.fields["a.b"].depth == 1
        assert report.fields["a.b.c"].depth == 2
        assert report.fields["a"].type == "object"
        assert report.fields["a.b.c"].type == "int"

    def test_enum_candidate_histogram(self):
        document = {
            "listings": [
                {"condition": "new"},
                {"condition": "used"},
                {"condition": "new"},
                {"condition": "new"},
            ]
        }
        report = SchemaMapper().analyze(document)
        condition = report.fields["listings[].condition"]

        assert condition.enum_values == {"new": 3, "used": 1}
        assert condition.is_enum_candidate
        assert "listings[].condition" in report.enum_candidates

    def test_single_value_is_not_enum(self):
        report = SchemaMapper().analyze({"items": [{"s": "a"}, {"s": "a"}]})

        assert report.fields["items[].s"].enum_values == {}

    def test_enum_threshold(self):
        document = {"items": [{"s": str(i)} for i in range(5)]}

        assert SchemaMapper(enum_threshold=5).analyze(document).fields["items[].s"].enum_values
        assert SchemaMapper(enum_threshold=4).analyze(document).fields["items[].s"].enum_values == {}

    def test_numeric_enum_is_tighter(self):
        numbers = {"items": [{"n": i} for i in range(11)]}
        words = {"items": [{"n": f"w{i}"} for i in range(11)]}

        assert SchemaMapper().analyze(numbers).fields["items[].n"].enum_values == {}
        assert len(SchemaMapper().analyze(words).fields["items[].n"].enum_values) == 11

    def test_bool_enum(self):
        report = SchemaMapper().analyze({"items": [{"f": True}, {"f": False}, {"f": True}]})

        assert report.fields["items[].f"].enum_values == {"true": 2, "false": 1}

    def test_mixed_type_and_nullability(self):
        report = SchemaMapper().analyze({"items": [{"v": 1}, {"v": "a"}, {"v": None}]})
        field = report.fields["items[].v"]

        assert field.type == "mixed"
        assert field.null_count == 1
        assert field.is_nullable
        assert not field.is_always_present
        assert field.null_ratio == pytest.approx(0.3333, abs=1e-4)

    def test_null_and_one_type_resolves_to_that_type(self):
        report = SchemaMapper().analyze({"items": [{"v": None}, {"v": 3}]})

        assert report.fields["items[].v"].type == "int"
        assert report.fields["items[].v"].is_nullable

    def test_only_null(self):
        report = SchemaMapper().analyze({"x": None})

        assert report.fields["x"].type == "null"
        assert report.fields["x"].example is None
        assert "x" in report.nullable_fields

    def test_example_is_first_non_null_and_truncated(self):
        document = {"items": [{"s": None}, {"s": "abcdefgh"}, {"s": "zzz"}]}
        report = SchemaMapper(example_max_length=5).analyze(document)

        assert report.fields["items[].s"].example == "abcde"

    def test_array_sample_size(self):
        document = {"items": [{"id": i} for i in range(50)]}
        report = SchemaMapper(array_sample_size=20).analyze(document)

        assert report.entities["items[]"].item_count == 50
        assert report.fields["items[].id"].occurrences == 20
        assert report.meta.array_sample_size == 20

    def test_id_fields_list(self):
        report = SchemaMapper().analyze(PROJECTS_DOC)

        assert "projects[].id" in report.id_fields
        assert "projects[].developer_id" in report.id_fields
        assert "projects[].name" not in report.id_fields


class TestDepthLimits:
    """Test max_depth handling and stack safety."""

    def test_containers_beyond_max_depth_are_not_expanded(self):
        document = {"l0": {"l1": {"l2": {"l3": 1}}}}
        report = SchemaMapper(max_depth=1).analyze(document)

        assert set(report.fields) == {"l0", "l0.l1"}
        assert report.fields["l0.l1"].type == "object"

    def test_lists_beyond_max_depth_are_not_expanded(self):
        report = SchemaMapper(max_depth=0).analyze({"items": [{"id": 1}]})

        assert set(report.fields) == {"items"}
        assert report.entities == {}

    def test_very_deep_document_does_not_overflow(self):
        levels = 1500
        report = SchemaMapper(max_depth=levels + 5).analyze(_nested(levels))

        assert report.stats.max_depth == levels
        assert report.stats.total_fields == levels + 1


class TestReportInvariants:
    """Properties that hold for every document."""

    @pytest.mark.parametrize("document", SAMPLE_DOCUMENTS)
    def test_invariants(self, document):
        report = SchemaMapper().analyze(document)

        assert report.stats.total_fields == len(report.fields)
        assert report.stats.total_entities == len(report.entities)
        for path, field in report.fields.items():
            assert field.path == path
            assert field.occurrences >= field.null_count >= 0
            assert len(field.enum_values) <= SchemaMapper().enum_threshold

        for path, entity in report.entities.items():
            assert path.endswith("[]")
            assert entity.parent is None or entity.parent in report.entities
            if entity.parent is not None:
                assert path.startswith(entity.parent)
                assert path != entity.parent
            for field_path in entity.direct_fields:
                assert field_path in report.fields
                assert field_path.startswith(path + ".")

    def test_mapper_is_reusable(self):
        mapper = SchemaMapper()
        first = mapper.analyze(PROJECTS_DOC)
        second = mapper.analyze({"other": 1})

        assert "projects[].id" in first.fields
        assert set(second.fields) == {"other"}

    def test_module_level_analyze(self):
        report = schema_mapper.analyze({"l0": {"l1": 1}}, "u", max_depth=0)

        assert set(report.fields) == {"l0"}
        assert report.meta.source_url == "u"
