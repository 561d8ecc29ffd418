"""Unit tests for path notation and naming helpers."""

import pytest

from feed_inference.utils import naming


class TestPaths:
    """Test path construction and parsing."""

    def test_child_and_array_paths(self):
        assert naming.child_path("", "projects") == "projects"
        assert naming.child_path("projects[]", "id") == "projects[].id"
        assert naming.array_path("projects") == "projects[]"

    @pytest.mark.parametrize(
        "entity,field,expected",
        [
            ("projects[]", "projects[].id", True),
            ("projects[]", "projects[].developer.name", False),
            ("projects[]", "projects[].buildings[]", False),
            ("projects[]", "projects[]", False),
            ("[]", "[].id", True),
            ("projects[]", "other[].id", False),
        ],
    )
    def test_is_direct_field(self, entity, field, expected):
        assert naming.is_direct_field(entity, field) is expected

    def test_field_name(self):
        assert naming.field_name("projects[]", "projects[].developer_id") == "developer_id"
        assert naming.field_name("projects[]", "other.id") == "other.id"

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("projects[].buildings[]", "projects[]"),
            ("a[].b.c[]", "a[]"),
            ("[].items[]", "[]"),
            ("projects[]", None),
            ("[]", None),
        ],
    )
    def test_parent_entity_path(self, path, expected):
        assert naming.parent_entity_path(path) == expected

    def test_nesting_depth(self):
        assert naming.nesting_depth("a") == 0
        assert naming.nesting_depth("a[].b[]") == 2

    def test_last_segment(self):
        assert naming.last_segment("projects[].buildings[].lat") == "lat"
        assert naming.last_segment("projects[].tags[]") == "tags"
        assert naming.last_segment("[]") == "[]"
        assert naming.raw_last_segment("projects[].id") == "id"


class TestNames:
    """Test entity and table names."""

    @pytest.mark.parametrize(
        "path,name,table",
        [
            ("projects[].buildings[]", "buildings", "buildings"),
            ("projects[].buildingTypes[]", "buildingTypes", "building_types"),
            ("data.flats[]", "flats", "flats"),
            ("[]", "items", "items"),
        ],
    )
    def test_entity_and_table_name(self, path, name, table):
        assert naming.entity_name(path) == name
        assert naming.table_name(path) == table

    def test_table_name_of_empty_path(self):
        assert naming.table_name("") == ""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("projects[].id", True),
            ("projects[].ID", True),
            ("projects[].developer_id", True),
            ("projects[].developerId", True),
            ("projects[].paid", False),
            ("projects[].valid", False),
            ("projects[].name", False),
        ],
    )
    def test_is_id_field_name(self, path, expected):
        assert naming.is_id_field_name(path) is expected

    def test_strip_id_suffix(self):
        assert naming.strip_id_suffix("developer_id") == "developer"
        assert naming.strip_id_suffix("buildingTypeId") == "buildingType"
        assert naming.strip_id_suffix("name") == "name"


class TestInflection:
    """Test the naive singular and plural forms."""

    @pytest.mark.parametrize(
        "plural,singular",
        [
            ("cities", "city"),
            ("boxes", "box"),
            ("addresses", "address"),
            ("developers", "developer"),
            ("address", "address"),
        ],
    )
    def test_singularize(self, plural, singular):
        assert naming.singularize(plural) == singular

    @pytest.mark.parametrize(
        "singular,plural",
        [("city", "cities"), ("developer", "developers"), ("regions", "regions")],
    )
    def test_pluralize(self, singular, plural):
        assert naming.pluralize(singular) == plural

    def test_slugify(self):
        assert naming.slugify("/api/v1/Blocks-List/") == "api_v1_blocks_list"
        assert naming.to_snake_case("subwayStationId") == "subway_station_id"
