"""
Path notation and naming helpers.

Field and entity paths use dot-separated object keys with a literal ``[]``
suffix meaning "one level of array-of-objects"::

    projects[].buildings[].id

Everything that parses or derives names from that notation lives here so
the schema mapper, relationship analyzer and report builder agree on it.
"""

from __future__ import annotations

import re
from typing import Optional

ARRAY_MARKER = "[]"
ROOT_LIST_PATH = "[]"
ROOT_LIST_NAME = "items"

_ENTITY_NAME_RE = re.compile(r"([^.\[\]]+)\[\]")
_CAMEL_RE = re.compile(r"([a-z0-9])([A-Z])")
_SEGMENT_SPLIT_RE = re.compile(r"[.\[\]]+")


def child_path(path: str, key: str) -> str:
    """
    Join an object key onto a parent path.

    Examples:
        >>> child_path("", "projects")
        'projects'
        >>> child_path("projects[]", "id")
        'projects[].id'
    """
    return f"{path}.{key}" if path else key


def array_path(path: str) -> str:
    """Path of the items of the list found at ``path``."""
    return path + ARRAY_MARKER


def entity_prefix(entity_path: str) -> str:
    """
    Prefix shared by every field directly owned by an entity.

    The synthetic root-list entity ``[]`` owns ``[].id``, ``[].name`` and so on,
    so its prefix is ``[].`` like any other entity.
    """
    return entity_path + "."


def is_direct_field(entity_path: str, field_path: str) -> bool:
    """
    Whether ``field_path`` sits exactly one level below ``entity_path``.

    Examples:
        >>> is_direct_field("projects[]", "projects[].id")
        True
        >>> is_direct_field("projects[]", "projects[].developer.name")
        False
    """
    prefix = entity_prefix(entity_path)
    if not field_path.startswith(prefix):
        return False
    rest = field_path[len(prefix):]
    return bool(rest) and "." not in rest and "[" not in rest


def field_name(entity_path: str, field_path: str) -> str:
    """Field path relative to its owning entity."""
    prefix = entity_prefix(entity_path)
    if field_path.startswith(prefix):
        return field_path[len(prefix):]
    return field_path


def parent_entity_path(entity_path: str) -> Optional[str]:
    """
    Structural parent of an entity path, or None for an outermost entity.

    Examples:
        >>> parent_entity_path("projects[].buildings[]")
        'projects[]'
        >>> parent_entity_path("projects[]") is None
        True
    """
    if len(entity_path) <= len(ARRAY_MARKER):
        return None
    idx = entity_path.rfind(ARRAY_MARKER, 0, len(entity_path) - len(ARRAY_MARKER))
    if idx < 0:
        return None
    return entity_path[: idx + len(ARRAY_MARKER)]


def nesting_depth(path: str) -> int:
    """Number of array levels in a path."""
    return path.count(ARRAY_MARKER)


def last_segment(path: str) -> str:
    """
    Final key of a field path with array markers stripped.

    Examples:
        >>> last_segment("projects[].buildings[].lat")
        'lat'
        >>> last_segment("projects[].tags[]")
        'tags'
    """
    parts = [part for part in path.replace(ARRAY_MARKER, "").split(".") if part]
    return parts[-1] if parts else path


def raw_last_segment(path: str) -> str:
    """Last segment split on both dots and brackets (used for id detection)."""
    parts = [part for part in _SEGMENT_SPLIT_RE.split(path) if part]
    return parts[-1] if parts else ""


def entity_name(entity_path: str) -> str:
    """
    Short name of an entity: the last key followed by ``[]``.

    Examples:
        >>> entity_name("projects[].buildings[]")
        'buildings'
        >>> entity_name("[]")
        'items'
    """
    if entity_path == ROOT_LIST_PATH:
        return ROOT_LIST_NAME
    matches = _ENTITY_NAME_RE.findall(entity_path)
    if matches:
        return matches[-1]
    return entity_path


def to_snake_case(name: str) -> str:
    """
    Convert camelCase to snake_case, lower-cased.

    Examples:
        >>> to_snake_case("buildingTypes")
        'building_types'
    """
    return _CAMEL_RE.sub(r"\1_\2", name).lower()


def table_name(entity_path: str) -> str:
    """Suggested relational table name for an entity path."""
    if not entity_path:
        return ""
    return to_snake_case(entity_name(entity_path))


def is_id_field_name(path: str) -> bool:
    """
    Whether the last segment of ``path`` looks like an identifier.

    Matches ``id`` (any case), ``*_id`` and camelCase ``*Id``.
    """
    last = raw_last_segment(path)
    if not last:
        return False
    lower = last.lower()
    return (
        lower == "id"
        or lower.endswith("_id")
        or (last.endswith("Id") and last != "Id")
    )


def strip_id_suffix(name: str) -> str:
    """
    Remove a trailing ``_id`` or ``Id`` from a field name.

    Examples:
        >>> strip_id_suffix("developer_id")
        'developer'
        >>> strip_id_suffix("buildingTypeId")
        'buildingType'
    """
    if name.endswith("_id"):
        return name[:-3]
    if name.endswith("Id"):
        return name[:-2]
    return name


def singularize(word: str) -> str:
    """
    Naive plural to singular conversion for common English endings.

    Examples:
        >>> singularize("cities")
        'city'
        >>> singularize("boxes")
        'box'
        >>> singularize("address")
        'address'
    """
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith(("ses", "xes", "zes")):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def pluralize(word: str) -> str:
    """
    Naive singular to plural conversion, the inverse of :func:`singularize`.

    Examples:
        >>> pluralize("city")
        'cities'
        >>> pluralize("developer")
        'developers'
    """
    if word.endswith("y"):
        return word[:-1] + "ies"
    if word.endswith("s"):
        return word
    return word + "s"


def slugify(value: str) -> str:
    """Lowercase ``value`` and replace anything outside ``[a-z0-9_]`` with ``_``."""
    return re.sub(r"[^a-z0-9_]", "_", value.lower().strip("/"))
