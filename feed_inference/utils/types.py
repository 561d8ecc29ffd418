"""
Type aliases for the feed inference toolkit.

This module defines common type aliases used throughout the application
to improve code readability.
"""

from __future__ import annotations

from typing import Any, Dict, List, Union

# Decoded JSON
JSON = Dict[str, Any]
JSONValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]

# Inference types
FieldPath = str
EntityPath = str
ValueHistogram = Dict[str, int]
