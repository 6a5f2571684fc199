"""
APMCore Tracing Value Types

Values stored in span tags and data. Data values are restricted to the
JSON-compatible kinds so serialization stays exhaustive.
"""

from __future__ import annotations

from typing import Dict, List, Union

JSONScalar = Union[str, int, float, bool, None]
JSONValue = Union[JSONScalar, List["JSONValue"], Dict[str, "JSONValue"]]

Tags = Dict[str, str]
Data = Dict[str, JSONValue]
