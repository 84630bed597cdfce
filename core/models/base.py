"""Shared parsing helpers for inbound records.

Inbound MES XML and ERP JSON carry numbers either as text or as JSON
numbers. Records keep them as text and render numbers the way the MES and
ERP expect them (``2.0`` becomes ``"2"``), so that values such as
``"0012"`` pass through untouched.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


class ParseError(ValueError):
    """An inbound payload is malformed or does not have the expected shape."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


# =============================================================================
# Number Formatting
# =============================================================================

_FLOAT_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*([eE][+-]?\d+)?|\.\d+([eE][+-]?\d+)?|Infinity)")
_INT_PREFIX = re.compile(r"^[+-]?\d+")


def format_number(value: float) -> str:
    """Render a number as decimal text without a trailing ``.0``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def to_number(value: Any) -> float:
    """Convert a whole value to a number, NaN if it is not numeric.

    Blank text counts as 0.
    """
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    s = str(value).strip()
    if s == "":
        return 0.0
    try:
        return float(s)
    except ValueError:
        return math.nan


def parse_float(value: Any) -> float:
    """Parse the leading decimal number of a value, NaN if there is none."""
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return math.nan
    match = _FLOAT_PREFIX.match(str(value).strip())
    if not match:
        return math.nan
    return float(match.group(0).replace("Infinity", "inf"))


def parse_int(value: Any) -> Optional[int]:
    """Parse the leading integer of a value, None if there is none."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else int(value)
    if value is None:
        return None
    match = _INT_PREFIX.match(str(value).strip())
    return int(match.group(0)) if match else None


# =============================================================================
# Value Parsers
# =============================================================================

def _parse_text(value):
    """Keep text as-is and render numbers and booleans as text."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return format_number(value)
    return value


def _parse_flag(value):
    """Truthiness of a flag: empty text, ``0`` and ``false`` are unset."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return bool(value)


def _parse_list(value):
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return value


NumberText = Annotated[Optional[str], BeforeValidator(_parse_text)]
Flag = Annotated[bool, BeforeValidator(_parse_flag)]
ListValue = BeforeValidator(_parse_list)


# =============================================================================
# Base Record
# =============================================================================

class RecordBase(BaseModel):
    """Base model for all inbound records. Records are immutable."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


RecordT = TypeVar("RecordT", bound=RecordBase)


def parse_record(model: Type[RecordT], data: Any) -> RecordT:
    """Validate inbound data against a record model.

    Raises:
        ParseError: If the data does not have the expected shape
    """
    if not isinstance(data, dict):
        raise ParseError("Invalid input message, check the file content")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ParseError(
            f"Invalid {model.__name__}: {e.error_count()} validation error(s)",
            errors=e.errors(include_url=False),
        ) from e
