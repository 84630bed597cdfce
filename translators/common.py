"""Helpers shared by the translators."""

import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Sequence

from core.models.base import RecordBase, format_number


class ConsistencyError(ValueError):
    """Inbound data contradicts itself or has no defined translation."""
    pass


@dataclass(frozen=True)
class ArchiveDocument:
    """A generated document, archived before the outbound message is sent.

    Attributes:
        role: What the document is used for, e.g. ``CreateProductionOrder``
        name: Archive file name
        content: Document text
    """
    role: str
    name: str
    content: str


_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_.]")
_ISO_DATE = re.compile(r"^(\d{4}-\d{2}-\d{2})T")


def sanitize_filename(filename: str) -> str:
    """Replace characters that are not allowed in file names with ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def text(value: Any) -> str:
    """Value as document text, empty for missing values."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return format_number(value)
    return str(value)


def to_fixed(value: float, digits: int) -> str:
    """Round half away from zero to a fixed number of decimals."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        value = 0.0
    exponent = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(exponent, rounding=ROUND_HALF_UP))


def pad_operation(value: Any) -> str:
    """Operation number zero-padded to the 4 digits of the ERP."""
    return text(value).rjust(4, "0")


def iso_date_to_mes_date(value: Optional[str]) -> str:
    """Date part of an ISO timestamp (``2021-05-21T00:00:00`` -> ``2021-05-21``).

    Raises:
        ConsistencyError: If the value is not an ISO timestamp
    """
    match = _ISO_DATE.match(value or "")
    if not match:
        raise ConsistencyError(f"Unknown date format: {value}")
    return match.group(1)


def indent_lines(block: str, indent: int) -> str:
    """Trim a block and indent each of its lines."""
    prefix = " " * indent
    return "\n".join(prefix + line for line in block.strip().split("\n"))


def check_consistency(records: Sequence[RecordBase], fields: Iterable[str]) -> bool:
    """True if all records agree with the first one on the given fields."""
    if not records:
        return True
    fields = list(fields)
    first = records[0]
    return all(
        getattr(record, name) == getattr(first, name)
        for record in records
        for name in fields
    )

