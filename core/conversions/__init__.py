"""MES/ERP code tables."""

from core.conversions.tables import (
    CodeTable,
    CodeTables,
    LookupNotFoundError,
    is_secondary_instance_plant,
    load_code_table,
)

__all__ = [
    "CodeTable",
    "CodeTables",
    "LookupNotFoundError",
    "is_secondary_instance_plant",
    "load_code_table",
]
