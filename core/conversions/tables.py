"""Bidirectional code tables between MES and ERP values.

Each table maps an ERP code (e.g. plant "1015") to the MES code used for the
same thing (e.g. branch plant "B024") and back. Tables are loaded once from
the CSV files in ``core/conversions/data`` and are read-only afterwards.

Usage:
    tables = CodeTables.load()
    tables.plant.to_mes("1015")   # "B024"
    tables.uom.to_erp("kg")       # "KG"
"""

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

logger = logging.getLogger(__name__)


DATA_PATH = Path(__file__).resolve().parent / "data"

# Column names accepted for each side of a table
MES_COLUMNS = ("Compass", "MES")
ERP_COLUMNS = ("S4", "ERP")
ENABLED_COLUMN = "Enabled"

# Plants served by the primary (live) MES instance. Everything else is
# routed to the secondary instance.
DEFAULT_PRIMARY_ERP_PLANTS = ("1015",)


class LookupNotFoundError(LookupError):
    """A code has no counterpart in a code table."""

    def __init__(self, table_name: str, target: str, source: str, code: str):
        super().__init__(
            f'{target} {table_name} value not found for {source} value "{code}"'
        )
        self.table_name = table_name
        self.code = code


class CodeTable:
    """Translates codes between MES and ERP for one domain.

    The first mapping seen for a code wins on either side, so several MES
    codes may fold onto one ERP code ("kg" and "KG" both map to "KG") while
    the ERP code still translates back to the first MES code.
    """

    def __init__(self, name: str):
        self.name = name
        self._to_mes: Dict[str, str] = {}
        self._to_erp: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._to_mes)

    def __repr__(self) -> str:
        return f"CodeTable({self.name!r}, {len(self._to_mes)} ERP codes, {len(self._to_erp)} MES codes)"

    def add(self, mes_code: str, erp_code: str) -> None:
        """Register a mapping, keeping any existing entry on either side."""
        mes_code = str(mes_code)
        erp_code = str(erp_code)
        self._to_mes.setdefault(erp_code, mes_code)
        self._to_erp.setdefault(mes_code, erp_code)

    def has_mes_value(self, erp_code) -> bool:
        """True if the ERP code has an MES counterpart."""
        return str(erp_code) in self._to_mes

    def to_mes(self, erp_code) -> str:
        """Translate an ERP code to its MES counterpart.

        Raises:
            LookupNotFoundError: If the ERP code is unknown
        """
        key = str(erp_code)
        if key not in self._to_mes:
            raise LookupNotFoundError(self.name, "MES", "ERP", key)
        return self._to_mes[key]

    def has_erp_value(self, mes_code) -> bool:
        """True if the MES code has an ERP counterpart."""
        return str(mes_code) in self._to_erp

    def to_erp(self, mes_code) -> str:
        """Translate an MES code to its ERP counterpart.

        Raises:
            LookupNotFoundError: If the MES code is unknown
        """
        key = str(mes_code)
        if key not in self._to_erp:
            raise LookupNotFoundError(self.name, "ERP", "MES", key)
        return self._to_erp[key]


def _is_enabled(row: Dict[str, Optional[str]]) -> bool:
    value = row.get(ENABLED_COLUMN)
    if value is None or value.strip() == "":
        return True
    return value.strip().lower() in ("true", "1", "yes")


def _column(row: Dict[str, Optional[str]], candidates: Iterable[str], path: Path) -> str:
    for name in candidates:
        if name in row:
            return (row[name] or "").strip()
    raise ValueError(f"{path.name} has none of the columns {', '.join(candidates)}")


def load_code_table(path: Union[str, Path], name: str) -> CodeTable:
    """Read a code table from a CSV file.

    Args:
        path: CSV file with an MES column, an ERP column and an optional
            ``Enabled`` column
        name: Human readable table name used in error messages

    Returns:
        The populated CodeTable

    Raises:
        FileNotFoundError: If the CSV file does not exist
        ValueError: If the CSV file lacks the MES or ERP column
    """
    path = Path(path)
    table = CodeTable(name)
    row_count = 0
    skipped = 0

    with path.open(newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            row_count += 1
            if not _is_enabled(row):
                skipped += 1
                continue
            table.add(_column(row, MES_COLUMNS, path), _column(row, ERP_COLUMNS, path))

    logger.debug(f"Parsed {row_count} rows from {path.name} ({skipped} disabled)")
    return table


@dataclass(frozen=True)
class CodeTables:
    """All code tables used by the translators."""
    uom: CodeTable
    plant: CodeTable
    location: CodeTable
    inventory_status: CodeTable

    @classmethod
    def load(cls, directory: Union[str, Path, None] = None) -> "CodeTables":
        """Load every table from ``directory`` (defaults to the bundled data)."""
        base = Path(directory) if directory else DATA_PATH
        tables = cls(
            uom=load_code_table(base / "uom.csv", "UOM"),
            plant=load_code_table(base / "plant.csv", "Plant"),
            location=load_code_table(base / "location.csv", "Location"),
            inventory_status=load_code_table(
                base / "inventory-location-move-status.csv",
                "Inventory Location Move Status",
            ),
        )
        logger.info(f"Loaded code tables from {base}: {tables.uom}, {tables.plant}")
        return tables


def is_secondary_instance_plant(
    erp_plant,
    primary_plants: Iterable[str] = DEFAULT_PRIMARY_ERP_PLANTS,
) -> bool:
    """True if the ERP plant is served by the secondary MES instance."""
    return str(erp_plant) not in set(primary_plants)
