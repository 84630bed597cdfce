"""Core data models.

This package contains the inbound MES and ERP records, validated at the
parse boundary, and the archive reference model.
"""

from core.models.base import (
    ParseError,
    RecordBase,
    NumberText,
    Flag,
    format_number,
    parse_float,
    parse_int,
    parse_record,
    to_number,
)

from core.models.mes import (
    MesDocument,
    ComponentIssue,
    Backflush,
    TransactionEnvelope,
    parse_mes_document,
    read_envelope,
)

from core.models.erp import (
    ClassAssignment,
    ProductionOrderEvent,
    ProductionOrderComponent,
    ProductionOrderOperation,
    InventoryLocationMoveEvent,
    InspectionLotEvent,
    MaterialMasterEvent,
    PlantData,
)

from core.models.refs import ArchiveReference

__all__ = [
    # Base
    "ParseError",
    "RecordBase",
    "NumberText",
    "Flag",
    "format_number",
    "parse_float",
    "parse_int",
    "parse_record",
    "to_number",

    # MES
    "MesDocument",
    "ComponentIssue",
    "Backflush",
    "TransactionEnvelope",
    "parse_mes_document",
    "read_envelope",

    # ERP
    "ClassAssignment",
    "ProductionOrderEvent",
    "ProductionOrderComponent",
    "ProductionOrderOperation",
    "InventoryLocationMoveEvent",
    "InspectionLotEvent",
    "MaterialMasterEvent",
    "PlantData",

    # References
    "ArchiveReference",
]
