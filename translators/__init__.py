"""Payload translators between MES and ERP.

MES -> ERP:
- component_issue: WorkOrderIssues -> ProdnOrdConf2 with goods issues
- confirmation: SuperBackFlush -> ProdnOrdConf2, with or without goods receipt

ERP -> MES:
- production_order: ERPWOStart, ERPWOChange, ERPRouteStart, ERPRouteChange, ERPMatlListChange
- inventory: ipdERPLotMasterUpdate for inventory moves and inspection lots
- material_master: ERPProductNew, ERPProductChange
"""

from translators.common import (
    ArchiveDocument,
    ConsistencyError,
    sanitize_filename,
)

__all__ = [
    "ArchiveDocument",
    "ConsistencyError",
    "sanitize_filename",
]
