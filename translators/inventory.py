"""Batch updates for the MES (ERP -> MES ``ipdERPLotMasterUpdate``).

Both inventory location moves and inspection lots update the MES lot
master of a batch. Inventory moves carry the stock status, inspection
lots leave it empty.
"""

from typing import Dict

from core.conversions import CodeTables
from core.models.base import to_number
from core.models.erp import InspectionLotEvent, InventoryLocationMoveEvent
from translators.common import sanitize_filename, text

RESTRICTED_USE_STATUS = "X"
MES_MESSAGE_TYPE = "ipdERPLotMasterUpdate"


def convert_inventory_status(move: InventoryLocationMoveEvent, tables: CodeTables) -> str:
    """MES lot status of an inventory move.

    Empty stock has no status. Stock types without a MES status are ``X``
    when the batch is in restricted-use stock.
    """
    if to_number(move.available_stock_quantity) == 0:
        return ""
    status = tables.inventory_status.to_mes(move.stock_type)
    if status == "" and move.is_restricted_use_stock:
        return RESTRICTED_USE_STATUS
    return status


def inventory_move_xml(move: InventoryLocationMoveEvent, tables: CodeTables) -> str:
    """Lot master update of an inventory location move.

    Raises:
        LookupNotFoundError: For plants, units or stock types without a MES code
    """
    plant = tables.plant.to_mes(move.ewm_warehouse)
    uom = tables.uom.to_mes(move.stock_unit_iso_code)
    status = convert_inventory_status(move, tables)
    batch = move.batch

    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<Root TransactionType="{MES_MESSAGE_TYPE}">\n'
        "  <UnitStart>\n"
        f"    <BranchPlant>{plant}</BranchPlant>\n"
        f"    <Container>{text(batch.batch)}</Container>\n"
        f"    <Product>{text(move.product.product)}</Product>\n"
        f"    <Qty>{text(move.available_stock_quantity)}</Qty>\n"
        f"    <UOM>{uom}</UOM>\n"
        f"    <Location>{text(move.storage_bin)}</Location>\n"
        f"    <Status>{status}</Status>\n"
        "    <MemoLot1 />\n"
        "    <MemoLot2 />\n"
        "    <MemoLot3 />\n"
        f"    <SupplierLot>{text(batch.batch_by_supplier)}</SupplierLot>\n"
        "    <Shipped />\n"
        f"    <ExpirationDate>{move.shelf_life_expiration_date or ''}</ExpirationDate>\n"
        "    <SellByDate />\n"
        "    <Source />\n"
        "  </UnitStart>\n"
        "</Root>\n"
    )


def supplier_lot(lot: InspectionLotEvent) -> str:
    """Supplier lot of the inspection lot, else the one maintained on the batch.

    The supplier lot is often entered on the batch after the inspection
    lot was created.
    """
    return text(lot.batch_by_supplier or lot.batch.batch_by_supplier)


def inspection_lot_xml(lot: InspectionLotEvent, tables: CodeTables) -> str:
    """Lot master update of an inspection lot.

    Raises:
        LookupNotFoundError: For plants or units without a MES code
    """
    plant = tables.plant.to_mes(lot.plant)
    uom = tables.uom.to_mes(lot.inspection_lot_quantity_unit)

    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<Root TransactionType="{MES_MESSAGE_TYPE}">\n'
        "  <UnitStart>\n"
        f"    <BranchPlant>{plant}</BranchPlant>\n"
        f"    <Container>{text(lot.batch.batch)}</Container>\n"
        f"    <Product>{text(lot.material)}</Product>\n"
        f"    <Qty>{text(lot.inspection_lot_quantity)}</Qty>\n"
        f"    <UOM>{uom}</UOM>\n"
        f"    <Location>{text(lot.batch_storage_location)}</Location>\n"
        "    <Status></Status>\n"
        "    <MemoLot1 />\n"
        "    <MemoLot2 />\n"
        "    <MemoLot3 />\n"
        f"    <SupplierLot>{supplier_lot(lot)}</SupplierLot>\n"
        "  </UnitStart>\n"
        "</Root>\n"
    )


def build_inventory_message(mes_plant: str, batch: str, message_id: str, blob_name: str) -> Dict[str, str]:
    """Message telling the MES where to pick up an inventory move update."""
    return {
        "Plant": mes_plant,
        "Batch": batch,
        "Filename": sanitize_filename(f"IM-{batch}-{message_id}.xml"),
        "UpdateXmlBlob": blob_name,
    }


def build_inspection_lot_message(mes_plant: str, batch: str, message_id: str, blob_name: str) -> Dict[str, str]:
    """Message telling the MES where to pick up an inspection lot update."""
    return {
        "Plant": mes_plant,
        "Batch": batch,
        "Filename": sanitize_filename(f"IL-{batch}-{mes_plant}-{message_id}.xml"),
        "UpdateXmlBlob": blob_name,
    }
