"""Production confirmation translation (MES ``SuperBackFlush`` -> ERP).

A backflush record confirms the yield and scrap of a production order
operation. Records with the receipt flag also post the goods receipt of the
produced batch.
"""

import time
from typing import Optional, Tuple

from connectors.erp.erp_models import (
    BatchCharacteristic,
    MaterialDocumentItem,
    ProductionOrderConfirmation,
    ProductionOrderHeader,
)
from core.conversions import CodeTables
from core.models.base import format_number, to_number
from core.models.mes import Backflush
from translators.common import pad_operation, text

GOODS_RECEIPT = "101"
GOODS_RECEIPT_REVERSAL = "102"
STORAGE_LOCATION = "2000"
ORDER_ITEM = "0001"
PARENT_BATCH_CHARACTERISTIC = "ZLOBM_PARENTBATCH"

# MES operation status of a completed route step
OPERATION_COMPLETED = 30


def is_operation_completed(record: Backflush) -> bool:
    return to_number(record.operation_status) == OPERATION_COMPLETED


def manufacture_date(now_ms: Optional[int] = None) -> str:
    """OData date literal, ``/Date(<milliseconds since epoch>)/``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"/Date({now_ms})/"


def normalize_receipt_quantities(record: Backflush) -> Tuple[str, str, str, str]:
    """Quantities of a goods receipt.

    A negative quantity reverses an earlier receipt. The reversal confirms
    no yield and no scrap.

    Returns:
        Tuple of (receipt quantity, movement type, yield quantity, scrap quantity)
    """
    value = to_number(record.quantity_completed)
    if value < 0:
        return format_number(-value), GOODS_RECEIPT_REVERSAL, "0", "0"
    completed = text(record.quantity_completed)
    return completed, GOODS_RECEIPT, completed, text(record.quantity_canceled)


def build_goods_receipt_request(
    record: Backflush,
    order: ProductionOrderHeader,
    tables: CodeTables,
    now_ms: Optional[int] = None,
) -> ProductionOrderConfirmation:
    """Build the confirmation with goods receipt of one backflush record.

    Args:
        record: Backflush record with the receipt flag set
        order: Header of the production order, for material and unit
        tables: Code tables
        now_ms: Manufacture timestamp, defaults to now

    Raises:
        LookupNotFoundError: If the plant has no ERP code
    """
    quantity, movement_type, yield_quantity, scrap_quantity = normalize_receipt_quantities(record)
    erp_plant = tables.plant.to_erp(record.branch_plant)

    body = ProductionOrderConfirmation(
        OrderID=text(record.order_number),
        Plant=erp_plant,
        OrderOperation=pad_operation(record.sequence_number),
        Sequence="00",
        ConfirmationYieldQuantity=yield_quantity,
        ConfirmationScrapQuantity=scrap_quantity,
    )
    if is_operation_completed(record):
        body.IsFinalConfirmation = True
        body.FinalConfirmationType = "X"

    body.to_ProdnOrdConfMatlDocItm = [
        MaterialDocumentItem(
            OrderID=text(record.order_number),
            OrderItem=ORDER_ITEM,
            Material=order.Material,
            Plant=erp_plant,
            StorageLocation=STORAGE_LOCATION,
            GoodsMovementType=movement_type,
            GoodsMovementRefDocType="F",
            EntryUnit=order.ProductionUnit,
            QuantityInEntryUnit=quantity,
            Batch=text(record.lot),
            EWMStorageBin=text(record.location),
            EWMWarehouse=erp_plant,
            ManufactureDate=manufacture_date(now_ms),
            to_ProdnOrderConfBatchCharc=[
                BatchCharacteristic(
                    Characteristic=PARENT_BATCH_CHARACTERISTIC,
                    CharcValue=text(record.memo_lot_field_1),
                )
            ],
        )
    ]
    return body


def build_confirmation_request(record: Backflush, tables: CodeTables) -> ProductionOrderConfirmation:
    """Build the confirmation of one backflush record without goods receipt.

    Raises:
        LookupNotFoundError: If the plant has no ERP code
    """
    body = ProductionOrderConfirmation(
        OrderID=text(record.order_number),
        Plant=tables.plant.to_erp(record.branch_plant),
        OrderOperation=pad_operation(record.sequence_number),
        Sequence="00",
        ConfirmationYieldQuantity=text(record.quantity_completed),
        ConfirmationScrapQuantity=text(record.quantity_canceled),
    )
    if is_operation_completed(record):
        body.OpenReservationsIsCleared = True
        body.IsFinalConfirmation = True
        body.FinalConfirmationType = "X"
    return body
