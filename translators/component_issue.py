"""Component goods issue translation (MES ``WorkOrderIssues`` -> ERP).

All records of one MES file issue components to the same production order
operation. They are posted as one confirmation with one goods movement per
record, each against the order's variable-quantity reservation of the
material.
"""

import logging
from typing import Dict, List, Optional, Sequence

from connectors.erp.erp_models import (
    MaterialDocumentItem,
    ProductionOrderComponentItem,
    ProductionOrderConfirmation,
)
from core.conversions import CodeTables
from core.models.base import format_number, to_number
from core.models.mes import ComponentIssue
from translators.common import ConsistencyError, pad_operation, text

logger = logging.getLogger(__name__)


GOODS_ISSUE = "261"
GOODS_ISSUE_REVERSAL = "262"
STORAGE_LOCATION = "2000"

# Fields every record of a file must agree on
CONSISTENCY_FIELDS = ("order_number", "operation_sequence")


def find_unknown_plant(records: Sequence[ComponentIssue], tables: CodeTables) -> Optional[str]:
    """First branch plant without an ERP plant, None if all are known."""
    for record in records:
        if not tables.plant.has_erp_value(record.branch_plant):
            return text(record.branch_plant)
    return None


def build_reservation_index(
    components: List[ProductionOrderComponentItem],
) -> Dict[str, ProductionOrderComponentItem]:
    """Variable-quantity reservation per material, first one wins."""
    index: Dict[str, ProductionOrderComponentItem] = {}
    for item in components:
        if item.Material in index:
            continue
        if item.QuantityIsFixed is False:
            index[item.Material] = item
    return index


def normalize_issue_quantity(quantity: Optional[str]):
    """Positive quantity and movement type of an issue.

    Negative quantities are returns to stock.

    Returns:
        Tuple of (quantity, goods movement type)
    """
    value = to_number(quantity)
    if value < 0:
        return format_number(-value), GOODS_ISSUE_REVERSAL
    return text(quantity), GOODS_ISSUE


def build_component_issue_request(
    records: Sequence[ComponentIssue],
    reservations: Dict[str, ProductionOrderComponentItem],
    tables: CodeTables,
) -> ProductionOrderConfirmation:
    """Build the confirmation that posts all component issues of a file.

    Args:
        records: Component issues of one order operation
        reservations: Variable-quantity reservations by material
        tables: Code tables

    Raises:
        ConsistencyError: If a material has no variable-quantity reservation
        LookupNotFoundError: If a plant or unit has no ERP code
    """
    items = []
    for record in records:
        material = text(record.item_number)
        reservation = reservations.get(material)
        if reservation is None:
            raise ConsistencyError(f"No reservation with variable quantity found for the material {material}.")

        quantity, movement_type = normalize_issue_quantity(record.quantity)
        erp_plant = tables.plant.to_erp(record.branch_plant)
        items.append(
            MaterialDocumentItem(
                OrderID=text(record.order_number),
                Material=material,
                Reservation=text(reservation.Reservation),
                ReservationItem=text(reservation.ReservationItem),
                Plant=erp_plant,
                StorageLocation=STORAGE_LOCATION,
                GoodsMovementType=movement_type,
                EntryUnitISOCode=tables.uom.to_erp(record.unit_of_measure),
                QuantityInEntryUnit=quantity,
                Batch=text(record.lot),
                EWMStorageBin=text(record.location),
                EWMWarehouse=erp_plant,
            )
        )

    first = records[0]
    return ProductionOrderConfirmation(
        OrderID=text(first.order_number),
        OrderOperation=pad_operation(first.operation_sequence),
        Sequence="00",
        to_ProdnOrdConfMatlDocItm=items,
    )
