"""Production order translation (ERP -> MES).

A production order event becomes five MES documents, archived in this order:

    ERPWOStart          create-production-order.xml
    ERPWOChange         update-production-order.xml
    ERPRouteStart       create-production-order-operations.xml
    ERPRouteChange      update-production-order-operations.xml
    ERPMatlListChange   update-production-order-components.xml

The MES picks the create or the update variant depending on whether it
already knows the order.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional
from xml.sax.saxutils import escape

from core.conversions import CodeTables
from core.models.base import parse_float, parse_int
from core.models.erp import (
    ProductionOrderComponent,
    ProductionOrderEvent,
    ProductionOrderOperation,
)
from translators.common import (
    ArchiveDocument,
    ConsistencyError,
    indent_lines,
    iso_date_to_mes_date,
    sanitize_filename,
    text,
    to_fixed,
)

logger = logging.getLogger(__name__)


STATUS_CREATED = "-1"
SET = "X"

MES_MESSAGE_TYPES = "ERPWOStart ERPWOChange ERPRouteStart ERPRouteChange ERPMatlListChange"


# =============================================================================
# Status Translation
# =============================================================================

def translate_status(order: ProductionOrderEvent) -> str:
    """MES work order status of a production order, first matching rule wins.

    Returns:
        ``45``, ``90``, ``95`` or ``40``, or ``-1`` for orders that are only created

    Raises:
        ConsistencyError: If no rule matches the status indicators
    """
    if order.is_released == SET and order.is_partially_confirmed == SET and order.is_delivered == "":
        return "45"
    if order.is_released == SET and order.is_partially_delivered == SET:
        return "90"
    if order.is_released == SET and order.is_confirmed == SET:
        return "95"
    if order.is_technically_completed == SET:
        return "95"
    if order.is_released == SET:
        return "40"
    if order.is_created == SET:
        return STATUS_CREATED
    raise ConsistencyError(
        "Failed to map status to MES Work Order status. "
        f"OrderIsReleased: '{order.is_released}', "
        f"OrderIsPartiallyConfirmed: '{order.is_partially_confirmed}', "
        f"OrderIsDelivered: '{order.is_delivered}', "
        f"OrderIsPartiallyDelivered: '{order.is_partially_delivered}', "
        f"OrderIsConfirmed: '{order.is_confirmed}', "
        f"OrderIsTechnicallyCompleted: '{order.is_technically_completed}', "
        f"OrderIsCreated: '{order.is_created}'."
    )


def translate_operation_status(operation: ProductionOrderOperation) -> str:
    """MES route step status of an operation.

    Raises:
        ConsistencyError: If the operation is neither closed, partially confirmed nor released
    """
    if operation.is_closed == SET:
        return "30"
    if operation.is_partially_confirmed == SET:
        return "20"
    if operation.is_released == SET:
        return "10"
    raise ConsistencyError(
        "Failed to map status to MES Operations status. "
        f"OperationIsClosed: '{operation.is_closed}', "
        f"OperationIsReleased: '{operation.is_released}', "
        f"OperationIsPartiallyConfirmed: '{operation.is_partially_confirmed}'."
    )


# =============================================================================
# Bill of Materials
# =============================================================================

def issue_type_code(component: ProductionOrderComponent) -> str:
    """``I`` for issued, ``F`` for bulk and ``B`` for backflushed components.

    Raises:
        ConsistencyError: If the component is both bulk and backflushed
    """
    if component.is_bulk and component.is_backflush:
        raise ConsistencyError(
            "Both IsBulkMaterialComponent and MatlCompIsMarkedForBackflush is true, which is a data error"
        )
    if component.is_bulk:
        return "F"
    if component.is_backflush:
        return "B"
    return "I"


@dataclass
class FoldedComponent:
    """A BOM line with the summed quantity of all lines it folds."""
    component: ProductionOrderComponent
    required_quantity: Optional[str]


def fold_components(components: List[ProductionOrderComponent]) -> List[FoldedComponent]:
    """Combine the components the MES consumes into one line per material.

    Drops components without a material and components that are deleted,
    phantom, bulk or backflushed. Lines of the same material, operation and
    unit are folded into the first one with their quantities summed to 3
    decimals. Bulk lines without a quantity are dropped afterwards.
    """
    combined: Dict[str, FoldedComponent] = {}
    for component in components:
        if not component.material:
            continue
        if component.is_deleted or component.is_phantom or component.is_bulk or component.is_backflush:
            continue

        key = f"{component.material}-{text(component.operation)}-{text(component.base_unit_iso_code)}"
        folded = combined.get(key)
        if folded is None:
            combined[key] = FoldedComponent(component, component.required_quantity)
        else:
            total = parse_float(folded.required_quantity) + parse_float(component.required_quantity)
            folded.required_quantity = to_fixed(total, 3)

    result = []
    for folded in combined.values():
        quantity = parse_float(folded.required_quantity)
        # Non-consumable components, e.g. labels or dies
        if issue_type_code(folded.component) == "F" and (quantity == 0 or math.isnan(quantity)):
            continue
        result.append(folded)
    return result


def _sequence_number(operation: Optional[str]) -> str:
    number = parse_int(operation)
    return "NaN" if number is None else str(number)


def bom_items_xml(order: ProductionOrderEvent, tables: CodeTables) -> str:
    """``BOMItem`` elements of the folded components, indented for the ``ItemList``."""
    items = []
    for folded in fold_components(order.components):
        component = folded.component
        item = (
            "<BOMItem>\n"
            f"  <Qty>{text(folded.required_quantity)}</Qty>\n"
            f"  <Item>{text(component.material)}</Item>\n"
            f"  <SeqNum>{_sequence_number(component.operation)}00</SeqNum>\n"
            f"  <ItemUOM>{tables.uom.to_mes(component.base_unit_iso_code)}</ItemUOM>\n"
            f"  <ItemLocation>{text(component.storage_location)}</ItemLocation>\n"
            f"  <IssueTypeCode>{issue_type_code(component)}</IssueTypeCode>\n"
            "</BOMItem>"
        )
        items.append(indent_lines(item, 6))
    return "\n".join(items)


# =============================================================================
# Routing
# =============================================================================

def route_steps_xml(order: ProductionOrderEvent, include_completed_quantity: bool) -> str:
    """``RouteStepAdd`` elements of the standard sequence operations.

    Args:
        order: Production order event
        include_completed_quantity: Add ``CompletedQuantity``, only used by
            the route change document
    """
    steps = []
    for operation in order.operations:
        if operation.is_deleted == SET:
            continue
        # Alternative sequences are not sent, the MES only runs the standard one
        if text(operation.sequence) != "0":
            continue

        step = (
            f"<StepName>{text(operation.work_center)}</StepName>\n"
            "<Operation />\n"
            f"<Sequence>{_sequence_number(operation.operation)}</Sequence>\n"
            f"<StepDescription>{escape(text(operation.text))}</StepDescription>\n"
            f"<WCStartDate>{iso_date_to_mes_date(operation.earliest_start)}</WCStartDate>\n"
            f"<WCEndDate>{iso_date_to_mes_date(operation.earliest_end)}</WCEndDate>\n"
            f"<OperationStatus>{translate_operation_status(operation)}</OperationStatus>\n"
            f"<PlannedQuantity>{text(operation.planned_total_quantity)}</PlannedQuantity>\n"
        )
        if include_completed_quantity:
            step += f"<CompletedQuantity>{text(operation.confirmed_yield_quantity)}</CompletedQuantity>"

        wrapped = f"<RouteStepAdd>\n{indent_lines(step, 2)}\n</RouteStepAdd>"
        steps.append(indent_lines(wrapped, 2))
    return "\n".join(steps)


# =============================================================================
# Documents
# =============================================================================

def _work_order_xml(
    transaction_type: str,
    order: ProductionOrderEvent,
    status: str,
    tables: CodeTables,
    item_list: Optional[str],
) -> str:
    item_list_xml = ""
    if item_list is not None:
        item_list_xml = f"    <ItemList>\n{item_list}\n    </ItemList>\n"

    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<Root TransactionType="{transaction_type}">\n'
        "  <WOStart>\n"
        f"    <BranchPlant>{tables.plant.to_mes(order.production_plant)}</BranchPlant>\n"
        f"    <WONumber>{text(order.manufacturing_order)}</WONumber>\n"
        f"    <Product>{text(order.material)}</Product>\n"
        f"    <Qty>{text(order.total_quantity)}</Qty>\n"
        f"    <UOM>{tables.uom.to_mes(order.production_unit_iso_code)}</UOM>\n"
        f"    <Status>{status}</Status>\n"
        f"    <StartDate>{iso_date_to_mes_date(order.scheduled_start)}</StartDate>\n"
        f"    <CompDate>{iso_date_to_mes_date(order.scheduled_end)}</CompDate>\n"
        f"    <ERPRoute>{text(order.manufacturing_order)}</ERPRoute>\n"
        f"{item_list_xml}"
        "    <ERPOrderType>ERPWO</ERPOrderType>\n"
        "  </WOStart>\n"
        "</Root>\n"
    )


def _route_xml(transaction_type: str, order: ProductionOrderEvent, is_change: bool) -> str:
    delete_xml = ""
    if is_change:
        delete_xml = "  <RouteStepDelete>\n    <StepIndex />\n  </RouteStepDelete>\n"

    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<Root TransactionType="{transaction_type}">\n'
        f"  <Name>{text(order.manufacturing_order)}</Name>\n"
        "  <Revision>1</Revision>\n"
        "  <Description />\n"
        "  <Notes />\n"
        "  <Status>1</Status>\n"
        "  <EOC />\n"
        f"  <Product>{text(order.material)}</Product>\n"
        "  <ERPItem />\n"
        f"{delete_xml}"
        f"{route_steps_xml(order, include_completed_quantity=is_change)}\n"
        "</Root>\n"
    )


def _material_list_xml(order: ProductionOrderEvent, bom: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<Root TransactionType="ERPMatlListChange">\n'
        "  <WOrder>\n"
        f"    <WONumber>{text(order.manufacturing_order)}</WONumber>\n"
        "    <ItemDelete />\n"
        "    <ItemList>\n"
        f"{bom}\n"
        "    </ItemList>\n"
        "  </WOrder>\n"
        "</Root>\n"
    )


def build_documents(order: ProductionOrderEvent, status: str, tables: CodeTables) -> List[ArchiveDocument]:
    """Generate the five MES documents of a production order, in archive order.

    Args:
        order: Production order event
        status: MES work order status from ``translate_status``
        tables: Code tables

    Raises:
        ConsistencyError: For unmapped statuses, invalid components or dates
        LookupNotFoundError: For plants or units without a MES code
    """
    logger.info("Creating ERPWOStart, ERPWOChange, ERPRouteStart, ERPRouteChange and ERPMatlListChange XML")
    bom = bom_items_xml(order, tables)
    return [
        ArchiveDocument(
            "CreateProductionOrder",
            "create-production-order.xml",
            _work_order_xml("ERPWOStart", order, status, tables, item_list=bom),
        ),
        ArchiveDocument(
            "UpdateProductionOrder",
            "update-production-order.xml",
            _work_order_xml("ERPWOChange", order, translate_status(order), tables, item_list=None),
        ),
        ArchiveDocument(
            "CreateProductionOrderOperations",
            "create-production-order-operations.xml",
            _route_xml("ERPRouteStart", order, is_change=False),
        ),
        ArchiveDocument(
            "UpdateProductionOrderOperations",
            "update-production-order-operations.xml",
            _route_xml("ERPRouteChange", order, is_change=True),
        ),
        ArchiveDocument(
            "UpdateProductionOrderComponents",
            "update-production-order-components.xml",
            _material_list_xml(order, bom),
        ),
    ]


def build_mes_message(
    order: ProductionOrderEvent,
    mes_plant: str,
    message_id: str,
    blob_names: Dict[str, str],
) -> Dict[str, str]:
    """Message telling the MES where to pick up the archived documents.

    Args:
        order: Production order event
        mes_plant: MES plant of the order
        message_id: Id of the inbound message, used in the file names
        blob_names: Archive blob name per document role
    """
    prefix = f"{text(order.manufacturing_order)}-{mes_plant}"
    suffix = f"{message_id}.xml"
    return {
        "Plant": mes_plant,
        "ProductionOrder": text(order.manufacturing_order),
        "ProductionOrderFilename": sanitize_filename(f"WO-{prefix}-{suffix}"),
        "CreateProductionOrder": blob_names["CreateProductionOrder"],
        "UpdateProductionOrder": blob_names["UpdateProductionOrder"],
        "ProductionOrderOperationsFilename": sanitize_filename(f"WOO-{prefix}-route-{suffix}"),
        "CreateProductionOrderOperations": blob_names["CreateProductionOrderOperations"],
        "UpdateProductionOrderOperations": blob_names["UpdateProductionOrderOperations"],
        "ProductionOrderComponentsFilename": sanitize_filename(f"WOC-{prefix}-components-{suffix}"),
        "UpdateProductionOrderComponents": blob_names["UpdateProductionOrderComponents"],
    }
