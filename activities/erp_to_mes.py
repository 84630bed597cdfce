"""
ERP -> MES Activities

Activities for events published by the ERP:
- production_order_to_mes: Production order -> work order, route and material list documents
- inventory_location_move_to_mes: Inventory move -> lot master update
- inspection_lot_to_mes: Inspection lot -> lot master update
- material_master_to_mes: Material master -> product documents per plant

Generated documents are archived, and the MES receives a JSON message with
the archive blob names to pick them up from. Errors fail the activity.
"""

import logging
from typing import Dict, List

from temporalio import activity

from activities.runtime import (
    FORWARDED,
    SKIPPED,
    HandlerResult,
    InboundMessage,
    IntegrationRuntime,
    get_runtime,
    invocation,
)
from connectors.bus import BusMessage
from connectors.dispatcher import INVENTORY_LOCATION_MOVE, MATERIAL_MASTER, PRODUCTION_ORDER
from core.eligibility import is_material_mes_relevant
from core.models.base import parse_record
from core.models.erp import (
    InspectionLotEvent,
    InventoryLocationMoveEvent,
    MaterialMasterEvent,
    PlantData,
    ProductionOrderEvent,
)
from core.observability.logging import get_correlation_context, update_correlation
from core.storage.archive import MessageArchive
from translators import inventory, material_master, production_order
from translators.common import text

logger = logging.getLogger(__name__)


# =============================================================================
# Topics
# =============================================================================

PRODUCTION_ORDER_TOPIC = "production-order-to-mes"
INVENTORY_LOCATION_MOVE_TOPIC = "inventory-location-move-to-mes"
INSPECTION_LOT_TOPIC = "inspection-lot-to-mes"
MATERIAL_MASTER_TOPIC = "material-master-to-mes"

MES_MESSAGE_NAME = "mes-message.json"


def _archive_input(archive: MessageArchive, message: InboundMessage, description: str) -> None:
    blob_name = archive.upload(message.body, "input.json")
    logger.info(f"Archived incoming ERP {description} message at {archive.browser_link(blob_name)}")


async def _send_to_mes(
    runtime: IntegrationRuntime,
    destination: str,
    mes_message: Dict[str, str],
    session_id: str,
) -> None:
    await runtime.dispatcher.send_to_bus(
        destination,
        BusMessage(
            body=mes_message,
            content_type="application/json",
            correlation_id=get_correlation_context().correlation_id,
            session_id=session_id,
        ),
    )


# =============================================================================
# Production Order
# =============================================================================

async def handle_production_order(message: InboundMessage, runtime: IntegrationRuntime) -> HandlerResult:
    """Forward a production order to the MES as five documents.

    Orders in status Created are skipped.
    """
    with invocation(runtime, message, PRODUCTION_ORDER_TOPIC) as archive:
        body = message.body if isinstance(message.body, dict) else {}
        update_correlation(
            material_number=body.get("Material"),
            mes_message_type=production_order.MES_MESSAGE_TYPES,
            plant=body.get("ProductionPlant"),
            production_order=body.get("ManufacturingOrder"),
        )
        _archive_input(archive, message, "Production Order")

        order = parse_record(ProductionOrderEvent, message.body)
        erp_plant = text(order.production_plant)
        if not await runtime.eligibility.check_erp_plant(erp_plant, text(order.material), archive):
            return HandlerResult(SKIPPED, f"Plant '{erp_plant}' is not forwarded to the MES")

        status = production_order.translate_status(order)
        if status == production_order.STATUS_CREATED:
            skipped = f"Skipping this message, Production Order '{order.manufacturing_order}' has status 'Created'"
            logger.info(skipped)
            return HandlerResult(SKIPPED, skipped)

        logger.info("Creating MES XML message")
        blob_names = {}
        for document in production_order.build_documents(order, status, runtime.tables):
            blob_names[document.role] = archive.upload(document.content, document.name)
        logger.info("Archived XMLs")

        logger.info("Sending message to MES")
        mes_plant = runtime.tables.plant.to_mes(erp_plant)
        mes_message = production_order.build_mes_message(order, mes_plant, message.message_id, blob_names)
        archive.upload(mes_message, MES_MESSAGE_NAME)

        destination = runtime.dispatcher.select_destination(PRODUCTION_ORDER, erp_plant=erp_plant)
        await _send_to_mes(runtime, destination, mes_message, text(order.manufacturing_order))
        logger.info("Sent message to MES")
        return HandlerResult(FORWARDED, mes_message["ProductionOrderFilename"], [destination])


# =============================================================================
# Inventory Location Move
# =============================================================================

async def handle_inventory_location_move(message: InboundMessage, runtime: IntegrationRuntime) -> HandlerResult:
    """Forward a batch stock change to the MES lot master."""
    with invocation(runtime, message, INVENTORY_LOCATION_MOVE_TOPIC) as archive:
        body = message.body if isinstance(message.body, dict) else {}
        batch_data = body.get("Batch") if isinstance(body.get("Batch"), dict) else {}
        product_data = body.get("Product") if isinstance(body.get("Product"), dict) else {}
        update_correlation(
            batch=batch_data.get("Batch"),
            location=body.get("EWMStorageBin"),
            material_number=product_data.get("Product"),
            mes_message_type=inventory.MES_MESSAGE_TYPE,
            plant=body.get("EWMWarehouse"),
        )
        _archive_input(archive, message, "Inventory Location Move")

        move = parse_record(InventoryLocationMoveEvent, message.body)
        if move.batch is None:
            skipped = "Skipping message because it does not contain a Batch"
            logger.info(skipped)
            return HandlerResult(SKIPPED, skipped)

        if not is_material_mes_relevant(move.product.product_class):
            skipped = f"Skipping Material {move.product.product} because it is not MES relevant."
            logger.info(skipped)
            return HandlerResult(SKIPPED, skipped)

        erp_plant = text(move.ewm_warehouse)
        if not await runtime.eligibility.check_erp_plant(erp_plant, text(move.product.product), archive):
            return HandlerResult(SKIPPED, f"Plant '{erp_plant}' is not forwarded to the MES")

        logger.info("Creating MES XML message")
        blob_name = archive.upload(inventory.inventory_move_xml(move, runtime.tables), "update.xml")
        logger.info(f"Archived MES Inventory Location Move XML at {archive.browser_link(blob_name)}")

        logger.info("Sending message to MES")
        batch = text(move.batch.batch)
        mes_message = inventory.build_inventory_message(
            runtime.tables.plant.to_mes(erp_plant), batch, message.message_id, blob_name
        )
        archive.upload(mes_message, MES_MESSAGE_NAME)

        destination = runtime.dispatcher.select_destination(INVENTORY_LOCATION_MOVE, erp_plant=erp_plant)
        await _send_to_mes(runtime, destination, mes_message, batch)
        logger.info("Sent message to MES")
        return HandlerResult(FORWARDED, mes_message["Filename"], [destination])


# =============================================================================
# Inspection Lot
# =============================================================================

async def handle_inspection_lot(message: InboundMessage, runtime: IntegrationRuntime) -> HandlerResult:
    """Forward the batch of an inspection lot to the MES lot master."""
    with invocation(runtime, message, INSPECTION_LOT_TOPIC) as archive:
        body = message.body if isinstance(message.body, dict) else {}
        batch_data = body.get("Batch") if isinstance(body.get("Batch"), dict) else {}
        update_correlation(
            batch=batch_data.get("Batch"),
            material_number=body.get("Material"),
            mes_message_type=inventory.MES_MESSAGE_TYPE,
            plant=body.get("Plant"),
        )
        _archive_input(archive, message, "Inspection Lot")

        lot = parse_record(InspectionLotEvent, message.body)
        erp_plant = text(lot.plant)
        if not await runtime.eligibility.check_erp_plant(erp_plant, text(lot.material), archive):
            return HandlerResult(SKIPPED, f"Plant '{erp_plant}' is not forwarded to the MES")

        logger.info("Creating MES XML message")
        blob_name = archive.upload(inventory.inspection_lot_xml(lot, runtime.tables), "output.xml")
        logger.info(f"Archived MES Inspection Lot XML at {archive.browser_link(blob_name)}")

        logger.info("Sending message to MES")
        batch = text(lot.batch.batch)
        mes_message = inventory.build_inspection_lot_message(
            runtime.tables.plant.to_mes(erp_plant), batch, message.message_id, blob_name
        )
        archive.upload(mes_message, MES_MESSAGE_NAME)

        # Inspection lots share the lot master queue with inventory moves
        destination = runtime.dispatcher.select_destination(INVENTORY_LOCATION_MOVE, erp_plant=erp_plant)
        await _send_to_mes(runtime, destination, mes_message, batch)
        logger.info("Sent message to MES")
        return HandlerResult(FORWARDED, mes_message["Filename"], [destination])


# =============================================================================
# Material Master
# =============================================================================

async def _is_plant_valid(
    runtime: IntegrationRuntime,
    plant: PlantData,
    material: MaterialMasterEvent,
    archive: MessageArchive,
) -> bool:
    eligibility = runtime.eligibility
    erp_plant = text(plant.plant)

    if not eligibility.is_known_erp_plant(erp_plant):
        logger.info(f"Skipping plant '{erp_plant}' because it is not a MES plant")
        return False

    if plant.profile_code != material_master.MES_PROFILE_CODE:
        logger.info(f"Skipping plant '{erp_plant}' because it does not have a G3 profile code")
        return False

    if not eligibility.is_instance_enabled(erp_plant):
        logger.info(
            f"Skipping plant '{erp_plant}' because sending messages to the secondary MES instance is not enabled"
        )
        return False

    return await eligibility.passes_classification(erp_plant, text(material.product), archive)


async def handle_material_master(message: InboundMessage, runtime: IntegrationRuntime) -> HandlerResult:
    """Forward a material to the MES, once per eligible plant."""
    with invocation(runtime, message, MATERIAL_MASTER_TOPIC) as archive:
        body = message.body if isinstance(message.body, dict) else {}
        plants = body.get("PlantData") if isinstance(body.get("PlantData"), list) else []
        update_correlation(
            material_number=body.get("Product"),
            mes_message_type=material_master.MES_MESSAGE_TYPES,
            plant=" ".join(str(p.get("Plant")) for p in plants if isinstance(p, dict)) or None,
        )
        _archive_input(archive, message, "Material Master")

        material = parse_record(MaterialMasterEvent, message.body)
        if not material.plant_data:
            skipped = "Skipping message because it does not contain plant data"
            logger.info(skipped)
            return HandlerResult(SKIPPED, skipped)

        if not is_material_mes_relevant(material.product_class):
            skipped = f"Skipping Material {material.product} because it is not MES relevant."
            logger.info(skipped)
            return HandlerResult(SKIPPED, skipped)

        valid_plants = []
        for plant in material.plant_data:
            if await _is_plant_valid(runtime, plant, material, archive):
                valid_plants.append(plant)
        if not valid_plants:
            skipped = "Skipping this message, no valid plants found"
            logger.info(skipped)
            return HandlerResult(SKIPPED, skipped)

        logger.info("Creating MES XML messages")
        product = text(material.product)
        mes_messages: List[Dict[str, str]] = []
        for plant in valid_plants:
            mes_plant = runtime.tables.plant.to_mes(plant.plant)
            blob_names = {}
            for document in material_master.build_plant_documents(material, plant, runtime.tables):
                blob_names[document.role] = archive.upload(document.content, document.name)
            mes_message = material_master.build_mes_message(product, mes_plant, message.message_id, blob_names)
            archive.upload(mes_message, f"mes-message-{mes_plant}.json")
            mes_messages.append(mes_message)
            logger.info(f"Archived XML files for plant '{mes_plant}'")

        logger.info("Sending messages to MES")
        destinations = []
        for mes_message in mes_messages:
            destination = runtime.dispatcher.select_destination(MATERIAL_MASTER, mes_plant=mes_message["Plant"])
            await _send_to_mes(runtime, destination, mes_message, product)
            destinations.append(destination)
        logger.info(f"Sent {len(mes_messages)} message(s) to MES")
        return HandlerResult(FORWARDED, product, destinations)


# =============================================================================
# Activity Definitions
# =============================================================================

@activity.defn
async def production_order_to_mes(message: InboundMessage) -> HandlerResult:
    """Forward an ERP production order to the MES."""
    activity.logger.info(f"Processing production order message {message.message_id}")
    return await handle_production_order(message, get_runtime())


@activity.defn
async def inventory_location_move_to_mes(message: InboundMessage) -> HandlerResult:
    """Forward an ERP inventory location move to the MES."""
    activity.logger.info(f"Processing inventory location move message {message.message_id}")
    return await handle_inventory_location_move(message, get_runtime())


@activity.defn
async def inspection_lot_to_mes(message: InboundMessage) -> HandlerResult:
    """Forward an ERP inspection lot to the MES."""
    activity.logger.info(f"Processing inspection lot message {message.message_id}")
    return await handle_inspection_lot(message, get_runtime())


@activity.defn
async def material_master_to_mes(message: InboundMessage) -> HandlerResult:
    """Forward an ERP material master to the MES."""
    activity.logger.info(f"Processing material master message {message.message_id}")
    return await handle_material_master(message, get_runtime())
