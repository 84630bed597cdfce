"""Outbound dispatcher.

Wraps every outbound call of the handlers:
- ERP API calls, with the response archived next to the inbound message
  and a readable error raised for non-2xx responses
- Production order confirmations, with optional work quantity proposal,
  retries on locked orders and a pause after each successful write
- Bus sends, with the destination chosen per MES instance
"""

import asyncio
import logging
from typing import Iterable, List, Optional

from connectors.bus import BusMessage, MessageBus
from connectors.erp.erp_client import (
    ErpApiClient,
    ErpApiError,
    ErpLockedError,
    ErpResponse,
    pretty_error_message,
    quote_key,
)
from connectors.erp.erp_models import (
    CharacteristicDescription,
    ConfirmationProposal,
    ProductCharacteristicValue,
    ProductionOrderComponentItem,
    ProductionOrderConfirmation,
    ProductionOrderHeader,
)
from core.config import QueueNames
from core.conversions import is_secondary_instance_plant
from core.conversions.tables import DEFAULT_PRIMARY_ERP_PLANTS
from core.observability.telemetry import get_telemetry
from core.storage.archive import MessageArchive

logger = logging.getLogger(__name__)


# =============================================================================
# ERP API Paths
# =============================================================================

PRODUCTION_ORDER_PATH = "/productionorder/v1/A_ProductionOrder_2('{order}')"
PRODUCTION_ORDER_COMPONENTS_PATH = PRODUCTION_ORDER_PATH + "/to_ProductionOrderComponent"
CONFIRMATION_PATH = "/prodorderconf/v1/ProdnOrdConf2"
CONFIRMATION_PROPOSAL_PATH = "/prodorderconf/v1/GetConfProposal"
CHARACTERISTIC_DESCRIPTION_PATH = "/classificationcharacteristic/v1/A_ClfnCharcDescForKeyDate"
PRODUCT_CHARACTERISTIC_VALUE_PATH = "/materialclassification/v1/A_ProductCharcValue"

MES_SYSTEM_CHARACTERISTIC = "MES_SYSTEM"
MES_SYSTEM_LANGUAGE = "EN"

# Destinations of the ERP -> MES direction
PRODUCTION_ORDER = "production_order"
INVENTORY_LOCATION_MOVE = "inventory_location_move"
MATERIAL_MASTER = "material_master"

DEFAULT_PRIMARY_MES_PLANTS = ("B024",)


def _results(payload) -> list:
    """Entries of an OData list response (``d.results``)."""
    return payload["d"]["results"]


class OutboundDispatcher:
    """Delivers outbound payloads to the ERP and to the bus.

    Usage:
        dispatcher = OutboundDispatcher(client, bus)
        order = await dispatcher.fetch_production_order("1004157", archive)
        await dispatcher.send_confirmation(body, archive, add_work_quantities=True)
    """

    def __init__(
        self,
        client: ErpApiClient,
        bus: MessageBus,
        queues: Optional[QueueNames] = None,
        primary_erp_plants: Iterable[str] = DEFAULT_PRIMARY_ERP_PLANTS,
        primary_mes_plants: Iterable[str] = DEFAULT_PRIMARY_MES_PLANTS,
        confirmation_delay_ms: int = 0,
    ):
        self.client = client
        self.bus = bus
        self.queues = queues or QueueNames()
        self.primary_erp_plants = tuple(primary_erp_plants)
        self.primary_mes_plants = tuple(primary_mes_plants)
        self.confirmation_delay_ms = confirmation_delay_ms

    # =========================================================================
    # Response Archival
    # =========================================================================

    def _archive_response(
        self,
        response: ErpResponse,
        archive: MessageArchive,
        name: str,
        failure: str,
        description: str,
    ) -> str:
        """Archive a response and raise if it is not a 2xx response.

        Returns:
            Browser link of the archived response
        """
        blob_name = archive.upload(response.text, name)
        link = archive.browser_link(blob_name)
        logger.info(f"Archived {description} ({response.status}) at {link}")

        if not response.ok:
            error_class = ErpLockedError if response.status == 423 else ErpApiError
            raise error_class(
                f"{failure} ({response.status}): {pretty_error_message(response.text)}. "
                f"For more details, see the archived response: {link}",
                status_code=response.status,
                response_body=response.text,
                archive_link=link,
            )
        return link

    # =========================================================================
    # Production Orders
    # =========================================================================

    async def fetch_production_order(self, order_id: str, archive: MessageArchive) -> ProductionOrderHeader:
        """Get the header of a production order."""
        path = PRODUCTION_ORDER_PATH.format(order=quote_key(order_id))
        logger.info(f"Getting Production Order from ERP API: {path}")
        response = await self.client.get(path)
        self._archive_response(
            response,
            archive,
            "erp-api-production-order-response-body.json",
            f"Failed to retrieve Production Order {order_id}",
            "ERP Production Order API response",
        )
        return ProductionOrderHeader.model_validate(response.json()["d"])

    async def fetch_production_order_components(
        self,
        order_id: str,
        archive: MessageArchive,
    ) -> List[ProductionOrderComponentItem]:
        """Get the component reservations of a production order."""
        path = PRODUCTION_ORDER_COMPONENTS_PATH.format(order=quote_key(order_id))
        logger.info(f"Getting Production Order Components from ERP API: {path}")
        response = await self.client.get(path)
        self._archive_response(
            response,
            archive,
            "erp-api-production-order-components-response-body.json",
            f"Failed to retrieve Production Order {order_id} Components",
            "ERP Production Order Components API response",
        )
        return [ProductionOrderComponentItem.model_validate(item) for item in _results(response.json())]

    # =========================================================================
    # Confirmations
    # =========================================================================

    async def fetch_confirmation_proposal(
        self,
        body: ProductionOrderConfirmation,
        archive: MessageArchive,
    ) -> ConfirmationProposal:
        """Get the proposed work quantities for a confirmation."""
        params = {
            # String parameters are wrapped in single quotes, decimals suffixed with M
            "OrderID": f"'{body.OrderID}'",
            "OrderOperation": f"'{body.OrderOperation}'",
            "Sequence": f"'{body.Sequence}'",
            "ConfirmationYieldQuantity": f"{body.ConfirmationYieldQuantity}M",
            "ConfirmationScrapQuantity": f"{body.ConfirmationScrapQuantity}M",
            "ActivityIsToBeProposed": "true",
        }
        logger.info(f"Getting proposed work quantities from ERP API for {body.OrderID}, operation {body.OrderOperation}")
        response = await self.client.post(CONFIRMATION_PROPOSAL_PATH, params=params)
        self._archive_response(
            response,
            archive,
            "erp-api-getconfproposal-response-body.json",
            "Failed to retrieve proposed work quantities",
            "ERP Work Quantity Proposal API response",
        )
        return ConfirmationProposal.model_validate(response.json()["d"]["GetConfProposal"])

    async def send_confirmation(
        self,
        body: ProductionOrderConfirmation,
        archive: MessageArchive,
        add_work_quantities: bool,
    ) -> ErpResponse:
        """Confirm a production order operation.

        Args:
            body: Confirmation request
            archive: Archive of the current message
            add_work_quantities: If True and the body has a yield quantity,
                merge the proposed work quantities into the request

        Returns:
            The successful ERP response

        Raises:
            ErpLockedError: If the order stayed locked after all retries
            ErpApiError: If the ERP rejected the confirmation
        """
        if add_work_quantities and body.ConfirmationYieldQuantity is not None:
            proposal = await self.fetch_confirmation_proposal(body, archive)
            body = body.model_copy(update=proposal.work_quantities())

        request_blob = archive.upload(
            body.to_request_body(),
            f"erp-api-ProdnOrdConf2-request-{body.OrderID}-{body.OrderOperation}.json",
        )
        logger.info(
            f"Archived ERP Production Order Confirmation API request body for {body.OrderID}, "
            f"operation {body.OrderOperation}, at {archive.browser_link(request_blob)}"
        )

        logger.info(f"Sending Production Order Confirmation to ERP API for {body.OrderID}, operation {body.OrderOperation}")
        response = await self.client.post(CONFIRMATION_PATH, data=body.to_request_body(), retry=True)
        self._archive_response(
            response,
            archive,
            f"erp-api-ProdnOrdConf2-response-{body.OrderOperation}.json",
            f"Failed to confirm Production Order {body.OrderID}, operation {body.OrderOperation}",
            f"ERP Production Order Confirmation API response for {body.OrderID}, operation {body.OrderOperation},",
        )

        # The ERP posts confirmations in the background
        if self.confirmation_delay_ms > 0:
            await asyncio.sleep(self.confirmation_delay_ms / 1000)
        return response

    # =========================================================================
    # Classification
    # =========================================================================

    async def fetch_characteristic_internal_id(self, archive: MessageArchive) -> str:
        """Internal ID of the MES_SYSTEM characteristic.

        Raises:
            ErpApiError: If the request fails or does not find exactly one characteristic
        """
        params = {
            "$filter": f"CharcDescription eq '{MES_SYSTEM_CHARACTERISTIC}' and Language eq '{MES_SYSTEM_LANGUAGE}'",
        }
        logger.info(f"Getting internal ID of {MES_SYSTEM_CHARACTERISTIC} characteristic from ERP API")
        response = await self.client.get(CHARACTERISTIC_DESCRIPTION_PATH, params=params)
        link = self._archive_response(
            response,
            archive,
            "erp-api-get-mes_system-characteristic-internal-id-response-body.json",
            f"Failed to retrieve {MES_SYSTEM_CHARACTERISTIC} characteristic internal ID",
            f"ERP API response for searching {MES_SYSTEM_CHARACTERISTIC} characteristic",
        )

        results = [CharacteristicDescription.model_validate(r) for r in _results(response.json())]
        if len(results) != 1:
            raise ErpApiError(
                f"Expected exactly one {MES_SYSTEM_CHARACTERISTIC} characteristic, but found {len(results)}. "
                f"For more details, see the archived response: {link}",
                status_code=response.status,
                response_body=response.text,
                archive_link=link,
            )
        return results[0].CharcInternalID

    async def fetch_characteristic_values(
        self,
        product: str,
        charc_internal_id: str,
        archive: MessageArchive,
    ) -> List[str]:
        """Values of a characteristic for a product."""
        params = {
            "$filter": f"Product eq '{quote_key(product)}' and CharcInternalID eq '{quote_key(charc_internal_id)}'",
        }
        logger.info(f"Getting characteristic valuations for '{product}' from ERP API")
        response = await self.client.get(PRODUCT_CHARACTERISTIC_VALUE_PATH, params=params)
        self._archive_response(
            response,
            archive,
            "erp-api-get-product-class-response-body.json",
            f"Failed to retrieve characteristic valuations for '{product}'",
            f"ERP characteristic valuations API response for '{product}'",
        )
        return [
            ProductCharacteristicValue.model_validate(r).CharcValue
            for r in _results(response.json())
        ]

    # =========================================================================
    # Bus
    # =========================================================================

    def select_destination(
        self,
        kind: str,
        erp_plant: Optional[str] = None,
        mes_plant: Optional[str] = None,
    ) -> str:
        """Queue of the MES instance serving a plant.

        Material master messages are routed by their MES plant, all other
        messages by their ERP plant.
        """
        base = getattr(self.queues, kind)
        if kind == MATERIAL_MASTER:
            secondary = mes_plant not in self.primary_mes_plants
        else:
            secondary = is_secondary_instance_plant(erp_plant, self.primary_erp_plants)
        return self.queues.for_instance(base, secondary)

    async def send_to_bus(self, destination: str, message: BusMessage) -> None:
        """Send a message and track the send as a dependency."""
        try:
            await self.bus.send(destination, message)
        except Exception:
            get_telemetry().track_dependency(
                f"SEND {destination}", None, target=destination, success=False, dependency_type="Bus"
            )
            raise
        get_telemetry().track_dependency(
            f"SEND {destination}", None, target=destination, success=True, dependency_type="Bus"
        )
