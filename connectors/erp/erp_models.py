"""ERP API data models.

These are ERP-specific models that map to the production order,
confirmation and classification API schemas. Field names follow the API.
Request models are dumped with ``model_dump(by_alias=True, exclude_none=True)``
so unset optional fields are left out of the request body.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# ERP API Models
# =============================================================================

class ErpBaseModel(BaseModel):
    """Base model for ERP API entities."""

    class Config:
        populate_by_name = True
        coerce_numbers_to_str = True


# =============================================================================
# Production Order Confirmation Requests
# =============================================================================

class BatchCharacteristic(ErpBaseModel):
    """Batch characteristic set on the goods receipt of a confirmation."""
    Characteristic: str = Field(..., alias="Characteristic")
    CharcValue: str = Field(..., alias="CharcValue")


class MaterialDocumentItem(ErpBaseModel):
    """Goods movement of a confirmation.

    Component issues reference a reservation, goods receipts reference the
    order item.
    """
    OrderID: Optional[str] = Field(None, alias="OrderID")
    OrderItem: Optional[str] = Field(None, alias="OrderItem")
    Material: Optional[str] = Field(None, alias="Material")
    Reservation: Optional[str] = Field(None, alias="Reservation")
    ReservationItem: Optional[str] = Field(None, alias="ReservationItem")
    Plant: Optional[str] = Field(None, alias="Plant")
    StorageLocation: Optional[str] = Field(None, alias="StorageLocation")
    GoodsMovementType: Optional[str] = Field(None, alias="GoodsMovementType")
    GoodsMovementRefDocType: Optional[str] = Field(None, alias="GoodsMovementRefDocType")
    EntryUnit: Optional[str] = Field(None, alias="EntryUnit")
    EntryUnitISOCode: Optional[str] = Field(None, alias="EntryUnitISOCode")
    QuantityInEntryUnit: str = Field(..., alias="QuantityInEntryUnit")
    Batch: Optional[str] = Field(None, alias="Batch")
    EWMStorageBin: Optional[str] = Field(None, alias="EWMStorageBin")
    EWMWarehouse: Optional[str] = Field(None, alias="EWMWarehouse")
    ManufactureDate: Optional[str] = Field(None, alias="ManufactureDate")
    to_ProdnOrderConfBatchCharc: Optional[List[BatchCharacteristic]] = Field(
        None, alias="to_ProdnOrderConfBatchCharc"
    )


class ProductionOrderConfirmation(ErpBaseModel):
    """Request body of the ProdnOrdConf2 API.

    Used for component goods issues (movement items only) and for
    production confirmations with or without a goods receipt.
    """
    OrderID: str = Field(..., alias="OrderID")
    Plant: Optional[str] = Field(None, alias="Plant")
    OrderOperation: str = Field(..., alias="OrderOperation")
    Sequence: str = Field("00", alias="Sequence")
    ConfirmationYieldQuantity: Optional[str] = Field(None, alias="ConfirmationYieldQuantity")
    ConfirmationScrapQuantity: Optional[str] = Field(None, alias="ConfirmationScrapQuantity")
    OpConfirmedWorkQuantity1: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity1")
    OpConfirmedWorkQuantity2: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity2")
    OpConfirmedWorkQuantity3: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity3")
    OpConfirmedWorkQuantity4: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity4")
    OpConfirmedWorkQuantity5: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity5")
    OpConfirmedWorkQuantity6: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity6")
    IsFinalConfirmation: Optional[bool] = Field(None, alias="IsFinalConfirmation")
    FinalConfirmationType: Optional[str] = Field(None, alias="FinalConfirmationType")
    OpenReservationsIsCleared: Optional[bool] = Field(None, alias="OpenReservationsIsCleared")
    to_ProdnOrdConfMatlDocItm: Optional[List[MaterialDocumentItem]] = Field(
        None, alias="to_ProdnOrdConfMatlDocItm"
    )

    def to_request_body(self) -> dict:
        """JSON body without unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Responses
# =============================================================================

class ProductionOrderHeader(ErpBaseModel):
    """Header of a production order.

    Maps to: /productionorder/v1/A_ProductionOrder_2('{id}') -> d
    """
    ManufacturingOrder: Optional[str] = Field(None, alias="ManufacturingOrder")
    Material: Optional[str] = Field(None, alias="Material")
    ProductionUnit: Optional[str] = Field(None, alias="ProductionUnit")


class ProductionOrderComponentItem(ErpBaseModel):
    """Component reservation of a production order.

    Maps to: /productionorder/v1/A_ProductionOrder_2('{id}')/to_ProductionOrderComponent -> d.results
    """
    Material: Optional[str] = Field(None, alias="Material")
    Reservation: Optional[str] = Field(None, alias="Reservation")
    ReservationItem: Optional[str] = Field(None, alias="ReservationItem")
    QuantityIsFixed: Optional[bool] = Field(None, alias="QuantityIsFixed")


class ConfirmationProposal(ErpBaseModel):
    """Proposed work quantities.

    Maps to: /prodorderconf/v1/GetConfProposal -> d.GetConfProposal
    """
    OpConfirmedWorkQuantity1: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity1")
    OpConfirmedWorkQuantity2: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity2")
    OpConfirmedWorkQuantity3: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity3")
    OpConfirmedWorkQuantity4: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity4")
    OpConfirmedWorkQuantity5: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity5")
    OpConfirmedWorkQuantity6: Optional[str] = Field(None, alias="OpConfirmedWorkQuantity6")

    def work_quantities(self) -> dict:
        return self.model_dump(by_alias=True)


class CharacteristicDescription(ErpBaseModel):
    """Characteristic description for a key date.

    Maps to: /classificationcharacteristic/v1/A_ClfnCharcDescForKeyDate -> d.results
    """
    CharcInternalID: Optional[str] = Field(None, alias="CharcInternalID")
    Language: Optional[str] = Field(None, alias="Language")
    CharcDescription: Optional[str] = Field(None, alias="CharcDescription")


class ProductCharacteristicValue(ErpBaseModel):
    """Value of a product characteristic.

    Maps to: /materialclassification/v1/A_ProductCharcValue -> d.results
    """
    CharcValue: Optional[str] = Field(None, alias="CharcValue")
