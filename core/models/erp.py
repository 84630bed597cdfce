"""ERP events forwarded to the MES.

The ERP publishes JSON events for production orders, inventory moves,
material master changes and inspection lots. Status indicators are ``"X"``
when set. They stay ``None`` when absent, which is not the same as ``""``.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field
from typing_extensions import Annotated

from core.models.base import Flag, ListValue, NumberText, RecordBase


# =============================================================================
# Classification
# =============================================================================

class CharacteristicDescription(RecordBase):
    charc_description: NumberText = Field(None, alias="CharcDescription")


class CharacteristicValue(RecordBase):
    charc_value: NumberText = Field(None, alias="CharcValue")


class ProductClassCharacteristic(RecordBase):
    """A characteristic of a class assigned to a material, with its valuations."""
    description: Optional[CharacteristicDescription] = Field(None, alias="Description")
    valuation: Annotated[List[CharacteristicValue], ListValue] = Field(default_factory=list, alias="Valuation")


class ClassDetails(RecordBase):
    class_type_name: NumberText = Field(None, alias="ClassTypeName")
    class_name: NumberText = Field(None, alias="Class")


class ClassAssignment(RecordBase):
    """A class assigned to a material."""
    class_details: Optional[ClassDetails] = Field(None, alias="ClassDetails")
    characteristics: Annotated[List[ProductClassCharacteristic], ListValue] = Field(
        default_factory=list, alias="ProductClassCharc"
    )


# =============================================================================
# Production Order
# =============================================================================

class ProductionOrderComponent(RecordBase):
    """A BOM line of a production order."""
    material: NumberText = Field(None, alias="Material")
    required_quantity: NumberText = Field(None, alias="RequiredQuantity")
    bom_item: NumberText = Field(None, alias="BOMItem")
    sequence: NumberText = Field(None, alias="ManufacturingOrderSequence")
    operation: NumberText = Field(None, alias="ManufacturingOrderOperation")
    base_unit_iso_code: NumberText = Field(None, alias="BaseUnitISOCode")
    storage_location: NumberText = Field(None, alias="StorageLocation")
    is_backflush: Flag = Field(False, alias="MatlCompIsMarkedForBackflush")
    is_bulk: Flag = Field(False, alias="IsBulkMaterialComponent")
    is_deleted: Flag = Field(False, alias="MatlCompIsMarkedForDeletion")
    is_phantom: Flag = Field(False, alias="MaterialComponentIsPhantomItem")


class ProductionOrderOperation(RecordBase):
    """A routing step of a production order."""
    work_center: NumberText = Field(None, alias="WorkCenter")
    operation: NumberText = Field(None, alias="ManufacturingOrderOperation")
    sequence: NumberText = Field(None, alias="ManufacturingOrderSequence")
    long_text: NumberText = Field(None, alias="OrderOperationLongText")
    text: NumberText = Field(None, alias="MfgOrderOperationText")
    earliest_start: NumberText = Field(None, alias="OpErlstSchedldExecStrtDteTmeISO")
    earliest_end: NumberText = Field(None, alias="OpErlstSchedldExecEndDteTmeISO")
    planned_total_quantity: NumberText = Field(None, alias="OpPlannedTotalQuantity")
    confirmed_yield_quantity: NumberText = Field(None, alias="OpTotalConfirmedYieldQty")
    is_partially_confirmed: NumberText = Field(None, alias="OperationIsPartiallyConfirmed")
    is_released: NumberText = Field(None, alias="OperationIsReleased")
    is_closed: NumberText = Field(None, alias="OperationIsClosed")
    is_deleted: NumberText = Field(None, alias="OperationIsDeleted")


class ProductionOrderEvent(RecordBase):
    """A production order created or changed in the ERP."""
    material: NumberText = Field(None, alias="Material")
    order_long_text: NumberText = Field(None, alias="OrderLongText")
    manufacturing_order: NumberText = Field(None, alias="ManufacturingOrder")
    production_plant: NumberText = Field(None, alias="ProductionPlant")
    plant: NumberText = Field(None, alias="Plant")
    total_quantity: NumberText = Field(None, alias="TotalQuantity")
    production_unit_iso_code: NumberText = Field(None, alias="ProductionUnitISOCode")
    scheduled_start: NumberText = Field(None, alias="MfgOrderScheduledStartDateTimeISO")
    scheduled_end: NumberText = Field(None, alias="MfgOrderScheduledEndDateTimeISO")
    components: Annotated[List[ProductionOrderComponent], ListValue] = Field(
        default_factory=list, alias="ProductionOrderComponents"
    )
    operations: Annotated[List[ProductionOrderOperation], ListValue] = Field(
        default_factory=list, alias="ProductionOrderOperations"
    )

    # Status indicators
    is_created: NumberText = Field(None, alias="OrderIsCreated")
    is_released: NumberText = Field(None, alias="OrderIsReleased")
    is_partially_confirmed: NumberText = Field(None, alias="OrderIsPartiallyConfirmed")
    is_confirmed: NumberText = Field(None, alias="OrderIsConfirmed")
    is_delivered: NumberText = Field(None, alias="OrderIsDelivered")
    is_partially_delivered: NumberText = Field(None, alias="OrderIsPartiallyDelivered")
    is_technically_completed: NumberText = Field(None, alias="OrderIsTechnicallyCompleted")


# =============================================================================
# Batches and Inventory
# =============================================================================

class BatchInfo(RecordBase):
    batch: NumberText = Field(None, alias="Batch")
    batch_by_supplier: NumberText = Field(None, alias="BatchBySupplier")


class ProductInfo(RecordBase):
    product: NumberText = Field(None, alias="Product")
    product_class: Annotated[List[ClassAssignment], ListValue] = Field(
        default_factory=list, alias="ProductClass"
    )


class InventoryLocationMoveEvent(RecordBase):
    """A batch moved between storage bins or stock types."""
    ewm_warehouse: NumberText = Field(None, alias="EWMWarehouse")
    batch: Optional[BatchInfo] = Field(None, alias="Batch")
    product: ProductInfo = Field(default_factory=ProductInfo, alias="Product")
    available_stock_quantity: NumberText = Field(None, alias="AvailableEWMStockQty")
    stock_unit_iso_code: NumberText = Field(None, alias="EWMStockQtyBaseUnitISOCode")
    storage_bin: NumberText = Field(None, alias="EWMStorageBin")
    stock_type: NumberText = Field(None, alias="EWMStockType")
    shelf_life_expiration_date: NumberText = Field(None, alias="ShelfLifeExpirationDate")
    parent_batch_value: NumberText = Field(None, alias="ParentBatchValue")
    is_restricted_use_stock: Flag = Field(False, alias="EWMBatchIsInRestrictedUseStock")


class InspectionLotEvent(RecordBase):
    """An inspection lot created for a batch."""
    plant: NumberText = Field(None, alias="Plant")
    batch: BatchInfo = Field(default_factory=BatchInfo, alias="Batch")
    material: NumberText = Field(None, alias="Material")
    inspection_lot_quantity: NumberText = Field(None, alias="InspectionLotQuantity")
    inspection_lot_quantity_unit: NumberText = Field(None, alias="InspectionLotQuantityUnit")
    batch_storage_location: NumberText = Field(None, alias="BatchStorageLocation")
    status_object_category: NumberText = Field(None, alias="StatusObjectCategory")
    batch_by_supplier: NumberText = Field(None, alias="BatchBySupplier")


# =============================================================================
# Material Master
# =============================================================================

class ProductDescription(RecordBase):
    language: NumberText = Field(None, alias="Language")
    description: NumberText = Field(None, alias="ProductDescription")


class PlantData(RecordBase):
    plant: NumberText = Field(None, alias="Plant")
    profile_code: NumberText = Field(None, alias="ProfileCode")
    country_of_origin: NumberText = Field(None, alias="CountryOfOrigin")


class MaterialMasterEvent(RecordBase):
    """A material created or changed in the ERP."""
    product: NumberText = Field(None, alias="Product")
    descriptions: Annotated[List[ProductDescription], ListValue] = Field(
        default_factory=list, alias="ProductDescription"
    )
    base_unit: NumberText = Field(None, alias="BaseUnit")
    base_unit_iso_code: NumberText = Field(None, alias="BaseUnitISOCode")
    # None when the event carries no plant data at all
    plant_data: Optional[List[PlantData]] = Field(None, alias="PlantData")
    product_class: Annotated[List[ClassAssignment], ListValue] = Field(
        default_factory=list, alias="ProductClass"
    )
