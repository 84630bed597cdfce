"""Tests for the MES <-> ERP payload translators."""

import pytest


def production_order(**overrides):
    data = {
        "ManufacturingOrder": "1004157",
        "Material": "FG-100",
        "ProductionPlant": "1015",
        "TotalQuantity": 100,
        "ProductionUnitISOCode": "EA",
        "MfgOrderScheduledStartDateTimeISO": "2021-05-21T00:00:00Z",
        "MfgOrderScheduledEndDateTimeISO": "2021-05-28T06:00:00Z",
        "OrderIsCreated": "X",
        "OrderIsReleased": "X",
        "OrderIsPartiallyConfirmed": "",
        "OrderIsConfirmed": "",
        "OrderIsDelivered": "",
        "OrderIsPartiallyDelivered": "",
        "OrderIsTechnicallyCompleted": "",
        "ProductionOrderComponents": [],
        "ProductionOrderOperations": [],
    }
    data.update(overrides)
    from core.models.base import parse_record
    from core.models.erp import ProductionOrderEvent

    return parse_record(ProductionOrderEvent, data)


def component(material="RM-1", quantity="1", operation="0010", unit="KG", **flags):
    data = {
        "Material": material,
        "RequiredQuantity": quantity,
        "ManufacturingOrderOperation": operation,
        "BaseUnitISOCode": unit,
        "StorageLocation": "2000",
    }
    data.update(flags)
    return data


def operation(number="0010", sequence="0", **overrides):
    data = {
        "WorkCenter": "WC-MIX",
        "ManufacturingOrderOperation": number,
        "ManufacturingOrderSequence": sequence,
        "MfgOrderOperationText": "Mix & blend",
        "OpErlstSchedldExecStrtDteTmeISO": "2021-05-21T06:00:00Z",
        "OpErlstSchedldExecEndDteTmeISO": "2021-05-22T06:00:00Z",
        "OpPlannedTotalQuantity": "100",
        "OpTotalConfirmedYieldQty": "40",
        "OperationIsReleased": "X",
    }
    data.update(overrides)
    return data


@pytest.fixture(scope="module")
def tables():
    from core.conversions import CodeTables

    return CodeTables.load()


# =============================================================================
# Common
# =============================================================================

class TestCommonHelpers:

    def test_to_fixed_rounds_half_away_from_zero(self):
        from translators.common import to_fixed

        assert to_fixed(0.125, 2) == "0.13"
        assert to_fixed(-0.125, 2) == "-0.13"
        assert to_fixed(5.0, 3) == "5.000"
        assert to_fixed(-0.0, 1) == "0.0"

    def test_pad_operation(self):
        from translators.common import pad_operation

        assert pad_operation("10") == "0010"
        assert pad_operation(10) == "0010"
        assert pad_operation("12345") == "12345"

    def test_iso_date(self):
        from translators.common import ConsistencyError, iso_date_to_mes_date

        assert iso_date_to_mes_date("2021-05-21T00:00:00Z") == "2021-05-21"
        with pytest.raises(ConsistencyError, match="Unknown date format"):
            iso_date_to_mes_date("21.05.2021")
        with pytest.raises(ConsistencyError):
            iso_date_to_mes_date(None)

    def test_sanitize_filename(self):
        from translators.common import sanitize_filename

        assert sanitize_filename("WO-1004157-B024-a/b c.xml") == "WO-1004157-B024-a_b_c.xml"

    def test_check_consistency(self):
        from core.models.base import parse_record
        from core.models.mes import ComponentIssue
        from translators.common import check_consistency

        a = parse_record(ComponentIssue, {"mnDocumentOrderInvoiceE_DOCO": "1", "mnSequenceNoOperations_OPSQ": "10"})
        b = parse_record(ComponentIssue, {"mnDocumentOrderInvoiceE_DOCO": "1", "mnSequenceNoOperations_OPSQ": "20"})

        assert check_consistency([a, a], ["order_number", "operation_sequence"])
        assert check_consistency([a, b], ["order_number"])
        assert not check_consistency([a, b], ["order_number", "operation_sequence"])
        assert check_consistency([], ["order_number"])


# =============================================================================
# Production Order Status
# =============================================================================

class TestProductionOrderStatus:

    def test_released(self):
        from translators.production_order import translate_status

        assert translate_status(production_order()) == "40"

    def test_partially_confirmed(self):
        from translators.production_order import translate_status

        order = production_order(OrderIsPartiallyConfirmed="X")
        assert translate_status(order) == "45"

    def test_partially_confirmed_requires_empty_delivery_flag(self):
        from translators.production_order import translate_status

        # Absent is not the same as empty
        order = production_order(OrderIsPartiallyConfirmed="X", OrderIsDelivered=None)
        assert translate_status(order) == "40"

    def test_partially_delivered(self):
        from translators.production_order import translate_status

        order = production_order(OrderIsPartiallyConfirmed="X", OrderIsDelivered="X", OrderIsPartiallyDelivered="X")
        assert translate_status(order) == "90"

    def test_released_and_confirmed(self):
        from translators.production_order import translate_status

        assert translate_status(production_order(OrderIsConfirmed="X")) == "95"

    def test_technically_completed(self):
        from translators.production_order import translate_status

        order = production_order(OrderIsReleased="", OrderIsTechnicallyCompleted="X")
        assert translate_status(order) == "95"

    def test_created(self):
        from translators.production_order import STATUS_CREATED, translate_status

        assert translate_status(production_order(OrderIsReleased="")) == STATUS_CREATED

    def test_unmatched_status_raises(self):
        from translators.common import ConsistencyError
        from translators.production_order import translate_status

        order = production_order(OrderIsReleased="", OrderIsCreated="")
        with pytest.raises(ConsistencyError, match="Failed to map status to MES Work Order status"):
            translate_status(order)

    def test_operation_status(self):
        from core.models.base import parse_record
        from core.models.erp import ProductionOrderOperation
        from translators.common import ConsistencyError
        from translators.production_order import translate_operation_status

        def status(**flags):
            return translate_operation_status(parse_record(ProductionOrderOperation, flags))

        assert status(OperationIsClosed="X", OperationIsReleased="X") == "30"
        assert status(OperationIsPartiallyConfirmed="X", OperationIsReleased="X") == "20"
        assert status(OperationIsReleased="X") == "10"
        with pytest.raises(ConsistencyError, match="Failed to map status to MES Operations status"):
            status(OperationIsReleased="")


# =============================================================================
# Bill of Materials and Routing
# =============================================================================

class TestBillOfMaterials:

    def test_issue_type_code(self):
        from core.models.base import parse_record
        from core.models.erp import ProductionOrderComponent
        from translators.common import ConsistencyError
        from translators.production_order import issue_type_code

        def code(**flags):
            return issue_type_code(parse_record(ProductionOrderComponent, flags))

        assert code() == "I"
        assert code(IsBulkMaterialComponent=True) == "F"
        assert code(MatlCompIsMarkedForBackflush="X") == "B"
        with pytest.raises(ConsistencyError, match="which is a data error"):
            code(IsBulkMaterialComponent=True, MatlCompIsMarkedForBackflush=True)

    def test_fold_sums_quantities(self):
        from translators.production_order import fold_components

        order = production_order(ProductionOrderComponents=[
            component("RM-1", "2.001"),
            component("RM-1", "3.002"),
            component("RM-1", "1", unit="G"),
            component("RM-2", "4"),
        ])

        folded = fold_components(order.components)
        assert [(f.component.material, f.required_quantity) for f in folded] == [
            ("RM-1", "5.003"),
            ("RM-1", "1"),
            ("RM-2", "4"),
        ]

    def test_fold_drops_components_not_consumed_by_the_mes(self):
        from translators.production_order import fold_components

        order = production_order(ProductionOrderComponents=[
            component("RM-1", MatlCompIsMarkedForDeletion=True),
            component("RM-2", MaterialComponentIsPhantomItem="X"),
            component("RM-3", IsBulkMaterialComponent=True),
            component("RM-4", MatlCompIsMarkedForBackflush=True),
            component("", "7"),
            component("RM-5", "7"),
        ])

        assert [f.component.material for f in fold_components(order.components)] == ["RM-5"]

    def test_bom_items_xml(self, tables):
        from translators.production_order import bom_items_xml

        order = production_order(ProductionOrderComponents=[component("RM-1", "2.5", operation="0020", unit="KG")])

        xml = bom_items_xml(order, tables)
        assert "<Qty>2.5</Qty>" in xml
        assert "<Item>RM-1</Item>" in xml
        assert "<SeqNum>2000</SeqNum>" in xml
        assert "<ItemUOM>KG</ItemUOM>" in xml
        assert "<IssueTypeCode>I</IssueTypeCode>" in xml
        assert xml.startswith("      <BOMItem>")

    def test_route_steps_skip_alternative_and_deleted_operations(self):
        from translators.production_order import route_steps_xml

        order = production_order(ProductionOrderOperations=[
            operation("0010"),
            operation("0020", sequence="1"),
            operation("0030", OperationIsDeleted="X"),
        ])

        xml = route_steps_xml(order, include_completed_quantity=False)
        assert xml.count("<RouteStepAdd>") == 1
        assert "<Sequence>10</Sequence>" in xml
        assert "<StepDescription>Mix &amp; blend</StepDescription>" in xml
        assert "<WCStartDate>2021-05-21</WCStartDate>" in xml
        assert "<OperationStatus>10</OperationStatus>" in xml
        assert "CompletedQuantity" not in xml

        changed = route_steps_xml(order, include_completed_quantity=True)
        assert "<CompletedQuantity>40</CompletedQuantity>" in changed


class TestProductionOrderDocuments:

    def test_documents_in_archive_order(self, tables):
        from translators.production_order import build_documents

        order = production_order(
            ProductionOrderComponents=[component("RM-1", "2")],
            ProductionOrderOperations=[operation("0010")],
        )

        documents = build_documents(order, "40", tables)
        assert [d.name for d in documents] == [
            "create-production-order.xml",
            "update-production-order.xml",
            "create-production-order-operations.xml",
            "update-production-order-operations.xml",
            "update-production-order-components.xml",
        ]

        create, update, route_create, route_update, components = [d.content for d in documents]
        assert '<Root TransactionType="ERPWOStart">' in create
        assert "<BranchPlant>B024</BranchPlant>" in create
        assert "<Status>40</Status>" in create
        assert "<StartDate>2021-05-21</StartDate>" in create
        assert "<ItemList>" in create
        assert "<ItemList>" not in update
        assert "RouteStepDelete" not in route_create
        assert "<RouteStepDelete>" in route_update
        assert '<Root TransactionType="ERPMatlListChange">' in components

    def test_unknown_unit_raises(self, tables):
        from core.conversions import LookupNotFoundError
        from translators.production_order import build_documents

        order = production_order(ProductionUnitISOCode="XX")
        with pytest.raises(LookupNotFoundError, match='MES UOM value not found for ERP value "XX"'):
            build_documents(order, "40", tables)

    def test_mes_message(self):
        from translators.production_order import build_mes_message

        roles = [
            "CreateProductionOrder",
            "UpdateProductionOrder",
            "CreateProductionOrderOperations",
            "UpdateProductionOrderOperations",
            "UpdateProductionOrderComponents",
        ]
        message = build_mes_message(
            production_order(), "B024", "msg:1", {role: f"blob/{role}" for role in roles}
        )

        assert message["Plant"] == "B024"
        assert message["ProductionOrder"] == "1004157"
        assert message["ProductionOrderFilename"] == "WO-1004157-B024-msg_1.xml"
        assert message["ProductionOrderOperationsFilename"] == "WOO-1004157-B024-route-msg_1.xml"
        assert message["ProductionOrderComponentsFilename"] == "WOC-1004157-B024-components-msg_1.xml"
        assert message["UpdateProductionOrderComponents"] == "blob/UpdateProductionOrderComponents"


# =============================================================================
# MES -> ERP
# =============================================================================

def issue(**overrides):
    from core.models.base import parse_record
    from core.models.mes import ComponentIssue

    data = {
        "szBranchPlant_MCU": "B024",
        "mnDocumentOrderInvoiceE_DOCO": "1004157",
        "mnQuantityToIssue_QNTOW": "2.5",
        "szItemNoUnknownFormat_UITM": "RM-1",
        "mnSequenceNoOperations_OPSQ": "10",
        "szLocation_LOCN": "RM-01",
        "szLot_LOTN": "L001",
        "szUnitOfMeasureAsInput_UOM": "kg",
    }
    data.update(overrides)
    return parse_record(ComponentIssue, data)


def backflush(**overrides):
    from core.models.base import parse_record
    from core.models.mes import Backflush

    data = {
        "mnInputQtyCompleted_QT01": "12",
        "mnInputQtyCanceled_TRQT": "1",
        "mnSequenceNumber_SEQU": "20",
        "szInputOpStatusCode_OPST": "10",
        "InterfaceControlBranchPlant": "B024",
        "mnOrderNumber_DOCO": "1004157",
        "szLot_LOTN": "L777",
        "szSAPReceiptFlag": "Y",
        "szMemoLotField1": "P-1",
        "szLocation_LOCN": "FG-01",
    }
    data.update(overrides)
    return parse_record(Backflush, data)


class TestComponentIssue:

    def reservations(self):
        from connectors.erp.erp_models import ProductionOrderComponentItem
        from translators.component_issue import build_reservation_index

        return build_reservation_index([
            ProductionOrderComponentItem(Material="RM-1", Reservation="55", ReservationItem="1", QuantityIsFixed=True),
            ProductionOrderComponentItem(Material="RM-1", Reservation="55", ReservationItem="2", QuantityIsFixed=False),
            ProductionOrderComponentItem(Material="RM-1", Reservation="55", ReservationItem="3", QuantityIsFixed=False),
            ProductionOrderComponentItem(Material="RM-2", Reservation="55", ReservationItem="4"),
        ])

    def test_reservation_index_keeps_first_variable_reservation(self):
        index = self.reservations()
        assert list(index) == ["RM-1"]
        assert index["RM-1"].ReservationItem == "2"

    def test_quantity_normalization(self):
        from translators.component_issue import normalize_issue_quantity

        assert normalize_issue_quantity("2.5") == ("2.5", "261")
        assert normalize_issue_quantity("-2.5") == ("2.5", "262")
        assert normalize_issue_quantity("-3") == ("3", "262")

    def test_request(self, tables):
        from translators.component_issue import build_component_issue_request

        body = build_component_issue_request(
            [issue(), issue(mnQuantityToIssue_QNTOW="-1")], self.reservations(), tables
        )

        request = body.to_request_body()
        assert request["OrderID"] == "1004157"
        assert request["OrderOperation"] == "0010"
        assert request["Sequence"] == "00"
        assert "ConfirmationYieldQuantity" not in request

        first, second = request["to_ProdnOrdConfMatlDocItm"]
        assert first["GoodsMovementType"] == "261"
        assert first["QuantityInEntryUnit"] == "2.5"
        assert first["EntryUnitISOCode"] == "KG"
        assert first["Plant"] == "1015"
        assert first["EWMWarehouse"] == "1015"
        assert first["StorageLocation"] == "2000"
        assert first["ReservationItem"] == "2"
        assert first["Batch"] == "L001"
        assert first["EWMStorageBin"] == "RM-01"
        assert second["GoodsMovementType"] == "262"
        assert second["QuantityInEntryUnit"] == "1"

    def test_missing_reservation(self, tables):
        from translators.common import ConsistencyError
        from translators.component_issue import build_component_issue_request

        with pytest.raises(ConsistencyError, match="material RM-9"):
            build_component_issue_request(
                [issue(szItemNoUnknownFormat_UITM="RM-9")], self.reservations(), tables
            )

    def test_find_unknown_plant(self, tables):
        from translators.component_issue import find_unknown_plant

        assert find_unknown_plant([issue()], tables) is None
        assert find_unknown_plant([issue(), issue(szBranchPlant_MCU="B999")], tables) == "B999"


class TestConfirmation:

    def header(self):
        from connectors.erp.erp_models import ProductionOrderHeader

        return ProductionOrderHeader(ManufacturingOrder="1004157", Material="FG-100", ProductionUnit="EA")

    def test_goods_receipt(self, tables):
        from translators.confirmation import build_goods_receipt_request

        body = build_goods_receipt_request(backflush(), self.header(), tables, now_ms=1621555200000)
        request = body.to_request_body()

        assert request["OrderID"] == "1004157"
        assert request["Plant"] == "1015"
        assert request["OrderOperation"] == "0020"
        assert request["ConfirmationYieldQuantity"] == "12"
        assert request["ConfirmationScrapQuantity"] == "1"
        assert "IsFinalConfirmation" not in request

        item = request["to_ProdnOrdConfMatlDocItm"][0]
        assert item["GoodsMovementType"] == "101"
        assert item["GoodsMovementRefDocType"] == "F"
        assert item["OrderItem"] == "0001"
        assert item["Material"] == "FG-100"
        assert item["EntryUnit"] == "EA"
        assert item["QuantityInEntryUnit"] == "12"
        assert item["ManufactureDate"] == "/Date(1621555200000)/"
        assert item["to_ProdnOrderConfBatchCharc"] == [
            {"Characteristic": "ZLOBM_PARENTBATCH", "CharcValue": "P-1"}
        ]

    def test_goods_receipt_reversal(self, tables):
        from translators.confirmation import build_goods_receipt_request

        body = build_goods_receipt_request(
            backflush(mnInputQtyCompleted_QT01="-12"), self.header(), tables
        )

        assert body.ConfirmationYieldQuantity == "0"
        assert body.ConfirmationScrapQuantity == "0"
        item = body.to_ProdnOrdConfMatlDocItm[0]
        assert item.GoodsMovementType == "102"
        assert item.QuantityInEntryUnit == "12"

    def test_final_goods_receipt(self, tables):
        from translators.confirmation import build_goods_receipt_request

        body = build_goods_receipt_request(
            backflush(szInputOpStatusCode_OPST="30"), self.header(), tables
        )
        assert body.IsFinalConfirmation is True
        assert body.FinalConfirmationType == "X"
        assert body.OpenReservationsIsCleared is None

    def test_confirmation(self, tables):
        from translators.confirmation import build_confirmation_request

        request = build_confirmation_request(backflush(), tables).to_request_body()
        assert request == {
            "OrderID": "1004157",
            "Plant": "1015",
            "OrderOperation": "0020",
            "Sequence": "00",
            "ConfirmationYieldQuantity": "12",
            "ConfirmationScrapQuantity": "1",
        }

    def test_final_confirmation_clears_reservations(self, tables):
        from translators.confirmation import build_confirmation_request

        body = build_confirmation_request(backflush(szInputOpStatusCode_OPST="30"), tables)
        assert body.OpenReservationsIsCleared is True
        assert body.IsFinalConfirmation is True


# =============================================================================
# Batches and Material Master
# =============================================================================

MES_RELEVANT_CLASS = {
    "ClassDetails": {"ClassTypeName": "Material Class", "Class": "INTERFACE_DATA"},
    "ProductClassCharc": [
        {"Description": {"CharcDescription": "IS MES RELEVANT"}, "Valuation": [{"CharcValue": "YES"}]},
    ],
}


def inventory_move(**overrides):
    from core.models.base import parse_record
    from core.models.erp import InventoryLocationMoveEvent

    data = {
        "EWMWarehouse": "1015",
        "Batch": {"Batch": "L001", "BatchBySupplier": "S-9"},
        "Product": {"Product": "RM-1", "ProductClass": [MES_RELEVANT_CLASS]},
        "AvailableEWMStockQty": 25,
        "EWMStockQtyBaseUnitISOCode": "KG",
        "EWMStorageBin": "RM-01",
        "EWMStockType": "Q4",
        "ShelfLifeExpirationDate": "2022-01-01",
        "EWMBatchIsInRestrictedUseStock": False,
    }
    data.update(overrides)
    return parse_record(InventoryLocationMoveEvent, data)


class TestInventory:

    def test_inventory_status(self, tables):
        from translators.inventory import convert_inventory_status

        assert convert_inventory_status(inventory_move(), tables) == "X"
        assert convert_inventory_status(inventory_move(EWMStockType="R"), tables) == "R"
        assert convert_inventory_status(inventory_move(EWMStockType="F2"), tables) == ""
        assert convert_inventory_status(
            inventory_move(EWMStockType="F2", EWMBatchIsInRestrictedUseStock=True), tables
        ) == "X"
        assert convert_inventory_status(inventory_move(AvailableEWMStockQty=0), tables) == ""

    def test_unknown_stock_type(self, tables):
        from core.conversions import LookupNotFoundError
        from translators.inventory import convert_inventory_status

        with pytest.raises(LookupNotFoundError, match="Inventory Location Move Status"):
            convert_inventory_status(inventory_move(EWMStockType="ZZ"), tables)

    def test_inventory_move_xml(self, tables):
        from translators.inventory import inventory_move_xml

        xml = inventory_move_xml(inventory_move(), tables)
        assert '<Root TransactionType="ipdERPLotMasterUpdate">' in xml
        assert "<BranchPlant>B024</BranchPlant>" in xml
        assert "<Container>L001</Container>" in xml
        assert "<Qty>25</Qty>" in xml
        assert "<Status>X</Status>" in xml
        assert "<SupplierLot>S-9</SupplierLot>" in xml
        assert "<ExpirationDate>2022-01-01</ExpirationDate>" in xml

    def test_inspection_lot_supplier_lot_fallback(self, tables):
        from core.models.base import parse_record
        from core.models.erp import InspectionLotEvent
        from translators.inventory import inspection_lot_xml, supplier_lot

        data = {
            "Plant": "1015",
            "Batch": {"Batch": "L001", "BatchBySupplier": "S-BATCH"},
            "Material": "RM-1",
            "InspectionLotQuantity": "10",
            "InspectionLotQuantityUnit": "KG",
            "BatchStorageLocation": "2000",
        }
        lot = parse_record(InspectionLotEvent, data)
        assert supplier_lot(lot) == "S-BATCH"
        assert supplier_lot(parse_record(InspectionLotEvent, {**data, "BatchBySupplier": "S-LOT"})) == "S-LOT"

        xml = inspection_lot_xml(lot, tables)
        assert "<Status></Status>" in xml
        assert "<Location>2000</Location>" in xml

    def test_messages(self):
        from translators.inventory import build_inspection_lot_message, build_inventory_message

        assert build_inventory_message("B024", "L001", "m1", "blob/update.xml") == {
            "Plant": "B024",
            "Batch": "L001",
            "Filename": "IM-L001-m1.xml",
            "UpdateXmlBlob": "blob/update.xml",
        }
        assert build_inspection_lot_message("B024", "L001", "m1", "blob")["Filename"] == "IL-L001-B024-m1.xml"


class TestMaterialMaster:

    def material(self, **overrides):
        from core.models.base import parse_record
        from core.models.erp import MaterialMasterEvent

        data = {
            "Product": "RM-1",
            "ProductDescription": [
                {"Language": "DE", "ProductDescription": "Harz"},
                {"Language": "EN", "ProductDescription": "Resin & <Blend>"},
            ],
            "BaseUnitISOCode": "KG",
            "PlantData": [{"Plant": "1015", "ProfileCode": "G3", "CountryOfOrigin": "US"}],
            "ProductClass": MES_RELEVANT_CLASS,
        }
        data.update(overrides)
        return parse_record(MaterialMasterEvent, data)

    def test_plant_documents(self, tables):
        from translators.material_master import build_plant_documents

        material = self.material()
        create, update = build_plant_documents(material, material.plant_data[0], tables)

        assert (create.role, create.name) == ("CreateXmlBlob", "create-B024.xml")
        assert (update.role, update.name) == ("UpdateXmlBlob", "update-B024.xml")
        assert "<ERPDescription><![CDATA[Resin & <Blend>]]></ERPDescription>" in create.content
        assert "<PrimaryUOM>KG</PrimaryUOM>" in create.content
        assert "<LotControlled>True</LotControlled>" in create.content
        assert "<CountryOfOrigin>US</CountryOfOrigin>" in update.content

    def test_missing_english_description(self, tables):
        from translators.common import ConsistencyError
        from translators.material_master import build_plant_documents

        material = self.material(ProductDescription=[{"Language": "DE", "ProductDescription": "Harz"}])
        with pytest.raises(ConsistencyError, match="No english description found"):
            build_plant_documents(material, material.plant_data[0], tables)

    def test_mes_message(self):
        from translators.material_master import build_mes_message

        message = build_mes_message("RM-1", "B024", "m1", {"CreateXmlBlob": "c", "UpdateXmlBlob": "u"})
        assert message == {
            "MaterialNumber": "RM-1",
            "Plant": "B024",
            "Filename": "MM-RM-1-B024-m1.xml",
            "CreateXmlBlob": "c",
            "UpdateXmlBlob": "u",
        }
