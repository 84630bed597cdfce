"""MES XML documents and the records they carry.

The MES sends transactions as XML:

    <TxnList>
      <TxnWrapper>
        <FileGuid>...</FileGuid>
        <UserName>...</UserName>
        <Txn><Request>
          <MessageHeader><MessageType>WorkOrderIssues</MessageType></MessageHeader>
          <MessageDetail>...</MessageDetail>
        </Request></Txn>
      </TxnWrapper>
      ...
    </TxnList>

Namespace prefixes are stripped and ``TxnList/TxnWrapper`` is always a list.
Numbers without leading zeros and ``true``/``false`` are converted, all
other values stay text so leading zeros are kept.
"""

from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from pydantic import Field

from core.models.base import (
    Flag,
    NumberText,
    ParseError,
    RecordBase,
    format_number,
    parse_record,
)


# =============================================================================
# XML Decoding
# =============================================================================

ALWAYS_LIST_PATHS = {"TxnList.TxnWrapper"}

_NUMBER = re.compile(r"^[+-]?(0|[1-9]\d*)(\.\d+)?([eE][+-]?\d+)?$")


def _local_name(tag: str) -> str:
    """Strip a ``{namespace}`` or ``prefix:`` from a tag."""
    return tag.split("}")[-1].split(":")[-1]


def _scalar(text: Optional[str]) -> Any:
    value = (text or "").strip()
    if value == "true":
        return True
    if value == "false":
        return False
    if _NUMBER.match(value):
        if "." in value or "e" in value or "E" in value:
            return float(value)
        return int(value)
    return value


def _element_to_value(element: ET.Element, path: str) -> Any:
    children = list(element)
    if not children:
        return _scalar(element.text)

    result: Dict[str, Any] = {}
    repeated = set()
    for child in children:
        name = _local_name(child.tag)
        child_path = f"{path}.{name}" if path else name
        value = _element_to_value(child, child_path)
        if name in result:
            # Repeated siblings become a list
            if child_path in ALWAYS_LIST_PATHS or name in repeated:
                result[name].append(value)
            else:
                result[name] = [result[name], value]
                repeated.add(name)
        elif child_path in ALWAYS_LIST_PATHS:
            result[name] = [value]
        else:
            result[name] = value
    return result


def xml_to_dict(xml_text: str) -> Dict[str, Any]:
    """Decode an MES XML document into nested dicts.

    Raises:
        ParseError: If the text is not well-formed XML
    """
    if isinstance(xml_text, bytes):
        xml_text = xml_text.decode("utf-8")
    try:
        root = ET.fromstring(xml_text.strip())
    except ET.ParseError as e:
        raise ParseError(f"Malformed MES XML: {e}") from e
    name = _local_name(root.tag)
    value = _element_to_value(root, name)
    return {name: value}


@dataclass
class MesDocument:
    """A decoded MES XML document."""
    tree: Dict[str, Any]

    @property
    def wrappers(self) -> List[Dict[str, Any]]:
        """The ``TxnWrapper`` nodes, empty if there are none."""
        txn_list = self.tree.get("TxnList")
        if not isinstance(txn_list, dict):
            return []
        wrappers = txn_list.get("TxnWrapper") or []
        return [w for w in wrappers if isinstance(w, dict)]

    @property
    def requests(self) -> List[Dict[str, Any]]:
        """The ``Txn/Request`` node of every wrapper."""
        requests = []
        for wrapper in self.wrappers:
            txn = wrapper.get("Txn")
            request = txn.get("Request") if isinstance(txn, dict) else None
            requests.append(request if isinstance(request, dict) else {})
        return requests

    def _first_wrapper_value(self, key: str) -> Optional[str]:
        wrappers = self.wrappers
        if not wrappers:
            return None
        value = wrappers[0].get(key)
        if value is None or value == "":
            return None
        return value if isinstance(value, str) else format_number(value)

    @property
    def file_guid(self) -> Optional[str]:
        """Tracking token of the file in the MES transaction manager."""
        return self._first_wrapper_value("FileGuid")

    @property
    def user_name(self) -> Optional[str]:
        return self._first_wrapper_value("UserName")

    @property
    def message_type(self) -> Optional[str]:
        """Message type of the first transaction.

        The MES only batches transactions that share a message header, so
        the first one stands for all of them.
        """
        requests = self.requests
        if not requests:
            return None
        header = requests[0].get("MessageHeader")
        if not isinstance(header, dict) or header.get("MessageType") is None:
            return None
        value = header["MessageType"]
        return value if isinstance(value, str) else format_number(value)

    def first_detail(self) -> Dict[str, Any]:
        """``MessageDetail`` of the first transaction, empty if absent."""
        requests = self.requests
        detail = requests[0].get("MessageDetail") if requests else None
        return detail if isinstance(detail, dict) else {}

    def to_json(self) -> str:
        return json.dumps(self.tree, separators=(",", ":"))


def parse_mes_document(xml_text: str) -> MesDocument:
    """Decode an MES XML document.

    Raises:
        ParseError: If the text is not well-formed XML
    """
    return MesDocument(tree=xml_to_dict(xml_text))


# =============================================================================
# Transaction Records
# =============================================================================

class ComponentIssue(RecordBase):
    """``WorkOrderIssues``: components issued to a production order operation."""
    branch_plant: NumberText = Field(None, alias="szBranchPlant_MCU")
    order_number: NumberText = Field(None, alias="mnDocumentOrderInvoiceE_DOCO")
    quantity: NumberText = Field(None, alias="mnQuantityToIssue_QNTOW")
    item_number: NumberText = Field(None, alias="szItemNoUnknownFormat_UITM")
    operation_sequence: NumberText = Field(None, alias="mnSequenceNoOperations_OPSQ")
    location: NumberText = Field(None, alias="szLocation_LOCN")
    lot: NumberText = Field(None, alias="szLot_LOTN")
    unit_of_measure: NumberText = Field(None, alias="szUnitOfMeasureAsInput_UOM")


class Backflush(RecordBase):
    """``SuperBackFlush``: a production confirmation, optionally with a goods receipt."""
    quantity_completed: NumberText = Field(None, alias="mnInputQtyCompleted_QT01")
    quantity_canceled: NumberText = Field(None, alias="mnInputQtyCanceled_TRQT")
    sequence_number: NumberText = Field(None, alias="mnSequenceNumber_SEQU")
    operation_status: NumberText = Field(None, alias="szInputOpStatusCode_OPST")
    branch_plant: NumberText = Field(None, alias="InterfaceControlBranchPlant")
    order_number: NumberText = Field(None, alias="mnOrderNumber_DOCO")
    lot: NumberText = Field(None, alias="szLot_LOTN")
    is_receipt: Flag = Field(False, alias="szSAPReceiptFlag")
    memo_lot_field_1: NumberText = Field(None, alias="szMemoLotField1")
    location: NumberText = Field(None, alias="szLocation_LOCN")


RECORD_TYPES: Dict[str, Type[RecordBase]] = {
    "WorkOrderIssues": ComponentIssue,
    "SuperBackFlush": Backflush,
}


@dataclass(frozen=True)
class TransactionEnvelope:
    """Records of one MES file that share a message header."""
    file_guid: Optional[str]
    user_name: Optional[str]
    message_type: Optional[str]
    records: List[RecordBase]

    @property
    def first(self) -> RecordBase:
        return self.records[0]


def read_envelope(document: MesDocument, record_type: Optional[Type[RecordBase]] = None) -> TransactionEnvelope:
    """Validate the ``MessageDetail`` of every transaction of a document.

    Args:
        document: Decoded MES document
        record_type: Record model, looked up by message type if omitted

    Raises:
        ParseError: If there are no transactions, the message type is
            unknown or a detail does not have the expected shape
    """
    if not document.wrappers:
        raise ParseError("No TxnWrapper nodes found in the MES XML document")

    model = record_type or RECORD_TYPES.get(document.message_type or "")
    if model is None:
        raise ParseError(f'Unable to identify the message type "{document.message_type}"')

    records = []
    for request in document.requests:
        detail = request.get("MessageDetail")
        records.append(parse_record(model, detail if isinstance(detail, dict) else {}))

    return TransactionEnvelope(
        file_guid=document.file_guid,
        user_name=document.user_name,
        message_type=document.message_type,
        records=records,
    )
