"""Outbound connectors.

This package contains everything the handlers send through:
- erp/: HTTP client and request models of the ERP OData APIs
- bus: Queues and topics towards the MES and between handlers
- dispatcher: Archives ERP responses, retries locked orders and picks the
  bus destination per MES instance

Handlers depend on the OutboundDispatcher only. The ERP client and the bus
backend are chosen when the runtime is built.
"""

from connectors.bus import BusError, BusMessage, InMemoryBus, MessageBus, OutboxBus
from connectors.dispatcher import OutboundDispatcher

__all__ = [
    # Bus
    "BusError",
    "BusMessage",
    "InMemoryBus",
    "MessageBus",
    "OutboxBus",

    # Dispatcher
    "OutboundDispatcher",
]
