"""Process-wide collaborators of the handler activities.

The code tables, the ERP client, the bus and the characteristic ID cache
are created once per worker process and shared by all activities.
Tests build their own runtime with fakes and pass it to the handlers.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional

from temporalio import activity

from connectors.bus import InMemoryBus, MessageBus, OutboxBus
from connectors.dispatcher import OutboundDispatcher
from connectors.erp.erp_client import ErpApiClient, ErpApiConfig
from core.config import IntegrationSettings
from core.conversions import CodeTables
from core.eligibility import CharacteristicIdCache, EligibilityFilter
from core.observability.logging import with_correlation
from core.status import StatusReporter
from core.storage.archive import ArchiveStore, MessageArchive

logger = logging.getLogger(__name__)


# =============================================================================
# Activity Input
# =============================================================================

@dataclass
class InboundMessage:
    """A message received from a topic.

    Attributes:
        message_id: Bus message id, groups the archived artifacts
        body: MES XML text or decoded ERP JSON
        correlation_id: Correlation id set by the sender, if any
        enqueued_time: ISO timestamp of the bus message, if known
    """
    message_id: str
    body: Any
    correlation_id: Optional[str] = None
    enqueued_time: Optional[str] = None


@dataclass
class HandlerResult:
    """Outcome of one handler invocation.

    Attributes:
        outcome: ``forwarded``, ``skipped`` or ``failed``
        detail: Skip reason or failure message
        destinations: Queues and topics the handler sent to, in order
    """
    outcome: str
    detail: str = ""
    destinations: List[str] = field(default_factory=list)


FORWARDED = "forwarded"
SKIPPED = "skipped"
FAILED = "failed"


def resolve_correlation_id(message: InboundMessage) -> str:
    """Correlation id of the sender, else the activity id, else a new id."""
    if message.correlation_id:
        return message.correlation_id
    if activity.in_activity():
        return activity.info().activity_id
    return str(uuid.uuid4())


@contextmanager
def invocation(runtime: "IntegrationRuntime", message: InboundMessage, topic: str) -> Iterator[MessageArchive]:
    """Correlation context and archive of one handler invocation."""
    with with_correlation(
        correlation_id=resolve_correlation_id(message),
        message_id=message.message_id,
        topic=topic,
    ):
        yield runtime.archive_store.open(topic, message.message_id)


# =============================================================================
# Runtime
# =============================================================================

@dataclass
class IntegrationRuntime:
    """Collaborators shared by the handlers."""
    settings: IntegrationSettings
    tables: CodeTables
    archive_store: ArchiveStore
    bus: MessageBus
    client: ErpApiClient
    dispatcher: OutboundDispatcher
    eligibility: EligibilityFilter
    reporter: StatusReporter
    characteristic_cache: CharacteristicIdCache = field(default_factory=CharacteristicIdCache)

    async def close(self) -> None:
        await self.client.close()
        await self.bus.close()


# The characteristic ID never changes, one lookup per process is enough
_characteristic_cache = CharacteristicIdCache()


def build_runtime(
    settings: Optional[IntegrationSettings] = None,
    bus: Optional[MessageBus] = None,
    session=None,
    tables: Optional[CodeTables] = None,
    cache: Optional[CharacteristicIdCache] = None,
) -> IntegrationRuntime:
    """Create the collaborators for the given settings.

    Args:
        settings: Settings, read from the environment if omitted
        bus: Bus backend, defaults to the outbox bus if BUS_OUTBOX_PATH is
            set and to an in-memory bus otherwise
        session: aiohttp-compatible session for the ERP client
        tables: Code tables, loaded from CODE_TABLE_PATH or the bundled data
        cache: Characteristic ID cache, defaults to the process-wide one
    """
    settings = settings or IntegrationSettings.from_env()
    if bus is None:
        if settings.bus_outbox_path:
            bus = OutboxBus(settings.bus_outbox_path)
        else:
            logger.warning("BUS_OUTBOX_PATH is not set, outbound messages are kept in memory")
            bus = InMemoryBus()
    tables = tables or CodeTables.load(settings.code_table_path)
    cache = cache or _characteristic_cache

    client = ErpApiClient(
        ErpApiConfig(
            base_url=settings.erp_base_url,
            api_key=settings.erp_api_key,
            timeout_seconds=settings.erp_timeout_seconds,
        ),
        session=session,
    )
    dispatcher = OutboundDispatcher(
        client,
        bus,
        queues=settings.queues,
        primary_erp_plants=settings.primary_erp_plants,
        primary_mes_plants=settings.primary_mes_plants,
        confirmation_delay_ms=settings.confirmation_delay_ms,
    )
    eligibility = EligibilityFilter(
        tables.plant,
        dispatcher,
        enable_secondary_instance=settings.enable_secondary_instance,
        primary_erp_plants=settings.primary_erp_plants,
        dual_mapped_plant=settings.dual_mapped_plant,
        cache=cache,
    )

    return IntegrationRuntime(
        settings=settings,
        tables=tables,
        archive_store=ArchiveStore(settings.archive_path, settings.archive_browser_base_url),
        bus=bus,
        client=client,
        dispatcher=dispatcher,
        eligibility=eligibility,
        reporter=StatusReporter(bus, settings.queues.status_updates),
        characteristic_cache=cache,
    )


_runtime: Optional[IntegrationRuntime] = None
_runtime_lock = threading.Lock()


def configure_runtime(runtime: Optional[IntegrationRuntime]) -> None:
    """Set the runtime used by the activities (None to reset)."""
    global _runtime
    with _runtime_lock:
        _runtime = runtime


def get_runtime() -> IntegrationRuntime:
    """Runtime used by the activities, built from the environment on first use."""
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            _runtime = build_runtime()
        return _runtime
