"""Runtime configuration for the MES/ERP integration.

Settings are read from environment variables. A ``.env`` file at the
repository root is loaded first if it exists.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]

env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() == "true"


def _env_int(name: str, default: int = 0) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class QueueNames:
    """Bus destinations.

    ERP -> MES destinations have a primary and a secondary variant, the
    secondary one being ``<base><secondary_suffix>``.
    """
    status_updates: str = "transaction-manager-status-updates-to-mes"
    production_order: str = "production-order-to-mes"
    inventory_location_move: str = "inventory-location-move-to-mes"
    material_master: str = "material-master-to-mes"
    superbackflush_topic: str = "superbackflush-from-mes"
    workorderissues_topic: str = "workorderissues-from-mes"
    secondary_suffix: str = "1"

    def for_instance(self, base: str, secondary: bool) -> str:
        """Destination for the primary or secondary MES instance."""
        return f"{base}{self.secondary_suffix}" if secondary else base


@dataclass(frozen=True)
class IntegrationSettings:
    """Settings shared by all handlers."""
    erp_base_url: str = "http://localhost:8080"
    erp_api_key: Optional[str] = None
    erp_timeout_seconds: int = 30
    # Pause after a successful confirmation so the ERP can finish its
    # asynchronous post-processing
    confirmation_delay_ms: int = 0

    enable_secondary_instance: bool = False
    primary_erp_plants: Tuple[str, ...] = ("1015",)
    primary_mes_plants: Tuple[str, ...] = ("B024",)
    dual_mapped_plant: str = "1017"

    archive_path: Path = REPO_ROOT / "artifacts" / "message-archive"
    archive_browser_base_url: Optional[str] = None
    bus_outbox_path: Optional[Path] = None
    code_table_path: Optional[Path] = None

    log_level: str = "INFO"
    log_json: bool = False
    task_queue: str = "mes-erp-integration"

    queues: QueueNames = field(default_factory=QueueNames)

    @classmethod
    def from_env(cls) -> "IntegrationSettings":
        """Build settings from environment variables.

        Reads:
        - ERP_BASE_URL, ERP_API_KEY, ERP_TIMEOUT_SECONDS, ERP_CONFIRMATION_DELAY_MS
        - ENABLE_SECONDARY_MES_INSTANCE: "true" to forward to the secondary MES
        - PRIMARY_ERP_PLANTS: comma separated ERP plants of the primary MES
        - MESSAGE_ARCHIVE_PATH, ARCHIVE_BROWSER_BASE_URL
        - BUS_OUTBOX_PATH: directory for the file outbox bus
        - CODE_TABLE_PATH: directory with the code table CSV files
        - LOG_LEVEL, LOG_JSON, TEMPORAL_TASK_QUEUE
        """
        defaults = cls()
        primary_plants = os.getenv("PRIMARY_ERP_PLANTS")
        outbox = os.getenv("BUS_OUTBOX_PATH")
        code_tables = os.getenv("CODE_TABLE_PATH")

        return cls(
            erp_base_url=os.getenv("ERP_BASE_URL", defaults.erp_base_url),
            erp_api_key=os.getenv("ERP_API_KEY"),
            erp_timeout_seconds=_env_int("ERP_TIMEOUT_SECONDS", defaults.erp_timeout_seconds),
            confirmation_delay_ms=_env_int("ERP_CONFIRMATION_DELAY_MS", 0),
            enable_secondary_instance=_env_bool("ENABLE_SECONDARY_MES_INSTANCE"),
            primary_erp_plants=(
                tuple(p.strip() for p in primary_plants.split(",") if p.strip())
                if primary_plants else defaults.primary_erp_plants
            ),
            archive_path=Path(os.getenv("MESSAGE_ARCHIVE_PATH", str(defaults.archive_path))),
            archive_browser_base_url=os.getenv("ARCHIVE_BROWSER_BASE_URL"),
            bus_outbox_path=Path(outbox) if outbox else None,
            code_table_path=Path(code_tables) if code_tables else None,
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            log_json=_env_bool("LOG_JSON"),
            task_queue=os.getenv("TEMPORAL_TASK_QUEUE", defaults.task_queue),
        )
