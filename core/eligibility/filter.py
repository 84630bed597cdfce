"""Eligibility rules for ERP events forwarded to the MES.

An event is forwarded only if its plant is served by a MES instance that
is live, and, for the dual-mapped plant, if the material is classified as
produced on the MES side of that plant. Rejections are logged skips, not
errors. Remote errors of the classification lookup propagate.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional

from core.conversions import CodeTable, is_secondary_instance_plant
from core.conversions.tables import DEFAULT_PRIMARY_ERP_PLANTS
from core.models.erp import ClassAssignment
from core.storage.archive import MessageArchive

logger = logging.getLogger(__name__)


DUAL_MAPPED_PLANT = "1017"
MES_CLASSIFICATION_VALUE = "1017_COMPASS"

# MES relevance classification
MATERIAL_CLASS_TYPE = "Material Class"
INTERFACE_DATA_CLASS = "INTERFACE_DATA"
MES_RELEVANT_CHARACTERISTIC = "IS MES RELEVANT"
MES_RELEVANT_VALUE = "YES"


class CharacteristicIdCache:
    """Write-once cell for the internal ID of the MES_SYSTEM characteristic.

    Concurrent first callers share one load. A failed load leaves the cell
    empty so the next caller retries.
    """

    def __init__(self):
        self._value: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def value(self) -> Optional[str]:
        return self._value

    async def get_or_load(self, loader: Callable[[], Awaitable[str]]) -> str:
        if self._value is not None:
            return self._value
        async with self._lock:
            if self._value is None:
                self._value = await loader()
                logger.info(f"Cached MES_SYSTEM characteristic internal ID '{self._value}'")
        return self._value

    def reset(self) -> None:
        """Forget the cached value (for testing)."""
        self._value = None


def is_material_mes_relevant(class_assignments: Optional[List[ClassAssignment]]) -> bool:
    """True if the material's interface data classifies it as MES relevant.

    Looks at the ``IS MES RELEVANT`` characteristics of the ``INTERFACE_DATA``
    material classes. The first valuation of one of them must be ``YES``.
    """
    for assignment in class_assignments or []:
        details = assignment.class_details
        if details is None:
            continue
        if details.class_type_name != MATERIAL_CLASS_TYPE or details.class_name != INTERFACE_DATA_CLASS:
            continue
        for characteristic in assignment.characteristics:
            description = characteristic.description
            if description is None or description.charc_description != MES_RELEVANT_CHARACTERISTIC:
                continue
            if characteristic.valuation and characteristic.valuation[0].charc_value == MES_RELEVANT_VALUE:
                return True
    return False


class EligibilityFilter:
    """Decides whether an event is forwarded to the MES.

    Usage:
        eligibility = EligibilityFilter(tables.plant, dispatcher, enable_secondary_instance=True)
        if not await eligibility.check_erp_plant("1017", "100200", archive):
            return
    """

    def __init__(
        self,
        plants: CodeTable,
        classification,
        enable_secondary_instance: bool = False,
        primary_erp_plants: Iterable[str] = DEFAULT_PRIMARY_ERP_PLANTS,
        dual_mapped_plant: str = DUAL_MAPPED_PLANT,
        cache: Optional[CharacteristicIdCache] = None,
    ):
        """Initialize the filter.

        Args:
            plants: Plant code table
            classification: Provides ``fetch_characteristic_internal_id(archive)``
                and ``fetch_characteristic_values(product, charc_id, archive)``,
                usually the OutboundDispatcher
            enable_secondary_instance: Forward to the secondary MES instance
            primary_erp_plants: ERP plants served by the primary MES instance
            dual_mapped_plant: ERP plant that needs the classification lookup
            cache: Characteristic ID cache, shared by all filters of a process
        """
        self.plants = plants
        self.classification = classification
        self.enable_secondary_instance = enable_secondary_instance
        self.primary_erp_plants = tuple(primary_erp_plants)
        self.dual_mapped_plant = dual_mapped_plant
        self.cache = cache or CharacteristicIdCache()

    # =========================================================================
    # Individual Rules
    # =========================================================================

    def is_known_erp_plant(self, erp_plant) -> bool:
        """True if the ERP plant has a MES counterpart."""
        return self.plants.has_mes_value(erp_plant)

    def is_known_mes_plant(self, mes_plant) -> bool:
        """True if the MES plant has an ERP counterpart."""
        return self.plants.has_erp_value(mes_plant)

    def is_instance_enabled(self, erp_plant) -> bool:
        """False for plants of the secondary MES instance while it is disabled."""
        if not is_secondary_instance_plant(erp_plant, self.primary_erp_plants):
            return True
        return self.enable_secondary_instance

    async def has_mes_classification(self, product: str, archive: MessageArchive) -> bool:
        """True if the MES_SYSTEM characteristic of the product is ``1017_COMPASS``."""
        charc_id = await self.cache.get_or_load(
            lambda: self.classification.fetch_characteristic_internal_id(archive)
        )
        values = await self.classification.fetch_characteristic_values(product, charc_id, archive)
        return MES_CLASSIFICATION_VALUE in values

    async def passes_classification(self, erp_plant, product: str, archive: MessageArchive) -> bool:
        """Classification check, only performed for the dual-mapped plant."""
        if str(erp_plant) != self.dual_mapped_plant:
            return True
        if await self.has_mes_classification(product, archive):
            return True
        logger.info(
            f"Skipping plant '{erp_plant}' because MES_SYSTEM class characteristic "
            f"indicates that it is not for MES"
        )
        return False

    # =========================================================================
    # Combined Check
    # =========================================================================

    async def check_erp_plant(self, erp_plant, product: str, archive: MessageArchive) -> bool:
        """Run all rules for an ERP event, stopping at the first rejection.

        Args:
            erp_plant: ERP plant of the event
            product: Material of the event, used for the classification lookup
            archive: Archive of the current message

        Returns:
            True if the event is forwarded
        """
        if not self.is_known_erp_plant(erp_plant):
            logger.info(f"Skipping this message, '{erp_plant}' is not a MES plant")
            return False

        if not self.is_instance_enabled(erp_plant):
            logger.info("Skipping this message, sending messages to the secondary MES instance is not enabled")
            return False

        return await self.passes_classification(erp_plant, product, archive)
