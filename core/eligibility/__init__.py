"""Eligibility rules for forwarding events to the MES."""

from core.eligibility.filter import (
    CharacteristicIdCache,
    EligibilityFilter,
    is_material_mes_relevant,
)

__all__ = [
    "CharacteristicIdCache",
    "EligibilityFilter",
    "is_material_mes_relevant",
]
