"""
Health condition tags -> provider specialties a user needs.

A tag that is already a specialty name passes through unchanged, unknown
tags fall back to general medicine.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Optional

GENERAL_MEDICINE = "general_medicine"

HEALTH_CONDITION_SPECIALTIES: Dict[str, FrozenSet[str]] = {
    "high_blood_pressure": frozenset({"blood_pressure", GENERAL_MEDICINE}),
    "diabetes": frozenset({"diabetes_care", GENERAL_MEDICINE}),
    "heart_disease": frozenset({"cardiac_care", GENERAL_MEDICINE}),
    "rehabilitation": frozenset({"physical_therapy", "rehabilitation"}),
    "elderly_care": frozenset({"elderly_care", GENERAL_MEDICINE}),
}

KNOWN_SPECIALTIES: FrozenSet[str] = frozenset().union(*HEALTH_CONDITION_SPECIALTIES.values()) | frozenset(
    {"wound_care", "chronic_disease", "mobility_assistance"}
)


def specialties_for_conditions(
    conditions: Iterable[str],
    condition_map: Optional[Dict[str, FrozenSet[str]]] = None,
) -> FrozenSet[str]:
    condition_map = condition_map or HEALTH_CONDITION_SPECIALTIES
    required = set()
    for tag in conditions:
        tag = tag.strip().lower()
        if not tag:
            continue
        if tag in condition_map:
            required |= condition_map[tag]
        elif tag in KNOWN_SPECIALTIES:
            required.add(tag)
        else:
            required.add(GENERAL_MEDICINE)
    return frozenset(required)
