"""
Purpose: Hard eligibility filtering (rule gates).
Builds the base candidate set before scoring.
Responsibilities:
- provider status is active
- capacity / current load (current_users < max_users)
- service zone membership: distance <= min(service radius, max distance)

Output: "rule-qualified providers" with their distance to the user (still not ranked).
Result order is unspecified; the scorer imposes the only ordering.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List

from providers.models import Provider, ProviderStatus
from recipients.models import CareUser
from routing.geo import distance_meters, is_valid_coordinate, validate_coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibleCandidate:
    """
    A provider that passed every gate, plus the distance the scorer consumes.
    """
    provider: Provider
    distance_m: float


def build_base_candidates(user: CareUser, providers: Iterable[Provider], max_distance_m: float) -> List[EligibleCandidate]:
    """
    Returns eligible providers for `user` with their great-circle distance.

    A user without a coordinate gets no candidates (never unconstrained
    matching). An out-of-range user coordinate raises InvalidCoordinateError.
    """
    if user.location is None:
        return []

    user_location = validate_coordinate(user.location)
    candidates: List[EligibleCandidate] = []

    for provider in providers:
        if provider.status != ProviderStatus.ACTIVE:
            continue

        if provider.current_users >= provider.max_users:
            continue

        if provider.location is None:
            continue

        if not is_valid_coordinate(provider.location):
            logger.warning("Skipping provider %s: invalid service center %r", provider.id, provider.location)
            continue

        distance = distance_meters(user_location, provider.location)
        if distance > min(provider.service_radius_m, max_distance_m):
            continue

        candidates.append(EligibleCandidate(provider=provider, distance_m=distance))

    return candidates


def eligible_providers(user: CareUser, providers: Iterable[Provider], max_distance_m: float) -> List[Provider]:
    return [candidate.provider for candidate in build_base_candidates(user, providers, max_distance_m)]
