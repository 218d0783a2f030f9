import pytest

from assignments.errors import InvalidCoordinateError
from dispatch.candidate_filter import build_base_candidates, eligible_providers


def test_only_active_providers_with_capacity_in_radius(provider_factory, user_factory):
    """
    Every gate knocks out one provider; only the plain one survives.
    """
    providers = [
        provider_factory("ok", 1000),
        provider_factory("inactive", 1000, status="inactive"),
        provider_factory("suspended", 1000, status="suspended"),
        provider_factory("full", 1000, max_users=3, current_users=3),
        provider_factory("out_of_radius", 4000, service_radius_m=3000),
        provider_factory("too_far", 6000, service_radius_m=10_000),
        provider_factory("no_location", lat=None, lng=None),
    ]
    user = user_factory("user_1")

    ids = [p.id for p in eligible_providers(user, providers, max_distance_m=5000)]

    assert ids == ["ok"]


def test_distance_bound_is_min_of_radius_and_max_distance(provider_factory, user_factory):
    providers = [provider_factory("p", 2500, service_radius_m=5000)]
    user = user_factory("user_1")

    assert eligible_providers(user, providers, max_distance_m=2000) == []
    assert [p.id for p in eligible_providers(user, providers, max_distance_m=3000)] == ["p"]


def test_provider_at_user_location_is_eligible(provider_factory, user_factory):
    provider = provider_factory("edge", 0)
    user = user_factory("user_1")
    candidates = build_base_candidates(user, [provider], max_distance_m=5000)

    assert len(candidates) == 1
    assert candidates[0].distance_m == 0


def test_candidates_carry_distance(provider_factory, user_factory):
    candidates = build_base_candidates(user_factory("user_1"), [provider_factory("p", 1200)], 5000)

    assert candidates[0].provider.id == "p"
    assert candidates[0].distance_m == pytest.approx(1200, abs=0.01)


def test_user_without_location_gets_no_candidates(provider_factory, user_factory):
    user = user_factory("user_1", location=None)
    assert build_base_candidates(user, [provider_factory("p", 100)], 5000) == []


def test_invalid_user_coordinate_raises(provider_factory, user_factory):
    user = user_factory("user_1", location=(120.0, 10.0))
    with pytest.raises(InvalidCoordinateError):
        build_base_candidates(user, [provider_factory("p", 100)], 5000)


def test_provider_with_invalid_location_is_skipped(provider_factory, user_factory):
    providers = [provider_factory("broken", lat=95.0, lng=0.0), provider_factory("ok", 100)]
    ids = [p.id for p in eligible_providers(user_factory("user_1"), providers, 5000)]
    assert ids == ["ok"]
