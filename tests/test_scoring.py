from datetime import datetime

import pytest

from assignments.errors import InvalidPreferencesError
from dispatch.candidate_filter import build_base_candidates
from dispatch.policy import BatchPreferences
from dispatch.scoring import (
    Algorithm,
    distance_priority_score,
    load_balance_score,
    rank_candidates,
    specialty_match_score,
)

NOW = datetime(2026, 10, 19, 10, 0)


@pytest.fixture
def scenario(provider_factory, user_factory):
    """
    Diabetes-care user with one provider 1.2 km away at 15/20 load.
    """
    def build(work_schedule=None):
        overrides = dict(
            service_radius_m=5000,
            max_users=20,
            current_users=15,
            specialties=["blood_pressure", "diabetes_care"],
        )
        if work_schedule is not None:
            overrides["work_schedule"] = work_schedule
        provider = provider_factory("provider_1", 1200, **overrides)
        user = user_factory("user_1", specialties=["diabetes_care"])
        return user, build_base_candidates(user, [provider], 5000)

    return build


def test_comprehensive_scenario_with_schedule(scenario):
    user, candidates = scenario()
    best = rank_candidates(user, candidates, Algorithm.COMPREHENSIVE, now=NOW)[0]

    # 0.4*76 + 0.3*25 + 0.2*100 + 0.1*100
    assert best.score == pytest.approx(67.9, abs=0.01)
    assert best.breakdown.distance == pytest.approx(76.0, abs=0.01)
    assert best.breakdown.load == 25.0
    assert best.breakdown.specialty == 100.0
    assert best.breakdown.schedule == 100.0
    assert best.reason == "comprehensive (distance:76, load:25, specialty:100, schedule:100)"


def test_comprehensive_scenario_without_schedule(scenario):
    user, candidates = scenario(work_schedule=[])
    best = rank_candidates(user, candidates, Algorithm.COMPREHENSIVE, now=NOW)[0]

    assert best.score == pytest.approx(57.9, abs=0.01)


def test_schedule_only_counts_the_current_day(scenario):
    user, candidates = scenario(work_schedule=[{"day": "tuesday", "startTime": "08:00", "endTime": "17:00"}])

    # NOW is a Monday
    monday = rank_candidates(user, candidates, now=NOW)[0]
    tuesday = rank_candidates(user, candidates, now=datetime(2026, 10, 20, 10, 0))[0]

    assert monday.breakdown.schedule == 0.0
    assert tuesday.breakdown.schedule == 100.0


@pytest.mark.parametrize(
    "algorithm, score, reason",
    [
        (Algorithm.DISTANCE_PRIORITY, 76.0, "closest provider (1.2 km)"),
        (Algorithm.LOAD_BALANCE, 25.0, "best load balance (15/20 users)"),
        (Algorithm.SPECIALTY_MATCH, 100.0, "specialty match (diabetes_care)"),
    ],
)
def test_single_factor_algorithms(scenario, algorithm, score, reason):
    user, candidates = scenario()
    best = rank_candidates(user, candidates, algorithm, now=NOW)[0]

    assert best.score == pytest.approx(score, abs=0.01)
    assert best.reason == reason


def test_scores_are_rounded_to_two_decimals(scenario):
    user, candidates = scenario()
    for algorithm in Algorithm:
        score = rank_candidates(user, candidates, algorithm, now=NOW)[0].score
        assert score == round(score, 2)


def test_ranking_is_best_first(provider_factory, user_factory):
    user = user_factory("user_1")
    providers = [
        provider_factory("far", 4000),
        provider_factory("near", 500),
        provider_factory("middle", 2000),
    ]
    candidates = build_base_candidates(user, providers, 5000)

    ranked = rank_candidates(user, candidates, Algorithm.DISTANCE_PRIORITY, now=NOW)

    assert [c.provider.id for c in ranked] == ["near", "middle", "far"]


def test_ties_break_on_provider_id(provider_factory, user_factory):
    """
    Identical providers must rank the same way regardless of input order.
    """
    user = user_factory("user_1")
    providers = [provider_factory(pid, 1000) for pid in ("provider_c", "provider_a", "provider_b")]

    for ordering in (providers, list(reversed(providers))):
        candidates = build_base_candidates(user, ordering, 5000)
        ranked = rank_candidates(user, candidates, now=NOW)
        assert [c.provider.id for c in ranked] == ["provider_a", "provider_b", "provider_c"]


def test_factor_scores_are_clamped(provider_factory, user_factory):
    assert distance_priority_score(6000, 5000) == 0.0
    assert distance_priority_score(0, 5000) == 100.0
    assert distance_priority_score(100, 0) == 0.0

    assert load_balance_score(provider_factory("empty", max_users=0)) == 0.0
    assert load_balance_score(provider_factory("idle", max_users=10)) == 100.0


def test_specialty_match_for_user_without_requirements(provider_factory, user_factory):
    user = user_factory("user_1", specialties=[])
    assert specialty_match_score(user, provider_factory("p")) == 0.0


def test_partial_specialty_match(provider_factory, user_factory):
    user = user_factory("user_1", health_conditions=["diabetes"])
    provider = provider_factory("p", specialties=["diabetes_care"])

    # diabetes -> {diabetes_care, general_medicine}
    assert specialty_match_score(user, provider) == 50.0


def test_preferences_gate_and_renormalize(scenario):
    user, candidates = scenario()
    prefs = BatchPreferences(max_distance_m=5000, balance_load=False)

    best = rank_candidates(user, candidates, Algorithm.COMPREHENSIVE, preferences=prefs, now=NOW)[0]

    # (0.4*76 + 0.2*100 + 0.1*100) / 0.7
    assert best.score == pytest.approx(86.29, abs=0.01)


def test_gates_do_not_affect_single_factor_algorithms(scenario):
    user, candidates = scenario()
    prefs = BatchPreferences(max_distance_m=5000, balance_load=False, consider_specialty=False)

    best = rank_candidates(user, candidates, Algorithm.LOAD_BALANCE, preferences=prefs, now=NOW)[0]

    assert best.score == 25.0


def test_preference_max_distance_drives_distance_score(scenario):
    user, candidates = scenario()
    prefs = BatchPreferences(max_distance_m=2400)

    best = rank_candidates(user, candidates, Algorithm.DISTANCE_PRIORITY, preferences=prefs, now=NOW)[0]

    assert best.score == pytest.approx(50.0, abs=0.01)


def test_unknown_algorithm_is_rejected(scenario):
    user, candidates = scenario()
    with pytest.raises(InvalidPreferencesError):
        rank_candidates(user, candidates, "nearest_first", now=NOW)


def test_empty_candidates_rank_to_empty_list(user_factory):
    assert rank_candidates(user_factory("user_1"), [], now=NOW) == []
