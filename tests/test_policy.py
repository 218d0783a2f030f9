import pytest

from assignments.errors import InvalidPreferencesError
from dispatch.policy import (
    AssignmentPolicy,
    BatchPreferences,
    ScoringWeights,
    default_assignment_policy,
    policy_from_env,
)


def test_default_policy_matches_documented_weights():
    policy = default_assignment_policy()

    assert policy.weights == ScoringWeights(distance=0.4, load=0.3, specialty=0.2, schedule=0.1)
    assert policy.default_max_distance_m == 5000


def test_weights_must_sum_to_one():
    with pytest.raises(ValueError):
        ScoringWeights(distance=0.5, load=0.5, specialty=0.5, schedule=0.0).validate()


def test_negative_weight_is_rejected():
    with pytest.raises(ValueError):
        ScoringWeights(distance=1.2, load=-0.2, specialty=0.0, schedule=0.0).validate()


def test_policy_rejects_non_positive_limits():
    with pytest.raises(ValueError):
        AssignmentPolicy(default_max_distance_m=0).validate()
    with pytest.raises(ValueError):
        AssignmentPolicy(lock_timeout_seconds=0).validate()
    with pytest.raises(ValueError):
        AssignmentPolicy(max_batch_size=0).validate()


def test_gated_weights_renormalize():
    gated = ScoringWeights().gated(balance_load=False, consider_schedule=False)

    assert gated.load == 0.0
    assert gated.schedule == 0.0
    assert gated.distance == pytest.approx(0.4 / 0.6)
    assert gated.specialty == pytest.approx(0.2 / 0.6)
    assert gated.total == pytest.approx(1.0)


def test_policy_from_env(monkeypatch):
    monkeypatch.setenv("CARE_WEIGHT_DISTANCE", "0.5")
    monkeypatch.setenv("CARE_WEIGHT_LOAD", "0.2")
    monkeypatch.setenv("CARE_DEFAULT_MAX_DISTANCE_M", "8000")
    monkeypatch.setenv("CARE_MAX_BATCH_SIZE", "50")

    policy = policy_from_env()

    assert policy.weights.distance == 0.5
    assert policy.weights.load == 0.2
    assert policy.default_max_distance_m == 8000
    assert policy.max_batch_size == 50


def test_policy_from_env_validates(monkeypatch):
    monkeypatch.setenv("CARE_WEIGHT_DISTANCE", "0.9")
    with pytest.raises(ValueError):
        policy_from_env()


def test_preferences_from_admin_payload():
    prefs = BatchPreferences.from_payload(
        {"maxDistance": 3000, "considerSpecialty": False, "considerSchedule": True, "balanceLoad": False}
    )

    assert prefs == BatchPreferences(
        max_distance_m=3000, consider_specialty=False, consider_schedule=True, balance_load=False
    )


def test_preferences_default_to_policy_distance():
    policy = AssignmentPolicy(default_max_distance_m=7000)

    assert BatchPreferences.from_payload(None, policy).max_distance_m == 7000
    assert BatchPreferences.from_payload({}, policy) == BatchPreferences(max_distance_m=7000)


@pytest.mark.parametrize(
    "payload",
    [
        {"maxDistance": -1},
        {"maxDistance": 0},
        {"maxDistance": "far"},
        {"maxDistance": True},
        {"balanceLoad": "yes"},
        {"radius": 1000},
        ["maxDistance", 5000],
    ],
)
def test_malformed_preferences_are_rejected(payload):
    with pytest.raises(InvalidPreferencesError):
        BatchPreferences.from_payload(payload)
