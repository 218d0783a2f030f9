from datetime import datetime

import pytest

from assignments.errors import InvalidPreferencesError
from assignments.store import InMemoryAssignmentStore
from dispatch.dispatcher import BatchAssigner
from dispatch.lifecycle import AssignmentLifecycle
from dispatch.policy import AssignmentPolicy, BatchPreferences
from dispatch.scoring import Algorithm

NOW = datetime(2026, 10, 19, 10, 0)


@pytest.fixture
def single_provider_store(provider_factory, user_factory):
    return InMemoryAssignmentStore(
        providers=[provider_factory("provider_1", 500, max_users=2)],
        users=[user_factory("user_1"), user_factory("user_2"), user_factory("user_3")],
    )


def test_three_users_one_provider_with_two_slots(single_provider_store):
    result = BatchAssigner(single_provider_store).batch_assign(["user_1", "user_2", "user_3"], now=NOW)

    assert [a.user_id for a in result.assignments] == ["user_1", "user_2"]
    assert len(result.failed) == 1
    assert result.failed[0].user_id == "user_3"
    assert result.failed[0].error in ("NoEligibleProvider", "CapacityExceeded")
    assert single_provider_store.get_provider("provider_1").current_users == 2


def test_processing_order_is_caller_order(single_provider_store):
    result = BatchAssigner(single_provider_store).batch_assign(["user_3", "user_1", "user_2"], now=NOW)

    assert [a.user_id for a in result.assignments] == ["user_3", "user_1"]
    assert [f.user_id for f in result.failed] == ["user_2"]


def test_statistics(single_provider_store):
    result = BatchAssigner(single_provider_store).batch_assign(["user_1", "user_2", "user_3"], now=NOW)
    stats = result.statistics

    assert stats["requested"] == 3
    assert stats["assigned"] == 2
    assert stats["failed"] == 1
    assert stats["automatic_assignment_rate"] == 66.7
    assert stats["average_distance_m"] == 500
    assert stats["assignments_by_provider"] == {"provider_1": 2}
    assert sum(stats["failures_by_error"].values()) == 1


def test_batch_is_deterministic(provider_factory, user_factory):
    def run():
        store = InMemoryAssignmentStore(
            providers=[
                provider_factory("provider_a", 1000, max_users=2),
                provider_factory("provider_b", 1000, max_users=2),
                provider_factory("provider_c", 2500, max_users=3, specialties=["diabetes_care"]),
            ],
            users=[
                user_factory(f"user_{i}", health_conditions=["diabetes"] if i % 2 else [])
                for i in range(6)
            ],
        )
        result = BatchAssigner(store).batch_assign([f"user_{i}" for i in range(6)], now=NOW)
        return [(a.user_id, a.provider_id, a.match_score) for a in result.assignments]

    assert run() == run()


def test_load_taken_earlier_in_batch_is_visible_later(provider_factory, user_factory):
    """
    With load_balance, the second user goes to the provider the first one did not fill.
    """
    store = InMemoryAssignmentStore(
        providers=[provider_factory("provider_a", 1000, max_users=2), provider_factory("provider_b", 1000, max_users=2)],
        users=[user_factory("user_1"), user_factory("user_2")],
    )

    result = BatchAssigner(store).batch_assign(["user_1", "user_2"], Algorithm.LOAD_BALANCE, now=NOW)

    assert [a.provider_id for a in result.assignments] == ["provider_a", "provider_b"]


def test_failures_do_not_abort_the_batch(store, user_factory):
    store.add_user(user_factory("homeless", location=None))
    store.add_user(user_factory("off_map", location=(120.0, 10.0)))

    result = BatchAssigner(store).batch_assign(["user_1", "ghost", "homeless", "off_map", "user_2"], now=NOW)

    assert [a.user_id for a in result.assignments] == ["user_1", "user_2"]
    assert [(f.user_id, f.error) for f in result.failed] == [
        ("ghost", "NotFound"),
        ("homeless", "NoEligibleProvider"),
        ("off_map", "InvalidCoordinate"),
    ]


def test_user_already_assigned_is_reported(store):
    AssignmentLifecycle(store).create_assignment("user_1", "provider_far", "manual", "admin")

    result = BatchAssigner(store).batch_assign(["user_1"], now=NOW)

    assert result.assignments == []
    assert result.failed[0].error == "DuplicateActiveAssignment"


def test_max_distance_preference_limits_candidates(store):
    prefs = BatchPreferences(max_distance_m=500)

    result = BatchAssigner(store).batch_assign(["user_1"], preferences=prefs, now=NOW)

    assert result.failed[0].error == "NoEligibleProvider"


def test_assignments_are_automatic_with_score_and_reason(store):
    result = BatchAssigner(store).batch_assign(["user_1"], Algorithm.DISTANCE_PRIORITY, now=NOW)
    assignment = result.assignments[0]

    assert assignment.assignment_type.value == "automatic"
    assert assignment.provider_id == "provider_near"
    assert assignment.distance_m == 800
    assert assignment.match_score == pytest.approx(84.0, abs=0.01)
    assert assignment.reason == "closest provider (0.8 km)"
    assert assignment.assigned_by == "system"


def test_concurrent_assignment_elsewhere_surfaces_as_capacity_failure(provider_factory, user_factory):
    store = InMemoryAssignmentStore(
        providers=[provider_factory("provider_1", 500, max_users=1)],
        users=[user_factory("user_a"), user_factory("walk_in")],
    )

    class RacingLifecycle(AssignmentLifecycle):
        """Lets a front-desk assignment land after the batch took its pool snapshot."""
        raced = False

        def create_assignment(self, *args, **kwargs):
            if not self.raced:
                self.raced = True
                super().create_assignment("walk_in", "provider_1", "manual", "front_desk")
            return super().create_assignment(*args, **kwargs)

    result = BatchAssigner(store, lifecycle=RacingLifecycle(store)).batch_assign(["user_a"], now=NOW)

    assert result.assignments == []
    assert result.failed[0].error == "CapacityExceeded"
    assert store.get_provider("provider_1").current_users == 1


def test_provider_lost_to_outside_assignment_is_skipped_for_later_users(provider_factory, user_factory):
    """
    Only the first user loses the race; the rest go to the next provider.
    """
    store = InMemoryAssignmentStore(
        providers=[
            provider_factory("provider_a", 300, max_users=1),
            provider_factory("provider_b", 2000, max_users=5),
        ],
        users=[user_factory("user_1"), user_factory("user_2"), user_factory("user_3"), user_factory("walk_in")],
    )

    class RacingLifecycle(AssignmentLifecycle):
        raced = False

        def create_assignment(self, *args, **kwargs):
            if not self.raced:
                self.raced = True
                super().create_assignment("walk_in", "provider_a", "manual", "front_desk")
            return super().create_assignment(*args, **kwargs)

    result = BatchAssigner(store, lifecycle=RacingLifecycle(store)).batch_assign(
        ["user_1", "user_2", "user_3"], Algorithm.DISTANCE_PRIORITY, now=NOW
    )

    assert [(f.user_id, f.error) for f in result.failed] == [("user_1", "CapacityExceeded")]
    assert [(a.user_id, a.provider_id) for a in result.assignments] == [
        ("user_2", "provider_b"),
        ("user_3", "provider_b"),
    ]
    assert store.get_provider("provider_a").current_users == 1
    assert store.get_provider("provider_b").current_users == 2


def test_empty_batch(store):
    result = BatchAssigner(store).batch_assign([], now=NOW)

    assert result.assignments == [] and result.failed == []
    assert result.statistics["automatic_assignment_rate"] == 0.0


@pytest.mark.parametrize(
    "user_ids, algorithm",
    [
        (["user_1"], "nearest"),
        ("user_1", Algorithm.COMPREHENSIVE),
        (["user_1", ""], Algorithm.COMPREHENSIVE),
        (["user_1", None], Algorithm.COMPREHENSIVE),
    ],
)
def test_structural_problems_fail_the_whole_batch(store, user_ids, algorithm):
    with pytest.raises(InvalidPreferencesError):
        BatchAssigner(store).batch_assign(user_ids, algorithm, now=NOW)

    assert store.get_provider("provider_near").current_users == 0


def test_oversized_batch_is_rejected(store):
    assigner = BatchAssigner(store, policy=AssignmentPolicy(max_batch_size=2))
    with pytest.raises(InvalidPreferencesError):
        assigner.batch_assign(["user_1", "user_2", "user_3"], now=NOW)


def test_result_serializes_for_the_api(single_provider_store):
    payload = BatchAssigner(single_provider_store).batch_assign(["user_1", "user_2", "user_3"], now=NOW).to_dict()

    assert set(payload) == {"assignments", "failed", "statistics"}
    assert payload["assignments"][0]["status"] == "active"
    assert payload["failed"][0]["userId"] == "user_3"
