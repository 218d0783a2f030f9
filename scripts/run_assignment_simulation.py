import json
import os
import time
from typing import List

import pandas as pd

from assignments.store import InMemoryAssignmentStore
from dispatch.dispatcher import BatchAssigner
from dispatch.policy import BatchPreferences, policy_from_env
from dispatch.scoring import Algorithm
from providers.models import Provider
from recipients.models import CareUser


def _optional(value):
    return None if pd.isna(value) else float(value)


def load_providers(filepath="sampledata/providers.csv") -> List[Provider]:
    # Resolve the path relative to the repo root, wherever the script is run from.
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    df = pd.read_csv(os.path.join(base_dir, filepath))

    return [
        Provider.new(
            row["provider_id"],
            _optional(row["lat"]),
            _optional(row["lng"]),
            status=row["status"],
            profession=row["profession"],
            service_radius_m=float(row["service_radius"]),
            max_users=int(row["max_users"]),
            current_users=int(row["current_users"]),
            specialties=json.loads(row["specialties"]),
            work_schedule=json.loads(row["work_schedule"]),
            rating=float(row["rating"]),
        )
        for _, row in df.iterrows()
    ]


def load_users(filepath="sampledata/users.csv") -> List[CareUser]:
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    df = pd.read_csv(os.path.join(base_dir, filepath))

    return [
        CareUser.new(
            row["user_id"],
            _optional(row["lat"]),
            _optional(row["lng"]),
            health_conditions=json.loads(row["health_conditions"]),
        )
        for _, row in df.iterrows()
    ]


def run_simulation(algorithm=Algorithm.COMPREHENSIVE, limit=200):
    print("=== STARTING BATCH ASSIGNMENT SIMULATION ===")

    # 1. Load Data
    providers = load_providers()
    users = load_users()[:limit]
    print(f"Loaded {len(providers)} Providers and {len(users)} Users.\n")

    # 2. Configure System
    policy = policy_from_env()
    store = InMemoryAssignmentStore(providers, users, lock_timeout_seconds=policy.lock_timeout_seconds)
    preferences = BatchPreferences(max_distance_m=policy.default_max_distance_m)
    spare_before = sum(p.spare_capacity for p in providers)

    # 3. Run the batch
    start_time = time.time()
    result = BatchAssigner(store, policy=policy).batch_assign(
        [u.id for u in users], algorithm, preferences, actor="simulation"
    )
    print(f"Batch ({algorithm.value}) finished in {time.time() - start_time:.2f}s.\n")

    # 4. Report
    stats = result.statistics
    print("--- Statistics ---")
    print(f"Assigned: {stats['assigned']} / {stats['requested']} ({stats['automatic_assignment_rate']}%)")
    print(f"Average score: {stats['average_score']}  Average distance: {stats['average_distance_m']} m")
    print(f"Failures: {stats['failures_by_error']}")
    print(f"Spare capacity: {spare_before} -> {sum(p.spare_capacity for p in store.list_providers())}")

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    output_path = os.path.join(base_dir, "assignment_results.csv")
    pd.DataFrame(
        [a.to_dict() for a in result.assignments] + [f.to_dict() for f in result.failed]
    ).to_csv(output_path, index=False)
    print(f"\nResults written to '{output_path}'.")
    return result


if __name__ == "__main__":
    run_simulation()
