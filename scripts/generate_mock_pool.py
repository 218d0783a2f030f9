import json
import os

import numpy as np
import pandas as pd

from recipients.conditions import HEALTH_CONDITION_SPECIALTIES

# Beijing district centers; providers and users are scattered around these
DISTRICTS = {
    "chaoyang": (39.9204, 116.4490),
    "haidian": (39.9593, 116.2979),
    "xicheng": (39.9142, 116.3660),
    "dongcheng": (39.9180, 116.4175),
    "fengtai": (39.8585, 116.2867),
    "shijingshan": (39.9056, 116.2223),
}

PROFESSIONS = ["doctor", "nurse", "therapist", "caregiver"]
WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def _scatter(center, spread, size):
    lat = center[0] + np.random.uniform(-spread, spread, size)
    lng = center[1] + np.random.uniform(-spread, spread, size)
    return np.round(lat, 6), np.round(lng, 6)


def generate_mock_providers(num_providers=60, output_file="mock_providers.csv"):
    """
    Providers sit within ~3km of a district center (roughly 0.03 degrees) with
    mixed capacity and load, so batch runs hit both the capacity and the
    radius filters.
    """
    specialties = sorted({s for group in HEALTH_CONDITION_SPECIALTIES.values() for s in group})
    district_names = list(DISTRICTS)

    rows = []
    for index in range(num_providers):
        district = district_names[index % len(district_names)]
        lat, lng = _scatter(DISTRICTS[district], 0.03, 1)
        max_users = int(np.random.randint(5, 21))
        working_days = sorted(np.random.choice(WEEKDAYS, size=5, replace=False), key=WEEKDAYS.index)

        rows.append({
            "provider_id": f"provider_{str(index + 1).zfill(3)}",
            "district": district,
            "lat": lat[0],
            "lng": lng[0],
            "status": np.random.choice(["active", "inactive", "suspended"], p=[0.85, 0.1, 0.05]),
            "profession": np.random.choice(PROFESSIONS),
            "service_radius": int(np.random.choice([3000, 5000, 8000], p=[0.3, 0.5, 0.2])),
            "max_users": max_users,
            "current_users": int(np.random.randint(0, max_users + 1)),
            "specialties": json.dumps(list(np.random.choice(specialties, size=2, replace=False))),
            "work_schedule": json.dumps(
                [{"day": day, "startTime": "08:00", "endTime": "17:00"} for day in working_days]
            ),
            "rating": np.round(np.random.uniform(3.5, 5.0), 2),
        })

    df = pd.DataFrame(rows)
    df.to_csv(output_file, index=False)
    print(f"Generated {num_providers} providers and saved to '{output_file}'")
    print(df.groupby("district")[["max_users", "current_users"]].sum())
    return df


def generate_mock_users(num_users=300, output_file="mock_users.csv"):
    conditions = list(HEALTH_CONDITION_SPECIALTIES)
    district_names = list(DISTRICTS)

    rows = []
    for index in range(num_users):
        district = np.random.choice(district_names)
        lat, lng = _scatter(DISTRICTS[district], 0.05, 1)
        # 5% of users never shared a location
        has_location = np.random.random() >= 0.05
        count = int(np.random.choice([0, 1, 2], p=[0.2, 0.5, 0.3]))

        rows.append({
            "user_id": f"user_{str(index + 1).zfill(4)}",
            "district": district,
            "lat": lat[0] if has_location else None,
            "lng": lng[0] if has_location else None,
            "health_conditions": json.dumps(list(np.random.choice(conditions, size=count, replace=False))),
        })

    df = pd.DataFrame(rows)
    df.to_csv(output_file, index=False)
    print(f"Generated {num_users} users and saved to '{output_file}'")
    print(f"  without location: {df['lat'].isna().sum()}")
    return df


if __name__ == "__main__":
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    os.makedirs(os.path.join(base_dir, "sampledata"), exist_ok=True)
    generate_mock_providers(output_file=os.path.join(base_dir, "sampledata", "providers.csv"))
    generate_mock_users(output_file=os.path.join(base_dir, "sampledata", "users.csv"))
