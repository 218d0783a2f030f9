import math

import pytest

from assignments.store import InMemoryAssignmentStore
from providers.models import WEEKDAYS, Provider
from recipients.models import CareUser
from routing.geo import EARTH_RADIUS_M

# Chaoyang district center
CENTER = (39.9204, 116.4490)

FULL_WEEK = [{"day": day, "startTime": "08:00", "endTime": "17:00"} for day in WEEKDAYS]


def north_of(origin, meters):
    """Point `meters` due north of origin (exact under the haversine formula)."""
    return (origin[0] + math.degrees(meters / EARTH_RADIUS_M), origin[1])


def make_provider(provider_id, meters_north=0.0, **overrides):
    lat, lng = north_of(CENTER, meters_north)
    params = dict(
        lat=lat,
        lng=lng,
        service_radius_m=5000,
        max_users=20,
        current_users=0,
        specialties=["general_medicine"],
        work_schedule=FULL_WEEK,
    )
    params.update(overrides)
    return Provider.new(provider_id, **params)


def make_user(user_id, location=CENTER, **overrides):
    lat, lng = location if location is not None else (None, None)
    return CareUser.new(user_id, lat, lng, **overrides)


@pytest.fixture
def center():
    return CENTER


@pytest.fixture
def provider_factory():
    return make_provider


@pytest.fixture
def user_factory():
    return make_user


@pytest.fixture
def store():
    """
    Two providers around the Chaoyang center and three located users.
    """
    return InMemoryAssignmentStore(
        providers=[
            make_provider("provider_near", 800, max_users=2),
            make_provider("provider_far", 3000, max_users=5),
        ],
        users=[make_user("user_1"), make_user("user_2"), make_user("user_3")],
        lock_timeout_seconds=1.0,
    )


@pytest.fixture
def north():
    return north_of
