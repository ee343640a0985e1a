"""
Pytest configuration and shared fixtures.
"""

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

import pytest

from sponsormatch.config import MatchingConfig
from sponsormatch.logger import StructuredLogger
from sponsormatch.models import DeclineRecord, Profile, Role, to_utc
from sponsormatch.service import MatchingService

NOW = datetime(2026, 1, 15, 12, 0, 0)
TODAY = NOW.date()

SEATTLE = (47.6062, -122.3321)
SEATTLE_DOWNTOWN = (47.6097, -122.3331)
TACOMA = (47.2529, -122.4443)
SPOKANE = (47.6588, -117.4260)
PORTLAND = (45.5152, -122.6784)
VANCOUVER_WA = (45.6387, -122.6615)


def years_ago(years: float) -> date:
    return TODAY - timedelta(days=int(round(years * 365)))


def make_profile(
    id: str,
    role: Role = Role.SPONSOR,
    recovery_program: Optional[str] = "AA",
    city: Optional[str] = "Seattle",
    state: Optional[str] = "WA",
    coords=SEATTLE,
    sobriety_start_date: Optional[date] = None,
    availability=("Weekday Evenings",),
    approach: str = "",
    **extra,
) -> Profile:
    lat, lng = coords if coords else (None, None)
    return Profile(
        id=id,
        role=role,
        recovery_program=recovery_program,
        city=city,
        state=state,
        latitude=lat,
        longitude=lng,
        sobriety_start_date=sobriety_start_date,
        availability=frozenset(availability),
        approach=approach,
        **extra,
    )


class FakeStore:
    """In-memory ProfileStore used by service tests."""

    def __init__(
        self,
        profiles: List[Profile],
        relationships: Optional[List[str]] = None,
        declines: Optional[List[DeclineRecord]] = None,
    ):
        self.profiles: Dict[str, Profile] = {p.id: p for p in profiles}
        self.relationships = relationships or []
        self.declines = declines or []
        self.fail_on: Optional[str] = None
        self.pool_calls = []

    def _maybe_fail(self, name: str):
        if self.fail_on == name:
            raise RuntimeError(f"connection refused while running {name}")

    def get_profile(self, profile_id):
        self._maybe_fail("get_profile")
        return self.profiles.get(profile_id)

    def get_candidate_pool(self, roles, recovery_program=None):
        self._maybe_fail("get_candidate_pool")
        self.pool_calls.append((tuple(roles), recovery_program))
        return [
            p for p in self.profiles.values()
            if p.role in roles and (recovery_program is None or p.recovery_program == recovery_program)
        ]

    def get_existing_relationships(self, requester_id):
        self._maybe_fail("get_existing_relationships")
        return list(self.relationships)

    def get_recent_declines(self, requester_id, since):
        self._maybe_fail("get_recent_declines")
        return [d for d in self.declines if d.declined_at > to_utc(since)]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def config() -> MatchingConfig:
    return MatchingConfig()


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    return StructuredLogger(name="sponsormatch-test", enable_console=False, enable_file=False)


@pytest.fixture
def sponsee() -> Profile:
    """Requester looking for a sponsor."""
    return make_profile(
        "sponsee-1",
        role=Role.SPONSEE,
        coords=SEATTLE,
        sobriety_start_date=TODAY - timedelta(days=180),
        availability=("Weekday Evenings", "Weekend Mornings"),
        approach="Big Book step work, daily meetings and honest phone calls.",
    )


@pytest.fixture
def close_sponsor() -> Profile:
    """Same program, same city, full schedule overlap, five years sober."""
    return make_profile(
        "sponsor-close",
        coords=SEATTLE_DOWNTOWN,
        sobriety_start_date=years_ago(5),
        availability=("Weekday Evenings", "Weekend Mornings", "Flexible"),
        approach="Step work from the Big Book with daily phone calls.",
    )


@pytest.fixture
def state_sponsor() -> Profile:
    """Same program, same state but another city, no schedule overlap, exactly one year sober."""
    return make_profile(
        "sponsor-state",
        city="Tacoma",
        coords=TACOMA,
        sobriety_start_date=TODAY - timedelta(days=365),
        availability=("Weekend Evenings",),
    )


@pytest.fixture
def other_program_sponsor() -> Profile:
    return make_profile(
        "sponsor-other",
        recovery_program="NA",
        city="Tacoma",
        coords=TACOMA,
        sobriety_start_date=years_ago(3),
        availability=("Weekend Evenings",),
    )


@pytest.fixture
def candidate_pool(close_sponsor, state_sponsor, other_program_sponsor) -> List[Profile]:
    return [other_program_sponsor, state_sponsor, close_sponsor]


@pytest.fixture
def fake_store(sponsee, candidate_pool) -> FakeStore:
    return FakeStore([sponsee] + candidate_pool)


@pytest.fixture
def service(fake_store, config, quiet_logger) -> MatchingService:
    return MatchingService(fake_store, config, clock=lambda: NOW, logger=quiet_logger)
