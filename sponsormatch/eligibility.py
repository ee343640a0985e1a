"""
Eligibility and exclusion filtering.

Narrows a raw candidate pool to the profiles that may be scored for a
requester: right role, not the requester, not soft-deleted, no existing
relationship and not declined within the cooldown window.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from .logger import get_logger
from .models import DeclineRecord, ExclusionSet, Profile, Role, to_utc, utc_now

logger = get_logger()

DEFAULT_COOLDOWN_DAYS = 30


def complementary_roles(role: Role) -> Tuple[Role, ...]:
    """Roles a requester may be matched with."""
    if role == Role.SPONSOR:
        return (Role.SPONSEE,)
    if role == Role.SPONSEE:
        return (Role.SPONSOR,)
    return (Role.SPONSOR, Role.SPONSEE)


def cooldown_cutoff(now: datetime, cooldown_days: int = DEFAULT_COOLDOWN_DAYS) -> datetime:
    return now - timedelta(days=cooldown_days)


def cooldown_expires_at(declined_at: datetime, cooldown_days: int = DEFAULT_COOLDOWN_DAYS) -> datetime:
    """When a declined candidate becomes eligible again."""
    return declined_at + timedelta(days=cooldown_days)


def in_cooldown(
    decline: DeclineRecord,
    now: datetime,
    cooldown_days: int = DEFAULT_COOLDOWN_DAYS,
) -> bool:
    # A decline exactly cooldown_days old has expired. Naive times are UTC.
    return to_utc(decline.declined_at) > to_utc(cooldown_cutoff(now, cooldown_days))


def declined_candidate_ids(
    declines: Iterable[DeclineRecord],
    now: datetime,
    cooldown_days: int = DEFAULT_COOLDOWN_DAYS,
) -> set:
    return {d.candidate_id for d in declines if in_cooldown(d, now, cooldown_days)}


def filter_candidates(
    requester: Profile,
    candidates: Iterable[Profile],
    exclusions: Optional[ExclusionSet] = None,
    now: Optional[datetime] = None,
    cooldown_days: int = DEFAULT_COOLDOWN_DAYS,
) -> List[Profile]:
    """
    Return the candidates eligible for scoring, in pool order.

    Args:
        requester: Profile the matches are computed for
        candidates: Raw pool from the data store
        exclusions: Permanent relationships and recent declines
        now: Reference time for the cooldown window (default: now, UTC)
        cooldown_days: Days a decline suppresses a candidate

    Returns:
        Eligible candidates; duplicates in the pool are dropped
    """
    exclusions = exclusions or ExclusionSet()
    now = now or utc_now()
    allowed_roles = complementary_roles(requester.role)
    declined = declined_candidate_ids(exclusions.declines, now, cooldown_days)

    eligible: List[Profile] = []
    seen = set()
    skipped = {"self": 0, "deleted": 0, "role": 0, "connected": 0, "declined": 0, "duplicate": 0}
    for candidate in candidates:
        if candidate.id == requester.id:
            skipped["self"] += 1
        elif candidate.is_deleted:
            skipped["deleted"] += 1
        elif candidate.role not in allowed_roles:
            skipped["role"] += 1
        elif candidate.id in exclusions.permanent:
            skipped["connected"] += 1
        elif candidate.id in declined:
            skipped["declined"] += 1
        elif candidate.id in seen:
            skipped["duplicate"] += 1
        else:
            seen.add(candidate.id)
            eligible.append(candidate)

    logger.debug(
        "Filtered candidate pool",
        requester_id=requester.id,
        eligible=len(eligible),
        **{f"skipped_{k}": v for k, v in skipped.items() if v},
    )
    return eligible
