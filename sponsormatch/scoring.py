"""
Compatibility scoring.

Responsibilities:
- Compute a normalized sub-score (0.0-1.0) per factor for a requester/candidate pair.
- Combine sub-scores with the configured weight table into a 0-100 score.
- Emit a per-factor breakdown for display.

Non-Responsibilities:
- No data store access.
- No eligibility or exclusion decisions.
- No ordering of results.

Invariant:
Given identical inputs (including "now"), this module always returns
the same scores.
"""

import math
from collections import Counter
from datetime import date, datetime
from typing import Dict, Optional

from .config import (
    APPROACH,
    AVAILABILITY,
    AVAILABILITY_DAY_COUNT,
    EXPERIENCE_LEVEL,
    EXPERIENCE_PROPORTIONAL,
    FACTORS,
    LOCATION,
    PREFERENCES,
    RECOVERY_PROGRAM,
    LocationTiers,
    MatchingConfig,
)
from .geo import haversine_miles
from .models import Profile, Role, ScoredMatch
from .normalize import normalize_labels, normalize_place, tokenize

DAYS_PER_YEAR = 365.0
NEUTRAL_PREFERENCE_SCORE = 0.5

# Days per week implied by a single availability frequency label.
AVAILABILITY_DAYS: Dict[str, int] = {
    "1-2 days/week": 2,
    "1-2 days": 2,
    "3-5 days/week": 4,
    "3-5 days": 4,
    "daily": 7,
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_recovery_program(requester: Profile, candidate: Profile) -> float:
    if requester.recovery_program is None or candidate.recovery_program is None:
        return 0.0
    return 1.0 if requester.recovery_program == candidate.recovery_program else 0.0


def score_availability(requester: Profile, candidate: Profile) -> float:
    """Share of availability slots both sides have in common."""
    if not requester.availability or not candidate.availability:
        return 0.0
    overlap = requester.availability & candidate.availability
    return len(overlap) / max(len(requester.availability), len(candidate.availability))


def availability_days(labels) -> Optional[int]:
    """Days per week for the most generous recognized frequency label."""
    days = [AVAILABILITY_DAYS[label] for label in normalize_labels(labels) if label in AVAILABILITY_DAYS]
    return max(days) if days else None


def score_availability_days(requester: Profile, candidate: Profile) -> float:
    """
    Frequency model: does the candidate offer as many days as the requester needs?

    Full credit when the candidate's days per week meet the requester's,
    otherwise the proportion offered. Unrecognized labels score 0.
    """
    needed = availability_days(requester.availability)
    offered = availability_days(candidate.availability)
    if needed is None or offered is None:
        return 0.0
    if offered >= needed:
        return 1.0
    return offered / needed


def score_location(
    requester: Profile,
    candidate: Profile,
    tiers: Optional[LocationTiers] = None,
) -> float:
    tiers = tiers or LocationTiers()
    req_city, cand_city = normalize_place(requester.city), normalize_place(candidate.city)
    req_state, cand_state = normalize_place(requester.state), normalize_place(candidate.state)
    if not (req_city and cand_city and req_state and cand_state):
        return 0.0
    if not (requester.has_coordinates and candidate.has_coordinates):
        return 0.0

    distance = haversine_miles(
        requester.latitude, requester.longitude, candidate.latitude, candidate.longitude
    )
    same_state = req_state == cand_state
    if distance < tiers.same_city_miles and same_state and req_city == cand_city:
        return tiers.same_city_credit
    if distance < tiers.nearby_miles and same_state:
        return tiers.same_state_credit
    if distance < tiers.nearby_miles:
        return tiers.nearby_credit
    return 0.0


def days_elapsed(start: Optional[date], today: date) -> Optional[int]:
    if start is None:
        return None
    return max((today - start).days, 0)


def score_experience_level(
    requester: Profile,
    candidate: Profile,
    config: Optional[MatchingConfig] = None,
    now: Optional[datetime] = None,
) -> float:
    """
    Candidate sponsor's tenure relative to the required minimum.

    Only a sponsee looking at a sponsor is graded; every other role
    pairing gets the neutral 1.0.
    """
    config = config or MatchingConfig()
    if requester.role != Role.SPONSEE or candidate.role != Role.SPONSOR:
        return 1.0

    today = (now or datetime.now()).date()
    candidate_days = days_elapsed(candidate.sobriety_start_date, today)
    if candidate_days is None:
        return 0.0

    if config.experience_strategy == EXPERIENCE_PROPORTIONAL:
        requester_days = days_elapsed(requester.sobriety_start_date, today)
        if requester_days is not None:
            required_years = (requester_days / DAYS_PER_YEAR) * 2
            if required_years <= 0:
                return 1.0
            return min((candidate_days / DAYS_PER_YEAR) / required_years, 1.0)
        # No requester tenure to scale from; use the fixed minimum.

    return min(candidate_days / config.min_experience_days, 1.0)


def score_approach(requester: Profile, candidate: Profile) -> float:
    """Bag-of-words cosine similarity between the two approach texts."""
    return text_similarity(requester.approach, candidate.approach)


def text_similarity(text_a: Optional[str], text_b: Optional[str]) -> float:
    counts_a = Counter(tokenize(text_a))
    counts_b = Counter(tokenize(text_b))
    vocabulary = set(counts_a) | set(counts_b)

    dot = sum(counts_a[w] * counts_b[w] for w in vocabulary)
    mag_a = math.sqrt(sum(c * c for c in counts_a.values()))
    mag_b = math.sqrt(sum(c * c for c in counts_b.values()))
    if mag_a == 0 or mag_b == 0:
        return 0.0
    # Clamp float drift on identical texts.
    return min(dot / (mag_a * mag_b), 1.0)


def score_preferences(requester: Profile, candidate: Profile) -> float:
    # Structured preference matching is not defined yet.
    return NEUTRAL_PREFERENCE_SCORE


def factor_scores(
    requester: Profile,
    candidate: Profile,
    config: MatchingConfig,
    now: Optional[datetime] = None,
) -> Dict[str, float]:
    if config.availability_model == AVAILABILITY_DAY_COUNT:
        availability = score_availability_days(requester, candidate)
    else:
        availability = score_availability(requester, candidate)

    return {
        RECOVERY_PROGRAM: score_recovery_program(requester, candidate),
        AVAILABILITY: availability,
        LOCATION: score_location(requester, candidate, config.location),
        EXPERIENCE_LEVEL: score_experience_level(requester, candidate, config, now),
        PREFERENCES: score_preferences(requester, candidate),
        APPROACH: score_approach(requester, candidate),
    }


def weighted_score(scores: Dict[str, float], weights: Dict[str, float]) -> int:
    """Weighted sum of sub-scores on the 0-100 scale, rounded half up."""
    total = sum(weights[factor] * scores.get(factor, 0.0) for factor in FACTORS)
    return min(max(round_half_up(total * 100), 0), 100)


def score_candidate(
    requester: Profile,
    candidate: Profile,
    config: MatchingConfig,
    now: Optional[datetime] = None,
) -> ScoredMatch:
    scores = factor_scores(requester, candidate, config, now)
    return ScoredMatch(
        candidate_id=candidate.id,
        compatibility_score=weighted_score(scores, config.weights),
        score_breakdown={f: round_half_up(scores[f] * 100) for f in FACTORS},
        weighted_breakdown={
            f: round_half_up(scores[f] * config.weights[f] * 100) for f in FACTORS
        },
    )
