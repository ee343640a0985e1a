"""Human-readable summaries of a match's score breakdown."""

from typing import Dict, List

from .config import APPROACH, AVAILABILITY, EXPERIENCE_LEVEL, LOCATION, PREFERENCES, RECOVERY_PROGRAM

FACTOR_LABELS: Dict[str, str] = {
    RECOVERY_PROGRAM: "Recovery Program",
    AVAILABILITY: "Availability",
    LOCATION: "Location",
    EXPERIENCE_LEVEL: "Experience Level",
    PREFERENCES: "Preferences",
    APPROACH: "Approach",
}

# (minimum score, level), checked top down
COMPATIBILITY_LEVELS = [
    (90, "excellent"),
    (75, "very-good"),
    (60, "good"),
    (40, "fair"),
]


def compatibility_level(score: int) -> str:
    for minimum, level in COMPATIBILITY_LEVELS:
        if score >= minimum:
            return level
    return "poor"


def is_acceptable_match(score: int, threshold: int = 50) -> bool:
    return score >= threshold


def explain_match(breakdown: Dict[str, int]) -> str:
    """
    One-line summary built from the 0-100 factor breakdown.

    Example: "Same recovery program • nearby location • some schedule overlap"
    """
    parts: List[str] = []

    program = breakdown.get(RECOVERY_PROGRAM, 0)
    parts.append("Same recovery program" if program >= 80 else "Different recovery programs")

    location = breakdown.get(LOCATION, 0)
    if location >= 80:
        parts.append("nearby location")
    elif location >= 50:
        parts.append("same region")
    else:
        parts.append("different locations")

    availability = breakdown.get(AVAILABILITY, 0)
    if availability >= 70:
        parts.append("great schedule overlap")
    elif availability >= 40:
        parts.append("some schedule overlap")
    else:
        parts.append("limited schedule overlap")

    if breakdown.get(EXPERIENCE_LEVEL, 0) >= 70:
        parts.append("experienced sponsor")

    if breakdown.get(APPROACH, 0) >= 50:
        parts.append("similar approach")

    return " • ".join(parts)


def top_factors(breakdown: Dict[str, int], limit: int = 3) -> List[Dict[str, object]]:
    """Strongest factors first; ties keep the breakdown's order."""
    factors = [
        {"factor": factor, "score": score, "label": FACTOR_LABELS.get(factor, factor)}
        for factor, score in breakdown.items()
    ]
    factors.sort(key=lambda f: f["score"], reverse=True)
    return factors[:limit]
