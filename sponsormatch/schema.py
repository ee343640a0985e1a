from datetime import date
from typing import Any, Dict, List

from .models import Profile, Role, parse_iso_datetime

REQUIRED_PROFILE_FIELDS = ["id", "role"]
OPTIONAL_STR_FIELDS = [
    "name",
    "recovery_program",
    "city",
    "state",
    "approach",
    "bio",
]
OPTIONAL_NUMBER_FIELDS = ["latitude", "longitude"]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _valid_iso_date(v: Any) -> bool:
    if not isinstance(v, str):
        return False
    try:
        date.fromisoformat(v[:10])
        return True
    except ValueError:
        return False


def _valid_iso_datetime(v: Any) -> bool:
    # Accepts a trailing "Z" for UTC.
    if not isinstance(v, str):
        return False
    try:
        parse_iso_datetime(v)
        return True
    except ValueError:
        return False


def validate_match_request(body: Any) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    if not isinstance(body, dict):
        return ["Request body must be a JSON object"]
    requester_id = body.get("requester_id", body.get("user_id"))
    if requester_id is None:
        return ["Missing required field: requester_id"]
    if not _is_non_empty_str(requester_id):
        return ["Field 'requester_id' must be a non-empty string"]
    limit = body.get("limit")
    if limit is not None and (not isinstance(limit, int) or isinstance(limit, bool) or limit < 1):
        return ["Field 'limit' must be a positive integer if provided"]
    return []


def validate_profile_data(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages for a raw profile mapping.
    Empty list means the profile can be imported.
    """
    errors: List[str] = []

    for f in REQUIRED_PROFILE_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    if _is_non_empty_str(data.get("role")) and data["role"] not in {r.value for r in Role}:
        errors.append("Field 'role' must be one of: sponsor, sponsee, both")

    for f in OPTIONAL_STR_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    for f in OPTIONAL_NUMBER_FIELDS:
        v = data.get(f)
        if v is not None and (not isinstance(v, (int, float)) or isinstance(v, bool)):
            errors.append(f"Field '{f}' must be a number if provided")

    lat, lng = data.get("latitude"), data.get("longitude")
    if isinstance(lat, (int, float)) and not -90 <= lat <= 90:
        errors.append("Field 'latitude' must be between -90 and 90")
    if isinstance(lng, (int, float)) and not -180 <= lng <= 180:
        errors.append("Field 'longitude' must be between -180 and 180")

    start = data.get("sobriety_start_date")
    if start is not None and not _valid_iso_date(start):
        errors.append("Field 'sobriety_start_date' must be an ISO date (YYYY-MM-DD)")

    deleted_at = data.get("deleted_at")
    if deleted_at is not None and not _valid_iso_datetime(deleted_at):
        errors.append("Field 'deleted_at' must be an ISO timestamp if provided")

    availability = data.get("availability")
    if availability is not None:
        if not isinstance(availability, list) or not all(_is_non_empty_str(a) for a in availability):
            errors.append("Field 'availability' must be a list of non-empty strings")

    preferences = data.get("preferences")
    if preferences is not None and not isinstance(preferences, dict):
        errors.append("Field 'preferences' must be an object if provided")

    return errors


def missing_matching_fields(profile: Profile) -> List[str]:
    """Fields a requester must fill in before matches can be computed."""
    missing = []
    if not _is_non_empty_str(profile.recovery_program):
        missing.append("recovery_program")
    if not (_is_non_empty_str(profile.city) and _is_non_empty_str(profile.state)):
        missing.append("location")
    if profile.sobriety_start_date is None:
        missing.append("sobriety_start_date")
    return missing
