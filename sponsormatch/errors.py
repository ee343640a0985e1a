"""
Error taxonomy for matching requests.

Every error carries a machine-readable category and the HTTP-style status a
transport should use. Messages are safe to show to callers.
"""

from typing import Any, Dict, List, Optional


class MatchingError(Exception):
    """Base class for errors reported to the caller of a matching request."""

    category = "internal_error"
    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": {"category": self.category, "message": self.message}}


class UnauthorizedError(MatchingError):
    category = "unauthorized"
    status = 401


class BadRequestError(MatchingError):
    category = "bad_request"
    status = 400


class ProfileNotFoundError(MatchingError):
    category = "not_found"
    status = 404

    def __init__(self, profile_id: str):
        super().__init__(f"Profile not found: {profile_id}")
        self.profile_id = profile_id


class IncompleteProfileError(MatchingError):
    """Requester can't be matched until the listed fields are filled in."""

    category = "incomplete_profile"
    status = 422

    def __init__(self, profile_id: str, missing: List[str]):
        super().__init__(
            f"Profile {profile_id} is incomplete; missing: {', '.join(missing)}"
        )
        self.profile_id = profile_id
        self.missing = list(missing)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["error"]["missing_fields"] = list(self.missing)
        return payload


class UpstreamFetchError(MatchingError):
    category = "upstream_failure"
    status = 500

    def __init__(self, what: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to fetch {what}")
        self.what = what
        self.cause = cause


class StoreError(Exception):
    """Raised by the data store when a read or write fails."""
    pass


class RequestLimitError(Exception):
    """Raised when a user exceeds the daily connection request limit."""

    def __init__(self, count: int, limit: int):
        super().__init__(
            f"Daily connection request limit reached ({count}/{limit}). Please try again tomorrow."
        )
        self.count = count
        self.limit = limit
