"""
Domain records for matching.

Profiles, decline records and scored matches are plain immutable records.
The scoring core only reads them; persistence lives in storage.py.
"""

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Optional


class Role(str, enum.Enum):
    SPONSOR = "sponsor"
    SPONSEE = "sponsee"
    BOTH = "both"


class MatchStatus(str, enum.Enum):
    SUGGESTED = "suggested"
    REQUESTED = "requested"
    DECLINED = "declined"
    CONNECTED = "connected"


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC datetime. Naive values are taken to already be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite columns hold naive UTC.
    value = to_utc(value)
    return value.replace(tzinfo=None) if value is not None else None


def parse_iso_datetime(value: str) -> datetime:
    text = str(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return parse_iso_datetime(value)


def _parse_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True)
class Profile:
    """A participant record as supplied by the data store."""

    id: str
    role: Role
    recovery_program: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    sobriety_start_date: Optional[date] = None
    approach: str = ""
    availability: FrozenSet[str] = field(default_factory=frozenset)
    name: Optional[str] = None
    bio: Optional[str] = None
    preferences: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    deleted_at: Optional[datetime] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        """
        Build a Profile from a loosely-typed mapping (JSON, DB row dict).

        Dates may be ISO strings. A nested ``location`` mapping with
        city/state/latitude/longitude keys is accepted as well as flat keys.

        Raises:
            ValueError: If id or role is missing or role is unknown
        """
        if not data.get("id"):
            raise ValueError("Profile is missing 'id'")
        if not data.get("role"):
            raise ValueError("Profile is missing 'role'")

        location = data.get("location") or {}
        availability = data.get("availability") or []
        if isinstance(availability, str):
            availability = [availability]

        return cls(
            id=str(data["id"]),
            role=Role(data["role"]),
            recovery_program=data.get("recovery_program"),
            city=data.get("city", location.get("city")),
            state=data.get("state", location.get("state")),
            latitude=_parse_float(data.get("latitude", location.get("latitude"))),
            longitude=_parse_float(data.get("longitude", location.get("longitude"))),
            sobriety_start_date=_parse_date(data.get("sobriety_start_date")),
            approach=data.get("approach") or "",
            availability=frozenset(availability),
            name=data.get("name"),
            bio=data.get("bio"),
            preferences=dict(data.get("preferences") or {}),
            deleted_at=_parse_datetime(data.get("deleted_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "recovery_program": self.recovery_program,
            "city": self.city,
            "state": self.state,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "sobriety_start_date": (
                self.sobriety_start_date.isoformat() if self.sobriety_start_date else None
            ),
            "approach": self.approach,
            "availability": sorted(self.availability),
            "name": self.name,
            "bio": self.bio,
            "preferences": dict(self.preferences),
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }


@dataclass(frozen=True)
class DeclineRecord:
    candidate_id: str
    declined_at: datetime

    def __post_init__(self):
        object.__setattr__(self, "declined_at", to_utc(self.declined_at))


@dataclass(frozen=True)
class ExclusionSet:
    """Permanent and temporary exclusions for one requester."""

    permanent: FrozenSet[str] = frozenset()
    declines: tuple = ()

    @classmethod
    def build(
        cls,
        permanent: Iterable[str] = (),
        declines: Iterable[DeclineRecord] = (),
    ) -> "ExclusionSet":
        return cls(permanent=frozenset(permanent), declines=tuple(declines))


@dataclass(frozen=True)
class ScoredMatch:
    candidate_id: str
    compatibility_score: int
    score_breakdown: Dict[str, int] = field(hash=False)
    weighted_breakdown: Dict[str, int] = field(hash=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate_id": self.candidate_id,
            "compatibility_score": self.compatibility_score,
            "score_breakdown": dict(self.score_breakdown),
            "weighted_breakdown": dict(self.weighted_breakdown),
        }
