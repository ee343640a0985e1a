"""
Profile store.

Defines the read interface the matching service needs from a data store and
a SQLite implementation of it. The store also records relationship status
changes (suggested, requested, declined, connected) that feed the exclusion
sets of later requests.
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .database import MatchRecord, ProfileRecord, get_engine, init_database
from .errors import RequestLimitError, StoreError
from .logger import get_logger
from .models import DeclineRecord, MatchStatus, Profile, Role, ScoredMatch, to_naive_utc, utc_now

logger = get_logger()

DAILY_REQUEST_LIMIT = 5
ACTIVE_STATUSES = (MatchStatus.REQUESTED.value, MatchStatus.CONNECTED.value)


class ProfileStore(Protocol):
    """Reads the matching service performs against the data store."""

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        ...

    def get_candidate_pool(
        self, roles: Sequence[Role], recovery_program: Optional[str] = None
    ) -> List[Profile]:
        ...

    def get_existing_relationships(self, requester_id: str) -> List[str]:
        ...

    def get_recent_declines(self, requester_id: str, since: datetime) -> List[DeclineRecord]:
        ...


def _to_profile(row: ProfileRecord) -> Profile:
    return Profile(
        id=row.id,
        role=Role(row.role),
        recovery_program=row.recovery_program,
        city=row.city,
        state=row.state,
        latitude=row.latitude,
        longitude=row.longitude,
        sobriety_start_date=row.sobriety_start_date,
        approach=row.approach or "",
        availability=frozenset(row.availability or []),
        name=row.name,
        bio=row.bio,
        preferences=dict(row.preferences or {}),
        deleted_at=row.deleted_at,
    )


def _match_to_dict(row: MatchRecord) -> Dict[str, object]:
    return {
        "user_id": row.user_id,
        "candidate_id": row.candidate_id,
        "status": row.status,
        "compatibility_score": row.compatibility_score,
        "requested_at": row.requested_at,
        "declined_at": row.declined_at,
        "connected_at": row.connected_at,
    }


class SQLProfileStore:
    """SQLite-backed ProfileStore."""

    def __init__(self, db_path: Path, daily_request_limit: int = DAILY_REQUEST_LIMIT):
        self.db_path = Path(db_path)
        self.daily_request_limit = daily_request_limit
        init_database(self.db_path)
        self._engine = get_engine(self.db_path)
        self._sessionmaker = sessionmaker(bind=self._engine, expire_on_commit=False)

    def close(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Store operation failed", operation=operation, error=str(e))
            raise StoreError(f"{operation} failed: {e}") from e
        finally:
            session.close()

    # Reads

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with self._session("get_profile") as session:
            row = session.get(ProfileRecord, profile_id)
            if row is None or row.deleted_at is not None:
                return None
            return _to_profile(row)

    def get_candidate_pool(
        self,
        roles: Sequence[Role],
        recovery_program: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Profile]:
        with self._session("get_candidate_pool") as session:
            query = session.query(ProfileRecord).filter(
                ProfileRecord.role.in_([Role(r).value for r in roles]),
                ProfileRecord.deleted_at.is_(None),
            )
            if recovery_program is not None:
                query = query.filter(ProfileRecord.recovery_program == recovery_program)
            query = query.order_by(ProfileRecord.created_at, ProfileRecord.id)
            if limit is not None:
                query = query.limit(limit)
            return [_to_profile(row) for row in query.all()]

    def get_existing_relationships(self, requester_id: str) -> List[str]:
        """Ids with a pending or active relationship to the requester, either direction."""
        with self._session("get_existing_relationships") as session:
            rows = (
                session.query(MatchRecord)
                .filter(
                    MatchRecord.status.in_(ACTIVE_STATUSES),
                    or_(MatchRecord.user_id == requester_id, MatchRecord.candidate_id == requester_id),
                )
                .all()
            )
            ids = []
            for row in rows:
                other = row.candidate_id if row.user_id == requester_id else row.user_id
                if other not in ids:
                    ids.append(other)
            return ids

    def get_recent_declines(self, requester_id: str, since: datetime) -> List[DeclineRecord]:
        with self._session("get_recent_declines") as session:
            rows = (
                session.query(MatchRecord)
                .filter(
                    and_(
                        MatchRecord.user_id == requester_id,
                        MatchRecord.status == MatchStatus.DECLINED.value,
                        MatchRecord.declined_at > to_naive_utc(since),
                    )
                )
                .all()
            )
            return [DeclineRecord(candidate_id=r.candidate_id, declined_at=r.declined_at) for r in rows]

    def count_requests_since(self, user_id: str, since: datetime) -> int:
        with self._session("count_requests_since") as session:
            return (
                session.query(MatchRecord)
                .filter(
                    MatchRecord.user_id == user_id,
                    MatchRecord.status == MatchStatus.REQUESTED.value,
                    MatchRecord.requested_at >= to_naive_utc(since),
                )
                .count()
            )

    # Writes

    def upsert_profile(self, profile: Profile) -> str:
        """Insert or update a profile. Returns "new", "updated" or "no-change"."""
        values = {
            "name": profile.name,
            "role": profile.role.value,
            "recovery_program": profile.recovery_program,
            "sobriety_start_date": profile.sobriety_start_date,
            "city": profile.city,
            "state": profile.state,
            "latitude": profile.latitude,
            "longitude": profile.longitude,
            "approach": profile.approach,
            "availability": sorted(profile.availability),
            "bio": profile.bio,
            "preferences": dict(profile.preferences),
            "deleted_at": to_naive_utc(profile.deleted_at),
        }
        with self._session("upsert_profile") as session:
            row = session.get(ProfileRecord, profile.id)
            if row is None:
                session.add(ProfileRecord(id=profile.id, **values))
                return "new"
            changed = {k: v for k, v in values.items() if getattr(row, k) != v}
            if not changed:
                return "no-change"
            for key, value in changed.items():
                setattr(row, key, value)
            return "updated"

    def import_profiles(self, profiles: Iterable[Profile]) -> Dict[str, int]:
        counts = {"new": 0, "updated": 0, "no-change": 0}
        for profile in profiles:
            counts[self.upsert_profile(profile)] += 1
        logger.info("Imported profiles", **counts)
        return counts

    def record_match_status(
        self,
        user_id: str,
        candidate_id: str,
        status: MatchStatus,
        compatibility_score: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, object]:
        """
        Set the status of the user -> candidate relationship, stamping the
        timestamp that goes with it.
        Timestamps are stored as naive UTC, and the daily limit counts from
        midnight UTC.

        Raises:
            RequestLimitError: If the user already sent the daily maximum of
                connection requests
            StoreError: On database failure
        """
        status = MatchStatus(status)
        now = to_naive_utc(now or utc_now())

        if status == MatchStatus.REQUESTED:
            start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
            sent = self.count_requests_since(user_id, start_of_day)
            if sent >= self.daily_request_limit:
                logger.warning("Daily request limit reached", user_id=user_id, count=sent)
                raise RequestLimitError(sent, self.daily_request_limit)

        with self._session("record_match_status") as session:
            row = (
                session.query(MatchRecord)
                .filter_by(user_id=user_id, candidate_id=candidate_id)
                .one_or_none()
            )
            if row is None:
                row = MatchRecord(user_id=user_id, candidate_id=candidate_id, status=status.value)
                session.add(row)
            row.status = status.value
            if compatibility_score is not None:
                row.compatibility_score = compatibility_score
            if status == MatchStatus.REQUESTED:
                row.requested_at = now
            elif status == MatchStatus.DECLINED:
                row.declined_at = now
            elif status == MatchStatus.CONNECTED:
                row.connected_at = now
            session.flush()
            result = _match_to_dict(row)

        logger.info("Recorded match status", user_id=user_id, candidate_id=candidate_id, status=status.value)
        return result

    def save_suggestions(self, user_id: str, matches: Iterable[ScoredMatch]) -> int:
        """Persist scored matches as suggestions without touching decided rows."""
        saved = 0
        with self._session("save_suggestions") as session:
            for match in matches:
                row = (
                    session.query(MatchRecord)
                    .filter_by(user_id=user_id, candidate_id=match.candidate_id)
                    .one_or_none()
                )
                if row is None:
                    session.add(
                        MatchRecord(
                            user_id=user_id,
                            candidate_id=match.candidate_id,
                            status=MatchStatus.SUGGESTED.value,
                            compatibility_score=match.compatibility_score,
                        )
                    )
                    saved += 1
                elif row.status == MatchStatus.SUGGESTED.value:
                    row.compatibility_score = match.compatibility_score
                    saved += 1
        return saved
