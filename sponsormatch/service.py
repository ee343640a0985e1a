"""
Matching service.

Runs one matching request end to end: authorize, load the requester, fetch
the candidate pool and exclusion sets, filter, score and rank. Holds no state
between requests.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import MatchingConfig
from .eligibility import complementary_roles, cooldown_cutoff, filter_candidates
from .errors import (
    BadRequestError,
    IncompleteProfileError,
    MatchingError,
    ProfileNotFoundError,
    UnauthorizedError,
    UpstreamFetchError,
)
from .logger import StructuredLogger, get_logger
from .models import ExclusionSet, Profile, ScoredMatch, utc_now
from .ranking import rank_matches
from .schema import missing_matching_fields, validate_match_request
from .scoring import score_candidate
from .storage import ProfileStore

BEARER_PREFIX = "bearer "


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class MatchingService:
    """Scores and ranks candidates for a requester."""

    def __init__(
        self,
        store: ProfileStore,
        config: Optional[MatchingConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        logger: Optional[StructuredLogger] = None,
    ):
        self.store = store
        self.config = config or MatchingConfig()
        self.clock = clock
        self.logger = logger or get_logger()

    def authorize(self, authorization: Optional[str]) -> str:
        token = parse_bearer_token(authorization)
        if token is None:
            raise UnauthorizedError("Missing or malformed authorization header")
        if self.config.api_tokens and token not in self.config.api_tokens:
            raise UnauthorizedError("Invalid credentials")
        return token

    def load_requester(self, requester_id: str) -> Profile:
        requester = self._fetch("requester profile", self.store.get_profile, requester_id)
        if requester is None:
            raise ProfileNotFoundError(requester_id)
        missing = missing_matching_fields(requester)
        if missing:
            raise IncompleteProfileError(requester_id, missing)
        return requester

    def fetch_pool_and_exclusions(
        self, requester: Profile, now: datetime
    ) -> Tuple[List[Profile], ExclusionSet]:
        """Fetch the candidate pool and both exclusion sets, concurrently if configured."""
        roles = complementary_roles(requester.role)
        program = requester.recovery_program if self.config.restrict_to_program else None
        since = cooldown_cutoff(now, self.config.cooldown_days)

        calls = [
            ("candidate pool", self.store.get_candidate_pool, (roles, program)),
            ("existing relationships", self.store.get_existing_relationships, (requester.id,)),
            ("recent declines", self.store.get_recent_declines, (requester.id, since)),
        ]
        if self.config.parallel_fetch:
            with ThreadPoolExecutor(max_workers=len(calls)) as pool:
                futures = [pool.submit(self._fetch, what, fn, *args) for what, fn, args in calls]
                candidates, relationships, declines = [f.result() for f in futures]
        else:
            candidates, relationships, declines = [self._fetch(what, fn, *args) for what, fn, args in calls]

        return list(candidates or []), ExclusionSet.build(relationships or (), declines or ())

    def find_matches(self, requester_id: str, limit: Optional[int] = None) -> List[ScoredMatch]:
        """
        Compute ranked matches for a requester.

        Args:
            requester_id: Profile to match for
            limit: Result cap (default: config.result_limit)

        Returns:
            Scored matches, best first; empty when nobody is eligible

        Raises:
            ProfileNotFoundError: Requester does not exist
            IncompleteProfileError: Requester lacks fields needed for matching
            UpstreamFetchError: The data store could not be read
            ValueError: limit is less than 1
        """
        if not requester_id:
            raise BadRequestError("Missing required field: requester_id")
        now = self.clock()
        requester = self.load_requester(requester_id)
        candidates, exclusions = self.fetch_pool_and_exclusions(requester, now)

        eligible = filter_candidates(
            requester, candidates, exclusions, now=now, cooldown_days=self.config.cooldown_days
        )
        self.logger.record_candidates_excluded(len(candidates) - len(eligible))

        scored = [score_candidate(requester, c, self.config, now) for c in eligible]
        self.logger.record_candidates_scored(len(scored))

        return rank_matches(scored, limit if limit is not None else self.config.result_limit)

    def handle_request(
        self, body: Any, authorization: Optional[str] = None
    ) -> Tuple[int, Dict[str, Any]]:
        """
        Transport-agnostic request handler.

        Returns:
            (status_code, payload). Success payload has ``matches`` and
            ``execution_time_ms``; failures have an ``error`` object with
            ``category`` and ``message``.
        """
        started = time.perf_counter()
        self.logger.record_request()
        try:
            self.authorize(authorization)
            errors = validate_match_request(body)
            if errors:
                raise BadRequestError("; ".join(errors))
            requester_id = body.get("requester_id", body.get("user_id"))
            matches = self.find_matches(requester_id, body.get("limit"))
        except MatchingError as e:
            self.logger.record_request_failure(e.category)
            self.logger.warning("Matching request rejected", category=e.category, reason=e.message)
            return e.status, e.to_dict()
        except Exception as e:
            self.logger.record_request_failure("internal_error")
            self.logger.error("Matching request failed", error_type=type(e).__name__, error=str(e))
            return 500, {"error": {"category": "internal_error", "message": "Internal server error"}}

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        self.logger.record_request_success(len(matches))
        self.logger.info(
            "Matching request completed",
            requester_id=requester_id,
            matches=len(matches),
            execution_time_ms=elapsed_ms,
        )
        return 200, {
            "matches": [m.to_dict() for m in matches],
            "execution_time_ms": elapsed_ms,
        }

    def _fetch(self, what: str, fn: Callable, *args):
        try:
            return fn(*args)
        except Exception as e:
            self.logger.error(f"Failed to fetch {what}", error_type=type(e).__name__, error=str(e))
            raise UpstreamFetchError(what, e) from e
