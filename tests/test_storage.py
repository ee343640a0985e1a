"""
Tests for the SQLite profile store.
"""

from dataclasses import replace
from datetime import timedelta, timezone

import pytest

from conftest import NOW, TODAY, make_profile
from sponsormatch.errors import RequestLimitError
from sponsormatch.models import MatchStatus, Role, ScoredMatch, to_utc
from sponsormatch.service import MatchingService
from sponsormatch.storage import SQLProfileStore


@pytest.fixture
def store(tmp_path):
    s = SQLProfileStore(tmp_path / "store.db")
    yield s
    s.close()


@pytest.fixture
def loaded_store(store, sponsee, candidate_pool):
    store.import_profiles([sponsee] + candidate_pool)
    return store


class TestProfiles:

    def test_upsert_reports_status(self, store):
        """Upsert reports new, no-change and updated."""
        profile = make_profile("p1", sobriety_start_date=TODAY)
        assert store.upsert_profile(profile) == "new"
        assert store.upsert_profile(profile) == "no-change"
        assert store.upsert_profile(replace(profile, city="Tacoma")) == "updated"
        assert store.get_profile("p1").city == "Tacoma"

    def test_profile_round_trip(self, store, sponsee):
        """A stored profile reads back equal."""
        store.upsert_profile(sponsee)
        loaded = store.get_profile("sponsee-1")
        assert loaded == sponsee
        assert loaded.availability == frozenset({"Weekday Evenings", "Weekend Mornings"})

    def test_missing_profile(self, store):
        """Unknown ids return None."""
        assert store.get_profile("nobody") is None

    def test_soft_deleted_profile_is_hidden(self, store):
        """Soft-deleted profiles are invisible."""
        store.upsert_profile(make_profile("gone", deleted_at=NOW))
        assert store.get_profile("gone") is None
        assert store.get_candidate_pool([Role.SPONSOR]) == []

    def test_import_counts(self, store, sponsee):
        """import_profiles tallies upsert results."""
        assert store.import_profiles([sponsee]) == {"new": 1, "updated": 0, "no-change": 0}
        assert store.import_profiles([sponsee]) == {"new": 0, "updated": 0, "no-change": 1}


class TestCandidatePool:

    def test_filters_by_role(self, loaded_store):
        """Pool is filtered by role."""
        pool = loaded_store.get_candidate_pool([Role.SPONSOR])
        assert {p.id for p in pool} == {"sponsor-other", "sponsor-state", "sponsor-close"}
        assert [p.id for p in loaded_store.get_candidate_pool([Role.SPONSEE])] == ["sponsee-1"]

    def test_filters_by_program(self, loaded_store):
        """Pool can be narrowed to one program."""
        pool = loaded_store.get_candidate_pool([Role.SPONSOR], recovery_program="NA")
        assert [p.id for p in pool] == ["sponsor-other"]

    def test_limit(self, loaded_store):
        """Pool size can be capped."""
        assert len(loaded_store.get_candidate_pool([Role.SPONSOR], limit=2)) == 2


class TestRelationships:

    def test_requested_and_connected_exclude(self, store):
        """Requested and connected rows count as relationships."""
        store.record_match_status("me", "a", MatchStatus.REQUESTED, now=NOW)
        store.record_match_status("me", "b", MatchStatus.CONNECTED, now=NOW)
        store.record_match_status("me", "c", MatchStatus.DECLINED, now=NOW)
        assert sorted(store.get_existing_relationships("me")) == ["a", "b"]

    def test_either_direction(self, store):
        """Relationships count whoever started them."""
        store.record_match_status("other", "me", MatchStatus.CONNECTED, now=NOW)
        assert store.get_existing_relationships("me") == ["other"]

    def test_recent_declines(self, store):
        """Only declines after the cutoff are returned."""
        store.record_match_status("me", "old", MatchStatus.DECLINED, now=NOW - timedelta(days=40))
        store.record_match_status("me", "new", MatchStatus.DECLINED, now=NOW - timedelta(days=3))
        declines = store.get_recent_declines("me", since=NOW - timedelta(days=30))
        assert [d.candidate_id for d in declines] == ["new"]
        assert declines[0].declined_at == to_utc(NOW - timedelta(days=3))

    def test_aware_timestamps_stored_as_utc(self, store):
        """Aware times are written as UTC and come back as aware UTC declines."""
        pacific = timezone(timedelta(hours=-8))
        declined_at = NOW.replace(tzinfo=pacific)
        row = store.record_match_status("me", "a", MatchStatus.DECLINED, now=declined_at)
        assert row["declined_at"] == NOW + timedelta(hours=8)

        declines = store.get_recent_declines("me", since=declined_at - timedelta(minutes=1))
        assert [d.declined_at for d in declines] == [declined_at.astimezone(timezone.utc)]

    def test_status_stamps_timestamp(self, store):
        """Each status stamps its own timestamp."""
        row = store.record_match_status("me", "a", MatchStatus.REQUESTED, compatibility_score=81, now=NOW)
        assert row["status"] == "requested"
        assert row["requested_at"] == NOW
        assert row["compatibility_score"] == 81

        row = store.record_match_status("me", "a", MatchStatus.CONNECTED, now=NOW + timedelta(days=1))
        assert row["connected_at"] == NOW + timedelta(days=1)
        assert row["compatibility_score"] == 81


class TestDailyRequestLimit:

    def test_sixth_request_is_rejected(self, store):
        """The sixth request in a day raises."""
        for i in range(5):
            store.record_match_status("me", f"c{i}", MatchStatus.REQUESTED, now=NOW)
        with pytest.raises(RequestLimitError) as exc:
            store.record_match_status("me", "c5", MatchStatus.REQUESTED, now=NOW)
        assert exc.value.count == 5
        assert exc.value.limit == 5

    def test_limit_resets_next_day(self, store):
        """The limit resets the next day."""
        for i in range(5):
            store.record_match_status("me", f"c{i}", MatchStatus.REQUESTED, now=NOW)
        store.record_match_status("me", "c5", MatchStatus.REQUESTED, now=NOW + timedelta(days=1))

    def test_declines_do_not_count(self, store):
        """Declines don't count toward the request limit."""
        for i in range(6):
            store.record_match_status("me", f"c{i}", MatchStatus.DECLINED, now=NOW)


class TestSuggestions:

    def test_saves_new_suggestions(self, store):
        """New matches are saved as suggestions."""
        matches = [ScoredMatch("a", 80, {}, {}), ScoredMatch("b", 60, {}, {})]
        assert store.save_suggestions("me", matches) == 2

    def test_decided_rows_untouched(self, store):
        """Suggestions never overwrite a decision."""
        store.record_match_status("me", "a", MatchStatus.DECLINED, now=NOW)
        saved = store.save_suggestions("me", [ScoredMatch("a", 99, {}, {})])
        assert saved == 0
        assert [d.candidate_id for d in store.get_recent_declines("me", NOW - timedelta(days=1))] == ["a"]


class TestServiceIntegration:
    """End to end through MatchingService against a real database."""

    def test_ranked_matches_from_database(self, loaded_store, quiet_logger):
        """The service ranks candidates read from SQLite."""
        service = MatchingService(loaded_store, clock=lambda: NOW, logger=quiet_logger)
        status, payload = service.handle_request({"requester_id": "sponsee-1"}, "Bearer t")
        assert status == 200
        assert [m["candidate_id"] for m in payload["matches"]] == [
            "sponsor-close",
            "sponsor-state",
            "sponsor-other",
        ]

    def test_decline_then_cooldown_expiry(self, loaded_store, quiet_logger):
        """A stored decline hides a candidate until it expires."""
        loaded_store.record_match_status(
            "sponsee-1", "sponsor-close", MatchStatus.DECLINED, now=NOW - timedelta(days=5)
        )
        service = MatchingService(loaded_store, clock=lambda: NOW, logger=quiet_logger)
        assert "sponsor-close" not in [m.candidate_id for m in service.find_matches("sponsee-1")]

        later = MatchingService(loaded_store, clock=lambda: NOW + timedelta(days=25), logger=quiet_logger)
        assert "sponsor-close" in [m.candidate_id for m in later.find_matches("sponsee-1")]

    def test_connection_excludes_for_both_sides(self, loaded_store, quiet_logger):
        """A connection started by the candidate still excludes."""
        loaded_store.record_match_status("sponsor-state", "sponsee-1", MatchStatus.CONNECTED, now=NOW)
        service = MatchingService(loaded_store, clock=lambda: NOW, logger=quiet_logger)
        assert "sponsor-state" not in [m.candidate_id for m in service.find_matches("sponsee-1")]
