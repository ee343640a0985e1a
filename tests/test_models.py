"""
Tests for domain records.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from sponsormatch.models import DeclineRecord, ExclusionSet, Profile, Role, ScoredMatch, to_naive_utc, to_utc


class TestProfileFromDict:

    def test_flat_fields(self):
        """Flat keys parse into typed fields."""
        profile = Profile.from_dict(
            {
                "id": "p1",
                "role": "sponsor",
                "recovery_program": "AA",
                "city": "Seattle",
                "state": "WA",
                "latitude": "47.6062",
                "longitude": -122.3321,
                "sobriety_start_date": "2019-04-02",
                "availability": ["Flexible", "Flexible"],
            }
        )
        assert profile.role is Role.SPONSOR
        assert profile.latitude == 47.6062
        assert profile.sobriety_start_date == date(2019, 4, 2)
        assert profile.availability == frozenset({"Flexible"})
        assert profile.has_coordinates

    def test_nested_location(self):
        """Location may arrive as one nested object."""
        profile = Profile.from_dict(
            {
                "id": "p1",
                "role": "sponsee",
                "location": {"city": "Tacoma", "state": "WA", "latitude": 47.25, "longitude": -122.44},
            }
        )
        assert (profile.city, profile.state) == ("Tacoma", "WA")
        assert profile.longitude == -122.44

    def test_single_availability_label(self):
        """A single availability string becomes a set."""
        profile = Profile.from_dict({"id": "p1", "role": "both", "availability": "Daily"})
        assert profile.availability == frozenset({"Daily"})

    def test_datetime_start_date_and_deleted_at(self):
        """Timestamps parse; start date keeps only the date."""
        profile = Profile.from_dict(
            {
                "id": "p1",
                "role": "sponsor",
                "sobriety_start_date": "2020-01-01T08:30:00",
                "deleted_at": "2026-01-01T00:00:00",
            }
        )
        assert profile.sobriety_start_date == date(2020, 1, 1)
        assert profile.is_deleted
        assert profile.deleted_at == datetime(2026, 1, 1)

    def test_defaults(self):
        """Optional fields default to empty values."""
        profile = Profile.from_dict({"id": "p1", "role": "sponsor"})
        assert profile.approach == ""
        assert profile.availability == frozenset()
        assert not profile.has_coordinates
        assert not profile.is_deleted

    def test_trailing_z_deleted_at(self):
        """A trailing Z parses as UTC on every supported Python."""
        profile = Profile.from_dict({"id": "p1", "role": "sponsor", "deleted_at": "2026-01-01T00:00:00Z"})
        assert profile.deleted_at == datetime(2026, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("data", [{"role": "sponsor"}, {"id": "p1"}, {"id": "p1", "role": "guide"}])
    def test_invalid(self, data):
        """Missing id or role, or an unknown role, raises."""
        with pytest.raises(ValueError):
            Profile.from_dict(data)

    def test_to_dict_round_trip(self):
        """to_dict reproduces the input."""
        data = {
            "id": "p1",
            "role": "sponsee",
            "recovery_program": "NA",
            "city": "Spokane",
            "state": "WA",
            "latitude": 47.6588,
            "longitude": -117.426,
            "sobriety_start_date": "2024-11-30",
            "approach": "Meetings first.",
            "availability": ["Weekend Mornings", "Flexible"],
            "name": "Jo",
            "bio": None,
            "preferences": {"language": "en"},
            "deleted_at": None,
        }
        assert Profile.from_dict(data).to_dict() == dict(data, availability=["Flexible", "Weekend Mornings"])


def test_exclusion_set_build():
    """build de-duplicates permanent ids."""
    exclusions = ExclusionSet.build(permanent=["a", "a", "b"])
    assert exclusions.permanent == frozenset({"a", "b"})
    assert exclusions.declines == ()


def test_scored_match_to_dict():
    """to_dict exposes both breakdowns."""
    match = ScoredMatch("c1", 72, {"location": 100}, {"location": 20})
    assert match.to_dict() == {
        "candidate_id": "c1",
        "compatibility_score": 72,
        "score_breakdown": {"location": 100},
        "weighted_breakdown": {"location": 20},
    }


class TestUtcHelpers:

    def test_naive_is_read_as_utc(self):
        """Naive datetimes gain a UTC tzinfo without shifting."""
        assert to_utc(datetime(2026, 1, 1, 9)) == datetime(2026, 1, 1, 9, tzinfo=timezone.utc)

    def test_aware_is_converted(self):
        """Aware datetimes are converted to the same instant in UTC."""
        eastern = timezone(timedelta(hours=-5))
        assert to_naive_utc(datetime(2026, 1, 1, 9, tzinfo=eastern)) == datetime(2026, 1, 1, 14)

    def test_none_passes_through(self):
        """None stays None."""
        assert to_utc(None) is None
        assert to_naive_utc(None) is None

    def test_decline_record_holds_aware_utc(self):
        """Naive and aware declines for the same instant compare equal."""
        naive = DeclineRecord("c1", datetime(2026, 1, 1, 14))
        aware = DeclineRecord("c1", datetime(2026, 1, 1, 9, tzinfo=timezone(timedelta(hours=-5))))
        assert naive == aware
