"""
Unit tests for activity_engine/processors/normalizer.py
Tests timestamp parsing, record normalization, and batch warnings.
"""
import pytest
from datetime import date, datetime

from activity_engine.exceptions import MalformedRecord, UnknownCategory
from activity_engine.models import EventCategory
from activity_engine.processors.normalizer import (
    merge_request_commit_ids, normalize_events,
    normalize_record, parse_timestamp
)
from tests.fixtures.mock_data import (
    COMMIT_BAD_TIMESTAMP, COMMIT_COMMITTED_DATE_ONLY, COMMIT_NO_TIMESTAMP,
    MERGE_REQUEST_UNKNOWN_CATEGORY, MERGE_REQUEST_WITH_COMMITS, utc
)


# ==========================================================================
# TEST parse_timestamp
# ==========================================================================

class TestParseTimestamp:
    """Test parse_timestamp function."""

    def test_parse_gitlab_iso_string(self):
        """Should parse GitLab's millisecond Z timestamps."""
        assert parse_timestamp("2020-09-01T14:00:00.000Z") == utc(2020, 9, 1, 14)

    def test_parse_offset_string(self):
        assert parse_timestamp("2020-09-07T08:30:00+02:00") == utc(2020, 9, 7, 6, 30)

    def test_parse_naive_datetime_as_utc(self):
        assert parse_timestamp(datetime(2020, 9, 5, 10)) == utc(2020, 9, 5, 10)

    def test_parse_date(self):
        assert parse_timestamp(date(2020, 9, 5)) == utc(2020, 9, 5)

    def test_parse_epoch_seconds(self):
        assert parse_timestamp(1599264000) == utc(2020, 9, 5)

    @pytest.mark.parametrize("value", [
        None, "", "not a date", True, {"at": 1}, ["2020-09-05"],
        float("inf"), float("-inf"), float("nan"), 10 ** 20
    ])
    def test_unusable_values_return_none(self, value):
        """Should return None instead of raising."""
        assert parse_timestamp(value) is None


# ==========================================================================
# TEST normalize_record
# ==========================================================================

class TestNormalizeRecord:
    """Test normalize_record function."""

    def test_commit_record(self, raw_commits):
        event = normalize_record(raw_commits[0], EventCategory.COMMIT, "42", 0)

        assert event.id == "a1b2c3d4e5"
        assert event.category is EventCategory.COMMIT
        assert event.timestamp == utc(2020, 9, 5)
        assert event.project_id == "42"

    def test_merge_request_uses_iid(self, raw_merge_requests):
        """Should prefer iid over the global id for merge requests."""
        event = normalize_record(raw_merge_requests[0], EventCategory.MERGE_REQUEST, 42, 0)

        assert event.id == "12"
        assert event.project_id == "42"

    def test_timestamp_field_fallback(self):
        """Should fall back to committed_date when created_at is missing."""
        event = normalize_record(COMMIT_COMMITTED_DATE_ONLY, EventCategory.COMMIT, "42", 0)
        assert event.timestamp == utc(2020, 9, 7, 6, 30)

    def test_merge_request_falls_back_to_merged_at(self):
        raw = {"iid": 1, "created_at": None, "merged_at": "2020-09-12T00:00:00Z"}
        event = normalize_record(raw, EventCategory.MERGE_REQUEST, "42", 0)
        assert event.timestamp == utc(2020, 9, 12)

    def test_missing_id_uses_position(self):
        event = normalize_record({"created_at": "2020-09-05"}, EventCategory.COMMIT, "42", 7)
        assert event.id == "commit-7"

    def test_explicit_category_overrides_source(self):
        raw = {"iid": 3, "category": "MR", "created_at": "2020-09-05"}
        event = normalize_record(raw, EventCategory.COMMIT, "42", 0)
        assert event.category is EventCategory.MERGE_REQUEST

    def test_missing_timestamp_raises(self):
        with pytest.raises(MalformedRecord, match="no usable timestamp"):
            normalize_record(COMMIT_NO_TIMESTAMP, EventCategory.COMMIT, "42", 0)

    def test_bad_timestamp_raises(self):
        with pytest.raises(MalformedRecord):
            normalize_record(COMMIT_BAD_TIMESTAMP, EventCategory.COMMIT, "42", 0)

    def test_non_mapping_raises(self):
        with pytest.raises(MalformedRecord, match="expected a mapping"):
            normalize_record("a1b2c3", EventCategory.COMMIT, "42", 0)

    def test_unknown_category_raises(self):
        with pytest.raises(UnknownCategory, match="merge_request #2"):
            normalize_record(MERGE_REQUEST_UNKNOWN_CATEGORY, EventCategory.MERGE_REQUEST, "42", 2)


# ==========================================================================
# TEST normalize_events
# ==========================================================================

class TestNormalizeEvents:
    """Test normalize_events function."""

    def test_merges_and_sorts(self, raw_commits, raw_merge_requests):
        """Should produce one ascending sequence across both sources."""
        result = normalize_events(raw_commits, raw_merge_requests, "42")

        assert [event.id for event in result.events] == ["a1b2c3d4e5", "b2c3d4e5f6", "12", "c3d4e5f6a7"]
        timestamps = [event.timestamp for event in result.events]
        assert timestamps == sorted(timestamps)
        assert result.warnings.total == 0

    def test_tie_broken_by_category_then_input_order(self):
        """Commit before merge request at the same instant; input order within a category."""
        commits = [
            {"id": "c1", "created_at": "2020-09-05T10:00:00Z"},
            {"id": "c2", "created_at": "2020-09-05T10:00:00Z"},
        ]
        merge_requests = [
            {"iid": 1, "created_at": "2020-09-05T10:00:00Z"},
            {"iid": 2, "created_at": "2020-09-05T09:00:00Z"},
        ]
        result = normalize_events(commits, merge_requests, "42")

        assert [event.id for event in result.events] == ["2", "c1", "c2", "1"]

    def test_input_order_does_not_change_event_set(self, raw_commits, raw_merge_requests):
        forward = normalize_events(raw_commits, raw_merge_requests, "42")
        backward = normalize_events(list(reversed(raw_commits)), raw_merge_requests, "42")

        assert {e.id for e in forward.events} == {e.id for e in backward.events}
        assert [e.timestamp for e in forward.events] == [e.timestamp for e in backward.events]

    def test_malformed_records_skipped_and_counted(self, raw_commits, raw_merge_requests):
        """Should skip bad records without failing the batch."""
        commits = raw_commits + [COMMIT_NO_TIMESTAMP, COMMIT_BAD_TIMESTAMP, None]
        result = normalize_events(commits, raw_merge_requests, "42")

        assert len(result.events) == 4
        assert result.warnings.malformed_records == 3
        assert result.warnings.unknown_category_records == 0
        assert len(result.warnings.messages) == 3

    def test_unknown_category_skipped_and_counted(self, raw_commits, raw_merge_requests):
        result = normalize_events(raw_commits, raw_merge_requests + [MERGE_REQUEST_UNKNOWN_CATEGORY], "42")

        assert len(result.events) == 4
        assert result.warnings.unknown_category_records == 1
        assert "issue" in result.warnings.messages[0]

    def test_skips_are_logged(self, caplog):
        with caplog.at_level("WARNING"):
            normalize_events([COMMIT_NO_TIMESTAMP], [], "42")
        assert "Skipping malformed record" in caplog.text

    def test_empty_inputs(self):
        result = normalize_events(None, [], "42")
        assert result.events == ()
        assert result.warnings.total == 0

    def test_accepts_generators(self, raw_commits):
        result = normalize_events((commit for commit in raw_commits), iter([]), "42")
        assert len(result.events) == 3

    def test_inputs_not_mutated(self, raw_commits, raw_merge_requests):
        before = [dict(commit) for commit in raw_commits]
        normalize_events(raw_commits, raw_merge_requests, "42")
        assert raw_commits == before


# ==========================================================================
# TEST merge request commit exclusion
# ==========================================================================

class TestMergeRequestCommitExclusion:
    """Test orphan-commit mode."""

    def test_collects_ids_and_shas(self):
        ids = merge_request_commit_ids([MERGE_REQUEST_WITH_COMMITS, "junk", {"iid": 9}])
        assert ids == {"c3d4e5f6a7", "a1b2c3d4e5"}

    def test_exclusion_off_by_default(self, raw_commits):
        result = normalize_events(raw_commits, [MERGE_REQUEST_WITH_COMMITS], "42")

        assert len(result.events) == 4
        assert result.excluded_merge_request_commits == 0

    def test_exclusion_drops_merge_request_commits(self, raw_commits):
        """Should keep only commits that belong to no merge request."""
        result = normalize_events(
            raw_commits, [MERGE_REQUEST_WITH_COMMITS], "42",
            exclude_merge_request_commits=True
        )

        commit_ids = [e.id for e in result.events if e.category is EventCategory.COMMIT]
        assert commit_ids == ["b2c3d4e5f6"]
        assert result.excluded_merge_request_commits == 2
        assert result.warnings.total == 0

    def test_exclusion_matches_short_id(self):
        commits = [{"id": "full-sha-1", "short_id": "short1", "created_at": "2020-09-05"}]
        merge_requests = [{"iid": 1, "created_at": "2020-09-06", "commits": ["short1"]}]
        result = normalize_events(commits, merge_requests, "42", exclude_merge_request_commits=True)

        assert [e.category for e in result.events] == [EventCategory.MERGE_REQUEST]
