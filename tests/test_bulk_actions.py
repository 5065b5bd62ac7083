"""
Tests for bulk moderation actions and their undo history.
"""

from unittest.mock import patch

import pytest

from app.core.exceptions import BulkActionException, NotFoundException, ValidationException
from app.schemas.bulk import BulkAction
from app.schemas.moderation import ModerationStatus
from app.services.bulk_action_service import (
    BulkActionHistory,
    _histories,
    apply_bulk,
    commit_bulk_action,
    find_history,
    get_history,
    load_statuses,
    undo_bulk_action,
    validate_batch,
)


class TestApplyBulk:
    """Test selection of testimonials a bulk action changes."""

    def test_skips_rows_already_in_target_status(self):
        statuses = {"t1": ModerationStatus.pending, "t2": ModerationStatus.approved}

        outcome = apply_bulk(["t1", "t2"], BulkAction.approve, statuses)

        assert outcome.updated_ids == ["t1"]
        assert outcome.history_entry.previous_statuses == {"t1": ModerationStatus.pending}
        assert outcome.history_entry.action == BulkAction.approve
        assert outcome.history_entry.count == 1

    def test_is_idempotent(self):
        statuses = {"t1": ModerationStatus.flagged, "t2": ModerationStatus.pending}
        first = apply_bulk(["t1", "t2"], BulkAction.reject, statuses)

        after = dict(statuses)
        for testimonial_id in first.updated_ids:
            after[testimonial_id] = ModerationStatus.rejected
        second = apply_bulk(["t1", "t2"], BulkAction.reject, after)

        assert first.updated_ids == ["t1", "t2"]
        assert second.updated_ids == []

    def test_unknown_and_repeated_ids_are_skipped(self):
        statuses = {"t1": ModerationStatus.pending}
        outcome = apply_bulk(["t1", "missing", "t1"], "flag", statuses)
        assert outcome.updated_ids == ["t1"]
        assert outcome.history_entry.action == BulkAction.flag

    def test_validate_batch(self):
        validate_batch(["t1"])
        with pytest.raises(ValidationException):
            validate_batch([])
        with pytest.raises(ValidationException):
            validate_batch([f"t{i}" for i in range(101)])


class TestBulkActionHistory:
    """Test the bounded undo buffer."""

    def _entry(self, testimonial_id):
        return apply_bulk(
            [testimonial_id], BulkAction.approve, {testimonial_id: ModerationStatus.pending}
        ).history_entry

    def test_keeps_most_recent_entries(self):
        history = BulkActionHistory(max_size=10)
        entries = [self._entry(f"t{i}") for i in range(11)]
        for entry in entries:
            history.record(entry)

        assert len(history) == 10
        assert history.entries()[0].id == entries[-1].id
        assert entries[0].id not in [e.id for e in history.entries()]
        with pytest.raises(NotFoundException):
            history.get(entries[0].id)

    def test_zero_size_keeps_nothing(self):
        history = BulkActionHistory(max_size=0)
        history.record(self._entry("t1"))
        assert history.max_size == 0
        assert len(history) == 0

    def test_pop_removes_entry(self):
        history = BulkActionHistory(max_size=3)
        entry = self._entry("t1")
        history.record(entry)
        assert history.pop(entry.id) == entry
        assert len(history) == 0


class TestBulkPersistence:
    """Test atomic writes and undo against the database."""

    def test_commit_and_undo(self, db_session, make_project, make_testimonial):
        project = make_project()
        pending = make_testimonial(project, status=ModerationStatus.pending)
        flagged = make_testimonial(project, status=ModerationStatus.flagged)
        approved = make_testimonial(project, status=ModerationStatus.approved)
        ids = [pending.id, flagged.id, approved.id]

        outcome = apply_bulk(ids, BulkAction.approve, load_statuses(db_session, ids))
        assert commit_bulk_action(db_session, outcome) == 2

        db_session.expire_all()
        assert pending.moderation_status == ModerationStatus.approved
        assert pending.is_published is True
        assert flagged.moderation_status == ModerationStatus.approved

        history = BulkActionHistory()
        history.record(outcome.history_entry)
        entry = undo_bulk_action(db_session, history, outcome.history_entry.id)

        db_session.expire_all()
        assert entry.count == 2
        assert pending.moderation_status == ModerationStatus.pending
        assert pending.is_published is False
        assert flagged.moderation_status == ModerationStatus.flagged
        assert approved.moderation_status == ModerationStatus.approved
        assert len(history) == 0

    def test_partial_failure_changes_nothing(self, db_session, make_project, make_testimonial):
        project = make_project()
        testimonial = make_testimonial(project, status=ModerationStatus.pending)

        outcome = apply_bulk(
            [testimonial.id, "deleted-id"],
            BulkAction.reject,
            {testimonial.id: ModerationStatus.pending, "deleted-id": ModerationStatus.pending},
        )
        with pytest.raises(BulkActionException):
            commit_bulk_action(db_session, outcome)

        db_session.expire_all()
        assert testimonial.moderation_status == ModerationStatus.pending

    def test_undo_unknown_entry(self, db_session):
        with pytest.raises(NotFoundException):
            undo_bulk_action(db_session, BulkActionHistory(), "nope")


class TestSessionHistories:
    """Test the per-session undo buffers."""

    @pytest.fixture(autouse=True)
    def clear_histories(self):
        _histories.clear()
        yield
        _histories.clear()

    def test_find_does_not_create(self):
        assert find_history("unknown-session") is None
        assert "unknown-session" not in _histories

    def test_get_creates_and_reuses(self):
        history = get_history("admin-1")
        assert get_history("admin-1") is history
        assert find_history("admin-1") is history

    def test_least_recently_used_session_is_evicted(self):
        with patch("app.services.bulk_action_service.settings.bulk_history_max_sessions", 3):
            first = get_history("s1")
            get_history("s2")
            get_history("s3")
            assert get_history("s1") is first
            get_history("s4")

        assert list(_histories) == ["s3", "s1", "s4"]
        assert find_history("s2") is None
