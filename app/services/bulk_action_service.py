"""
Bulk moderation actions.

``apply_bulk`` decides which testimonials a bulk approve/reject/flag would
change and snapshots their previous statuses. ``commit_bulk_action`` writes
the change in one transaction: either every selected row is updated or none
is. Snapshots are kept in a small in-memory ``BulkActionHistory`` so an
admin can undo recent actions; it is not an audit log.
"""

import uuid
from collections import OrderedDict, deque
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    BulkActionException,
    DatabaseException,
    NotFoundException,
    ValidationException,
)
from app.core.logger import logger
from app.models.testimonial import Testimonial
from app.schemas.bulk import BulkAction, BulkActionHistoryEntry, BulkActionOutcome
from app.schemas.moderation import ModerationStatus


def apply_bulk(
    testimonial_ids: Sequence[str],
    action: BulkAction,
    current_statuses: Mapping[str, ModerationStatus],
) -> BulkActionOutcome:
    """
    Select the testimonials a bulk action changes and record their prior state.

    Ids already in the target status, ids without a known current status and
    repeated ids are skipped, so running the same action twice changes
    nothing the second time.

    Args:
        testimonial_ids: Ids selected by the admin
        action: approve, reject or flag
        current_statuses: Current moderation status per id

    Returns:
        BulkActionOutcome with the ids to update and the history entry
    """
    action = BulkAction(action)
    target = action.target_status

    updated_ids: List[str] = []
    previous_statuses: Dict[str, ModerationStatus] = {}
    for testimonial_id in dict.fromkeys(testimonial_ids):
        current = current_statuses.get(testimonial_id)
        if current is None:
            logger.warning(
                "Skipping testimonial with unknown status in bulk action",
                extra={"testimonial_id": testimonial_id, "action": action.value}
            )
            continue
        current = ModerationStatus(current)
        if current == target:
            continue
        updated_ids.append(testimonial_id)
        previous_statuses[testimonial_id] = current

    entry = BulkActionHistoryEntry(
        id=str(uuid.uuid4()),
        testimonial_ids=updated_ids,
        action=action,
        previous_statuses=previous_statuses,
    )
    return BulkActionOutcome(updated_ids=updated_ids, history_entry=entry)


class BulkActionHistory:
    """Undo buffer holding the most recent bulk actions (oldest evicted first)."""

    def __init__(self, max_size: Optional[int] = None):
        self.max_size = settings.bulk_history_size if max_size is None else max_size
        self._entries = deque(maxlen=self.max_size)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, entry: BulkActionHistoryEntry) -> None:
        self._entries.append(entry)

    def entries(self) -> List[BulkActionHistoryEntry]:
        """Entries newest first."""
        return list(reversed(self._entries))

    def get(self, entry_id: str) -> BulkActionHistoryEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise NotFoundException(
            f"Bulk action {entry_id} is not in the undo history",
            resource="bulk_action",
            details={"entry_id": entry_id}
        )

    def pop(self, entry_id: str) -> BulkActionHistoryEntry:
        entry = self.get(entry_id)
        self._entries.remove(entry)
        return entry


# --- Storage ---
def validate_batch(testimonial_ids: Sequence[str]) -> None:
    if not testimonial_ids:
        raise ValidationException("ids must be a non-empty array", field="ids")
    if len(testimonial_ids) > settings.bulk_max_batch_size:
        raise ValidationException(
            f"Cannot update more than {settings.bulk_max_batch_size} testimonials at once",
            field="ids",
            details={"count": len(testimonial_ids)}
        )


def load_statuses(db: Session, testimonial_ids: Sequence[str]) -> Dict[str, ModerationStatus]:
    try:
        rows = db.query(Testimonial.id, Testimonial.moderation_status).filter(
            Testimonial.id.in_(list(testimonial_ids))
        ).all()
    except SQLAlchemyError as e:
        raise DatabaseException(
            f"Failed to load testimonial statuses: {str(e)}",
            operation="load_statuses"
        )
    return {testimonial_id: status for testimonial_id, status in rows}


def _status_values(status: ModerationStatus) -> dict:
    approved = status == ModerationStatus.approved
    return {
        Testimonial.moderation_status: status,
        Testimonial.is_approved: approved,
        Testimonial.is_published: approved,
    }


def _write_statuses(db: Session, groups: Mapping[ModerationStatus, Sequence[str]], action: str) -> int:
    """Update every group in one transaction; roll back unless all rows changed."""
    expected = sum(len(ids) for ids in groups.values())
    try:
        changed = 0
        for status, ids in groups.items():
            changed += db.query(Testimonial).filter(
                Testimonial.id.in_(list(ids))
            ).update(_status_values(status), synchronize_session=False)
        if changed != expected:
            db.rollback()
            raise BulkActionException(
                "Bulk action would only partially apply; no testimonials were changed",
                action=action,
                details={"expected": expected, "changed": changed}
            )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Database error applying bulk action",
            extra={"action": action, "error": str(e)},
            exc_info=True
        )
        raise DatabaseException(
            f"Failed to apply bulk action: {str(e)}",
            operation="bulk_update"
        )
    return changed


def commit_bulk_action(db: Session, outcome: BulkActionOutcome) -> int:
    """
    Persist a bulk action atomically.

    Raises:
        BulkActionException: If not every selected testimonial could be updated
        DatabaseException: If the write fails
    """
    entry = outcome.history_entry
    if not outcome.updated_ids:
        return 0
    changed = _write_statuses(
        db, {entry.action.target_status: outcome.updated_ids}, entry.action.value
    )
    logger.info(
        f"Bulk {entry.action.value} applied to {changed} testimonials",
        extra={"action": entry.action.value, "entry_id": entry.id}
    )
    return changed


def undo_bulk_action(db: Session, history: BulkActionHistory, entry_id: str) -> BulkActionHistoryEntry:
    """
    Restore the statuses snapshotted by a bulk action and drop it from history.

    The entry stays in history if the restore fails.
    """
    entry = history.get(entry_id)
    groups: Dict[ModerationStatus, List[str]] = {}
    for testimonial_id, status in entry.previous_statuses.items():
        groups.setdefault(status, []).append(testimonial_id)

    if groups:
        _write_statuses(db, groups, f"undo_{entry.action.value}")
    history.pop(entry_id)
    logger.info(
        f"Undid bulk {entry.action.value} on {entry.count} testimonials",
        extra={"action": entry.action.value, "entry_id": entry.id}
    )
    return entry


# Undo buffers are per admin session and live only in this process. The
# least recently used session is dropped once the session cap is reached.
_histories: "OrderedDict[str, BulkActionHistory]" = OrderedDict()


def find_history(session_key: str = "default") -> Optional[BulkActionHistory]:
    """Return the session's undo buffer without creating one."""
    history = _histories.get(session_key)
    if history is not None:
        _histories.move_to_end(session_key)
    return history


def get_history(session_key: str = "default") -> BulkActionHistory:
    history = find_history(session_key)
    if history is None:
        history = BulkActionHistory()
        _histories[session_key] = history
        while len(_histories) > settings.bulk_history_max_sessions:
            evicted, _ = _histories.popitem(last=False)
            logger.info(
                "Evicted bulk action history of idle session",
                extra={"session": evicted}
            )
    return history
