import enum
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.moderation import ModerationStatus, utcnow


class BulkAction(str, enum.Enum):
    approve = "approve"
    reject = "reject"
    flag = "flag"

    @property
    def target_status(self) -> ModerationStatus:
        return BULK_ACTION_TARGETS[self]


BULK_ACTION_TARGETS = {
    BulkAction.approve: ModerationStatus.approved,
    BulkAction.reject: ModerationStatus.rejected,
    BulkAction.flag: ModerationStatus.flagged,
}


class BulkActionHistoryEntry(BaseModel):
    id: str
    timestamp: datetime = Field(default_factory=utcnow)
    testimonial_ids: List[str]
    action: BulkAction
    previous_statuses: Dict[str, ModerationStatus]

    class Config:
        frozen = True

    @property
    def count(self) -> int:
        return len(self.testimonial_ids)


class BulkActionOutcome(BaseModel):
    updated_ids: List[str]
    history_entry: BulkActionHistoryEntry

    class Config:
        frozen = True


# ---- Requests ----
class BulkActionRequest(BaseModel):
    ids: List[str] = Field(min_length=1)
    action: BulkAction
    dry_run: bool = False


# ---- Responses ----
class BulkActionPreviewItem(BaseModel):
    id: str
    current_status: ModerationStatus
    new_status: ModerationStatus


class BulkActionResponse(BaseModel):
    action: BulkAction
    affected: int
    updated_ids: List[str]
    skipped_ids: List[str]
    history_entry_id: Optional[str] = None
    dry_run: bool = False
    preview: List[BulkActionPreviewItem] = Field(default_factory=list)


class UndoResponse(BaseModel):
    entry_id: str
    restored: int
