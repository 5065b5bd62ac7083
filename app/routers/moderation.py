from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.schemas.bulk import (
    BulkActionHistoryEntry,
    BulkActionPreviewItem,
    BulkActionRequest,
    BulkActionResponse,
    UndoResponse,
)
from app.schemas.moderation import (
    ModerationPreviewRequest,
    ModerationQueueResponse,
    ModerationResultResponse,
    ModerationStatus,
    ModerationVerdict,
    TestimonialResponse,
)
from app.services.bulk_action_service import (
    apply_bulk,
    BulkActionHistory,
    commit_bulk_action,
    find_history,
    get_history,
    load_statuses,
    undo_bulk_action,
    validate_batch,
)
from app.services.moderation_service import (
    get_project,
    list_queue,
    moderate_content,
    reevaluate_testimonial,
)
from app.services.settings_resolver import resolve, settings_from_project
from app.core.exceptions import ModerationServiceException, create_http_exception
from app.core.security import require_admin_api_key
from app.core.logger import logger

router = APIRouter(
    prefix="/api/v1/moderation",
    tags=["moderation"],
    dependencies=[Depends(require_admin_api_key)],
)

SESSION_HEADER = "X-Moderation-Session"

@router.post("/preview", response_model=ModerationVerdict)
async def preview_moderation(payload: ModerationPreviewRequest, db: Session = Depends(get_db)):
    """
    Evaluate content without storing anything.

    Uses the project's settings when ``project_id`` is given, defaults otherwise.
    """
    try:
        if payload.project_id:
            settings = settings_from_project(get_project(db, payload.project_id))
        else:
            settings = resolve(None)
        return await moderate_content(
            payload.content,
            settings,
            author_verified=payload.author_verified,
            author_email=payload.author_email,
            rating=payload.rating,
        )
    except ModerationServiceException as e:
        raise create_http_exception(e)

@router.post("/testimonials/{testimonial_id}/evaluate", response_model=ModerationResultResponse)
async def evaluate_testimonial(testimonial_id: str, db: Session = Depends(get_db)):
    """Re-run moderation for a stored testimonial and save the new verdict."""
    try:
        return await reevaluate_testimonial(testimonial_id, db)
    except ModerationServiceException as e:
        logger.error(
            "Re-evaluation failed",
            extra={"testimonial_id": testimonial_id, "error": str(e), "error_code": e.error_code}
        )
        raise create_http_exception(e)

@router.get("/queue", response_model=ModerationQueueResponse)
async def moderation_queue(
    project_id: Optional[str] = None,
    status: Optional[ModerationStatus] = None,
    verified_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """List testimonials filtered by project, status and verified authors."""
    total, items = list_queue(db, project_id, status, verified_only, limit, offset)
    return ModerationQueueResponse(
        total=total,
        items=[TestimonialResponse.model_validate(item) for item in items]
    )

@router.post("/bulk", response_model=BulkActionResponse)
async def bulk_moderation(
    payload: BulkActionRequest,
    db: Session = Depends(get_db),
    session_key: str = Header("default", alias=SESSION_HEADER)
):
    """
    Apply approve/reject/flag to many testimonials at once.

    The batch is applied atomically. Testimonials already in the target
    status are skipped. With ``dry_run`` the affected testimonials are
    listed without changing anything. Applied actions can be undone from
    the session's bulk history.
    """
    logger.info(
        f"Bulk {payload.action.value} requested",
        extra={"action": payload.action.value, "count": len(payload.ids), "dry_run": payload.dry_run}
    )

    try:
        validate_batch(payload.ids)
        current_statuses = load_statuses(db, payload.ids)
        outcome = apply_bulk(payload.ids, payload.action, current_statuses)
        updated = set(outcome.updated_ids)
        skipped = [i for i in dict.fromkeys(payload.ids) if i not in updated]

        if payload.dry_run:
            return BulkActionResponse(
                action=payload.action,
                affected=len(outcome.updated_ids),
                updated_ids=outcome.updated_ids,
                skipped_ids=skipped,
                dry_run=True,
                preview=[
                    BulkActionPreviewItem(
                        id=testimonial_id,
                        current_status=outcome.history_entry.previous_statuses[testimonial_id],
                        new_status=payload.action.target_status,
                    )
                    for testimonial_id in outcome.updated_ids
                ]
            )

        affected = commit_bulk_action(db, outcome)
        entry_id = None
        if outcome.updated_ids:
            get_history(session_key).record(outcome.history_entry)
            entry_id = outcome.history_entry.id

        return BulkActionResponse(
            action=payload.action,
            affected=affected,
            updated_ids=outcome.updated_ids,
            skipped_ids=skipped,
            history_entry_id=entry_id
        )
    except ModerationServiceException as e:
        logger.error(
            "Bulk moderation failed",
            extra={"action": payload.action.value, "error": str(e), "error_code": e.error_code}
        )
        raise create_http_exception(e)

@router.get("/bulk/history", response_model=List[BulkActionHistoryEntry])
async def bulk_history(session_key: str = Header("default", alias=SESSION_HEADER)):
    """Recent bulk actions of this session, newest first."""
    history = find_history(session_key)
    return history.entries() if history is not None else []

@router.post("/bulk/history/{entry_id}/undo", response_model=UndoResponse)
async def undo_bulk(
    entry_id: str,
    db: Session = Depends(get_db),
    session_key: str = Header("default", alias=SESSION_HEADER)
):
    """Restore the statuses a bulk action replaced."""
    try:
        history = find_history(session_key)
        if history is None:
            history = BulkActionHistory()
        entry = undo_bulk_action(db, history, entry_id)
        return UndoResponse(entry_id=entry.id, restored=entry.count)
    except ModerationServiceException as e:
        logger.warning(
            "Bulk undo failed",
            extra={"entry_id": entry_id, "error": str(e), "error_code": e.error_code}
        )
        raise create_http_exception(e)
