from typing import List, Optional, Sequence

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.models.project import Project
from app.models.testimonial import Testimonial
from app.schemas.moderation import (
    ModerationResultResponse,
    ModerationStatus,
    ModerationVerdict,
    SubmitTestimonialRequest,
    TestimonialResponse,
)
from app.schemas.settings import ModerationSettings
from app.services.rule_engine import evaluate
from app.services.decision_composer import decide
from app.services.settings_resolver import settings_from_project
from app.clients.ai_moderation_client import check_with_ai
from app.core.logger import logger
from app.core.exceptions import (
    ContentTooLargeException,
    DatabaseException,
    NotFoundException,
    ValidationException,
)
from app.core.security import (
    MAX_CONTENT_LENGTH,
    validate_text_content,
    sanitize_input,
)

# Recent testimonials compared against for duplicate detection
DUPLICATE_LOOKBACK = 200


async def moderate_content(
    content: str,
    settings: ModerationSettings,
    author_verified: bool = False,
    author_email: Optional[str] = None,
    existing_contents: Sequence[str] = (),
    rating: Optional[int] = None,
) -> ModerationVerdict:
    """
    Run one moderation pass over a piece of content.

    The AI classifier is only consulted when its answer can influence the
    verdict (auto-moderation on, no verified-author bypass).

    Args:
        content: Testimonial text
        settings: Resolved project settings
        author_verified: Whether the author was verified via OAuth
        author_email: Submitter email, if known
        existing_contents: Other testimonials of the project
        rating: Star rating given by the author, if any

    Returns:
        ModerationVerdict
    """
    heuristic = evaluate(
        content,
        settings,
        author_email=author_email,
        existing_contents=existing_contents,
        rating=rating,
        author_verified=author_verified,
    )

    bypass = author_verified and settings.auto_approve_verified
    ai_result = None
    if settings.auto_moderation and not bypass:
        ai_result = await check_with_ai(content)

    verdict = decide(heuristic, ai_result, settings, author_verified)

    logger.info(
        f"Moderation verdict: {verdict.status.value}",
        extra={
            "status": verdict.status.value,
            "source": verdict.source.value,
            "score": verdict.score,
            "flag_count": len(verdict.flags),
        }
    )
    return verdict


def get_project(db: Session, project_id: str) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise NotFoundException(
            f"Project {project_id} not found",
            resource="project",
            details={"project_id": project_id}
        )
    return project


def get_testimonial(db: Session, testimonial_id: str) -> Testimonial:
    testimonial = db.get(Testimonial, testimonial_id)
    if testimonial is None:
        raise NotFoundException(
            f"Testimonial {testimonial_id} not found",
            resource="testimonial",
            details={"testimonial_id": testimonial_id}
        )
    return testimonial


def existing_project_contents(
    db: Session,
    project_id: str,
    exclude_id: Optional[str] = None,
) -> List[str]:
    query = db.query(Testimonial.content).filter(Testimonial.project_id == project_id)
    if exclude_id is not None:
        query = query.filter(Testimonial.id != exclude_id)
    rows = query.order_by(Testimonial.created_at.desc()).limit(DUPLICATE_LOOKBACK).all()
    return [content for (content,) in rows]


def apply_verdict(testimonial: Testimonial, verdict: ModerationVerdict) -> None:
    testimonial.moderation_status = verdict.status
    testimonial.moderation_flags = list(verdict.flags)
    testimonial.moderation_score = verdict.score
    testimonial.quality_score = verdict.quality_score
    testimonial.is_approved = verdict.status == ModerationStatus.approved
    testimonial.is_published = verdict.auto_publish


def _validated_content(content: str) -> str:
    sanitized = sanitize_input(content)
    if len(sanitized) > MAX_CONTENT_LENGTH:
        raise ContentTooLargeException(
            f"Testimonial exceeds maximum length of {MAX_CONTENT_LENGTH} characters",
            max_size=MAX_CONTENT_LENGTH,
            actual_size=len(sanitized)
        )
    is_valid, error_msg = validate_text_content(sanitized)
    if not is_valid:
        raise ValidationException(error_msg or "Invalid testimonial content", field="content")
    return sanitized


async def submit_testimonial(
    project_id: str,
    request: SubmitTestimonialRequest,
    db: Session,
) -> ModerationResultResponse:
    """
    Store a new testimonial and moderate it against its project's settings.

    A moderation outage never fails the submission: the AI layer degrades to
    heuristics and the testimonial always lands in a defined status.

    Raises:
        ValidationException: If the content is empty or unsafe
        ContentTooLargeException: If the content is too long
        NotFoundException: If the project does not exist
        DatabaseException: If storing the testimonial fails
    """
    content = _validated_content(request.content)
    project = get_project(db, project_id)
    settings = settings_from_project(project)

    logger.info(
        "Moderating new testimonial",
        extra={"project_id": project_id, "content_length": len(content)}
    )

    verdict = await moderate_content(
        content,
        settings,
        author_verified=request.is_oauth_verified,
        author_email=request.author_email,
        existing_contents=existing_project_contents(db, project_id),
        rating=request.rating,
    )

    testimonial = Testimonial(
        project_id=project_id,
        author_name=request.author_name.strip(),
        author_email=request.author_email,
        is_oauth_verified=request.is_oauth_verified,
        content=content,
        rating=request.rating,
    )
    apply_verdict(testimonial, verdict)

    try:
        db.add(testimonial)
        db.commit()
        db.refresh(testimonial)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Database error storing testimonial",
            extra={"project_id": project_id, "error": str(e)},
            exc_info=True
        )
        raise DatabaseException(
            f"Failed to store testimonial: {str(e)}",
            operation="create_testimonial"
        )

    logger.info(
        "Testimonial stored",
        extra={
            "project_id": project_id,
            "testimonial_id": testimonial.id,
            "status": verdict.status.value
        }
    )

    return ModerationResultResponse(
        testimonial=TestimonialResponse.model_validate(testimonial),
        verdict=verdict,
        auto_publish=verdict.auto_publish,
    )


async def reevaluate_testimonial(testimonial_id: str, db: Session) -> ModerationResultResponse:
    """
    Re-run moderation for a stored testimonial with current project settings.

    Raises:
        NotFoundException: If the testimonial does not exist
        DatabaseException: If saving the new verdict fails
    """
    testimonial = get_testimonial(db, testimonial_id)
    settings = settings_from_project(testimonial.project)

    verdict = await moderate_content(
        testimonial.content,
        settings,
        author_verified=testimonial.is_oauth_verified,
        author_email=testimonial.author_email,
        existing_contents=existing_project_contents(
            db, testimonial.project_id, exclude_id=testimonial.id
        ),
        rating=testimonial.rating,
    )

    try:
        apply_verdict(testimonial, verdict)
        db.commit()
        db.refresh(testimonial)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Database error saving re-evaluated verdict",
            extra={"testimonial_id": testimonial_id, "error": str(e)},
            exc_info=True
        )
        raise DatabaseException(
            f"Failed to save moderation verdict: {str(e)}",
            operation="reevaluate_testimonial"
        )

    return ModerationResultResponse(
        testimonial=TestimonialResponse.model_validate(testimonial),
        verdict=verdict,
        auto_publish=verdict.auto_publish,
    )


def list_queue(
    db: Session,
    project_id: Optional[str] = None,
    status: Optional[ModerationStatus] = None,
    verified_only: bool = False,
    limit: int = 50,
    offset: int = 0,
):
    query = db.query(Testimonial)
    if project_id:
        query = query.filter(Testimonial.project_id == project_id)
    if status is not None:
        query = query.filter(Testimonial.moderation_status == status)
    if verified_only:
        query = query.filter(Testimonial.is_oauth_verified.is_(True))
    total = query.count()
    items = query.order_by(Testimonial.created_at.desc()).offset(offset).limit(limit).all()
    return total, items
