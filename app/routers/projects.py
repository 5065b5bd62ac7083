from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.schemas.moderation import SubmitTestimonialRequest, ModerationResultResponse
from app.schemas.settings import ModerationSettingsForm, ProjectCreateRequest, ProjectResponse
from app.services.moderation_service import submit_testimonial
from app.services.project_settings_service import create_project, get_settings_form, update_settings
from app.services.settings_resolver import settings_from_project, to_form
from app.core.exceptions import ModerationServiceException, create_http_exception
from app.core.security import rate_limit_dependency, require_admin_api_key
from app.core.logger import logger

router = APIRouter(prefix="/api/v1/projects", tags=["projects"])

@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project_endpoint(
    payload: ProjectCreateRequest,
    db: Session = Depends(get_db),
    _: bool = Depends(require_admin_api_key)
):
    """Create a project with optional initial moderation settings."""
    try:
        project = create_project(db, payload.name, payload.moderation_settings)
        return ProjectResponse(
            id=project.id,
            name=project.name,
            settings=to_form(settings_from_project(project))
        )
    except ModerationServiceException as e:
        logger.error(
            "Project creation failed",
            extra={"error": str(e), "error_code": e.error_code}
        )
        raise create_http_exception(e)

@router.post("/{project_id}/testimonials", response_model=ModerationResultResponse, status_code=201)
async def submit_testimonial_endpoint(
    project_id: str,
    payload: SubmitTestimonialRequest,
    request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_dependency)
):
    """
    Submit a testimonial for a project.

    The testimonial is moderated immediately; the response carries the
    stored testimonial and the verdict. Submissions are accepted even when
    the AI classifier is unavailable.

    Args:
        project_id: Owning project
        payload: Author fields and testimonial content
        request: FastAPI request object for logging
        db: Database session
        _: Rate limiting dependency

    Returns:
        ModerationResultResponse: Stored testimonial and moderation verdict
    """
    logger.info(
        "Testimonial submission received",
        extra={
            "project_id": project_id,
            "content_length": len(payload.content),
            "client_ip": request.client.host if request.client else "unknown"
        }
    )

    try:
        return await submit_testimonial(project_id, payload, db)
    except ModerationServiceException as e:
        logger.warning(
            "Testimonial submission rejected",
            extra={
                "project_id": project_id,
                "error": str(e),
                "error_code": e.error_code
            }
        )
        raise create_http_exception(e)
    except Exception as e:
        logger.error(
            "Unexpected error in testimonial submission",
            extra={"project_id": project_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(
            status_code=500,
            detail={
                "error_code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred while submitting the testimonial",
                "details": {"error": str(e)}
            }
        )

@router.get("/{project_id}/moderation-settings", response_model=ModerationSettingsForm)
async def get_moderation_settings(
    project_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(require_admin_api_key)
):
    """Return the project's moderation settings in form shape."""
    try:
        return get_settings_form(db, project_id)
    except ModerationServiceException as e:
        raise create_http_exception(e)

@router.put("/{project_id}/moderation-settings", response_model=ModerationSettingsForm)
async def put_moderation_settings(
    project_id: str,
    payload: Any = Body(...),
    db: Session = Depends(get_db),
    _: bool = Depends(require_admin_api_key)
):
    """
    Replace the project's moderation settings.

    Accepts the form shape (comma-separated ``*_input`` fields), the stored
    camelCase shape or plain snake_case fields. Invalid values fall back to
    defaults.
    """
    try:
        return update_settings(db, project_id, payload)
    except ModerationServiceException as e:
        logger.warning(
            "Moderation settings update failed",
            extra={"project_id": project_id, "error": str(e), "error_code": e.error_code}
        )
        raise create_http_exception(e)
