from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.models.project import Project
from app.schemas.settings import ModerationSettingsForm
from app.services.moderation_service import get_project
from app.services.settings_resolver import resolve, settings_from_project, to_form, to_project_payload
from app.core.logger import logger
from app.core.exceptions import DatabaseException


def create_project(db: Session, name: str, raw_settings: Optional[Mapping[str, Any]] = None) -> Project:
    settings = resolve(raw_settings)
    project = Project(
        name=name,
        auto_moderation=settings.auto_moderation,
        auto_approve_verified=settings.auto_approve_verified,
        profanity_filter_level=settings.profanity_filter_level,
        moderation_settings=to_project_payload(settings),
    )
    try:
        db.add(project)
        db.commit()
        db.refresh(project)
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseException(
            f"Failed to create project: {str(e)}",
            operation="create_project"
        )
    logger.info("Project created", extra={"project_id": project.id})
    return project


def get_settings_form(db: Session, project_id: str) -> ModerationSettingsForm:
    return to_form(settings_from_project(get_project(db, project_id)))


def update_settings(db: Session, project_id: str, raw_settings: Any) -> ModerationSettingsForm:
    """
    Resolve a settings payload and store it on the project.

    Raises:
        ValidationException: If the payload is not an object
        NotFoundException: If the project does not exist
        DatabaseException: If the update fails
    """
    project = get_project(db, project_id)
    settings = resolve(raw_settings)

    try:
        project.auto_moderation = settings.auto_moderation
        project.auto_approve_verified = settings.auto_approve_verified
        project.profanity_filter_level = settings.profanity_filter_level
        project.moderation_settings = to_project_payload(settings)
        db.commit()
        db.refresh(project)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Database error updating moderation settings",
            extra={"project_id": project_id, "error": str(e)},
            exc_info=True
        )
        raise DatabaseException(
            f"Failed to update moderation settings: {str(e)}",
            operation="update_settings"
        )

    logger.info("Moderation settings updated", extra={"project_id": project_id})
    return to_form(settings)
