from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.db.session import get_db
from app.services.analytics_service import get_moderation_summary
from app.schemas.analytics import ModerationSummary
from app.core.security import require_admin_api_key

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])

@router.get("/moderation-summary", response_model=ModerationSummary, status_code=200)
async def moderation_summary(
    project_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(require_admin_api_key)
):
    try:
        return get_moderation_summary(project_id, db)
    except SQLAlchemyError as e:
        raise HTTPException(status_code=500, detail=f"Analytics retrieval failed: {str(e)}")
