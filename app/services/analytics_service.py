from sqlalchemy.orm import Session
from sqlalchemy import func
from app.models.testimonial import Testimonial
from app.schemas.analytics import ModerationSummary
from app.schemas.moderation import ModerationStatus

def get_moderation_summary(project_id: str, db: Session) -> ModerationSummary:
    total = db.query(func.count(Testimonial.id)).filter(
        Testimonial.project_id == project_id
    ).scalar()

    breakdown_query = db.query(
        Testimonial.moderation_status,
        func.count(Testimonial.id)
    ).filter(
        Testimonial.project_id == project_id
    ).group_by(Testimonial.moderation_status).all()

    breakdown = {status.value: 0 for status in ModerationStatus}
    breakdown.update({status.value: count for status, count in breakdown_query})

    verified = db.query(func.count(Testimonial.id)).filter(
        Testimonial.project_id == project_id,
        Testimonial.is_oauth_verified.is_(True)
    ).scalar()

    return ModerationSummary(
        project_id=project_id,
        total_testimonials=total,
        breakdown=breakdown,
        verified_authors=verified
    )
