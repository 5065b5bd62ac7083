import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, Enum, DateTime, Float, Integer, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.schemas.moderation import ModerationStatus


class Testimonial(Base):
    __tablename__ = "testimonials"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    author_name = Column(String, nullable=False)
    author_email = Column(String, nullable=True)
    is_oauth_verified = Column(Boolean, default=False, nullable=False)
    content = Column(Text, nullable=False)
    rating = Column(Integer, nullable=True)

    moderation_status = Column(
        Enum(ModerationStatus),
        default=ModerationStatus.pending,
        nullable=False,
        index=True,
    )
    moderation_flags = Column(JSON, default=list, nullable=False)
    moderation_score = Column(Float, nullable=True)
    quality_score = Column(Float, nullable=True)
    is_approved = Column(Boolean, default=False, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationship
    project = relationship("Project", back_populates="testimonials")
