import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, Enum, DateTime, JSON
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.schemas.settings import ProfanityFilterLevel


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String, nullable=False)

    auto_moderation = Column(Boolean, default=True, nullable=False)
    auto_approve_verified = Column(Boolean, default=False, nullable=False)
    profanity_filter_level = Column(
        Enum(ProfanityFilterLevel),
        default=ProfanityFilterLevel.moderate,
        nullable=False,
    )
    # minContentLength, maxUrlCount, allowedDomains, blockedDomains,
    # customProfanityList, brandKeywords
    moderation_settings = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    testimonials = relationship("Testimonial", back_populates="project", cascade="all, delete-orphan")
