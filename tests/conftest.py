"""
Shared fixtures for the moderation test suite.

The environment is configured before any application module is imported so
that settings pick up an in-memory SQLite database and no AI or admin keys.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("ADMIN_API_KEY", None)

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.session import Base
from app.models.project import Project
from app.models.testimonial import Testimonial
from app.schemas.moderation import ModerationStatus
from app.services.settings_resolver import to_project_payload, resolve

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session():
    """Fresh schema per test on a shared in-memory database."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_project(db_session):
    """Create a project row with the given raw moderation settings."""
    def _make(name="Acme", **raw_settings):
        settings = resolve(raw_settings)
        project = Project(
            name=name,
            auto_moderation=settings.auto_moderation,
            auto_approve_verified=settings.auto_approve_verified,
            profanity_filter_level=settings.profanity_filter_level,
            moderation_settings=to_project_payload(settings),
        )
        db_session.add(project)
        db_session.commit()
        db_session.refresh(project)
        return project
    return _make


@pytest.fixture
def make_testimonial(db_session):
    """Create a testimonial row in the given moderation status."""
    def _make(project, content="Great service, would buy again.", status=ModerationStatus.pending, **fields):
        testimonial = Testimonial(
            project_id=project.id,
            author_name=fields.pop("author_name", "Jane Doe"),
            content=content,
            moderation_status=status,
            **fields
        )
        db_session.add(testimonial)
        db_session.commit()
        db_session.refresh(testimonial)
        return testimonial
    return _make


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture(autouse=True)
def reset_rate_limits():
    from app.core.security import rate_limit_storage
    rate_limit_storage.clear()
    yield
    rate_limit_storage.clear()
