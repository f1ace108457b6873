"""
PyTest configuration and fixtures.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from persona_engine.domain.models.pipeline_state import new_run_state
from persona_engine.infrastructure.data.config import PipelineConfig
from persona_engine.infrastructure.persistence.database import Base
from persona_engine.infrastructure.persistence import models  # noqa: F401
from persona_engine.tests.fakes import ScriptedGateway, full_bundle


@pytest.fixture
def gateway():
    """Empty scripted gateway; tests queue replies with `push`."""
    return ScriptedGateway()


@pytest.fixture
def pipeline_config():
    return PipelineConfig(stage_timeout=5.0, run_timeout=10.0)


@pytest.fixture
def run_state():
    return new_run_state("profile-1", full_bundle(), user_id="user-1")


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with every table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},  # Needed for SQLite
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Get database session for each test."""
    session = sessionmaker(autoflush=False, bind=db_engine)()
    try:
        yield session
    finally:
        session.close()
