"""Root conftest for all tests.

This file makes shared fixtures available across all test modules.
"""

import pytest
from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from revisionable.db.models import Base
from revisionable.revision.registry import registry


@pytest.fixture(scope="session", autouse=True)
def ensure_models_imported():
    """Ensure the sample models are registered in Base.metadata before any test runs."""
    import tests.models  # noqa: F401

    assert "posts" in Base.metadata.tables, "Sample models not registered in Base.metadata"
    assert "revisions" in Base.metadata.tables

    yield


@pytest.fixture(autouse=True)
def library_logging():
    """Let tests capture revisionable log records, which the package disables on import."""
    logger.enable("revisionable")
    yield


@pytest.fixture(autouse=True)
def populated_registry():
    """Populate the global entity registry with every mapped model for one test."""
    registry.register_models(Base)
    yield registry
    registry.clear()


@pytest.fixture
def engine():
    """Isolated in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    """
    Provides a database session on the per-test in-memory database.

    Usage:
        def test_something(db_session):
            post = Post(title="Hello")
            db_session.add(post)
            db_session.commit()
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
