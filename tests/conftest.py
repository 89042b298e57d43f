"""
Soft Delete Test Configuration

Provides pytest fixtures for an in-memory SQLite database, session management
and a data client with the soft delete middleware installed.
"""

import os
from datetime import datetime

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from soft_delete.config import SoftDeleteSettings
from soft_delete.executor import SqlAlchemyExecutor
from soft_delete.middleware import DataClient, soft_delete_client
from soft_delete.models import Base
from soft_delete.registry import SkipRegistry

FIXED_NOW = datetime(2024, 1, 15, 12, 30, 0)


@pytest.fixture
def settings():
    """Settings with a fixed clock and the Organization entity skip-listed"""
    return SoftDeleteSettings(
        skip_registry=SkipRegistry(["Expand", "Organization", "ParentOrganization"]),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture(scope="session")
def db_engine():
    """Create an in-memory SQLite database for testing"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """
    Create a new database session for each test function.
    Rolls back all changes after the test completes.
    """
    connection = db_engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(bind=connection)
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def raw_client(db_session: Session):
    """Client without middleware, for inspecting stored rows"""
    return DataClient(SqlAlchemyExecutor(db_session, Base))


@pytest.fixture
def client(db_session: Session, settings):
    return soft_delete_client(SqlAlchemyExecutor(db_session, Base), settings)
