"""Shared pytest fixtures for all test suites."""

from collections.abc import Generator

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from embedded_documents.config import get_settings
from embedded_documents.db import (
    Base,
    create_engine_from_settings,
    create_session_factory,
)
from tests.dummy import Record, hamlet_fields


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Drop cached settings so monkeypatched environment variables apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Create an engine for EMBEDDING_DATABASE_URL with all tables.

    The root conftest points EMBEDDING_DATABASE_URL at in-memory SQLite.
    """
    engine = create_engine_from_settings(get_settings())
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture
def hamlet(session: Session) -> Record:
    """Committed MARC record with a control field and a 245 title field."""
    record = Record(leader="00000nam a2200000 a 4500", fields=hamlet_fields())
    session.add(record)
    session.commit()
    return record
