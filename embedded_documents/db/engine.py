"""Database engine and session factory."""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from embedded_documents.config import EmbeddingSettings


def create_engine_from_settings(settings: EmbeddingSettings) -> Engine:
    """Create SQLAlchemy engine from settings.

    Raises:
        ValueError: If EMBEDDING_DATABASE_URL is unset or empty.
    """
    if not settings.database_url:
        raise ValueError(
            "EMBEDDING_DATABASE_URL must be set to a valid connection string. "
            "Please configure the database_url setting."
        )

    return create_engine(settings.database_url, echo=settings.echo_sql)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create sessionmaker for creating database sessions.

    Args:
        engine: SQLAlchemy engine

    Returns:
        Sessionmaker bound to the engine
    """
    return sessionmaker(bind=engine, expire_on_commit=False)
