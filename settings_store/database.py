"""Database engine, session and schema helpers."""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

if TYPE_CHECKING:
    from settings_store.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for settings store models."""

    pass


def create_db_engine(settings: "Settings") -> Engine:
    """Create the SQLAlchemy engine described by the settings."""
    options = dict(settings.sqlalchemy_engine_options)
    if not options and not settings.database_url.startswith("sqlite"):
        options = {
            "pool_size": 5,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_pre_ping": True,  # Verify connections before use
        }
    return create_engine(settings.database_url, **options)


def create_session_maker(engine: Engine) -> sessionmaker[Session]:
    """Create the session factory used by the service container."""
    return sessionmaker(
        class_=Session,
        bind=engine,
        autoflush=True,
        expire_on_commit=False,
    )


def create_schema(engine: Engine, table_name: str = "settings") -> None:
    """Create the settings table if it does not exist.

    This is a bootstrap helper for tests and local use; production schemas
    are provisioned outside this package.
    """
    from settings_store.models.setting import setting_model_for

    model = setting_model_for(table_name)
    model.__table__.create(bind=engine, checkfirst=True)  # type: ignore[attr-defined]
    logger.info("Ensured settings table %s exists", table_name)


def check_db_connection(engine: Engine) -> bool:
    """Check whether the database can be reached."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error("Database connection check failed: %s", e)
        return False


@contextmanager
def session_scope(session_maker: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a session that commits on success and rolls back on error."""
    session = session_maker()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
