"""Database session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from course_player.config import get_settings
from course_player.database.models import Base
from course_player.logging.config import get_logger

logger = get_logger(__name__)

_engine = None
_SessionLocal = None


def init_db() -> None:
    """Initialize database engine and create tables."""
    global _engine, _SessionLocal

    settings = get_settings()
    settings.ensure_directories()
    logger.debug(f"Initializing database: {settings.database_url}")

    _engine = create_engine(
        settings.database_url,
        echo=settings.debug,
        connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {},
    )

    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

    Base.metadata.create_all(bind=_engine)


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """
    Get a database session.

    Usage:
        with get_db() as db:
            db.query(LessonProgress).all()
    """
    if _SessionLocal is None:
        init_db()

    db = _SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
