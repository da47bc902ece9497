import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import sessionmaker, Session

from portal.core.config import settings
from portal.core.errors import Unavailable

logger = logging.getLogger(__name__)

SQLALCHEMY_DATABASE_URL = settings.database_url

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    pool_pre_ping=True,
    connect_args={"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ----------------------------------------------------
# Atomic unit of work
# ----------------------------------------------------
@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run one engine operation as a single atomic unit.

    Commits when the block exits cleanly and rolls back on any error, so a
    status transition or payment effect is never half applied. Losing the
    database connection surfaces as Unavailable (retryable) instead of a
    driver exception.
    """
    try:
        yield db
        db.commit()
    except OperationalError as e:
        db.rollback()
        logger.warning("[DB] Operational error, transaction rolled back: %s", e)
        raise Unavailable("Database unavailable, please retry") from e
    except DBAPIError as e:
        db.rollback()
        if e.connection_invalidated:
            logger.warning("[DB] Connection lost, transaction rolled back: %s", e)
            raise Unavailable("Database unavailable, please retry") from e
        raise
    except Exception:
        db.rollback()
        raise
