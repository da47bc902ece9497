"""
Database initialization helpers.

Models are imported so their tables get registered on Base.metadata.
"""

import logging

from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.db.session import engine
from portal.models.base import Base
from portal.models import issue, payment, user  # noqa: F401
from portal.services import user_service

logger = logging.getLogger(__name__)


def init_db() -> None:
    """
    Create all tables based on SQLAlchemy models.
    """
    Base.metadata.create_all(bind=engine)


def seed_initial_data(db: Session) -> None:
    """
    Privileged migration: promote the configured subjects to admin.

    This is the only path that creates admins; nothing reachable over HTTP
    can change a role.
    """
    for subject in settings.bootstrap_admin_subjects:
        admin = user_service.promote_admin(db, subject)
        logger.info("[INIT] Admin ensured for subject %s (user id %s)", subject, admin.id)


if __name__ == "__main__":
    from portal.db.session import SessionLocal

    logging.basicConfig(level=settings.log_level)
    init_db()
    db = SessionLocal()
    try:
        seed_initial_data(db)
    finally:
        db.close()
