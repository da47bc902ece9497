# File: portal/services/session_service.py

"""
Session verifier: identity assertion -> local User.

The first time a subject is seen we create a citizen. Later calls return the
existing row with only its display profile refreshed from the assertion.
Blocking is not enforced here; a blocked user still resolves to a User and
is stopped by authorization.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.errors import Unavailable
from portal.core.security import IdentityClaims, IdentityVerifier
from portal.db.session import transaction
from portal.models.enums import Role
from portal.models.user import User
from portal.services.user_service import get_by_subject

logger = logging.getLogger(__name__)


def _sync_profile(user: User, claims: IdentityClaims) -> bool:
    changed = False
    for field in ("email", "name", "photo_url"):
        value = getattr(claims, field)
        if value is not None and getattr(user, field) != value:
            setattr(user, field, value)
            changed = True
    return changed


def verify_session(db: Session, verifier: IdentityVerifier, token: str) -> User:
    """
    Resolve a token to a User, creating a citizen on first sight.

    Raises InvalidToken or Unavailable from the verifier unchanged.
    """
    claims = verifier.verify(token)

    with transaction(db):
        user = get_by_subject(db, claims.subject)
        if user is not None:
            _sync_profile(user, claims)
            return user

    try:
        with transaction(db):
            user = User(
                subject=claims.subject,
                email=claims.email,
                name=claims.name,
                photo_url=claims.photo_url,
                role=Role.CITIZEN,
                is_blocked=False,
                is_premium=False,
            )
            db.add(user)
    except IntegrityError:
        # A concurrent request registered the same subject first
        user = get_by_subject(db, claims.subject)
        if user is None:
            raise Unavailable("Could not resolve user, please retry")
        return user

    db.refresh(user)
    logger.info("[SESSION] New citizen %s registered for subject %s", user.id, user.subject)
    return user
