# File: portal/api/deps.py

from collections.abc import Generator
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from portal.core.errors import InvalidToken
from portal.core.security import IdentityVerifier, JwtIdentityVerifier
from portal.db.session import SessionLocal
from portal.models.user import User
from portal.services import session_service
from portal.services.gateway import PaymentGateway, get_gateway

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a SQLAlchemy session.

    Usage in route functions:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_identity_verifier() -> IdentityVerifier:
    return JwtIdentityVerifier()


def get_payment_gateway() -> PaymentGateway:
    return get_gateway()


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> User:
    """
    Resolve the caller once per request. FastAPI caches the dependency, so
    every engine call in the request sees the same User.
    """
    if not token:
        raise InvalidToken("Missing bearer token")
    return session_service.verify_session(db, verifier, token)
