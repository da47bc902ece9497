# File: portal/api/v1/routes_auth.py

"""
Session verification.

The client signs in with the identity provider and posts the resulting
token here; we answer with the local user record (created on first sight).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.api.deps import get_bearer_token, get_db, get_identity_verifier
from portal.core.security import IdentityVerifier
from portal.schemas.user import SessionVerifyRequest, SessionVerifyResponse, UserRead
from portal.services import entitlement_service, session_service

router = APIRouter()


@router.post("/verify", response_model=SessionVerifyResponse, summary="Verify identity token")
def verify(
    payload: SessionVerifyRequest,
    header_token: str | None = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
):
    token = payload.token or header_token or ""
    user = session_service.verify_session(db, verifier, token)
    return SessionVerifyResponse(
        user=UserRead.model_validate(user),
        remaining_quota=entitlement_service.remaining_quota(db, user),
    )
