# File: portal/core/config.py

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, field_validator


class Settings(BaseModel):
    # Basic app info
    app_name: str = "Civic Issue Portal API"

    PROJECT_NAME: str = "Civic Issue Portal API"
    VERSION: str = "0.1.0"

    api_v1_prefix: str = "/api/v1"
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS / redirects
    client_url: str = os.getenv("CLIENT_URL", "http://localhost:5173")
    backend_cors_origins: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./civic_portal.db")

    # Identity provider
    # With a JWKS url we verify the provider's RS256 tokens; otherwise a
    # shared secret is used (local development and tests).
    identity_secret: str = os.getenv("IDENTITY_SECRET", "CHANGE_ME_IN_PRODUCTION")
    identity_jwks_url: Optional[str] = os.getenv("IDENTITY_JWKS_URL") or None
    identity_audience: Optional[str] = os.getenv("IDENTITY_AUDIENCE") or None
    identity_issuer: Optional[str] = os.getenv("IDENTITY_ISSUER") or None
    identity_algorithms: List[str] = ["HS256"]
    identity_timeout_seconds: float = float(os.getenv("IDENTITY_TIMEOUT_SECONDS", "5"))

    # Payment gateway
    stripe_secret_key: Optional[str] = os.getenv("STRIPE_SECRET_KEY") or None
    gateway_timeout_seconds: float = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))
    payment_currency: str = os.getenv("PAYMENT_CURRENCY", "bdt")
    boost_amount: int = 100
    premium_amount: int = 1000

    # Entitlements
    free_issue_quota: int = 3

    # Privileged migration: subjects promoted to admin by init_db
    bootstrap_admin_subjects: List[str] = [
        s.strip() for s in os.getenv("BOOTSTRAP_ADMIN_SUBJECTS", "").split(",") if s.strip()
    ]

    @field_validator("backend_cors_origins", "bootstrap_admin_subjects", mode="before")
    @classmethod
    def split_comma_list(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return v
        return []

    @property
    def identity_signing_algorithms(self) -> List[str]:
        # Provider tokens fetched through JWKS are RS256
        if self.identity_jwks_url and self.identity_algorithms == ["HS256"]:
            return ["RS256"]
        return self.identity_algorithms


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
