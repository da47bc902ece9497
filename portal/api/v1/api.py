from fastapi import APIRouter

from portal.api.v1.routes_auth import router as auth_router
from portal.api.v1.routes_users import router as users_router
from portal.api.v1.routes_issues import router as issues_router
from portal.api.v1.routes_payments import router as payments_router


api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(users_router, prefix="/users", tags=["users"])
api_router.include_router(issues_router, prefix="/issues", tags=["issues"])
api_router.include_router(payments_router, prefix="/payments", tags=["payments"])
