# portal/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal.core.config import settings
from portal.core.errors import PortalError
from portal.api.v1.api import api_router

logger = logging.getLogger(__name__)


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    logger.debug("[API] %s %s -> %s", request.method, request.url.path, exc.kind.value)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_application() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.debug,
    )

    # ---------- CORS ----------
    origins = list(dict.fromkeys([settings.client_url, *settings.backend_cors_origins]))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- ERRORS ----------
    # Engine outcomes (Blocked, QuotaExceeded, ...) become JSON responses
    app.add_exception_handler(PortalError, portal_error_handler)

    # ---------- ROUTERS ----------
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/healthz", tags=["health"])
    def healthz():
        return {"status": "ok"}

    return app


app = create_application()
