from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pagent.api.routers import (
    admin_credits,
    card_webhook,
    credits,
    health,
    permissions,
    receipts,
    recurring_credits,
    rewards,
    siwe_auth,
    user_profile,
)
from pagent.infrastructure.db.engine import get_engine, init_schema
from pagent.shared.config import get_settings


settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if settings.db_auto_create_schema and settings.postgres_dsn:
        init_schema(get_engine(settings.postgres_dsn))
    yield


app = FastAPI(title="Pagent Credits API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError):
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request.") if errors else "Invalid request."
    return JSONResponse(status_code=400, content={"success": False, "error": detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("api: unhandled error path=%s", request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


app.include_router(health.router)
app.include_router(siwe_auth.router)
app.include_router(permissions.router)
app.include_router(credits.router)
app.include_router(card_webhook.router)
app.include_router(receipts.router)
app.include_router(rewards.router)
app.include_router(recurring_credits.router)
app.include_router(admin_credits.router)
app.include_router(user_profile.router)
