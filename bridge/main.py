from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from bridge.core.config import settings
from bridge.core.db import engine, init_db
from bridge.core.exceptions import AuthError
from bridge.schemas.common import HealthResponse, VersionResponse
from bridge.utils.exception_handlers import (
    auth_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from bridge.utils.router_discovery import register_routers


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncGenerator[None, FastAPI]:
    await init_db()

    yield

    await engine.dispose()


app = FastAPI(title="Mattermost Identity Bridge", version=settings.version, lifespan=app_lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.app_url.rstrip("/")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


register_routers(app)

app.add_exception_handler(AuthError, auth_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/health")
async def health() -> HealthResponse:
    return HealthResponse()


@app.get("/version")
async def version() -> VersionResponse:
    return VersionResponse(version=settings.version)
