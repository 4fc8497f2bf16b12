import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.middleware.cors import CORSMiddleware

from tangabiz.core.config import settings, validate_config
from tangabiz.core.database import create_all_tables
from tangabiz.core.logging import LOGGER_NAME, configure_logging
from tangabiz.core.middleware.request_id import RequestIdMiddleware
from tangabiz.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from tangabiz.api import billing, catalog, health, organizations, team

configure_logging(settings.ENV)
validate_config(strict=settings.CONFIG_STRICT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger(LOGGER_NAME)
    logger.info("Starting Tangabiz backend...")
    app.state.startup_time = time.time()
    create_all_tables()
    try:
        yield
    finally:
        logger.info("Stopping Tangabiz backend...")


app = FastAPI(title="Tangabiz - Entitlements API", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# CORS (adjust origins in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.WEB_APP_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(organizations.router)
app.include_router(team.router)
app.include_router(catalog.router)
app.include_router(billing.router)
