"""FastAPI application factory for the clinic admin panel."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from aiosqlite import connect as aiosqlite_connect
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from clinic_admin.auth import SessionSynchronizer, Validate, configure_auth_router
from clinic_admin.auth.gate import DEFAULT_LANDING_PATH
from clinic_admin.common import StoreError
from clinic_admin.config import configure_logging, load_config_from_env
from clinic_admin.identity import IdentityQueries, LocalIdentityProvider
from clinic_admin.panel import PatientQueries, configure_panel_router
from clinic_admin.profiles import ProfileQueries

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from clinic_admin.config import AppConfig

LOGGER = logging.getLogger(__name__)


def configure_fastapi_app(config: AppConfig) -> FastAPI:
    """Configure and return the FastAPI application.

    :param config: Application configuration
    :return: Configured FastAPI application
    """
    if not Path(config.database_path).parent.exists():
        Path(config.database_path).parent.mkdir(parents=True, exist_ok=True)
        LOGGER.info(
            "Created directory for database at %s",
            Path(config.database_path).parent,
        )

    if not Path(config.database_path).exists():
        LOGGER.info("Database file does not exist at %s", config.database_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[Any, Any]:
        """Application lifespan manager.

        Opens the database and owns the single session synchronizer, which
        is released when the application shuts down.
        """
        LOGGER.info("Clinic admin panel is starting")

        async with aiosqlite_connect(config.database_path) as db_connection:
            identity_queries = IdentityQueries(db_connection)
            profiles = ProfileQueries(db_connection)
            patients = PatientQueries(db_connection)
            for queries in (identity_queries, profiles, patients):
                await queries.initialize_tables()

            identity_provider = LocalIdentityProvider(
                identity_queries,
                config.security_manager,
                config.session_file,
            )

            async with SessionSynchronizer(
                identity_provider,
                profiles,
                default_role=config.registration_role,
            ) as synchronizer:
                app.state.synchronizer = synchronizer
                validate = Validate(synchronizer, config.security_manager)

                auth_router = configure_auth_router(APIRouter(), validate)
                panel_router = configure_panel_router(
                    APIRouter(),
                    validate,
                    profiles,
                    patients,
                )

                app.include_router(auth_router, prefix="/auth", tags=["auth"])
                app.include_router(panel_router, prefix="/panel", tags=["panel"])

                yield

                LOGGER.info("Clinic admin panel is shutting down")

    app = FastAPI(
        title="Clinic Admin Panel API",
        version="0.1.0",
        lifespan=lifespan,
        root_path=config.root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        LOGGER.error("Record store failure on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Record store unavailable, please try again"},
        )

    @app.get("/")
    def read_root() -> RedirectResponse:
        return RedirectResponse(DEFAULT_LANDING_PATH)

    return app


def create_app(env_file: str | None = os.environ.get("ENV_FILE", ".env")) -> FastAPI:
    """Create and configure the FastAPI application.

    The default here is for uvicorn command line usage, in which case the user
    should set ENV_FILE environment variable if they want a different file.

    :param env_file: Optional path to the environment configuration file
    :return: Configured FastAPI application
    """
    config = load_config_from_env(env_file)
    configure_logging(config)
    return configure_fastapi_app(config)
