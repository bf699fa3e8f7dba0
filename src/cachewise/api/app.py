"""FastAPI application with lifespan management."""

from __future__ import annotations

import importlib.metadata
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from cachewise.api.middleware.error_handler import register_error_handlers
from cachewise.api.routes import health, invoke, metrics
from cachewise.core.config import APIConfig, AppSettings
from cachewise.core.startup_checks import validate_settings, warn_if_uncacheable
from cachewise.hooks import setup_logging
from cachewise.services.invocation_service import InvocationService
from cachewise.tokenizer import TokenCounter


def _get_version() -> str:
    """Read package version from installed metadata, with dev fallback."""
    try:
        return importlib.metadata.version("cachewise")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0-dev"


def create_app(
    service: Optional[InvocationService] = None,
    settings: Optional[AppSettings] = None,
) -> FastAPI:
    """Build the app. A prebuilt ``service`` skips settings-driven wiring."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app_settings = settings or AppSettings()
        app.state.settings = app_settings
        if service is not None:
            app.state.service = service
            yield
            return

        validate_settings(app_settings)
        setup_logging(app_settings.observability)
        built = InvocationService.from_settings(app_settings)
        warn_if_uncacheable(
            app_settings,
            built.composer.template,
            TokenCounter(method=app_settings.tokenizer.method, model=app_settings.tokenizer.model),
        )
        app.state.service = built
        try:
            yield
        finally:
            await built.aclose()

    api_config = settings.api if settings is not None else APIConfig()
    app = FastAPI(
        title=api_config.title,
        description=api_config.description,
        version=_get_version(),
        lifespan=lifespan,
    )
    register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(invoke.router, prefix="/api")
    return app


app = create_app()
