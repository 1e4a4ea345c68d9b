"""
Paystream - FastAPI Application
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .. import __version__
from ..config import PaystreamConfig
from ..services import Services, build_services
from .errors import register_error_handlers
from .routes import executions, health, payroll, reviews

logger = logging.getLogger(__name__)


def create_app(
    services: Optional[Services] = None, config: Optional[PaystreamConfig] = None
) -> FastAPI:
    """Build the API. Services are created at startup unless supplied."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.services is None:
            app.state.services = build_services(config)
        network = app.state.services.network
        await network.connect()
        logger.info(f"Paystream API ready, funding account {network.funding_address}")
        yield
        await network.disconnect()
        logger.info("Shutting down Paystream API...")

    app = FastAPI(
        title="Paystream",
        description="Payroll decision and settlement pipeline",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services
    register_error_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(payroll.router, tags=["Payroll"])
    app.include_router(reviews.router, prefix="/workflows", tags=["Reviews"])
    app.include_router(
        executions.router, prefix="/workflows/executions", tags=["Executions"]
    )
    return app
