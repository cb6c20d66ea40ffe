"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config.settings import settings
from payroll.api.routes import payroll_error_handler, router
from payroll.exceptions import PayrollError
from payroll.orchestrator import PayrollOrchestrator
from payroll.structures import StructureRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: configure logging, build orchestrator and structure registry."""
    logging.basicConfig(level=settings.log_level)
    logger.info("Starting up with rate schedule %s...", settings.rate_schedule)

    app.state.orchestrator = PayrollOrchestrator()
    app.state.structures = StructureRegistry()

    yield

    logger.info("Shutting down...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="Payroll Engine", lifespan=lifespan)
    app.add_exception_handler(PayrollError, payroll_error_handler)  # type: ignore[arg-type]
    app.include_router(router)
    return app
