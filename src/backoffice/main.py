import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from tortoise import Tortoise
from tortoise.contrib.fastapi import tortoise_exception_handlers

from .core.config import TORTOISE_ORM_CONFIG
from .core.logging_config import setup_logging
from .features.auth.router import router as auth_router
from .features.reports.dependencies import create_report_engine
from .features.reports.router import router as reports_router

setup_logging()
logger = logging.getLogger("backoffice.main")  # This logger will inherit from 'backoffice'


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Connects the database and builds the report engine on startup. On
    shutdown, waits for in-flight report computations before closing the
    database connections they write to.
    """
    logger.info("Starting application...")
    await Tortoise.init(config=TORTOISE_ORM_CONFIG)
    logger.info("Tortoise-ORM has been initialized.")

    app.state.report_engine = create_report_engine()

    yield

    await app.state.report_engine.dispatcher.shutdown()
    await Tortoise.close_connections()
    logger.info("Tortoise-ORM connections have been closed.")


app = FastAPI(
    title="Back-office Reports API",
    description="Asynchronous sales, inventory, customer, order and financial reports.",
    version="0.1.0",
    exception_handlers=tortoise_exception_handlers(),
    lifespan=lifespan,
)


@app.get("/")
async def read_root(request: Request):
    """
    Root endpoint for the API.
    """
    client_host = request.client.host if request.client else "unknown client"
    logger.info(f"Root endpoint '/' accessed by {client_host}")
    return {"message": "Welcome to the Back-office Reports API!"}


app.include_router(auth_router, prefix="/api/v1")
app.include_router(reports_router, prefix="/api/v1")
