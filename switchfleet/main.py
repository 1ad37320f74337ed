"""FastAPI application entry-point."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from switchfleet import __version__
from switchfleet.config import settings
from switchfleet.routers import devices, health
from switchfleet.utils.logging import get_logger, setup_logging

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    setup_logging()
    log.info(
        "app.started",
        version=__version__,
        device_list=settings.switchfleet_device_list_file,
        script_list=settings.switchfleet_script_list_file,
        host_key_policy=settings.switchfleet_host_key_policy,
    )
    yield
    # Sessions are per request and closed by the request that opened them


app = FastAPI(
    title="switchfleet",
    description="Push scripts to network switches over SSH and collect the output",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-API-Key"],
)

app.include_router(health.router)
app.include_router(devices.router)
