"""FastAPI application main entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

load_dotenv()

from .middleware import register_error_handlers
from .routes import diagrams, graph, migration, navigation, system
from ..services.config import configure_logging, get_config

config = get_config()
configure_logging(config.log_level)
system.install_log_buffer()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler to log the vault being served."""
    logger.info(f"Serving diagram vault at {config.vault_path}")
    yield
    logger.info("Shutting down diagram vault API")


app = FastAPI(
    title="BAC4 Vault API",
    description="Persistence and graph consistency for C4 diagram vaults",
    version="3.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(graph.router, tags=["graph"])
app.include_router(diagrams.router, tags=["diagrams"])
app.include_router(navigation.router, tags=["navigation"])
app.include_router(migration.router, tags=["migration"])
app.include_router(system.router, tags=["system"])


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


__all__ = ["app"]
