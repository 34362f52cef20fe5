# src/oraclenet_identity/main.py
"""Main entry point for the OracleNet identity service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from oraclenet_identity.api.endpoints import (
    admin_router,
    auth_router,
    delegation_router,
    identity_router,
)
from oraclenet_identity.core.errors import (
    IdentityServiceError,
    identity_error_handler,
    request_validation_error_handler,
    unexpected_error_handler,
)
from oraclenet_identity.core.settings import settings
from oraclenet_identity.db.session import create_tables
from oraclenet_identity.services.github import close_github_client

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Wallet, GitHub, and Oracle identity binding with delegated authorization",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

app.add_exception_handler(IdentityServiceError, identity_error_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, request_validation_error_handler)  # type: ignore[arg-type]
app.add_exception_handler(Exception, unexpected_error_handler)

# Routes are mounted at the root; clients call /nonce, /verify, ... directly.
app.include_router(auth_router)
app.include_router(identity_router)
app.include_router(delegation_router)
app.include_router(admin_router)


@app.on_event("startup")
async def on_startup() -> None:
    create_tables()
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_github_client()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, object]:
    """Root endpoint with basic information about the service."""
    return {
        "service": settings.app_name,
        "status": "ok",
        "version": settings.app_version,
        "features": ["siwe", "github-proof", "merkle-identity", "delegated-auth", "admin-bridge"],
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("oraclenet_identity.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
