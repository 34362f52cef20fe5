# src/oraclenet_identity/api/endpoints/admin.py
"""Admin endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from oraclenet_identity.api.dependencies import AdminBridgeDep
from oraclenet_identity.schemas.admin import (
    AdminCleanupRequest,
    AdminLoginRequest,
    AdminLoginResponse,
)
from oraclenet_identity.schemas.common import DeletedResponse

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/login",
    summary="Exchange an admin wallet signature for an admin session",
    response_model=AdminLoginResponse,
)
async def admin_login(payload: AdminLoginRequest, bridge: AdminBridgeDep) -> AdminLoginResponse:
    session = bridge.login(payload.address, payload.signature, payload.message)
    return AdminLoginResponse(token=session.token, email=session.email)


@router.post(
    "/cleanup",
    summary="Remove a wallet's verification with admin credentials",
    response_model=DeletedResponse,
)
async def admin_cleanup(payload: AdminCleanupRequest, bridge: AdminBridgeDep) -> DeletedResponse:
    deleted = bridge.cleanup(payload.wallet, payload.admin_email, payload.admin_password)
    return DeletedResponse(deleted=deleted)
