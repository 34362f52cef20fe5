# src/oraclenet_identity/api/endpoints/auth.py
"""Wallet sign-in endpoints: nonce handshake and Oracle linking."""

from __future__ import annotations

from fastapi import APIRouter

from oraclenet_identity.api.dependencies import IdentityBinderDep
from oraclenet_identity.schemas.auth import (
    LinkRequest,
    LinkResponse,
    NonceRequest,
    NonceResponse,
    VerifyRequest,
    VerifyResponse,
)
from oraclenet_identity.schemas.common import HumanOut, OracleOut

router = APIRouter(tags=["authentication"])


@router.post(
    "/nonce",
    summary="Issue a sign-in nonce",
    response_model=NonceResponse,
)
async def issue_nonce(payload: NonceRequest, binder: IdentityBinderDep) -> NonceResponse:
    """Store a single-use nonce and return the message the wallet must sign."""
    nonce, message = binder.issue_nonce(payload.address)
    return NonceResponse(nonce=nonce, message=message)


@router.post(
    "/verify",
    summary="Redeem a nonce with a wallet signature",
    response_model=VerifyResponse,
)
async def verify_wallet(payload: VerifyRequest, binder: IdentityBinderDep) -> VerifyResponse:
    result = binder.verify_wallet(payload.address, payload.signature, payload.name)
    return VerifyResponse(
        created=result.created,
        human=HumanOut.model_validate(result.human),
        oracles=[OracleOut.model_validate(oracle) for oracle in result.oracles],
        token=result.token,
    )


@router.post(
    "/link",
    summary="Link the signing wallet to an existing Oracle",
    response_model=LinkResponse,
)
async def link_oracle(payload: LinkRequest, binder: IdentityBinderDep) -> LinkResponse:
    result = binder.link(payload.address, payload.signature, payload.oracle_name)
    return LinkResponse(oracle=OracleOut.model_validate(result.oracle), token=result.token)
