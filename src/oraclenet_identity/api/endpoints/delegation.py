# src/oraclenet_identity/api/endpoints/delegation.py
"""Delegated authorization endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from oraclenet_identity.api.dependencies import DelegationBrokerDep
from oraclenet_identity.schemas.common import OracleOut
from oraclenet_identity.schemas.delegation import (
    AuthorizeRequest,
    AuthorizeResponse,
    AuthRequestCreate,
    AuthRequestCreated,
    AuthRequestStatusResponse,
    ClaimDelegatedRequest,
    ClaimDelegatedResponse,
)

router = APIRouter(tags=["delegation"])


@router.post(
    "/auth-request",
    summary="Open an authorization request for a bot wallet",
    response_model=AuthRequestCreated,
)
async def create_auth_request(
    payload: AuthRequestCreate, broker: DelegationBrokerDep
) -> AuthRequestCreated:
    req_id, record = broker.create_request(
        payload.bot_wallet, payload.oracle_name, payload.birth_issue
    )
    return AuthRequestCreated(req_id=req_id, expires_at=record.expires_at)


@router.post(
    "/authorize",
    summary="Authorize a pending request with the human's signature",
    response_model=AuthorizeResponse,
)
async def authorize(payload: AuthorizeRequest, broker: DelegationBrokerDep) -> AuthorizeResponse:
    auth_code = broker.authorize(
        payload.req_id, payload.human_wallet, payload.signature, payload.message
    )
    return AuthorizeResponse(auth_code=auth_code)


@router.post(
    "/claim-delegated",
    summary="Redeem an auth code with the bot's signature",
    response_model=ClaimDelegatedResponse,
)
async def claim_delegated(
    payload: ClaimDelegatedRequest, broker: DelegationBrokerDep
) -> ClaimDelegatedResponse:
    result = broker.claim(payload.auth_code, payload.bot_signature, payload.bot_message)
    return ClaimDelegatedResponse(
        created=result.created,
        oracle=OracleOut.model_validate(result.oracle),
        token=result.token,
    )


@router.get(
    "/auth-request/{req_id}",
    summary="Poll the status of an authorization request",
    response_model=AuthRequestStatusResponse,
)
async def get_auth_request(req_id: str, broker: DelegationBrokerDep) -> AuthRequestStatusResponse:
    record = broker.get_status(req_id)
    return AuthRequestStatusResponse(
        status=record.status.value,
        oracle_name=record.oracle_name,
        birth_issue=record.birth_issue,
        bot_wallet=record.bot_wallet,
        expires_at=record.expires_at,
    )
