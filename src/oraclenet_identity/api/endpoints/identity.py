# src/oraclenet_identity/api/endpoints/identity.py
"""GitHub proof and Merkle assignment endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from oraclenet_identity.api.dependencies import IdentityBinderDep
from oraclenet_identity.schemas.common import DeletedResponse, HumanOut, OracleOut
from oraclenet_identity.schemas.identity import (
    AssignmentIn,
    AssignRequest,
    AssignResponse,
    CheckVerifiedResponse,
    ClaimRequest,
    ClaimResponse,
    RevokeVerifiedRequest,
    VerifyGithubIssueRequest,
    VerifyGithubIssueResponse,
    VerifyGithubRequest,
    VerifyGithubResponse,
    VerifyIdentityRequest,
    VerifyIdentityResponse,
)
from oraclenet_identity.services.merkle import Assignment

router = APIRouter(tags=["identity"])


def _to_assignment(item: AssignmentIn) -> Assignment:
    return Assignment(bot=item.bot, oracle=item.oracle, issue=item.issue, github_repo=item.github_repo)


@router.post(
    "/verify-github",
    summary="Verify GitHub ownership with a signed gist",
    response_model=VerifyGithubResponse,
)
async def verify_github(
    payload: VerifyGithubRequest, binder: IdentityBinderDep
) -> VerifyGithubResponse:
    record = await binder.verify_github_gist(payload.gist_url, payload.signer)
    return VerifyGithubResponse(
        github_username=record.github_username,
        wallet=payload.signer.lower(),
    )


@router.post(
    "/verify-github-issue",
    summary="Verify GitHub ownership with an issue that mentions the wallet",
    response_model=VerifyGithubIssueResponse,
)
async def verify_github_issue(
    payload: VerifyGithubIssueRequest, binder: IdentityBinderDep
) -> VerifyGithubIssueResponse:
    result = await binder.verify_github_issue(
        payload.wallet, payload.issue_url, payload.signature, payload.message
    )
    return VerifyGithubIssueResponse(
        github_username=result.github_username,
        wallet=result.wallet,
        human_updated=result.human_updated,
        oracles_updated=result.oracles_updated,
    )


@router.get(
    "/check-verified",
    summary="Check whether a wallet has a GitHub verification",
    response_model=CheckVerifiedResponse,
    response_model_exclude_none=True,
)
async def check_verified(
    binder: IdentityBinderDep,
    wallet: Annotated[str | None, Query()] = None,
) -> CheckVerifiedResponse:
    """Missing or unknown wallets are reported as unverified, never as errors."""
    record = binder.check_verified(wallet) if wallet else None
    if record is None:
        return CheckVerifiedResponse(verified=False)
    return CheckVerifiedResponse(
        verified=True,
        github_username=record.github_username,
        verified_at=record.verified_at,
    )


@router.delete(
    "/verified/{wallet}",
    summary="Remove a wallet's GitHub verification",
    response_model=DeletedResponse,
)
async def revoke_verification(
    wallet: str, payload: RevokeVerifiedRequest, binder: IdentityBinderDep
) -> DeletedResponse:
    deleted = binder.revoke_verification(wallet, payload.signature, payload.message)
    return DeletedResponse(deleted=deleted)


@router.post(
    "/verify-identity",
    summary="Bind wallet, GitHub account, and birth issue in one step",
    response_model=VerifyIdentityResponse,
)
async def verify_identity(
    payload: VerifyIdentityRequest, binder: IdentityBinderDep
) -> VerifyIdentityResponse:
    result = await binder.verify_identity(
        payload.wallet,
        payload.verification_issue_url,
        payload.birth_issue_url,
        payload.signature,
        payload.message,
    )
    return VerifyIdentityResponse(
        github_username=result.github_username,
        birth_issue=result.birth_issue,
        wallet=result.wallet,
        oracle_name=result.oracle_name,
        created=result.created,
        human=HumanOut.model_validate(result.human),
        oracle=OracleOut.model_validate(result.oracle),
        token=result.token,
    )


@router.post(
    "/assign",
    summary="Commit a signed Merkle root of bot assignments",
    response_model=AssignResponse,
)
async def assign(payload: AssignRequest, binder: IdentityBinderDep) -> AssignResponse:
    result = binder.assign(
        payload.merkle_root,
        [_to_assignment(item) for item in payload.assignments],
        payload.signature,
        payload.message,
        payload.human_wallet,
    )
    return AssignResponse(
        merkle_root=result.merkle_root,
        bots=result.bots,
        indexed=result.indexed,
        github_username=result.github_username,
    )


@router.post(
    "/claim",
    summary="Claim an Oracle with a Merkle inclusion proof",
    response_model=ClaimResponse,
)
async def claim(payload: ClaimRequest, binder: IdentityBinderDep) -> ClaimResponse:
    result = binder.claim(
        payload.signature,
        payload.message,
        payload.bot_wallet,
        _to_assignment(payload.leaf),
        payload.proof,
        payload.merkle_root,
    )
    return ClaimResponse(
        created=result.created,
        oracle=OracleOut.model_validate(result.oracle),
        token=result.token,
    )
