"""Delegated-authorization schemas."""

from pydantic import Field

from oraclenet_identity.schemas.common import (
    CamelModel,
    NonEmptyStr,
    OracleOut,
    SuccessResponse,
    WalletAddress,
)


class AuthRequestCreate(CamelModel):
    """Bot announces which Oracle it wants to become."""

    bot_wallet: WalletAddress = Field(..., alias="botWallet")
    oracle_name: NonEmptyStr = Field(..., alias="oracleName")
    birth_issue: int = Field(..., alias="birthIssue", ge=1)


class AuthRequestCreated(SuccessResponse):
    req_id: str = Field(..., alias="reqId")
    expires_at: str = Field(..., alias="expiresAt")


class AuthorizeRequest(CamelModel):
    """Human signs off on a pending request."""

    req_id: NonEmptyStr = Field(..., alias="reqId")
    human_wallet: WalletAddress = Field(..., alias="humanWallet")
    signature: NonEmptyStr
    message: NonEmptyStr


class AuthorizeResponse(SuccessResponse):
    auth_code: str = Field(..., alias="authCode")


class ClaimDelegatedRequest(CamelModel):
    """Bot redeems the auth code with its own signature."""

    auth_code: NonEmptyStr = Field(..., alias="authCode")
    bot_signature: NonEmptyStr = Field(..., alias="botSignature")
    bot_message: NonEmptyStr = Field(..., alias="botMessage")


class ClaimDelegatedResponse(SuccessResponse):
    created: bool
    oracle: OracleOut
    token: str


class AuthRequestStatusResponse(SuccessResponse):
    status: str
    oracle_name: str = Field(..., alias="oracleName")
    birth_issue: int = Field(..., alias="birthIssue")
    bot_wallet: str = Field(..., alias="botWallet")
    expires_at: str = Field(..., alias="expiresAt")

