"""Wallet sign-in schemas."""

from pydantic import Field

from oraclenet_identity.schemas.common import (
    CamelModel,
    HumanOut,
    NonEmptyStr,
    OracleOut,
    SuccessResponse,
    WalletAddress,
)


class NonceRequest(CamelModel):
    """Request a sign-in nonce for a wallet."""

    address: WalletAddress


class NonceResponse(SuccessResponse):
    nonce: str = Field(..., description="Single-use nonce, valid for five minutes")
    message: str = Field(..., description="Exact text the wallet must sign")


class VerifyRequest(CamelModel):
    """Signed sign-in message for a previously issued nonce."""

    address: WalletAddress
    signature: NonEmptyStr
    name: str | None = Field(None, max_length=100, description="Display name for new humans")


class VerifyResponse(SuccessResponse):
    created: bool
    human: HumanOut
    oracles: list[OracleOut]
    token: str


class LinkRequest(CamelModel):
    """Bind the signing wallet to an existing Oracle by name."""

    address: WalletAddress
    signature: NonEmptyStr
    oracle_name: NonEmptyStr = Field(..., alias="oracleName")


class LinkResponse(SuccessResponse):
    linked: bool = True
    oracle: OracleOut
    token: str
