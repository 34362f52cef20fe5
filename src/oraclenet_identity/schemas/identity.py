"""GitHub-proof and Merkle-assignment schemas."""

from pydantic import Field

from oraclenet_identity.schemas.common import (
    CamelModel,
    HumanOut,
    NonEmptyStr,
    OracleOut,
    SuccessResponse,
    WalletAddress,
)


class VerifyGithubRequest(CamelModel):
    """Gist proof: the gist's first file holds ``{message, signature}``."""

    gist_url: NonEmptyStr = Field(..., alias="gistUrl")
    signer: WalletAddress


class VerifyGithubResponse(SuccessResponse):
    github_username: str
    wallet: str


class VerifyGithubIssueRequest(CamelModel):
    """Issue proof: an issue mentioning the wallet, plus a wallet signature."""

    wallet: WalletAddress
    issue_url: NonEmptyStr = Field(..., alias="issueUrl")
    signature: NonEmptyStr
    message: NonEmptyStr


class VerifyGithubIssueResponse(SuccessResponse):
    github_username: str
    wallet: str
    human_updated: bool
    oracles_updated: int = 0


class CheckVerifiedResponse(CamelModel):
    verified: bool
    github_username: str | None = None
    verified_at: str | None = None


class RevokeVerifiedRequest(CamelModel):
    signature: NonEmptyStr
    message: NonEmptyStr


class AssignmentIn(CamelModel):
    """One Merkle leaf. ``github_repo`` is carried but not hashed."""

    bot: WalletAddress
    oracle: NonEmptyStr
    issue: int = Field(..., ge=0)
    github_repo: str | None = None


class AssignRequest(CamelModel):
    merkle_root: NonEmptyStr = Field(..., alias="merkleRoot")
    assignments: list[AssignmentIn] = Field(..., min_length=1)
    signature: NonEmptyStr
    message: NonEmptyStr
    human_wallet: WalletAddress = Field(..., alias="humanWallet")


class AssignResponse(SuccessResponse):
    merkle_root: str = Field(..., alias="merkleRoot")
    bots: int
    indexed: int
    github_username: str


class ClaimRequest(CamelModel):
    signature: NonEmptyStr
    message: NonEmptyStr
    bot_wallet: WalletAddress = Field(..., alias="botWallet")
    leaf: AssignmentIn
    proof: list[str]
    merkle_root: NonEmptyStr = Field(..., alias="merkleRoot")


class ClaimResponse(SuccessResponse):
    created: bool
    oracle: OracleOut
    token: str


class VerifyIdentityRequest(CamelModel):
    wallet: WalletAddress
    verification_issue_url: NonEmptyStr = Field(..., alias="verificationIssueUrl")
    birth_issue_url: NonEmptyStr = Field(..., alias="birthIssueUrl")
    signature: NonEmptyStr
    message: NonEmptyStr


class VerifyIdentityResponse(SuccessResponse):
    github_username: str
    birth_issue: int
    wallet: str
    oracle_name: str
    fully_verified: bool = True
    created: bool
    human: HumanOut
    oracle: OracleOut
    token: str
