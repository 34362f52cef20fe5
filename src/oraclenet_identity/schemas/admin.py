"""Admin bridge schemas."""

from pydantic import Field

from oraclenet_identity.schemas.common import CamelModel, NonEmptyStr, SuccessResponse, WalletAddress


class AdminLoginRequest(CamelModel):
    address: WalletAddress
    signature: NonEmptyStr
    message: NonEmptyStr


class AdminLoginResponse(SuccessResponse):
    token: str
    email: str | None = None


class AdminCleanupRequest(CamelModel):
    wallet: WalletAddress
    admin_email: NonEmptyStr = Field(..., alias="adminEmail")
    admin_password: NonEmptyStr = Field(..., alias="adminPassword")
