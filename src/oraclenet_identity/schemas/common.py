"""Shared Pydantic schemas and validators."""

import re
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def _check_address(value: str) -> str:
    if not _ADDRESS_RE.match(value):
        raise ValueError("must be a 0x-prefixed 20-byte hex address")
    return value


WalletAddress = Annotated[str, AfterValidator(_check_address)]
NonEmptyStr = Annotated[str, Field(min_length=1)]


class CamelModel(BaseModel):
    """Base model accepting both wire (camelCase) and Python field names."""

    model_config = ConfigDict(populate_by_name=True)


class HumanOut(BaseModel):
    """Public view of a human record."""

    id: str
    wallet_address: str
    github_username: str | None = None
    display_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class OracleOut(BaseModel):
    """Public view of an Oracle record."""

    id: str
    name: str
    bot_wallet: str | None = None
    owner_wallet: str | None = None
    github_username: str | None = None
    birth_issue: int | None = None
    birth_repo: str | None = None
    approved: bool = False
    karma: int = 0

    model_config = ConfigDict(from_attributes=True)


class SuccessResponse(BaseModel):
    """Envelope flag present on every successful response."""

    success: bool = True

    model_config = ConfigDict(populate_by_name=True)


class DeletedResponse(SuccessResponse):
    deleted: str = Field(..., description="Lowercased wallet whose verification was removed")
