# src/oraclenet_identity/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

Request models accept the camelCase field names clients send; responses are
serialized by alias so the wire format stays camelCase where it always was.
"""

from .admin import AdminCleanupRequest, AdminLoginRequest
from .auth import LinkRequest, NonceRequest, VerifyRequest
from .common import HumanOut, OracleOut
from .delegation import AuthorizeRequest, AuthRequestCreate, ClaimDelegatedRequest
from .identity import (
    AssignRequest,
    ClaimRequest,
    VerifyGithubIssueRequest,
    VerifyGithubRequest,
    VerifyIdentityRequest,
)

__all__ = [
    "AdminCleanupRequest", "AdminLoginRequest",
    "LinkRequest", "NonceRequest", "VerifyRequest",
    "HumanOut", "OracleOut",
    "AuthorizeRequest", "AuthRequestCreate", "ClaimDelegatedRequest",
    "AssignRequest", "ClaimRequest",
    "VerifyGithubIssueRequest", "VerifyGithubRequest", "VerifyIdentityRequest",
]
