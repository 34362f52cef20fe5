# src/oraclenet_identity/services/__init__.py
"""Business logic services for the OracleNet identity service."""

from .admin import AdminBridge
from .delegation import AuthCode, DelegationBroker
from .github import GitHubClient
from .identity import IdentityBinder
from .merkle import Assignment, MerkleTree
from .stores import StateStores

__all__ = [
    "AdminBridge",
    "Assignment",
    "AuthCode",
    "DelegationBroker",
    "GitHubClient",
    "IdentityBinder",
    "MerkleTree",
    "StateStores",
]
