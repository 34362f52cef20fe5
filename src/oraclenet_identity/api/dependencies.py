"""Shared API dependencies.

Each collaborator is resolved through a small ``get_*_dep`` function so tests
can swap it out with ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from oraclenet_identity.db.session import get_db
from oraclenet_identity.services.admin import AdminBridge
from oraclenet_identity.services.delegation import DelegationBroker
from oraclenet_identity.services.github import GitHubClient, get_github_client
from oraclenet_identity.services.identity import IdentityBinder
from oraclenet_identity.services.kv import get_kv_store
from oraclenet_identity.services.stores import StateStores

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_state_stores_dep() -> StateStores:
    return StateStores.over(get_kv_store())


def get_github_client_dep() -> GitHubClient:
    return get_github_client()


StoresDep = Annotated[StateStores, Depends(get_state_stores_dep)]
GitHubDep = Annotated[GitHubClient, Depends(get_github_client_dep)]


def get_identity_binder(db: SessionDep, stores: StoresDep, github: GitHubDep) -> IdentityBinder:
    return IdentityBinder(db, stores, github)


def get_delegation_broker(db: SessionDep, stores: StoresDep) -> DelegationBroker:
    return DelegationBroker(db, stores)


def get_admin_bridge(stores: StoresDep) -> AdminBridge:
    return AdminBridge(stores)


IdentityBinderDep = Annotated[IdentityBinder, Depends(get_identity_binder)]
DelegationBrokerDep = Annotated[DelegationBroker, Depends(get_delegation_broker)]
AdminBridgeDep = Annotated[AdminBridge, Depends(get_admin_bridge)]
