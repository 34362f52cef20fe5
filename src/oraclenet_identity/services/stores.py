"""Typed views over the ephemeral state store.

Each store owns one key prefix and exposes only the operations its records
need. None of them spans more than one key; callers that write several keys
sequence the writes themselves.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from oraclenet_identity.core.settings import settings
from oraclenet_identity.services.kv import KeyValueStore


@dataclass(frozen=True)
class NonceRecord:
    nonce: str
    timestamp: int  # epoch milliseconds


@dataclass(frozen=True)
class VerifiedWallet:
    github_username: str
    verified_at: str
    gist_url: str | None = None


@dataclass(frozen=True)
class MerkleRootRecord:
    human_wallet: str
    github_username: str
    assignments: list[dict[str, Any]]
    assigned_at: str


@dataclass(frozen=True)
class BotAssignmentRecord:
    merkle_root: str
    oracle: str
    issue: int
    human_wallet: str
    github_username: str


class AuthStatus(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    CLAIMED = "claimed"


@dataclass(frozen=True)
class AuthRequest:
    bot_wallet: str
    oracle_name: str
    birth_issue: int
    created_at: str
    expires_at: str
    status: AuthStatus = AuthStatus.PENDING
    human_wallet: str | None = None
    github_username: str | None = None
    authorized_at: str | None = None
    claimed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuthRequest:
        return cls(**{**data, "status": AuthStatus(data["status"])})


@dataclass(frozen=True)
class BirthAuthor:
    author: str
    fetched_at: str


class _PrefixedStore:
    prefix: str = ""

    def __init__(self, backend: KeyValueStore) -> None:
        self.backend = backend

    def _key(self, suffix: str) -> str:
        return f"{self.prefix}{suffix.lower()}"


class NonceStore(_PrefixedStore):
    """Sign-in nonces keyed by wallet; one live nonce per wallet."""

    prefix = "nonce:"

    def issue(self, wallet: str, record: NonceRecord) -> None:
        self.backend.put(self._key(wallet), asdict(record), ttl=settings.nonce_ttl_seconds)

    def get(self, wallet: str) -> NonceRecord | None:
        data = self.backend.get(self._key(wallet))
        return NonceRecord(**data) if data is not None else None

    def redeem(self, wallet: str, record: NonceRecord) -> bool:
        """Delete `record` only if it is still the live nonce; False if another caller won."""
        return self.backend.compare_and_delete(self._key(wallet), asdict(record))


class VerifiedStore(_PrefixedStore):
    """Permanent wallet → GitHub bindings."""

    prefix = "verified:"

    def put(self, wallet: str, record: VerifiedWallet) -> None:
        self.backend.put(self._key(wallet), asdict(record))

    def get(self, wallet: str) -> VerifiedWallet | None:
        data = self.backend.get(self._key(wallet))
        return VerifiedWallet(**data) if data is not None else None

    def delete(self, wallet: str) -> None:
        self.backend.delete(self._key(wallet))


class RootStore(_PrefixedStore):
    """Committed Merkle roots plus the per-bot fan-out index."""

    prefix = "root:"
    bot_prefix = "bot:"

    def put_root(self, root: str, record: MerkleRootRecord) -> None:
        self.backend.put(self._key(root), asdict(record))

    def get_root(self, root: str) -> MerkleRootRecord | None:
        data = self.backend.get(self._key(root))
        return MerkleRootRecord(**data) if data is not None else None

    def put_bot(self, bot_wallet: str, record: BotAssignmentRecord) -> None:
        self.backend.put(f"{self.bot_prefix}{bot_wallet.lower()}", asdict(record))

    def get_bot(self, bot_wallet: str) -> BotAssignmentRecord | None:
        data = self.backend.get(f"{self.bot_prefix}{bot_wallet.lower()}")
        return BotAssignmentRecord(**data) if data is not None else None

    def delete_bot(self, bot_wallet: str) -> None:
        self.backend.delete(f"{self.bot_prefix}{bot_wallet.lower()}")


class AuthRequestStore(_PrefixedStore):
    """Delegated-authorization requests; transitions are compare-and-swap."""

    prefix = "authreq:"

    def _key(self, suffix: str) -> str:
        # Request ids are generated lowercase; keep the caller's value verbatim.
        return f"{self.prefix}{suffix}"

    def create(self, req_id: str, record: AuthRequest) -> None:
        self.backend.put(self._key(req_id), record.to_dict(), ttl=settings.auth_request_ttl_seconds)

    def get(self, req_id: str) -> AuthRequest | None:
        data = self.backend.get(self._key(req_id))
        return AuthRequest.from_dict(data) if data is not None else None

    def transition(
        self, req_id: str, current: AuthRequest, updated: AuthRequest, ttl: int
    ) -> bool:
        """Replace `current` with `updated` only if nobody changed it meanwhile."""
        return self.backend.compare_and_swap(
            self._key(req_id), current.to_dict(), updated.to_dict(), ttl=ttl
        )


class BirthAuthorStore(_PrefixedStore):
    """Short-lived cache of birth-issue author logins."""

    prefix = "birth_author:"

    def get(self, issue_ref: str) -> BirthAuthor | None:
        data = self.backend.get(self._key(issue_ref))
        return BirthAuthor(**data) if data is not None else None

    def put(self, issue_ref: str, record: BirthAuthor) -> None:
        self.backend.put(self._key(issue_ref), asdict(record), ttl=settings.birth_author_ttl_seconds)


@dataclass(frozen=True)
class StateStores:
    """Bundle of typed stores sharing one backend."""

    nonces: NonceStore
    verified: VerifiedStore
    roots: RootStore
    auth_requests: AuthRequestStore
    birth_authors: BirthAuthorStore

    @classmethod
    def over(cls, backend: KeyValueStore) -> StateStores:
        return cls(
            nonces=NonceStore(backend),
            verified=VerifiedStore(backend),
            roots=RootStore(backend),
            auth_requests=AuthRequestStore(backend),
            birth_authors=BirthAuthorStore(backend),
        )


__all__ = [
    "AuthRequest",
    "AuthRequestStore",
    "AuthStatus",
    "BirthAuthor",
    "BirthAuthorStore",
    "BotAssignmentRecord",
    "MerkleRootRecord",
    "NonceRecord",
    "NonceStore",
    "RootStore",
    "StateStores",
    "VerifiedStore",
    "VerifiedWallet",
]
