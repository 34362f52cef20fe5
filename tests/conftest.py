# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import keccak
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STATE_STORE_URL", "memory://")

from oraclenet_identity.api.dependencies import get_github_client_dep, get_state_stores_dep
from oraclenet_identity.db.session import Base
from oraclenet_identity.db.session import get_db as app_get_session
from oraclenet_identity.main import app as fastapi_app
from oraclenet_identity.services.github import GitHubClient
from oraclenet_identity.services.kv import MemoryKeyValueStore
from oraclenet_identity.services.stores import StateStores

TEST_DB_URL = "sqlite://"
GITHUB_TEST_URL = "https://api.github.test"


def make_account(seed: str) -> LocalAccount:
    """Deterministic wallet derived from a readable seed."""
    return Account.from_key(keccak(text=seed))


def sign(account: LocalAccount, message: str) -> str:
    """personal_sign `message` and return the 0x-prefixed 65-byte signature."""
    signed = account.sign_message(encode_defunct(text=message))
    return "0x" + bytes(signed.signature).hex()


@dataclass
class FakeGitHub:
    """In-memory GitHub REST API served through httpx.MockTransport."""

    gists: dict[str, dict[str, Any]] = field(default_factory=dict)
    issues: dict[str, dict[str, Any]] = field(default_factory=dict)
    requests: list[str] = field(default_factory=list)
    fail_with: int | None = None

    def add_gist(self, gist_id: str, owner: str | None, files: dict[str, str]) -> str:
        self.gists[gist_id] = {
            "id": gist_id,
            "owner": {"login": owner} if owner else None,
            "files": {name: {"filename": name, "content": body} for name, body in files.items()},
        }
        return f"https://gist.github.com/{owner or 'anon'}/{gist_id}"

    def add_issue(
        self, owner: str, repo: str, number: int, *, author: str | None, title: str = "", body: str = ""
    ) -> str:
        self.issues[f"/repos/{owner}/{repo}/issues/{number}"] = {
            "number": number,
            "title": title,
            "body": body,
            "user": {"login": author} if author else None,
        }
        return f"https://github.com/{owner}/{repo}/issues/{number}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append(path)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"message": "boom"})
        if path.startswith("/gists/"):
            gist = self.gists.get(path.removeprefix("/gists/"))
            if gist is not None:
                return httpx.Response(200, json=gist)
        elif path in self.issues:
            return httpx.Response(200, json=self.issues[path])
        return httpx.Response(404, json={"message": "Not Found"})

    def client(self) -> GitHubClient:
        return GitHubClient(
            base_url=GITHUB_TEST_URL,
            token="",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def stores(kv_store: MemoryKeyValueStore) -> StateStores:
    return StateStores.over(kv_store)


@pytest.fixture()
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    stores: StateStores,
    fake_github: FakeGitHub,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    github_client = fake_github.client()
    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_state_stores_dep] = lambda: stores
    app.dependency_overrides[get_github_client_dep] = lambda: github_client
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_state_stores_dep, None)
        app.dependency_overrides.pop(get_github_client_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def human() -> LocalAccount:
    """Wallet of a human who proves GitHub ownership."""
    return make_account("oraclenet-test-human")


@pytest.fixture()
def bot() -> LocalAccount:
    """Wallet of a bot that claims an Oracle."""
    return make_account("oraclenet-test-bot")


@pytest.fixture()
def stranger() -> LocalAccount:
    return make_account("oraclenet-test-stranger")


@pytest.fixture()
def verified_human(human: LocalAccount, fake_github: FakeGitHub, client: TestClient) -> LocalAccount:
    """A human whose wallet is bound to GitHub user ``nazt`` through a gist."""
    message = f"I own {human.address}"
    gist_url = fake_github.add_gist(
        "abc123",
        "nazt",
        {"proof.json": f'{{"message": "{message}", "signature": "{sign(human, message)}"}}'},
    )
    response = client.post("/verify-github", json={"gistUrl": gist_url, "signer": human.address})
    assert response.status_code == 200, response.text
    return human
