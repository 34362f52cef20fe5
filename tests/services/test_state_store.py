# tests/services/test_state_store.py
"""Tests for the ephemeral state store and its typed wrappers."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from unittest.mock import MagicMock

import pytest
import redis

from oraclenet_identity.core.errors import UpstreamError
from oraclenet_identity.services.kv import MemoryKeyValueStore, RedisKeyValueStore, build_store
from oraclenet_identity.services.stores import (
    AuthRequest,
    AuthStatus,
    BotAssignmentRecord,
    NonceRecord,
    StateStores,
    VerifiedWallet,
)

WALLET = "0xAbCdEf0000000000000000000000000000000001"


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory(clock: FakeClock) -> MemoryKeyValueStore:
    return MemoryKeyValueStore(clock=clock)


class TestMemoryBackend:
    def test_put_get_delete(self, memory: MemoryKeyValueStore) -> None:
        memory.put("k", {"a": 1})
        assert memory.get("k") == {"a": 1}
        memory.delete("k")
        assert memory.get("k") is None

    def test_ttl_expires_lazily(self, memory: MemoryKeyValueStore, clock: FakeClock) -> None:
        memory.put("k", {"a": 1}, ttl=300)
        clock.advance(299)
        assert memory.get("k") == {"a": 1}
        clock.advance(1)
        assert memory.get("k") is None

    def test_compare_and_swap_has_one_winner(self, memory: MemoryKeyValueStore) -> None:
        memory.put("k", {"status": "pending"})
        assert memory.compare_and_swap("k", {"status": "pending"}, {"status": "authorized"})
        assert not memory.compare_and_swap("k", {"status": "pending"}, {"status": "authorized"})
        assert memory.get("k") == {"status": "authorized"}

    def test_compare_and_swap_on_missing_key_fails(self, memory: MemoryKeyValueStore) -> None:
        assert not memory.compare_and_swap("missing", {}, {"a": 1})
        assert memory.get("missing") is None

    def test_compare_and_delete_is_conditional(self, memory: MemoryKeyValueStore) -> None:
        memory.put("k", {"nonce": "a"})
        assert not memory.compare_and_delete("k", {"nonce": "b"})
        assert memory.compare_and_delete("k", {"nonce": "a"})
        assert not memory.compare_and_delete("k", {"nonce": "a"})
        assert memory.get("k") is None

    def test_compare_and_swap_resets_ttl(self, memory: MemoryKeyValueStore, clock: FakeClock) -> None:
        memory.put("k", {"v": 1}, ttl=1800)
        clock.advance(1000)
        assert memory.compare_and_swap("k", {"v": 1}, {"v": 2}, ttl=60)
        clock.advance(61)
        assert memory.get("k") is None


class TestRedisBackend:
    def test_write_failure_becomes_upstream_error(self) -> None:
        client = MagicMock(spec=redis.Redis)
        client.set.side_effect = redis.ConnectionError("down")
        store = RedisKeyValueStore(client)
        with pytest.raises(UpstreamError, match="State store write failed"):
            store.put("k", {"a": 1})

    def test_get_decodes_json(self) -> None:
        client = MagicMock(spec=redis.Redis)
        client.get.return_value = '{"a":1}'
        assert RedisKeyValueStore(client).get("k") == {"a": 1}

    def test_put_passes_ttl(self) -> None:
        client = MagicMock(spec=redis.Redis)
        RedisKeyValueStore(client).put("k", {"a": 1}, ttl=300)
        client.set.assert_called_once_with("k", '{"a":1}', ex=300)

    def test_compare_and_swap_loses_on_watch_error(self) -> None:
        pipe = MagicMock()
        pipe.get.return_value = '{"status":"pending"}'
        pipe.execute.side_effect = redis.WatchError()
        client = MagicMock(spec=redis.Redis)
        client.pipeline.return_value.__enter__.return_value = pipe
        store = RedisKeyValueStore(client)
        assert not store.compare_and_swap("k", {"status": "pending"}, {"status": "authorized"})

    def test_compare_and_swap_rejects_changed_value(self) -> None:
        pipe = MagicMock()
        pipe.get.return_value = '{"status":"claimed"}'
        client = MagicMock(spec=redis.Redis)
        client.pipeline.return_value.__enter__.return_value = pipe
        store = RedisKeyValueStore(client)
        assert not store.compare_and_swap("k", {"status": "pending"}, {"status": "authorized"})
        pipe.multi.assert_not_called()


    def test_compare_and_delete_deletes_inside_transaction(self) -> None:
        pipe = MagicMock()
        pipe.get.return_value = '{"nonce":"a"}'
        client = MagicMock(spec=redis.Redis)
        client.pipeline.return_value.__enter__.return_value = pipe
        assert RedisKeyValueStore(client).compare_and_delete("k", {"nonce": "a"})
        pipe.multi.assert_called_once()
        pipe.delete.assert_called_once_with("k")

    def test_compare_and_delete_loses_on_watch_error(self) -> None:
        pipe = MagicMock()
        pipe.get.return_value = '{"nonce":"a"}'
        pipe.execute.side_effect = redis.WatchError()
        client = MagicMock(spec=redis.Redis)
        client.pipeline.return_value.__enter__.return_value = pipe
        assert not RedisKeyValueStore(client).compare_and_delete("k", {"nonce": "a"})

def test_build_store_selects_backend() -> None:
    assert isinstance(build_store("memory://"), MemoryKeyValueStore)
    with pytest.raises(ValueError):
        build_store("ftp://nowhere")


class TestTypedStores:
    def test_nonce_is_single_use_and_keyed_by_lowercase_wallet(
        self, memory: MemoryKeyValueStore
    ) -> None:
        stores = StateStores.over(memory)
        record = NonceRecord(nonce="ab12cd34", timestamp=1)
        stores.nonces.issue(WALLET, record)
        assert memory.get(f"nonce:{WALLET.lower()}") == {"nonce": "ab12cd34", "timestamp": 1}
        assert stores.nonces.get(WALLET.upper().replace("0X", "0x")) is not None
        assert stores.nonces.redeem(WALLET, record)
        assert not stores.nonces.redeem(WALLET, record)
        assert stores.nonces.get(WALLET) is None

    def test_redeem_refuses_a_replaced_nonce(self, memory: MemoryKeyValueStore) -> None:
        stores = StateStores.over(memory)
        stale = NonceRecord(nonce="first", timestamp=1)
        stores.nonces.issue(WALLET, stale)
        stores.nonces.issue(WALLET, NonceRecord(nonce="second", timestamp=2))
        assert not stores.nonces.redeem(WALLET, stale)
        assert stores.nonces.get(WALLET) is not None

    def test_concurrent_redeem_has_one_winner(self, memory: MemoryKeyValueStore) -> None:
        stores = StateStores.over(memory)
        for trial in range(25):
            record = NonceRecord(nonce=f"{trial:08x}", timestamp=trial)
            stores.nonces.issue(WALLET, record)
            barrier = threading.Barrier(2)

            def _redeem() -> bool:
                barrier.wait()
                return stores.nonces.redeem(WALLET, record)

            with ThreadPoolExecutor(max_workers=2) as pool:
                futures = [pool.submit(_redeem) for _ in range(2)]
                outcomes = [future.result() for future in futures]
            assert sorted(outcomes) == [False, True]

    def test_new_nonce_replaces_old(self, memory: MemoryKeyValueStore) -> None:
        stores = StateStores.over(memory)
        stores.nonces.issue(WALLET, NonceRecord(nonce="first", timestamp=1))
        stores.nonces.issue(WALLET, NonceRecord(nonce="second", timestamp=2))
        record = stores.nonces.get(WALLET)
        assert record is not None and record.nonce == "second"

    def test_nonce_expires_after_five_minutes(
        self, memory: MemoryKeyValueStore, clock: FakeClock
    ) -> None:
        stores = StateStores.over(memory)
        stores.nonces.issue(WALLET, NonceRecord(nonce="ab12cd34", timestamp=1))
        clock.advance(301)
        assert stores.nonces.get(WALLET) is None

    def test_verified_wallet_has_no_ttl(self, memory: MemoryKeyValueStore, clock: FakeClock) -> None:
        stores = StateStores.over(memory)
        stores.verified.put(WALLET, VerifiedWallet(github_username="nazt", verified_at="now"))
        clock.advance(10 * 365 * 24 * 3600)
        record = stores.verified.get(WALLET)
        assert record is not None and record.github_username == "nazt"

    def test_bot_index_uses_its_own_prefix(self, memory: MemoryKeyValueStore) -> None:
        stores = StateStores.over(memory)
        record = BotAssignmentRecord(
            merkle_root="0xroot", oracle="SHRIMP", issue=121, human_wallet="0xh", github_username="nazt"
        )
        stores.roots.put_bot(WALLET, record)
        assert memory.get(f"bot:{WALLET.lower()}") is not None
        assert stores.roots.get_bot(WALLET) == record
        stores.roots.delete_bot(WALLET)
        assert stores.roots.get_bot(WALLET) is None

    def test_auth_request_transition_is_conditional(self, memory: MemoryKeyValueStore) -> None:
        stores = StateStores.over(memory)
        pending = AuthRequest(
            bot_wallet="0xbot",
            oracle_name="SHRIMP",
            birth_issue=121,
            created_at="t0",
            expires_at="t1",
        )
        stores.auth_requests.create("req_abc123def456", pending)
        authorized = replace(pending, status=AuthStatus.AUTHORIZED, human_wallet="0xh")

        assert stores.auth_requests.transition("req_abc123def456", pending, authorized, ttl=1800)
        assert not stores.auth_requests.transition(
            "req_abc123def456", pending, authorized, ttl=1800
        )
        stored = stores.auth_requests.get("req_abc123def456")
        assert stored is not None and stored.status is AuthStatus.AUTHORIZED
