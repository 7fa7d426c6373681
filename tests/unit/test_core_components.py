# tests/unit/test_core_components.py
"""Unit tests for core components."""

import pytest
import asyncio
import threading
import yaml
from pathlib import Path

from scenario_player.core import (
    ClientPool,
    ClientSlot,
    Config,
    HttpConfig,
    PlayerConfig,
    ValueStore,
    create_session,
)

from tests.mocks import MockHttpClient


@pytest.mark.unit
class TestValueStore:
    """Test per-run value storage."""

    def test_seeded_from_initial_values(self):
        store = ValueStore({"user": "alice", "count": 3})

        assert store.get("user") == "alice"
        assert store["count"] == 3
        assert len(store) == 2
        assert "user" in store

    def test_get_missing_returns_default(self):
        store = ValueStore()
        assert store.get("missing") is None
        assert store.get("missing", 42) == 42

    def test_last_write_wins(self):
        store = ValueStore({"token": "first"})
        store.update({"token": "second"})
        store.set("token", "third")

        assert store["token"] == "third"
        assert len(store) == 1

    def test_unrelated_keys_are_kept(self):
        store = ValueStore({"a": 1})
        store.update({"b": 2})

        assert store.all() == {"a": 1, "b": 2}

    def test_invalid_names_rejected(self):
        store = ValueStore()
        with pytest.raises(ValueError):
            store.set("", 1)
        with pytest.raises(ValueError):
            store.set(None, 1)

    def test_view_is_read_only_and_live(self):
        store = ValueStore({"a": 1})
        view = store.view()

        with pytest.raises(TypeError):
            view["a"] = 2

        store.set("b", 2)
        assert view["b"] == 2

    def test_snapshot_is_detached(self):
        store = ValueStore({"a": 1})
        snapshot = store.snapshot()
        store.set("a", 99)

        assert snapshot == {"a": 1}


@pytest.mark.unit
class TestConfig:
    """Test configuration loading and validation."""

    def test_defaults(self, monkeypatch):
        for name in ("CONCURRENCY", "ENDPOINT", "TIMEOUT", "PUSHGATEWAY", "LOG_LEVEL"):
            monkeypatch.delenv(f"SCENARIO_PLAYER_{name}", raising=False)

        config = Config()

        assert config.player.concurrency == 1
        assert config.player.endpoint is None
        assert config.http.timeout == 30.0
        assert config.monitoring.extensions == []
        assert config.output.log_level == "INFO"

    def test_load_from_file(self, config_file, tmp_path):
        config = Config(config_path=config_file)

        assert config.player.concurrency == 4
        assert config.player.endpoint == "http://test-host:8080"
        assert config.http.timeout == 5
        assert config.http.verify_ssl is False
        # Unspecified keys keep their defaults
        assert config.http.connect_timeout == 10.0
        assert config.monitoring.extensions == ["timing"]
        assert config.output.values_path == tmp_path / "values.json"
        assert config.output.log_level == "DEBUG"

    def test_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("SCENARIO_PLAYER_CONCURRENCY", "8")
        monkeypatch.setenv("SCENARIO_PLAYER_PUSHGATEWAY", "http://gateway:9091")

        config = Config(config_path=config_file)

        assert config.player.concurrency == 8
        assert config.monitoring.prometheus_pushgateway == "http://gateway:9091"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config(config_path=tmp_path / "missing.yaml")

    def test_unknown_section_is_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"player": {"concurrency": 2}, "database": {"host": "x"}}))

        config = Config(config_path=path)
        assert config.player.concurrency == 2

    @pytest.mark.parametrize("concurrency", [0, -1, "4", True])
    def test_invalid_concurrency(self, concurrency):
        with pytest.raises(ValueError):
            PlayerConfig(concurrency=concurrency).validate()

    def test_invalid_endpoint(self):
        with pytest.raises(ValueError):
            PlayerConfig(endpoint="ftp://example.com").validate()

    def test_invalid_timeout(self):
        with pytest.raises(ValueError):
            HttpConfig(timeout=0).validate()

    def test_invalid_log_level_in_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"output": {"log_level": "CHATTY"}}))

        with pytest.raises(ValueError):
            Config(config_path=path)

    @pytest.mark.parametrize("section,value", [
        ("player", 5),
        ("http", "fast"),
        ("monitoring", ["timing"]),
        ("output", True),
    ])
    def test_section_must_be_mapping(self, tmp_path, section, value):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({section: value}))

        with pytest.raises(ValueError, match=f"'{section}' must be a mapping"):
            Config(config_path=path)

    def test_empty_section_keeps_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCENARIO_PLAYER_CONCURRENCY", "3")
        path = tmp_path / "config.yaml"
        path.write_text("player:\nhttp:\n")

        config = Config(config_path=path)

        assert config.player.concurrency == 3
        assert config.http.timeout == 30.0

    def test_extensions_must_be_list(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"monitoring": {"extensions": "timing"}}))

        with pytest.raises(ValueError, match="extensions must be a list"):
            Config(config_path=path)

    def test_to_dict(self, config_file):
        data = Config(config_path=config_file).to_dict()

        assert data["player"]["concurrency"] == 4
        assert isinstance(data["output"]["values_path"], str)


@pytest.mark.unit
class TestClientPool:
    """Test the bounded client pool."""

    @pytest.mark.parametrize("size", [0, -3])
    def test_rejects_non_positive_size(self, size):
        with pytest.raises(ValueError):
            ClientPool(size)

    @pytest.mark.parametrize("size", ["2", 1.5, None, True])
    def test_rejects_non_integer_size(self, size):
        with pytest.raises(TypeError):
            ClientPool(size)

    @pytest.mark.asyncio
    async def test_initialize_creates_one_client_per_slot(self, client_pool):
        clients = [slot.client for slot in client_pool.slots]

        assert len(clients) == 2
        assert all(isinstance(client, MockHttpClient) for client in clients)
        assert clients[0] is not clients[1]

    @pytest.mark.asyncio
    async def test_async_factory(self):
        async def factory():
            return MockHttpClient()

        async with ClientPool(1, client_factory=factory) as pool:
            assert isinstance(pool.slots[0].client, MockHttpClient)

    @pytest.mark.asyncio
    async def test_acquire_and_release(self, client_pool):
        first = await client_pool.acquire()
        second = await client_pool.acquire()

        assert first.index != second.index
        assert client_pool.free_count == 0
        assert client_pool.in_use_count == 2

        client_pool.release(first)
        assert client_pool.free_count == 1
        assert client_pool.in_use_count == 1
        client_pool.release(second)

    @pytest.mark.asyncio
    async def test_acquire_waits_for_release(self, client_pool):
        held = [await client_pool.acquire(), await client_pool.acquire()]

        waiter = asyncio.create_task(client_pool.acquire())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        client_pool.release(held[0])
        slot = await asyncio.wait_for(waiter, timeout=1)
        assert slot is held[0]

        client_pool.release(slot)
        client_pool.release(held[1])

    @pytest.mark.asyncio
    async def test_waiters_served_in_order(self):
        pool = ClientPool(1)
        held = await pool.acquire()
        order = []

        async def take(label):
            slot = await pool.acquire()
            order.append(label)
            pool.release(slot)

        tasks = [asyncio.create_task(take(label)) for label in ("a", "b", "c")]
        await asyncio.sleep(0.01)
        pool.release(held)
        await asyncio.gather(*tasks)

        assert order == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_release_unknown_slot_rejected(self, client_pool):
        with pytest.raises(ValueError):
            client_pool.release(ClientSlot(index=0))

        slot = await client_pool.acquire()
        client_pool.release(slot)
        with pytest.raises(ValueError):
            client_pool.release(slot)

    @pytest.mark.asyncio
    async def test_reset_on_release_clears_cookies(self):
        async with ClientPool(1, client_factory=MockHttpClient, reset_on_release=True) as pool:
            slot = await pool.acquire()
            slot.client.cookie_jar.cookies["session"] = "abc"
            pool.release(slot)

            assert slot.client.cookie_jar.cookies == {}
            assert slot.client.cookie_jar.clear_count == 1

    @pytest.mark.asyncio
    async def test_cookies_kept_by_default(self, client_pool):
        slot = await client_pool.acquire()
        slot.client.cookie_jar.cookies["session"] = "abc"
        client_pool.release(slot)

        assert slot.client.cookie_jar.cookies == {"session": "abc"}

    @pytest.mark.asyncio
    async def test_slot_context_manager(self, client_pool):
        async with client_pool.slot() as slot:
            assert client_pool.in_use_count == 1
            assert slot.acquisitions == 1

        assert client_pool.in_use_count == 0

    @pytest.mark.asyncio
    async def test_close_all(self):
        pool = ClientPool(2, client_factory=MockHttpClient)
        await pool.initialize()
        clients = [slot.client for slot in pool.slots]

        await pool.close_all()

        assert all(client.closed for client in clients)
        assert all(slot.client is None for slot in pool.slots)

    @pytest.mark.asyncio
    async def test_pool_stats(self, client_pool):
        async with client_pool.slot():
            stats = client_pool.get_pool_stats()

        assert stats["size"] == 2
        assert stats["in_use"] == 1
        assert stats["max_in_use"] == 1
        assert sum(stats["acquisitions"]) == 1

    @pytest.mark.asyncio
    async def test_slot_runs_work_on_its_own_thread(self, client_pool):
        async def where():
            return threading.current_thread().name, asyncio.get_running_loop()

        first, second = client_pool.slots
        first_thread, first_loop = await first.run(where)
        second_thread, second_loop = await second.run(where)

        assert first_thread != second_thread
        assert threading.current_thread().name not in (first_thread, second_thread)
        assert first_loop is first.loop
        assert first_loop is not asyncio.get_running_loop()
        assert (await first.run(where))[0] == first_thread

    @pytest.mark.asyncio
    async def test_clients_created_on_slot_loop(self):
        loops = []

        def factory():
            loops.append(asyncio.get_running_loop())
            return MockHttpClient()

        async with ClientPool(2, client_factory=factory) as pool:
            assert len(loops) == 2
            assert {id(loop) for loop in loops} == {id(slot.loop) for slot in pool.slots}

    @pytest.mark.asyncio
    async def test_close_all_stops_slot_threads(self):
        pool = ClientPool(2, client_factory=MockHttpClient)
        await pool.initialize()
        loops = [slot.loop for slot in pool.slots]

        await pool.close_all()

        assert all(loop.is_closed() for loop in loops)
        assert not any(slot.is_started for slot in pool.slots)

    def test_pool_reused_from_new_event_loop(self):
        pool = ClientPool(1, client_factory=MockHttpClient)

        async def contend():
            held = await pool.acquire()
            waiter = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0.01)
            pool.release(held)
            slot = await asyncio.wait_for(waiter, timeout=1)
            pool.release(slot)
            return slot.acquisitions

        try:
            assert asyncio.run(contend()) == 2
            assert asyncio.run(contend()) == 4
        finally:
            asyncio.run(pool.close_all())

        assert pool.free_count == 1

    @pytest.mark.asyncio
    async def test_create_session(self):
        session = create_session(HttpConfig(user_agent="tester/1.0", verify_ssl=False))
        try:
            assert session.headers["User-Agent"] == "tester/1.0"
            assert session.timeout.total == 30.0
        finally:
            await session.close()
