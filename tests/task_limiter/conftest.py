"""tests/conftest.py

Common fixtures for the entire test suite.
"""

from pathlib import Path

import fakeredis
import pytest
import redis
from typer.testing import CliRunner

from task_limiter.app import cli as cli_module
from task_limiter.config.settings import AppConfig
from task_limiter.infra.store_diskcache import DiskCacheCounterStore, DiskCacheEnumerationStore
from task_limiter.infra.store_redis import RedisCounterStore, RedisEnumerationStore

STORE_KINDS = [
    ("redis", "enumeration"),
    ("redis", "counter"),
    ("diskcache", "enumeration"),
    ("diskcache", "counter"),
]


@pytest.fixture(scope="session")
def runner() -> CliRunner:
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(fake_server):
    """In-memory Redis with Lua scripting; shares state through fake_server."""
    client = fakeredis.FakeRedis(server=fake_server, decode_responses=True)
    yield client
    client.close()


@pytest.fixture
def fake_redis_from_url(monkeypatch, fake_server):
    """Make redis.Redis.from_url hand out clients of the in-memory server."""
    urls: list[str] = []

    def from_url(url, **kwargs):
        urls.append(url)
        return fakeredis.FakeRedis(server=fake_server, decode_responses=True)

    monkeypatch.setattr(redis.Redis, "from_url", from_url)
    return urls


@pytest.fixture(params=STORE_KINDS, ids=lambda kind: "-".join(kind))
def store(request, redis_client, tmp_path: Path):
    """Every backend/strategy combination behind the HolderStorePort protocol."""
    backend, strategy = request.param
    if backend == "redis":
        cls = RedisCounterStore if strategy == "counter" else RedisEnumerationStore
        yield cls(redis_client)
        return
    cls = DiskCacheCounterStore if strategy == "counter" else DiskCacheEnumerationStore
    with cls(base_dir=str(tmp_path / "store")) as s:
        yield s


@pytest.fixture
def cli_config(monkeypatch, tmp_path: Path):
    """Point every CLI container at a diskcache store under tmp_path.

    Returns a setter so a test can switch to another configuration.
    """
    current = {"config": AppConfig(backend="diskcache", store_dir=tmp_path / "store")}
    original = cli_module.Container

    def make_container():
        container = original()
        container.config.from_pydantic(current["config"])
        return container

    monkeypatch.setattr(cli_module, "Container", make_container)

    def use(**overrides):
        current["config"] = AppConfig(**overrides)

    return use


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
