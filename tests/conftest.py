"""Shared test fixtures for pagecache.

Provides an in-memory :class:`~pagecache.store.client.StoreClient`, a
backend wired to it with a controllable clock, isolated config
environments, output state management and a CLI runner. These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from pagecache.cache.backend import CacheBackend
from pagecache.exceptions import StoreError
from pagecache.models import CacheConfig
from pagecache.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class MemoryStore:
    """Dict-backed store implementing the ``StoreClient`` protocol.

    TTLs are recorded in :attr:`ttls` but never enforced. Setting
    :attr:`failing` makes every operation raise :class:`StoreError`.
    """

    def __init__(self) -> None:
        self.values: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}
        self.hashes: dict[str, dict[str, bytes]] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.memory_used = 1024 * 1024
        self.failing = False
        self.closed = False

    def _check(self) -> None:
        if self.failing:
            raise StoreError("store unavailable")

    def get(self, key: str) -> Optional[bytes]:
        self._check()
        return self.values.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._check()
        self.values[key] = value

    def delete(self, key: str) -> None:
        self._check()
        self.values.pop(key, None)
        self.ttls.pop(key, None)

    def expire(self, key: str, seconds: int) -> None:
        self._check()
        if key in self.values:
            self.ttls[key] = seconds

    def hash_get(self, name: str, field: str) -> Optional[bytes]:
        self._check()
        return self.hashes.get(name, {}).get(field)

    def hash_set_if_absent(self, name: str, field: str, value: str | bytes) -> bool:
        self._check()
        table = self.hashes.setdefault(name, {})
        if field in table:
            return False
        table[field] = value.encode("utf-8") if isinstance(value, str) else value
        return True

    def hash_multi_get(self, name: str, fields: list[str]) -> list[Optional[bytes]]:
        self._check()
        table = self.hashes.get(name, {})
        return [table.get(f) for f in fields]

    def hash_delete(self, name: str, field: str) -> None:
        self._check()
        self.hashes.get(name, {}).pop(field, None)

    def hash_keys(self, name: str) -> list[str]:
        self._check()
        return list(self.hashes.get(name, {}))

    def sorted_set_add(self, name: str, score: float, member: str) -> None:
        self._check()
        self.zsets.setdefault(name, {})[member] = score

    def sorted_set_range_by_score(self, name: str, min_score: float, max_score: float) -> list[str]:
        self._check()
        members = self.zsets.get(name, {})
        due = [(score, m) for m, score in members.items() if min_score <= score <= max_score]
        return [m for _, m in sorted(due)]

    def sorted_set_remove(self, name: str, member: str) -> None:
        self._check()
        self.zsets.get(name, {}).pop(member, None)

    def flush_all(self) -> None:
        self._check()
        self.values.clear()
        self.ttls.clear()
        self.hashes.clear()
        self.zsets.clear()

    def info_memory_used_bytes(self) -> int:
        self._check()
        return self.memory_used

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Settable replacement for :func:`time.time`."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(store: MemoryStore, clock: FakeClock) -> CacheBackend:
    """A backend over the in-memory store with a fixed clock."""
    return CacheBackend(store, compression_level=7, min_compression_bytes=2048, clock=clock)


@pytest.fixture
def config() -> CacheConfig:
    """A config allowing https on www.example.com."""
    return CacheConfig(domains=["www.example.com"], schemes=["https"])


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams the
    cached references go stale once the test finishes.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    clears all PAGECACHE_* environment variables and changes the working
    directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("pagecache.config._is_xdg_platform", lambda: True)

    for var in [
        "PAGECACHE_CONFIG",
        "PAGECACHE_REDIS_HOST",
        "PAGECACHE_REDIS_PORT",
        "PAGECACHE_REDIS_AUTH",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
