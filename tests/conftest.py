from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from rigstat.common.config import AgentConfig
from rigstat.services.spool.store import SpoolStore
from tests.fakes import FakeCollector, FakeMinerServer


@pytest_asyncio.fixture()
async def miner_server() -> FakeMinerServer:
    server = FakeMinerServer()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture()
def spool_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "stats"
    directory.mkdir()
    return directory


@pytest.fixture()
def store(spool_dir: Path) -> SpoolStore:
    return SpoolStore(spool_dir)


@pytest.fixture()
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture()
def make_config(spool_dir: Path):
    def _make(**overrides) -> AgentConfig:
        values = dict(
            interval=1,
            miner_host="127.0.0.1",
            miner_port=4028,
            device_name="rig1",
            server_host="collector.test",
            server_port=8080,
            server_password="s3cret",
            spool_dir=str(spool_dir),
            query_timeout=2.0,
            upload_timeout=2.0,
            sweep_interval=60.0,
            sweep_debounce=0.05,
            retry_backoff_base=1.0,
            retry_backoff_cap=300.0,
            shutdown_grace_period=2.0,
        )
        values.update(overrides)
        return AgentConfig(**values)

    return _make
