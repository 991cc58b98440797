from __future__ import annotations

import json
from pathlib import Path

from aiohttp import test_utils

from rigstat.services.agent import AgentService
from rigstat.services.spool.uploader import Uploader
from tests.fakes import FakeCollector, FakeMinerServer, devs_payload, wait_until


def make_agent(make_config, miner_server: FakeMinerServer, collector: FakeCollector, **overrides) -> AgentService:
    config = make_config(miner_port=miner_server.port, **overrides)
    uploader = Uploader(
        config.collector_url,
        config.server_password,
        timeout=config.upload_timeout,
        transport=collector.transport(),
    )
    return AgentService(config, uploader=uploader)


async def test_poll_then_sweep_delivers_reading(
    make_config, miner_server: FakeMinerServer, collector: FakeCollector, spool_dir: Path
) -> None:
    agent = make_agent(make_config, miner_server, collector)

    reading = await agent.poller.poll_once()
    await agent.poller.flush()

    assert reading is not None
    spooled = spool_dir / "rig1_1000"
    assert spooled.exists()
    spooled_bytes = spooled.read_bytes()
    document = json.loads(spooled_bytes)
    assert document["deviceName"] == "rig1"
    assert document["when"] == 1000
    assert document["DEVS"] == devs_payload()["DEVS"]

    await agent.sweeper.sweep()
    await agent.sweeper.drain()
    await agent.uploader.close()

    assert not spooled.exists()
    assert len(collector.requests) == 1
    assert collector.names == ["rig1_1000"]
    assert collector.requests[0].headers["Server-Password"] == "s3cret"
    assert spooled_bytes in collector.requests[0].content


async def test_running_agent_delivers_and_shuts_down(
    make_config, miner_server: FakeMinerServer, collector: FakeCollector, spool_dir: Path
) -> None:
    agent = make_agent(make_config, miner_server, collector)

    await agent.start()
    try:
        await wait_until(lambda: "rig1_1000" in collector.names, timeout=5.0)
        await wait_until(lambda: not list(spool_dir.iterdir()))
    finally:
        await agent.stop()

    assert miner_server.requests[0] == {"command": "devs", "parameter": ""}
    assert agent.get_status()["status"] == "stopped"


async def test_collector_down_keeps_readings_on_disk(
    make_config, miner_server: FakeMinerServer, spool_dir: Path
) -> None:
    collector = FakeCollector([500])
    agent = make_agent(make_config, miner_server, collector)

    await agent.start()
    try:
        await wait_until(lambda: len(collector.requests) >= 1, timeout=5.0)
    finally:
        await agent.stop()

    assert [p.name for p in spool_dir.iterdir()] == ["rig1_1000"]
    assert agent.sweeper.upload_failures >= 1


async def test_leftover_spool_is_delivered_on_startup(
    make_config, miner_server: FakeMinerServer, collector: FakeCollector, spool_dir: Path
) -> None:
    (spool_dir / "rig1_500").write_bytes(b'{"deviceName":"rig1","when":500,"STATUS":[],"DEVS":[]}')
    agent = make_agent(make_config, miner_server, collector, interval=60)

    await agent.start()
    try:
        await wait_until(lambda: "rig1_500" in collector.names)
    finally:
        await agent.stop()

    assert not (spool_dir / "rig1_500").exists()


async def test_health_endpoint_reports_pipeline_state(
    make_config, miner_server: FakeMinerServer, collector: FakeCollector, spool_dir: Path
) -> None:
    (spool_dir / "rig1_1").write_bytes(b"{}")
    agent = make_agent(make_config, miner_server, collector)

    async with test_utils.TestClient(test_utils.TestServer(agent.create_health_app())) as client:
        resp = await client.get("/health")
        assert resp.status == 503
        body = await resp.json()

    assert body["status"] == "stopped"
    assert body["pending"] == 1
    assert body["device_name"] == "rig1"
    assert {"polls", "readings_persisted", "readings_dropped"} <= set(body["poller"])
    assert {"queued", "uploaded", "upload_failures"} <= set(body["sweeper"])
    await agent.uploader.close()
