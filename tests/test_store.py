from __future__ import annotations

import json
from pathlib import Path

import pytest

from rigstat.common.exceptions import DeleteError, SpoolError, WriteError
from rigstat.services.device.codec import Reading
from rigstat.services.spool.store import SpoolStore


def make_reading(event_time: int = 1000, temperature: float = 70.0) -> Reading:
    return Reading(
        device_id="rig1",
        event_time=event_time,
        metrics=({"GPU": 0, "Temperature": temperature},),
        status=({"STATUS": "S", "When": event_time},),
    )


async def test_put_writes_file_named_after_device_and_time(store: SpoolStore, spool_dir: Path) -> None:
    entry = await store.put(make_reading(1000))

    assert entry.name == "rig1_1000"
    document = json.loads((spool_dir / "rig1_1000").read_bytes())
    assert document["deviceName"] == "rig1"
    assert document["when"] == 1000
    assert document["DEVS"] == [{"GPU": 0, "Temperature": 70.0}]


async def test_same_device_and_time_collide_on_one_file(store: SpoolStore, spool_dir: Path) -> None:
    await store.put(make_reading(1000, temperature=70.0))
    await store.put(make_reading(1000, temperature=99.0))

    assert [p.name for p in spool_dir.iterdir()] == ["rig1_1000"]
    document = json.loads((spool_dir / "rig1_1000").read_bytes())
    assert document["DEVS"][0]["Temperature"] == 99.0


async def test_put_notifies_listener(spool_dir: Path) -> None:
    notified = []
    store = SpoolStore(spool_dir, on_change=lambda: notified.append(True))

    await store.put(make_reading(1))
    await store.put(make_reading(2))

    assert len(notified) == 2


async def test_put_failure_raises_write_error_and_does_not_notify(tmp_path: Path) -> None:
    notified = []
    store = SpoolStore(tmp_path / "never-created", on_change=lambda: notified.append(True))

    with pytest.raises(WriteError) as excinfo:
        await store.put(make_reading(1000))

    assert excinfo.value.name == "rig1_1000"
    assert notified == []


async def test_list_skips_temp_files_and_directories(store: SpoolStore, spool_dir: Path) -> None:
    await store.put(make_reading(1))
    await store.put(make_reading(2))
    (spool_dir / ".rig1_3.tmp").write_bytes(b"{}")
    (spool_dir / "subdir").mkdir()

    names = sorted(entry.name for entry in store.list())

    assert names == ["rig1_1", "rig1_2"]
    assert store.pending_count() == 2


def test_list_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(SpoolError):
        SpoolStore(tmp_path / "missing").list()


async def test_entry_is_opened_lazily(store: SpoolStore, spool_dir: Path) -> None:
    await store.put(make_reading(1000))
    entry = store.list()[0]

    (spool_dir / "rig1_1000").write_bytes(b"replaced")

    assert entry.open() == b"replaced"


def test_open_of_delivered_entry_raises_file_not_found(store: SpoolStore) -> None:
    with pytest.raises(FileNotFoundError):
        store.entry("rig1_1000").open()


async def test_remove(store: SpoolStore, spool_dir: Path) -> None:
    await store.put(make_reading(1000))

    store.remove("rig1_1000")

    assert not (spool_dir / "rig1_1000").exists()


def test_remove_missing_entry_is_reported(store: SpoolStore) -> None:
    with pytest.raises(DeleteError) as excinfo:
        store.remove("rig1_1000")

    assert excinfo.value.missing


def test_ensure_directory_creates_spool(tmp_path: Path) -> None:
    store = SpoolStore(tmp_path / "a" / "stats")

    store.ensure_directory()
    store.ensure_directory()

    assert (tmp_path / "a" / "stats").is_dir()
