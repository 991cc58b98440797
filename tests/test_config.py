from __future__ import annotations

import json
from pathlib import Path

import pytest

from rigstat.common.config import load_agent_config, read_config_file
from rigstat.common.exceptions import ConfigError
from rigstat.main import main


LEGACY_CONFIG = {
    "interval": 30,
    "serverHost": "collector.local",
    "serverPort": "8080",
    "minerHost": "127.0.0.1",
    "minerPort": "4028",
    "deviceName": "rig1",
    "serverPassword": "hunter2",
}


def test_legacy_json_config_loads(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RIGSTAT_SERVER_PASSWORD", raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(LEGACY_CONFIG))

    config = read_config_file(path)

    assert config.interval == 30
    assert config.server_port == 8080
    assert config.miner_port == 4028
    assert config.collector_url == "http://collector.local:8080"
    assert config.miner_address == "127.0.0.1:4028"
    assert config.server_password == "hunter2"
    assert config.spool_dir == "./stats"
    assert config.query_timeout == 10.0
    assert config.health_port is None


def test_yaml_config_with_optional_settings(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "interval: 5\n"
        "serverHost: c\n"
        "serverPort: 80\n"
        "minerHost: m\n"
        "minerPort: 4028\n"
        "deviceName: rig2\n"
        "serverPassword: pw\n"
        "spoolDir: /var/spool/rigstat\n"
        "uploadTimeout: 5\n"
        "retryBackoffCap: 60\n"
        "healthPort: 8081\n"
    )

    config = read_config_file(path)

    assert config.spool_dir == "/var/spool/rigstat"
    assert config.upload_timeout == 5.0
    assert config.retry_backoff_cap == 60.0
    assert config.health_port == 8081


def test_password_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RIGSTAT_SERVER_PASSWORD", "from-env")

    assert load_agent_config(dict(LEGACY_CONFIG)).server_password == "from-env"


@pytest.mark.parametrize("key", ["interval", "serverHost", "minerPort", "deviceName", "serverPassword"])
def test_missing_required_key(key: str) -> None:
    data = dict(LEGACY_CONFIG)
    del data[key]

    with pytest.raises(ConfigError) as excinfo:
        load_agent_config(data)

    assert key in excinfo.value.message
    assert not excinfo.value.recoverable


@pytest.mark.parametrize(
    "key, value",
    [("interval", 0), ("interval", "often"), ("serverPort", "http"), ("uploadTimeout", -1)],
)
def test_invalid_values(key: str, value: object) -> None:
    data = dict(LEGACY_CONFIG, **{key: value})

    with pytest.raises(ConfigError):
        load_agent_config(data)


@pytest.mark.parametrize("name", [".rig", "   ", "rigs/rig1", "../rig1", "..", "."])
def test_device_name_must_be_a_plain_visible_file_name(name: str) -> None:
    data = dict(LEGACY_CONFIG, deviceName=name)

    with pytest.raises(ConfigError) as excinfo:
        load_agent_config(data)

    assert "deviceName" in excinfo.value.message


def test_device_name_with_inner_dot_is_accepted() -> None:
    config = load_agent_config(dict(LEGACY_CONFIG, deviceName="rig1.site-a"))

    assert config.device_name == "rig1.site-a"


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        read_config_file(tmp_path / "nope.yaml")


def test_unparsable_file(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("interval: [unclosed\n")

    with pytest.raises(ConfigError):
        read_config_file(path)


def test_cli_dry_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(LEGACY_CONFIG))

    assert main(["--config", str(path), "--dry-run"]) == 0

    out = capsys.readouterr().out
    assert "Server is: collector.local:8080" in out
    assert "Miner is: 127.0.0.1:4028" in out
    assert "Querying every 30 seconds" in out


def test_cli_exits_on_bad_config(tmp_path: Path) -> None:
    assert main(["--config", str(tmp_path / "missing.yaml")]) == 1
