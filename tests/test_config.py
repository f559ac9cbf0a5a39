"""Tests for the configuration module."""

import os
import tempfile
from pathlib import Path

import pytest
import yaml

from cpu1sec.config import PluginConfig, load_config

ENV_KEYS = (
    "MUNIN_PLUGSTATE",
    "cpudetail",
    "MUNIN_CAP_DIRTYCONFIG",
    "CPU1SEC_CONFIG",
    "CPU1SEC_WARMUP",
    "CPU1SEC_LOG_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_load_config_defaults():
    """Loading from a non-existent file returns defaults."""
    cfg = load_config("/tmp/nonexistent_cpu1sec.yaml")
    assert isinstance(cfg, PluginConfig)
    assert cfg.name == "cpu1sec"
    assert cfg.state_dir == "/tmp"
    assert cfg.cpudetail is False
    assert cfg.dirtyconfig is False
    assert cfg.warmup_seconds == 1.0
    assert cfg.fetch_size == 65535
    assert cfg.lock_path == Path("/tmp/cpu1sec.pid")
    assert cfg.cache_path == Path("/tmp/munin.cpu1sec.value")
    assert cfg.log_path == Path("/tmp/cpu1sec.log")


def test_load_config_from_yaml():
    data = {
        "state_dir": "/var/lib/munin-node/plugin-state/nobody",
        "cpudetail": True,
        "warmup_seconds": 2.5,
        "unknown_key": "ignored",
    }
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as fh:
        yaml.dump(data, fh)
        path = fh.name

    try:
        cfg = load_config(path)
        assert cfg.cpudetail is True
        assert cfg.warmup_seconds == 2.5
        assert cfg.cache_path == Path("/var/lib/munin-node/plugin-state/nobody/munin.cpu1sec.value")
    finally:
        os.unlink(path)


def test_munin_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "cpu1sec.yaml"
    path.write_text(yaml.dump({"cpudetail": False, "state_dir": "/nowhere"}))
    monkeypatch.setenv("MUNIN_PLUGSTATE", str(tmp_path))
    monkeypatch.setenv("cpudetail", "1")
    monkeypatch.setenv("MUNIN_CAP_DIRTYCONFIG", "1")
    cfg = load_config(path)
    assert cfg.state_dir == str(tmp_path)
    assert cfg.cpudetail is True
    assert cfg.dirtyconfig is True
    assert not hasattr(cfg, "interval_seconds")


def test_flags_only_accept_one(monkeypatch):
    monkeypatch.setenv("cpudetail", "yes")
    monkeypatch.setenv("MUNIN_CAP_DIRTYCONFIG", "0")
    cfg = load_config("/tmp/nonexistent_cpu1sec.yaml")
    assert cfg.cpudetail is False
    assert cfg.dirtyconfig is False


def test_config_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text(yaml.dump({"log_file": str(tmp_path / "sampler.log")}))
    monkeypatch.setenv("CPU1SEC_CONFIG", str(path))
    cfg = load_config()
    assert cfg.log_path == tmp_path / "sampler.log"
