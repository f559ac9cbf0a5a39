"""Configuration loading for cpu1sec."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


@dataclass
class PluginConfig:
    """Plugin and sampler settings.

    munin passes plugin configuration through the environment, so the
    munin variables override anything read from the YAML file.
    """

    name: str = "cpu1sec"
    state_dir: str = "/tmp"
    cpudetail: bool = False
    dirtyconfig: bool = False
    warmup_seconds: float = 1.0
    fetch_size: int = 65535
    log_file: str = ""

    @property
    def lock_path(self) -> Path:
        return Path(self.state_dir) / f"{self.name}.pid"

    @property
    def cache_path(self) -> Path:
        return Path(self.state_dir) / f"munin.{self.name}.value"

    @property
    def log_path(self) -> Path:
        if self.log_file:
            return Path(self.log_file)
        return Path(self.state_dir) / f"{self.name}.log"


def _flag(value: str) -> bool:
    return value.strip() == "1"


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply munin's environment and CPU1SEC_ prefixed overrides."""
    env_map = {
        "MUNIN_PLUGSTATE": ("state_dir", str),
        "cpudetail": ("cpudetail", _flag),
        "MUNIN_CAP_DIRTYCONFIG": ("dirtyconfig", _flag),
        "CPU1SEC_WARMUP": ("warmup_seconds", float),
        "CPU1SEC_LOG_FILE": ("log_file", str),
    }
    for env_key, (key, convert) in env_map.items():
        value = os.environ.get(env_key)
        if value is not None:
            data[key] = convert(value)
    return data


def _dict_to_config(data: dict[str, Any]) -> PluginConfig:
    return PluginConfig(**{
        k: v for k, v in data.items()
        if k in PluginConfig.__dataclass_fields__
    })


def load_config(path: str | Path | None = None) -> PluginConfig:
    """Load configuration from a YAML file with environment overrides.

    The file is taken from *path*, else ``$CPU1SEC_CONFIG``, else
    ``cpu1sec.yaml`` in the current directory. A missing file means defaults.
    """
    data: dict[str, Any] = {}
    if path is None:
        path = Path(os.environ.get("CPU1SEC_CONFIG", "cpu1sec.yaml"))
    else:
        path = Path(path)

    if path.exists():
        with open(path, encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh)
            if isinstance(loaded, dict):
                data = loaded

    data = _apply_env_overrides(data)
    return _dict_to_config(data)
