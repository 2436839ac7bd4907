"""
utils/config.py
YAML configuration loader.

config.yaml (all keys optional):

    db_path: weakscan.db
    dict_dir: run/scan_dict
    max_concurrent: 3
    command_timeout_s: 5430
    nmap_bin: nmap
    use_sudo: false
    skip_verify: false
    ssh_support: false
    timezone: Europe/Berlin
    log_level: INFO
    dictionary:
      url: https://example.invalid/scan-config.json
      interval_s: 3600
    dashboard:
      host: 127.0.0.1
      port: 5000
      enable_auth: false
    inventory:
      self_macs: [...]
      hosts: {mac: {ip: ..., intf: ..., tags: [...], active: true}}
      interfaces: {uuid: {name: br0}}
      identities: {guid: {nic: wg0, uid: peer1, ips: [...]}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from utils.constants import (
    COMMAND_TIMEOUT_S, DICT_CHECK_INTERVAL_S, MAX_CONCURRENT_TASKS,
)


class ConfigError(ValueError):
    """Raised when config.yaml exists but cannot be used."""


@dataclass
class Settings:
    db_path:           str = "weakscan.db"
    dict_dir:          str = "run/scan_dict"
    max_concurrent:    int = MAX_CONCURRENT_TASKS
    command_timeout_s: int = COMMAND_TIMEOUT_S
    nmap_bin:          str = "nmap"
    use_sudo:          bool = False
    skip_verify:       bool = False
    ssh_support:       bool = False
    timezone:          Optional[str] = None
    log_level:         str = "INFO"
    dictionary_url:    Optional[str] = None
    dictionary_interval_s: int = DICT_CHECK_INTERVAL_S
    dashboard:         Dict[str, Any] = field(default_factory=dict)
    inventory:         Dict[str, Any] = field(default_factory=dict)


def load_settings(path: str | Path | None) -> Settings:
    """
    Load Settings from a YAML file. A missing file yields the defaults;
    malformed YAML or wrong value types raise ConfigError.
    """
    if path is None:
        return Settings()
    path = Path(path)
    if not path.exists():
        return Settings()

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    dictionary = raw.get("dictionary") or {}
    s = Settings(
        db_path           = str(raw.get("db_path", Settings.db_path)),
        dict_dir          = str(raw.get("dict_dir", Settings.dict_dir)),
        nmap_bin          = str(raw.get("nmap_bin", Settings.nmap_bin)),
        use_sudo          = bool(raw.get("use_sudo", False)),
        skip_verify       = bool(raw.get("skip_verify", False)),
        ssh_support       = bool(raw.get("ssh_support", False)),
        timezone          = raw.get("timezone"),
        log_level         = str(raw.get("log_level", "INFO")),
        dictionary_url    = dictionary.get("url"),
        dashboard         = dict(raw.get("dashboard") or {}),
        inventory         = dict(raw.get("inventory") or {}),
    )
    try:
        s.max_concurrent        = int(raw.get("max_concurrent", MAX_CONCURRENT_TASKS))
        s.command_timeout_s     = int(raw.get("command_timeout_s", COMMAND_TIMEOUT_S))
        s.dictionary_interval_s = int(dictionary.get("interval_s", DICT_CHECK_INTERVAL_S))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{path}: {exc}") from exc

    if s.max_concurrent < 1:
        raise ConfigError(f"{path}: max_concurrent must be >= 1")
    return s


__all__ = ["Settings", "ConfigError", "load_settings"]
