"""
core/brute_config.py
Per-service probe definitions loaded from data/brute_config.yaml.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from data import BRUTE_CONFIG

# telnet http ftp mysql redis, in scan priority order
DEFAULT_SUPPORT_PORTS = ["tcp_23", "tcp_80", "tcp_21", "tcp_3306", "tcp_6379"]
SSH_PORT_ID = "tcp_22"


class BruteConfigError(ValueError):
    """Raised when a probe definition is missing required fields."""


@dataclass(frozen=True)
class BruteScript:
    script_name: str
    script_args: Optional[str] = None
    other_args:  Optional[str] = None

    @property
    def is_brute(self) -> bool:
        """Only brute scripts accept custom credential dictionaries."""
        return "brute" in self.script_name


@dataclass(frozen=True)
class ServiceProbe:
    port_id:      str
    port:         int
    protocol:     str
    service_name: str
    scripts:      List[BruteScript] = field(default_factory=list)


def _parse_entry(port_id: str, raw: dict) -> ServiceProbe:
    try:
        scripts = [
            BruteScript(
                script_name = s["scriptName"],
                script_args = s.get("scriptArgs"),
                other_args  = s.get("otherArgs"),
            )
            for s in raw.get("scripts") or []
        ]
        return ServiceProbe(
            port_id      = port_id,
            port         = int(raw["port"]),
            protocol     = raw.get("protocol", "tcp"),
            service_name = raw["serviceName"],
            scripts      = scripts,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise BruteConfigError(f"Invalid probe definition {port_id!r}: {exc}") from exc


def load_brute_config(path: Path | None = None) -> Dict[str, ServiceProbe]:
    """Load all probe definitions keyed by port id ("tcp_23")."""
    path = Path(path or BRUTE_CONFIG)
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    return {port_id: _parse_entry(port_id, entry) for port_id, entry in raw.items()}


def supported_services(
    config: Dict[str, ServiceProbe], ssh_support: bool = False
) -> List[ServiceProbe]:
    """Services to probe, in priority order. Unknown port ids are skipped."""
    port_ids = list(DEFAULT_SUPPORT_PORTS)
    if ssh_support:
        port_ids.append(SSH_PORT_ID)
    return [config[p] for p in port_ids if p in config]


__all__ = [
    "BruteScript", "ServiceProbe", "BruteConfigError",
    "load_brute_config", "supported_services",
]
