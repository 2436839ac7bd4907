"""
core/targets.py
Scope → host expansion and host → address resolution.

Host ids are either device MACs or identity GUIDs ("<namespace>:<uid>",
e.g. VPN peers). The inventory resolver serves both from a static mapping
(the `inventory` section of config.yaml); any object with the same methods
can be plugged into the scheduler instead.

Task keys:
    host  → "<target>"
    intf  → "intf:<uuid>"
    tag   → "tag:<id>"
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from utils.constants import ALL_HOSTS_TARGET, ScopeType
from utils.validators import (
    is_mac, is_singleton_address, strip_prefix, validate_target,
)


class ScopeError(ValueError):
    """Raised for an unrecognized scope type or an unknown target."""


class InventoryResolver:

    def __init__(self, inventory: Optional[Dict[str, Any]] = None):
        inventory = inventory or {}
        self._hosts: Dict[str, dict] = {
            k.upper(): dict(v or {}) for k, v in (inventory.get("hosts") or {}).items()
        }
        self._interfaces: Dict[str, dict] = dict(inventory.get("interfaces") or {})
        self._identities: Dict[str, dict] = dict(inventory.get("identities") or {})
        self._self_macs = {m.upper() for m in inventory.get("self_macs") or []}

    # ── Scope membership ──────────────────────────────────────────────────────

    def active_macs(self) -> List[str]:
        return [mac for mac, h in self._hosts.items() if h.get("active", True)]

    def identity_guids(self) -> List[str]:
        return list(self._identities)

    def interface(self, uuid: str) -> Optional[dict]:
        return self._interfaces.get(uuid)

    def intf_macs(self, uuid: str) -> List[str]:
        return [mac for mac, h in self._hosts.items()
                if h.get("intf") == uuid and h.get("active", True)]

    def identities_on_nic(self, nic_name: str) -> List[str]:
        return [guid for guid, ident in self._identities.items()
                if ident.get("nic") == nic_name]

    def tag_macs(self, tag: str) -> List[str]:
        return [mac for mac, h in self._hosts.items()
                if str(tag) in {str(t) for t in h.get("tags") or []}]

    def is_self(self, host_id: str) -> bool:
        return host_id.upper() in self._self_macs

    # ── Addresses ─────────────────────────────────────────────────────────────

    def ips_for(self, host_id: str) -> List[str]:
        """
        Addresses to probe for host_id. Identities only contribute
        single-address entries, never whole ranges.
        """
        if is_mac(host_id):
            host = self._hosts.get(host_id.upper())
            ip = host and host.get("ip")
            return [ip] if ip else []
        ident = self._identities.get(host_id)
        if not ident:
            return []
        return [strip_prefix(ip) for ip in ident.get("ips") or []
                if is_singleton_address(ip)]


def task_key(scope_type: str, target: str) -> str:
    try:
        scope = ScopeType(scope_type)
    except ValueError:
        raise ScopeError("Unrecognized type/target") from None
    ok, err = validate_target(target)
    if not ok:
        raise ScopeError(err)
    if scope is ScopeType.HOST:
        return target
    return f"{scope.value}:{target}"


def expand_scope(resolver, scope_type: str, target: str,
                 options: Optional[Dict[str, Any]] = None) -> Tuple[str, List[str]]:
    """
    Resolve a scan request into (task key, host ids). The local system's own
    ids are never returned. Raises ScopeError on bad input.
    """
    options = options or {}
    key = task_key(scope_type, target)
    scope = ScopeType(scope_type)

    if scope is ScopeType.HOST:
        if target == ALL_HOSTS_TARGET:
            hosts = list(resolver.active_macs())
            if options.get("includeVPNNetworks"):
                hosts += resolver.identity_guids()
        else:
            hosts = [target]
    elif scope is ScopeType.INTF:
        intf = resolver.interface(target)
        if not intf:
            raise ScopeError(f"Interface uuid {target} is not found")
        hosts = list(resolver.intf_macs(target))
        hosts += resolver.identities_on_nic(intf.get("name", ""))
    else:
        hosts = list(resolver.tag_macs(target))

    hosts = [h for h in dict.fromkeys(hosts) if not resolver.is_self(h)]
    return key, hosts


__all__ = ["ScopeError", "InventoryResolver", "task_key", "expand_scope"]
