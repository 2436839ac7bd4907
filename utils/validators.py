"""
utils/validators.py
Input validation helpers for scan requests and resolved addresses
"""

import ipaddress
import re
from typing import Tuple

_MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$")


def validate_target(target: str) -> Tuple[bool, str]:
    """
    Validate that a scan target is a usable identifier.

    Args:
        target: host MAC / identity GUID, interface UUID or tag id

    Returns:
        (is_valid, error_message) tuple
    """
    if not target or not isinstance(target, str):
        return (False, "Target must be a non-empty string")

    if target != target.strip():
        return (False, "Target must not contain leading/trailing whitespace")

    if any(ch.isspace() for ch in target):
        return (False, f"Target {target!r} contains whitespace")

    return (True, "")


def is_mac(value: str) -> bool:
    """True for a colon-separated 48-bit MAC address."""
    return bool(value) and bool(_MAC_RE.match(value))


def is_singleton_address(value: str) -> bool:
    """
    True if value is a single IP address or a /32 (/128 for IPv6) network.

    Identities such as VPN peers may carry whole allowed ranges; those are
    never scanned.
    """
    try:
        net = ipaddress.ip_network(value, strict=False)
    except ValueError:
        return False
    return net.num_addresses == 1


def strip_prefix(value: str) -> str:
    """'10.0.0.2/32' -> '10.0.0.2'; plain addresses are returned unchanged."""
    return value.split("/", 1)[0]


__all__ = ["validate_target", "is_mac", "is_singleton_address", "strip_prefix"]
