"""
tests/test_targets.py
Unit tests for scope expansion, task keys and address resolution.
Run: pytest tests/test_targets.py -v
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from core.targets import InventoryResolver, ScopeError, expand_scope, task_key
from utils.validators import is_mac, is_singleton_address, strip_prefix, validate_target

INVENTORY = {
    "self_macs": ["aa:bb:cc:00:00:ff"],
    "interfaces": {
        "lan-uuid": {"name": "br0"},
        "vpn-uuid": {"name": "wg0"},
    },
    "hosts": {
        "AA:BB:CC:00:00:01": {"ip": "192.168.1.10", "intf": "lan-uuid", "tags": [3]},
        "aa:bb:cc:00:00:02": {"ip": "192.168.1.11", "intf": "lan-uuid", "tags": ["3", 7]},
        "AA:BB:CC:00:00:03": {"ip": "192.168.1.12", "intf": "lan-uuid", "active": False},
        "AA:BB:CC:00:00:FF": {"ip": "192.168.1.1", "intf": "lan-uuid", "tags": [3]},
    },
    "identities": {
        "wg_peer:laptop": {"nic": "wg0", "ips": ["10.6.0.2/32", "10.6.0.0/24", "10.6.0.9"]},
        "wg_peer:phone":  {"nic": "wg1", "ips": ["10.7.0.2/32"]},
    },
}


@pytest.fixture
def resolver():
    return InventoryResolver(INVENTORY)


class TestTaskKey:

    def test_host_key_is_target(self):
        assert task_key("host", "AA:BB:CC:00:00:01") == "AA:BB:CC:00:00:01"

    def test_intf_and_tag_keys(self):
        assert task_key("intf", "lan-uuid") == "intf:lan-uuid"
        assert task_key("tag", "3") == "tag:3"

    def test_unknown_type(self):
        with pytest.raises(ScopeError, match="Unrecognized type/target"):
            task_key("vlan", "3")

    @pytest.mark.parametrize("target", ["", " 3", "a b"])
    def test_bad_target(self, target):
        with pytest.raises(ScopeError):
            task_key("tag", target)


class TestExpandScope:

    def test_single_host(self, resolver):
        key, hosts = expand_scope(resolver, "host", "AA:BB:CC:00:00:01")
        assert key == "AA:BB:CC:00:00:01"
        assert hosts == ["AA:BB:CC:00:00:01"]

    def test_all_hosts_excludes_self_and_inactive(self, resolver):
        key, hosts = expand_scope(resolver, "host", "0.0.0.0")
        assert key == "0.0.0.0"
        assert hosts == ["AA:BB:CC:00:00:01", "AA:BB:CC:00:00:02"]

    def test_all_hosts_with_vpn(self, resolver):
        _, hosts = expand_scope(resolver, "host", "0.0.0.0", {"includeVPNNetworks": True})
        assert hosts[-2:] == ["wg_peer:laptop", "wg_peer:phone"]

    def test_self_host_yields_empty(self, resolver):
        _, hosts = expand_scope(resolver, "host", "AA:BB:CC:00:00:FF")
        assert hosts == []

    def test_intf_includes_identities_on_nic(self, resolver):
        key, hosts = expand_scope(resolver, "intf", "vpn-uuid")
        assert key == "intf:vpn-uuid"
        assert hosts == ["wg_peer:laptop"]

    def test_intf_lan(self, resolver):
        _, hosts = expand_scope(resolver, "intf", "lan-uuid")
        assert hosts == ["AA:BB:CC:00:00:01", "AA:BB:CC:00:00:02"]

    def test_unknown_intf(self, resolver):
        with pytest.raises(ScopeError, match="Interface uuid nope is not found"):
            expand_scope(resolver, "intf", "nope")

    def test_tag_matches_int_and_str(self, resolver):
        key, hosts = expand_scope(resolver, "tag", "3")
        assert key == "tag:3"
        assert hosts == ["AA:BB:CC:00:00:01", "AA:BB:CC:00:00:02"]

    def test_unknown_tag_is_empty(self, resolver):
        assert expand_scope(resolver, "tag", "99") == ("tag:99", [])


class TestAddresses:

    def test_mac_ip(self, resolver):
        assert resolver.ips_for("aa:bb:cc:00:00:02") == ["192.168.1.11"]

    def test_unknown_mac(self, resolver):
        assert resolver.ips_for("AA:BB:CC:99:99:99") == []

    def test_identity_singletons_only(self, resolver):
        assert resolver.ips_for("wg_peer:laptop") == ["10.6.0.2", "10.6.0.9"]

    def test_unknown_identity(self, resolver):
        assert resolver.ips_for("wg_peer:ghost") == []


class TestValidators:

    def test_is_mac(self):
        assert is_mac("AA:BB:CC:DD:EE:FF")
        assert not is_mac("wg_peer:laptop")
        assert not is_mac("")

    def test_singleton(self):
        assert is_singleton_address("10.0.0.1")
        assert is_singleton_address("10.0.0.1/32")
        assert is_singleton_address("fd00::1/128")
        assert not is_singleton_address("10.0.0.0/24")
        assert not is_singleton_address("garbage")

    def test_strip_prefix(self):
        assert strip_prefix("10.0.0.2/32") == "10.0.0.2"
        assert strip_prefix("10.0.0.2") == "10.0.0.2"

    def test_validate_target(self):
        assert validate_target("tag1") == (True, "")
        assert validate_target("")[0] is False


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
