"""
tests/test_dashboard.py
HTTP API routes, error mapping and basic auth (Flask test client).
Run: pytest tests/test_dashboard.py -v
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import base64

import pytest
from unittest.mock import MagicMock

from dashboard.app import create_app, hash_password, verify_password
from database.repository import Repository

SNAPSHOT = {"tasks": {"tag:3": {"state": "scanning", "ts": 1.0,
                                "pendingHosts": ["AA"], "results": []}}}


@pytest.fixture
def repo(tmp_path):
    return Repository(db_path=str(tmp_path / "api.db"))


@pytest.fixture
def client_stub():
    stub = MagicMock()
    stub.list_scans.return_value = SNAPSHOT
    stub.schedule_scan.return_value = SNAPSHOT
    stub.stop_scan.return_value = SNAPSHOT
    return stub


@pytest.fixture
def http(client_stub, repo):
    return create_app({}, client_stub, repo).test_client()


def basic(user, password):
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


class TestScanRoutes:

    def test_list(self, http):
        r = http.get("/api/scans")
        assert r.status_code == 200
        assert r.get_json() == SNAPSHOT

    def test_schedule(self, http, client_stub):
        r = http.post("/api/scans", json={"type": "host", "target": "0.0.0.0",
                                          "options": {"includeVPNNetworks": True}})
        assert r.status_code == 200
        client_stub.schedule_scan.assert_called_once_with(
            "host", "0.0.0.0", {"includeVPNNetworks": True})

    def test_schedule_missing_target(self, http, client_stub):
        r = http.post("/api/scans", json={"type": "tag"})
        assert r.status_code == 400
        assert r.get_json()["error"] == "Unrecognized type/target"
        client_stub.schedule_scan.assert_not_called()

    def test_schedule_bad_options(self, http):
        r = http.post("/api/scans", json={"type": "tag", "target": "3", "options": [1]})
        assert r.status_code == 400

    def test_scope_error_is_400(self, http, client_stub):
        client_stub.schedule_scan.side_effect = ValueError("Interface uuid x is not found")
        r = http.post("/api/scans", json={"type": "intf", "target": "x"})
        assert r.status_code == 400
        assert r.get_json() == {"error": "Interface uuid x is not found"}

    def test_stop(self, http, client_stub):
        r = http.post("/api/scans/stop", json={"type": "tag", "target": "3"})
        assert r.status_code == 200
        client_stub.stop_scan.assert_called_once_with("tag", "3")

    def test_unexpected_error_hidden(self, http, client_stub):
        client_stub.list_scans.side_effect = RuntimeError("secret internals")
        r = http.get("/api/scans")
        assert r.status_code == 500
        assert "secret" not in r.get_data(as_text=True)


class TestResultRoutes:

    def test_host_result(self, http, repo):
        repo.save_host_result("AA:BB:CC:00:00:01", {"host": "AA:BB:CC:00:00:01", "ts": 5.0,
                                                   "result": []})
        r = http.get("/api/hosts/AA:BB:CC:00:00:01/result")
        assert r.status_code == 200
        assert r.get_json()["ts"] == 5.0

    def test_identity_host_id_with_colon(self, http, repo):
        repo.save_host_result("wg_peer:laptop", {"host": "wg_peer:laptop", "ts": 1.0, "result": []})
        assert http.get("/api/hosts/wg_peer:laptop/result").status_code == 200

    def test_host_result_missing(self, http):
        r = http.get("/api/hosts/nope/result")
        assert r.status_code == 404
        assert "nope" in r.get_json()["error"]

    def test_results_weak_only(self, http, repo):
        repo.save_host_result("h1", {"host": "h1", "ts": 1.0, "result": []})
        repo.save_host_result("h2", {"host": "h2", "ts": 2.0, "result": [
            {"username": "admin", "password": "admin", "protocol": "tcp",
             "port": 21, "serviceName": "ftp"}]})
        assert len(http.get("/api/results").get_json()) == 2
        weak = http.get("/api/results?weak=1").get_json()
        assert [r["host"] for r in weak] == ["h2"]

    def test_results_bad_limit(self, http):
        assert http.get("/api/results?limit=abc").status_code == 400

    def test_stats(self, http):
        assert http.get("/api/stats").get_json()["hosts_scanned"] == 0

    def test_health(self, http):
        assert http.get("/health").get_json() == {"status": "ok", "auth": False}


class TestAuth:

    @pytest.fixture
    def secured(self, client_stub, repo):
        cfg = {"enable_auth": True, "auth_username": "ops",
               "auth_password": hash_password("s3cret")}
        return create_app(cfg, client_stub, repo).test_client()

    def test_challenge(self, secured):
        r = secured.get("/api/scans")
        assert r.status_code == 401
        assert "Basic" in r.headers["WWW-Authenticate"]

    def test_good_credentials(self, secured):
        assert secured.get("/api/scans", headers=basic("ops", "s3cret")).status_code == 200

    def test_wrong_password(self, secured):
        assert secured.get("/api/scans", headers=basic("ops", "nope")).status_code == 401

    def test_wrong_user(self, secured):
        assert secured.get("/api/scans", headers=basic("root", "s3cret")).status_code == 401

    def test_plaintext_password(self, client_stub, repo):
        cfg = {"enable_auth": True, "auth_username": "ops", "auth_password": "plain"}
        app = create_app(cfg, client_stub, repo).test_client()
        assert app.get("/api/scans", headers=basic("ops", "plain")).status_code == 200


class TestPasswords:

    def test_hash_and_verify(self):
        h = hash_password("pw")
        assert h.startswith("$2")
        assert verify_password("pw", h)
        assert not verify_password("other", h)

    def test_plain_compare(self):
        assert verify_password("pw", "pw")
        assert not verify_password("pw", "px")


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
