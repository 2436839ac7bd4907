"""
tests/test_database.py
Unit tests for the sqlite repository and migrations using a temp-file DB.
Run: pytest tests/test_database.py -v
"""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from database.migrations import MIGRATIONS, get_version, migrate
from database.repository import Repository
from utils.constants import RESULT_FIELD_TASKS, RESULT_HASH


@pytest.fixture
def repo(tmp_path):
    """Fresh repository for each test."""
    return Repository(db_path=str(tmp_path / "test.db"))


def host_result(host, ts, findings=()):
    return {
        "host": host,
        "ts": ts,
        "result": [
            {"username": u, "password": p, "protocol": "tcp", "port": 23, "serviceName": "telnet"}
            for u, p in findings
        ],
    }


class TestKeyValue:

    def test_get_missing(self, repo):
        assert repo.get("scan:config.sha256") is None

    def test_set_and_overwrite(self, repo):
        repo.set("scan:config.sha256", "abc")
        repo.set("scan:config.sha256", "def")
        assert repo.get("scan:config.sha256") == "def"

    def test_hash_roundtrip(self, repo):
        repo.hset("sys:config", "weak_password_scan", '{"a": 1}')
        repo.hset("sys:config", "other", "x")
        assert repo.hget("sys:config", "weak_password_scan") == '{"a": 1}'
        assert repo.hgetall("sys:config") == {"weak_password_scan": '{"a": 1}', "other": "x"}

    def test_hdel(self, repo):
        repo.hset("h", "f", "v")
        assert repo.hdel("h", "f") is True
        assert repo.hdel("h", "f") is False
        assert repo.hget("h", "f") is None


class TestTasks:

    def test_load_tasks_empty(self, repo):
        assert repo.load_tasks() == {}

    def test_save_and_load_tasks(self, repo):
        tasks = {"tag:3": {"state": "scanning", "ts": 1.5, "pendingHosts": ["AA"], "results": []}}
        repo.save_tasks(tasks)
        assert repo.load_tasks() == tasks

    def test_corrupt_blob_raises(self, repo):
        repo.hset(RESULT_HASH, RESULT_FIELD_TASKS, "{not json")
        with pytest.raises(ValueError):
            repo.load_tasks()

    def test_last_completed(self, repo):
        assert repo.get_last_completed() is None
        repo.set_last_completed(1700000000.9)
        assert repo.get_last_completed() == 1700000000


class TestHostResults:

    def test_save_and_get(self, repo):
        r = host_result("AA:BB:CC:00:00:01", 100.0, [("admin", "admin")])
        repo.save_host_result("AA:BB:CC:00:00:01", r)
        assert repo.get_host_result("AA:BB:CC:00:00:01") == r

    def test_get_missing(self, repo):
        assert repo.get_host_result("nope") is None

    def test_latest_result_replaces_previous(self, repo):
        repo.save_host_result("h1", host_result("h1", 1.0, [("a", "b")]))
        repo.save_host_result("h1", host_result("h1", 2.0))
        assert repo.get_host_result("h1")["ts"] == 2.0
        assert repo.stats()["hosts_scanned"] == 1

    def test_list_newest_first_and_limit(self, repo):
        for i in range(5):
            repo.save_host_result(f"h{i}", host_result(f"h{i}", float(i)))
        rows = repo.list_host_results(limit=3)
        assert [r["host"] for r in rows] == ["h4", "h3", "h2"]

    def test_list_only_findings(self, repo):
        repo.save_host_result("h1", host_result("h1", 1.0))
        repo.save_host_result("h2", host_result("h2", 2.0, [("root", "")]))
        rows = repo.list_host_results(only_findings=True)
        assert [r["host"] for r in rows] == ["h2"]


class TestStatistics:

    def test_stats_empty(self, repo):
        assert repo.stats() == {"hosts_scanned": 0, "hosts_with_weak": 0, "weak_passwords": 0}

    def test_stats_counts(self, repo):
        repo.save_host_result("h1", host_result("h1", 1.0, [("a", "a"), ("b", "b")]))
        repo.save_host_result("h2", host_result("h2", 2.0))
        stats = repo.stats()
        assert stats["hosts_scanned"] == 2
        assert stats["hosts_with_weak"] == 1
        assert stats["weak_passwords"] == 2

    def test_clear_all(self, repo):
        repo.save_tasks({"h1": {"state": "complete", "ts": 1.0, "results": []}})
        repo.save_host_result("h1", host_result("h1", 1.0))
        repo.hset("sys:config", "weak_password_scan", "{}")
        repo.clear_all()
        assert repo.load_tasks() == {}
        assert repo.stats()["hosts_scanned"] == 0
        # dictionary config survives
        assert repo.hget("sys:config", "weak_password_scan") == "{}"


class TestMigrations:

    def test_migrate_fresh_db(self, repo):
        assert migrate(repo.db_path) == max(v for v, _, _ in MIGRATIONS)

    def test_migrate_is_idempotent(self, repo):
        first = migrate(repo.db_path)
        assert migrate(repo.db_path) == first

    def test_fresh_store_records_only_initial_schema(self, repo):
        import sqlite3
        migrate(repo.db_path)
        assert get_version(repo.db_path) == 1
        conn = sqlite3.connect(repo.db_path)
        rows = conn.execute("SELECT version, description FROM schema_version").fetchall()
        conn.close()
        assert rows == [(1, "initial_schema")]


class TestSchemaIndexes:
    """Verify critical indexes exist (SQLite introspection)."""

    def test_host_results_indexes_exist(self, repo):
        import sqlite3
        conn = sqlite3.connect(repo.db_path)
        indexes = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='index' AND tbl_name='host_results'"
        ).fetchall()
        idx_names = {r[0] for r in indexes}
        conn.close()
        assert {"ix_host_results_ts", "ix_host_results_findings"} <= idx_names


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
