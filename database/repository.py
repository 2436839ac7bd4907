"""
database/repository.py
Pure sqlite3 persistence for scan state - zero external dependencies.

Offers the small key-value surface the scanner needs:
  get/set                 scalar values
  hget/hset/hgetall/hdel  hash records
  load_tasks/save_tasks   the task blob (hash field "tasks")
  save_host_result/get_host_result/list_host_results
  set_last_completed/get_last_completed

Layering: core writes through this (injected by main.py), dashboard reads.
repository does NOT import core or dashboard.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from typing import Dict, Generator, List, Optional

from database.models import SCHEMA_SQL
from utils.constants import RESULT_FIELD_LAST_TS, RESULT_FIELD_TASKS, RESULT_HASH


class Repository:
    """Thread-safe sqlite3 repository (one connection per operation)."""

    def __init__(self, db_path: str = "weakscan.db"):
        self._db_path = db_path
        self._init_schema()

    @property
    def db_path(self) -> str:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        conn = self._connect()
        try:
            for stmt in SCHEMA_SQL.strip().split(";"):
                s = stmt.strip()
                if s:
                    conn.execute(s)
            conn.commit()
        finally:
            conn.close()

    @contextmanager
    def _tx(self) -> Generator[sqlite3.Connection, None, None]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ── Scalars ───────────────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key=?", (key,)).fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        with self._tx() as c:
            c.execute("""
                INSERT INTO kv(key,value) VALUES(?,?)
                ON CONFLICT(key) DO UPDATE SET
                  value=excluded.value,
                  updated_at=strftime('%Y-%m-%dT%H:%M:%SZ','now')
            """, (key, str(value)))

    # ── Hashes ────────────────────────────────────────────────────────────────

    def hget(self, name: str, field: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT value FROM kv_hash WHERE name=? AND field=?", (name, field)
            ).fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def hset(self, name: str, field: str, value: str) -> None:
        with self._tx() as c:
            c.execute("""
                INSERT INTO kv_hash(name,field,value) VALUES(?,?,?)
                ON CONFLICT(name,field) DO UPDATE SET
                  value=excluded.value,
                  updated_at=strftime('%Y-%m-%dT%H:%M:%SZ','now')
            """, (name, field, str(value)))

    def hgetall(self, name: str) -> Dict[str, str]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT field, value FROM kv_hash WHERE name=?", (name,)
            ).fetchall()
            return {r["field"]: r["value"] for r in rows}
        finally:
            conn.close()

    def hdel(self, name: str, field: str) -> bool:
        with self._tx() as c:
            n = c.execute(
                "DELETE FROM kv_hash WHERE name=? AND field=?", (name, field)
            ).rowcount
            return n > 0

    # ── Scan tasks ────────────────────────────────────────────────────────────

    def load_tasks(self) -> Dict[str, dict]:
        """Raises ValueError if the stored blob is not valid JSON."""
        raw = self.hget(RESULT_HASH, RESULT_FIELD_TASKS)
        if not raw:
            return {}
        data = json.loads(raw)
        return data if isinstance(data, dict) else {}

    def save_tasks(self, tasks: Dict[str, dict]) -> None:
        self.hset(RESULT_HASH, RESULT_FIELD_TASKS, json.dumps(tasks))

    def set_last_completed(self, ts: int) -> None:
        self.hset(RESULT_HASH, RESULT_FIELD_LAST_TS, str(int(ts)))

    def get_last_completed(self) -> Optional[int]:
        raw = self.hget(RESULT_HASH, RESULT_FIELD_LAST_TS)
        try:
            return int(raw) if raw is not None else None
        except ValueError:
            return None

    # ── Host results ──────────────────────────────────────────────────────────

    def save_host_result(self, host_id: str, result: dict) -> None:
        with self._tx() as c:
            c.execute("""
                INSERT INTO host_results(host_id,ts,result,finding_count)
                VALUES(?,?,?,?)
                ON CONFLICT(host_id) DO UPDATE SET
                  ts=excluded.ts,
                  result=excluded.result,
                  finding_count=excluded.finding_count,
                  updated_at=strftime('%Y-%m-%dT%H:%M:%SZ','now')
            """, (host_id, float(result.get("ts", 0)), json.dumps(result),
                  len(result.get("result") or [])))

    def get_host_result(self, host_id: str) -> Optional[dict]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT result FROM host_results WHERE host_id=?", (host_id,)
            ).fetchone()
            return json.loads(row["result"]) if row else None
        finally:
            conn.close()

    def list_host_results(self, limit: int = 50, only_findings: bool = False) -> List[dict]:
        conn = self._connect()
        try:
            sql = "SELECT result FROM host_results"
            if only_findings:
                sql += " WHERE finding_count > 0"
            rows = conn.execute(sql + " ORDER BY ts DESC LIMIT ?", (limit,)).fetchall()
            return [json.loads(r["result"]) for r in rows]
        finally:
            conn.close()

    # ── Stats ─────────────────────────────────────────────────────────────────

    def stats(self) -> dict:
        conn = self._connect()
        try:
            def q(sql): return conn.execute(sql).fetchone()[0] or 0
            return {
                "hosts_scanned":   q("SELECT COUNT(*) FROM host_results"),
                "hosts_with_weak": q("SELECT COUNT(*) FROM host_results WHERE finding_count > 0"),
                "weak_passwords":  q("SELECT SUM(finding_count) FROM host_results"),
            }
        finally:
            conn.close()

    def clear_all(self) -> None:
        with self._tx() as c:
            c.execute("DELETE FROM host_results")
            c.execute("DELETE FROM kv_hash WHERE name=?", (RESULT_HASH,))
