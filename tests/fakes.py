"""
tests/fakes.py
Test doubles shared by the scheduler and service tests.
"""

import asyncio
from typing import Dict, List

from core.models import Finding, HostResult, SubTask, now_ts


class GatedExecutor:
    """Host scans block until the test releases them (or fail on demand)."""

    def __init__(self, findings: Dict[str, List[Finding]] = None):
        self.findings = findings or {}
        self.failing = set()
        self.started: List[str] = []
        self._gates: Dict[str, asyncio.Event] = {}

    def _gate(self, host: str) -> asyncio.Event:
        return self._gates.setdefault(host, asyncio.Event())

    def release(self, *hosts: str) -> None:
        for host in hosts:
            self._gate(host).set()

    async def scan_host(self, host: str, sub: SubTask) -> HostResult:
        self.started.append(host)
        await self._gate(host).wait()
        if host in self.failing:
            raise RuntimeError(f"boom on {host}")
        return HostResult(host=host, ts=now_ts(), findings=list(self.findings.get(host, [])))


class MemoryStore:
    """In-memory stand-in for the sqlite Repository."""

    def __init__(self):
        self.kv = {}
        self.hashes = {}
        self.tasks = {}
        self.host_results = {}
        self.last_completed = None
        self.fail_writes = False

    def get(self, key):
        return self.kv.get(key)

    def set(self, key, value):
        self.kv[key] = str(value)

    def hget(self, name, field):
        return self.hashes.get(name, {}).get(field)

    def hset(self, name, field, value):
        self.hashes.setdefault(name, {})[field] = str(value)

    def load_tasks(self):
        return dict(self.tasks)

    def save_tasks(self, tasks):
        if self.fail_writes:
            raise OSError("disk full")
        self.tasks = tasks

    def save_host_result(self, host_id, result):
        if self.fail_writes:
            raise OSError("disk full")
        self.host_results[host_id] = result

    def set_last_completed(self, ts):
        self.last_completed = ts

    def get_last_completed(self):
        return self.last_completed


async def wait_until(pred, timeout: float = 2.0) -> None:
    """Yield to the loop until pred() holds; fail after timeout seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not pred():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)
