"""
core/models.py
Scan task data model.

  Finding     one weak credential found on host/service/port
  HostResult  all findings of one host scan
  ScanTask    one logical scan request (host / intf / tag key)
  SubTask     the per-host unit of work shared by every task that needs it

to_dict()/from_dict() produce the persisted (JSON) shape:

  task  → {state, ts, ets, pendingHosts, results}
  host  → {host, ts, result}
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from utils.constants import TaskState


def now_ts() -> float:
    return time.time()


# ─── Findings ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Finding:
    username:     str
    password:     str
    protocol:     str = ""
    port:         int = 0
    service_name: str = ""

    def to_dict(self) -> dict:
        return {
            "username":    self.username,
            "password":    self.password,
            "protocol":    self.protocol,
            "port":        self.port,
            "serviceName": self.service_name,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Finding":
        return cls(
            username     = d.get("username", ""),
            password     = d.get("password", ""),
            protocol     = d.get("protocol", ""),
            port         = int(d.get("port", 0) or 0),
            service_name = d.get("serviceName", ""),
        )


def dedup_findings(findings: List[Finding]) -> List[Finding]:
    """Drop structurally identical findings, keeping first-seen order."""
    return list(dict.fromkeys(findings))


@dataclass
class HostResult:
    host:     str
    ts:       float
    findings: List[Finding] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "host":   self.host,
            "ts":     self.ts,
            "result": [f.to_dict() for f in self.findings],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "HostResult":
        return cls(
            host     = d.get("host", ""),
            ts       = float(d.get("ts", 0) or 0),
            findings = [Finding.from_dict(f) for f in d.get("result") or []],
        )


# ─── Tasks ───────────────────────────────────────────────────────────────────

@dataclass
class ScanTask:
    key:           str
    state:         TaskState = TaskState.QUEUED
    ts:            float = field(default_factory=now_ts)
    ets:           Optional[float] = None
    pending_hosts: Set[str] = field(default_factory=set)
    results:       List[HostResult] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.state.is_active

    def finish(self, state: TaskState, ets: Optional[float] = None) -> None:
        """Move to a terminal state. Terminal tasks never change again."""
        if not self.is_active:
            return
        self.state = state
        self.ets = ets if ets is not None else now_ts()

    def finding_count(self) -> int:
        return sum(len(r.findings) for r in self.results)

    def to_dict(self) -> dict:
        d = {
            "state":        self.state.value,
            "ts":           self.ts,
            "pendingHosts": sorted(self.pending_hosts),
            "results":      [r.to_dict() for r in self.results],
        }
        if self.ets is not None:
            d["ets"] = self.ets
        return d

    @classmethod
    def from_dict(cls, key: str, d: dict) -> "ScanTask":
        pending = d.get("pendingHosts") or []
        return cls(
            key           = key,
            state         = TaskState(d.get("state", TaskState.STOPPED.value)),
            ts            = float(d.get("ts", 0) or 0),
            ets           = d.get("ets"),
            # older blobs stored pendingHosts as {host: 1}
            pending_hosts = set(pending.keys() if isinstance(pending, dict) else pending),
            results       = [HostResult.from_dict(r) for r in d.get("results") or []],
        )


class CancelToken:
    """Cooperative cancellation flag handed to a host executor at launch."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class SubTask:
    host_id:     str
    subscribers: Set[str] = field(default_factory=set)
    pid:         Optional[int] = None
    token:       CancelToken = field(default_factory=CancelToken)


def tasks_to_dict(tasks: Dict[str, ScanTask]) -> Dict[str, dict]:
    return {k: t.to_dict() for k, t in tasks.items()}


def tasks_from_dict(raw: Dict[str, dict]) -> Dict[str, ScanTask]:
    return {k: ScanTask.from_dict(k, v) for k, v in (raw or {}).items()}
