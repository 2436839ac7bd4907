"""
core/scheduler.py
Concurrency-bounded weak-password scan scheduler.

State (all guarded by one asyncio.Lock):
  tasks      key → ScanTask           logical scan requests
  subtasks   host → SubTask           per-host work + subscribing task keys
  waiting    deque of host ids        FIFO admission order
  running    set of host ids          |running| ≤ max_concurrent

A host is in at most one of waiting/running, and has a SubTask exactly while
some task still needs it. Host executors run outside the lock; each posts
(host, subtask, result) to a completion queue drained by a single pump
coroutine, which records the result and runs admission again.

Layering: the store is injected (duck-typed load_tasks/save_tasks/
get_last_completed); no database imports.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections import deque
from typing import Callable, Deque, Dict, Iterable, Optional, Set, Tuple

from core.models import (
    HostResult, ScanTask, SubTask, now_ts, tasks_from_dict, tasks_to_dict,
)
from core.process import kill_process_tree
from utils.constants import MAX_CONCURRENT_TASKS, TASK_RETENTION_S, TaskState
from utils.logger import get_logger

log = get_logger("weakscan.scheduler")

Completion = Tuple[str, SubTask, HostResult]


class TaskNotFoundError(ValueError):
    """Raised when stopping a task key that is not tracked."""


class ScanScheduler:

    def __init__(
        self,
        executor,
        store,
        notifier,
        max_concurrent: int = MAX_CONCURRENT_TASKS,
        use_sudo: bool = False,
        kill: Callable[..., int] = kill_process_tree,
    ):
        self._executor = executor
        self._store = store
        self._notifier = notifier
        self.max_concurrent = max_concurrent
        self._use_sudo = use_sudo
        self._kill = kill

        self.tasks: Dict[str, ScanTask] = {}
        self.subtasks: Dict[str, SubTask] = {}
        self.waiting: Deque[str] = deque()
        self.running: Set[str] = set()

        self._lock = asyncio.Lock()
        self._changed = asyncio.Condition(self._lock)
        self._completions: asyncio.Queue = asyncio.Queue()
        self._pump_task: Optional[asyncio.Task] = None
        self._workers: Set[asyncio.Task] = set()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def start(self) -> None:
        await self.recover()
        if self._pump_task is None:
            self._pump_task = asyncio.create_task(self._pump(), name="weakscan-pump")

    async def close(self) -> None:
        """Stop the pump and all host scans (their processes are killed)."""
        async with self._lock:
            pids = []
            for sub in list(self.subtasks.values()):
                sub.token.cancel()
                if sub.pid:
                    pids.append(sub.pid)
        await self._kill_all(pids)
        for worker in list(self._workers):
            worker.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        if self._pump_task is not None:
            self._pump_task.cancel()
            await asyncio.gather(self._pump_task, return_exceptions=True)
            self._pump_task = None

    async def recover(self) -> None:
        """
        Load persisted tasks. Anything still queued/scanning was abandoned by
        a previous process and becomes stopped; nothing is resumed.
        """
        try:
            raw = self._store.load_tasks()
        except (sqlite3.Error, OSError, ValueError) as exc:
            log.error(f"Failed to load persisted scan tasks: {exc}")
            raw = {}
        try:
            tasks = tasks_from_dict(raw)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            log.error(f"Persisted scan tasks are corrupt, starting empty: {exc}")
            tasks = {}
        async with self._lock:
            self.tasks = tasks
            for task in self.tasks.values():
                if task.is_active:
                    log.info(f"Task {task.key} was {task.state.value} at shutdown, marking stopped")
                    task.finish(TaskState.STOPPED)
            self._save()

    # ── Read side ─────────────────────────────────────────────────────────────

    def get_tasks(self) -> Dict[str, ScanTask]:
        """All tasks, after dropping terminal ones older than the retention window."""
        cutoff = now_ts() - TASK_RETENTION_S
        for key in [k for k, t in self.tasks.items() if t.ets and t.ets < cutoff]:
            del self.tasks[key]
        return self.tasks

    def snapshot(self) -> dict:
        result = {"tasks": tasks_to_dict(self.get_tasks())}
        try:
            last_ts = self._store.get_last_completed()
        except (sqlite3.Error, OSError) as exc:
            log.error(f"Failed to read last completed timestamp: {exc}")
            last_ts = None
        if last_ts is not None:
            result["lastCompletedScanTs"] = last_ts
        return result

    # ── Submission / stop ─────────────────────────────────────────────────────

    async def submit_task(self, key: str, hosts: Iterable[str]) -> bool:
        """
        Register a scan request and admit hosts. Returns False (and changes
        nothing) when key is already queued or scanning.
        """
        hosts = list(dict.fromkeys(hosts))
        async with self._lock:
            existing = self.tasks.get(key)
            if existing is not None and existing.is_active:
                log.info(f"Task {key} is already {existing.state.value}, ignoring")
                return False

            task = ScanTask(key=key, pending_hosts=set(hosts))
            self.tasks[key] = task
            if not hosts:
                task.finish(TaskState.COMPLETE)
                self._save()
                self._changed.notify_all()
                return True

            for host in hosts:
                if host not in self.running and host not in self.waiting:
                    self.waiting.append(host)
                sub = self.subtasks.get(host)
                if sub is None:
                    sub = self.subtasks[host] = SubTask(host_id=host)
                sub.subscribers.add(key)
            if any(host in self.running for host in hosts):
                task.state = TaskState.SCANNING
            log.info(f"Task {key} submitted with {len(hosts)} host(s)")
            self._save()

        await self.schedule()
        return True

    async def stop_task(self, key: str) -> None:
        async with self._lock:
            task = self.tasks.get(key)
            if task is None:
                raise TaskNotFoundError(f"Task on {key} is not scheduled")
            task.finish(TaskState.STOPPED)

            pids = []
            for host in sorted(task.pending_hosts):
                sub = self.subtasks.get(host)
                if sub is None:
                    continue
                sub.subscribers.discard(key)
                if not sub.subscribers:
                    pid = self._cancel_subtask(sub)
                    if pid:
                        pids.append(pid)
            log.info(f"Task {key} stopped")
            self._save()
            self._changed.notify_all()
        await self._kill_all(pids)
        await self.schedule()

    def _cancel_subtask(self, sub: SubTask) -> Optional[int]:
        """
        Caller holds the lock. Drops the host from the waiting queue or running
        set and returns the pid of its running probe, if any, for the caller to
        kill once the lock is released.
        """
        host = sub.host_id
        del self.subtasks[host]
        sub.token.cancel()
        if host in self.running:
            self.running.discard(host)
            log.info(f"Cancelling running scan of {host}")
            return sub.pid
        try:
            self.waiting.remove(host)
        except ValueError:
            pass
        return None

    async def _kill_all(self, pids: Iterable[int]) -> None:
        for pid in pids:
            await asyncio.to_thread(self._kill, pid, use_sudo=self._use_sudo)

    # ── Admission ─────────────────────────────────────────────────────────────

    async def schedule(self) -> None:
        """Admit waiting hosts, FIFO, while below the concurrency ceiling."""
        async with self._lock:
            admitted = False
            while len(self.running) < self.max_concurrent and self.waiting:
                host = self.waiting.popleft()
                sub = self.subtasks.get(host)
                if sub is None:
                    continue
                self.running.add(host)
                admitted = True
                for key in sub.subscribers:
                    task = self.tasks.get(key)
                    if task is not None and task.state is TaskState.QUEUED:
                        task.state = TaskState.SCANNING

                worker = asyncio.create_task(self._run_host(host, sub), name=f"weakscan-{host}")
                self._workers.add(worker)
                worker.add_done_callback(self._workers.discard)
            if admitted:
                self._save()

    async def _run_host(self, host: str, sub: SubTask) -> None:
        try:
            result = await self._executor.scan_host(host, sub)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.error(f"Failed to scan host {host}: {exc}")
            result = HostResult(host=host, ts=now_ts())
        await self._completions.put((host, sub, result))

    async def _pump(self) -> None:
        while True:
            host, sub, result = await self._completions.get()
            try:
                await self._complete(host, sub, result)
                await self.schedule()
            finally:
                self._completions.task_done()

    async def _complete(self, host: str, sub: SubTask, result: HostResult) -> None:
        async with self._lock:
            if self.subtasks.get(host) is not sub:
                # stopped while running; the stop already did the bookkeeping
                log.info(f"Scan of {host} finished after cancellation, result dropped")
                return
            del self.subtasks[host]
            self.running.discard(host)

            for key in sorted(sub.subscribers):
                task = self.tasks.get(key)
                if task is None or host not in task.pending_hosts:
                    continue
                task.pending_hosts.discard(host)
                task.results.append(result)
                if not task.pending_hosts and task.is_active:
                    log.info(f"All hosts on {key} have been scanned, scan complete on {key}")
                    ets = now_ts()
                    task.finish(TaskState.COMPLETE, ets)
                    self._notifier.scan_complete(key, ets, task.finding_count())
            self._save()
            self._changed.notify_all()

    # ── Waiting helpers ───────────────────────────────────────────────────────

    async def wait_task(self, key: str) -> Optional[ScanTask]:
        """Block until task key is no longer queued/scanning."""
        async with self._changed:
            await self._changed.wait_for(
                lambda: key not in self.tasks or not self.tasks[key].is_active
            )
            return self.tasks.get(key)

    async def drain(self) -> None:
        """Wait until every admitted host has finished and been recorded."""
        while True:
            if self._workers:
                await asyncio.gather(*list(self._workers), return_exceptions=True)
            await self._completions.join()
            if not self._workers and self._completions.empty():
                return

    # ── Persistence ───────────────────────────────────────────────────────────

    def _save(self) -> None:
        try:
            self._store.save_tasks(tasks_to_dict(self.get_tasks()))
        except (sqlite3.Error, OSError) as exc:
            log.error(f"Failed to save scan tasks: {exc}")


__all__ = ["ScanScheduler", "TaskNotFoundError"]
