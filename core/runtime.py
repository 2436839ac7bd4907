"""
core/runtime.py
Runs a ScanService on its own event loop thread and exposes blocking
wrappers, so synchronous callers (the Flask dashboard) can use it.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Dict, Optional

from core.service import ScanService
from utils.logger import get_logger

log = get_logger("weakscan.runtime")


class ServiceThread:

    def __init__(self, factory: Callable[[], ScanService], call_timeout: float = 30.0):
        self._factory = factory
        self._timeout = call_timeout
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="weakscan-loop", daemon=True)
        self.service: Optional[ScanService] = None

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _call(self, coro):
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(self._timeout)

    async def _start(self) -> None:
        self.service = self._factory()
        await self.service.start()

    def start(self) -> "ServiceThread":
        self._thread.start()
        self._call(self._start())
        log.info("Scan scheduler running")
        return self

    def stop(self) -> None:
        if self.service is not None:
            self._call(self.service.close())
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=self._timeout)
        self._loop.close()

    # ── Blocking API ──────────────────────────────────────────────────────────

    def schedule_scan(self, scope_type: str, target: str,
                      options: Optional[Dict[str, Any]] = None) -> dict:
        return self._call(self.service.schedule_scan(scope_type, target, options))

    def list_scans(self) -> dict:
        return self._call(self.service.list_scans())

    def stop_scan(self, scope_type: str, target: str) -> dict:
        return self._call(self.service.stop_scan(scope_type, target))


__all__ = ["ServiceThread"]
