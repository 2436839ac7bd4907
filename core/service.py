"""
core/service.py
The three exposed operations plus dictionary upkeep.

    schedule_scan(scope_type, target, options) → snapshot
    list_scans()                               → snapshot
    stop_scan(scope_type, target)              → snapshot

snapshot = {"tasks": {key: {...}}, "lastCompletedScanTs": ts}

build_service() wires config, store, resolver and notifier into a ready
ScanService; the store comes from the caller (main.py passes the sqlite
Repository) so core keeps its layering.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from core.brute_config import load_brute_config, supported_services
from core.commands import CommandComposer
from core.dictionary import DictionaryCache, DictionarySyncError, HttpDictionarySource
from core.executor import HostExecutor
from core.notify import Notifier
from core.scheduler import ScanScheduler
from core.targets import InventoryResolver, expand_scope, task_key
from utils.config import Settings
from utils.logger import get_logger

log = get_logger("weakscan.service")


class ScanService:

    def __init__(self, scheduler: ScanScheduler, resolver,
                 dictionary: DictionaryCache, source=None,
                 dict_interval_s: int = 3600):
        self.scheduler = scheduler
        self._resolver = resolver
        self._dictionary = dictionary
        self._source = source
        self._dict_interval_s = dict_interval_s
        self._dict_task: Optional[asyncio.Task] = None

    @property
    def has_dictionary_source(self) -> bool:
        return self._source is not None

    async def start(self) -> None:
        await self.scheduler.start()
        if self._source is not None and self._dict_task is None:
            self._dict_task = asyncio.create_task(self._dictionary_loop(), name="weakscan-dict")

    async def close(self) -> None:
        if self._dict_task is not None:
            self._dict_task.cancel()
            await asyncio.gather(self._dict_task, return_exceptions=True)
            self._dict_task = None
        await self.scheduler.close()

    # ── Exposed operations ────────────────────────────────────────────────────

    async def schedule_scan(self, scope_type: str, target: str,
                            options: Optional[Dict[str, Any]] = None) -> dict:
        key, hosts = expand_scope(self._resolver, scope_type, target, options)
        await self.scheduler.submit_task(key, hosts)
        return self.scheduler.snapshot()

    async def list_scans(self) -> dict:
        return self.scheduler.snapshot()

    async def stop_scan(self, scope_type: str, target: str) -> dict:
        await self.scheduler.stop_task(task_key(scope_type, target))
        return self.scheduler.snapshot()

    # ── Dictionary ────────────────────────────────────────────────────────────

    async def sync_dictionary(self) -> bool:
        """Fetch the remote dictionary; on failure keep the existing files."""
        if self._source is None:
            return False
        try:
            return await asyncio.to_thread(self._dictionary.sync, self._source)
        except (DictionarySyncError, OSError) as exc:
            log.error(f"Failed to fetch dictionary from cloud: {exc}")
            return False

    async def _dictionary_loop(self) -> None:
        while True:
            await self.sync_dictionary()
            await asyncio.sleep(self._dict_interval_s)


def build_service(settings: Settings, store, resolver=None,
                  notify_sink=None) -> ScanService:
    resolver = resolver or InventoryResolver(settings.inventory)
    dictionary = DictionaryCache(settings.dict_dir, store)
    composer = CommandComposer(
        dictionary,
        nmap_bin=settings.nmap_bin,
        timeout_s=settings.command_timeout_s,
        use_sudo=settings.use_sudo,
    )
    services = supported_services(load_brute_config(), ssh_support=settings.ssh_support)
    executor = HostExecutor(
        composer, resolver, services, store,
        dict_dir=settings.dict_dir,
        skip_verify=settings.skip_verify,
    )
    scheduler = ScanScheduler(
        executor, store,
        Notifier(notify_sink, tz_name=settings.timezone),
        max_concurrent=settings.max_concurrent,
        use_sudo=settings.use_sudo,
    )
    source = HttpDictionarySource(settings.dictionary_url) if settings.dictionary_url else None
    return ScanService(scheduler, resolver, dictionary, source,
                       dict_interval_s=settings.dictionary_interval_s)


__all__ = ["ScanService", "build_service"]
