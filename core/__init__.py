"""
WeakScan Core - Public API

from core import build_service, ScanScheduler, CommandComposer
"""
from core.models        import Finding, HostResult, ScanTask, SubTask, CancelToken
from core.brute_config  import BruteScript, ServiceProbe, load_brute_config, supported_services
from core.dictionary    import DictionaryCache, HttpDictionarySource, DictionarySyncError
from core.commands      import CommandComposer, ProbeCommand
from core.executor      import HostExecutor, ProbeError, ProbeInterrupted, parse_output
from core.scheduler     import ScanScheduler, TaskNotFoundError
from core.targets       import InventoryResolver, ScopeError, expand_scope, task_key
from core.notify        import Notifier
from core.service       import ScanService, build_service
from core.runtime       import ServiceThread

__all__ = [
    "Finding", "HostResult", "ScanTask", "SubTask", "CancelToken",
    "BruteScript", "ServiceProbe", "load_brute_config", "supported_services",
    "DictionaryCache", "HttpDictionarySource", "DictionarySyncError",
    "CommandComposer", "ProbeCommand",
    "HostExecutor", "ProbeError", "ProbeInterrupted", "parse_output",
    "ScanScheduler", "TaskNotFoundError",
    "InventoryResolver", "ScopeError", "expand_scope", "task_key",
    "Notifier",
    "ScanService", "build_service",
    "ServiceThread",
]
