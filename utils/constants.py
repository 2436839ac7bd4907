"""
WeakScan Constants & Enums
Task states, scheduler limits and persistence keys shared by every layer.
"""

from enum import Enum


# ─── Task States ──────────────────────────────────────────────────────────────
class TaskState(str, Enum):
    QUEUED   = "queued"
    SCANNING = "scanning"
    COMPLETE = "complete"
    STOPPED  = "stopped"

    @property
    def is_active(self) -> bool:
        return self in (TaskState.QUEUED, TaskState.SCANNING)


# ─── Scope Types (how a scan request addresses its hosts) ────────────────────
class ScopeType(str, Enum):
    HOST = "host"
    INTF = "intf"
    TAG  = "tag"


ALL_HOSTS_TARGET = "0.0.0.0"      # host scope wildcard: every active host


# ─── Scheduler Limits ────────────────────────────────────────────────────────
MAX_CONCURRENT_TASKS = 3
TASK_RETENTION_S     = 86400      # terminal tasks older than this are pruned
DICT_CHECK_INTERVAL_S = 3600

# a bit longer than unpwdb.timelimit in the brute script args
COMMAND_TIMEOUT_S    = 5430
VERIFY_TIMELIMIT     = "10s"

# exit code of a process interrupted by SIGINT
SIGINT_EXIT_CODE     = 130

# ─── Dictionary Files ────────────────────────────────────────────────────────
USERS_SUFFIX = "_users.lst"
PWDS_SUFFIX  = "_pwds.lst"
CREDS_SUFFIX = "_creds.lst"
EMPTY_PASSWORD = "<empty>"

# ─── Persistence Keys ────────────────────────────────────────────────────────
RESULT_HASH           = "weak_password_scan_result"
RESULT_FIELD_TASKS    = "tasks"
RESULT_FIELD_LAST_TS  = "lastCompletedScanTs"
SYS_CONFIG_HASH       = "sys:config"
SYS_CONFIG_EXTRA      = "weak_password_scan"
DICT_SHA_KEY          = "scan:config.sha256"

# ─── Notification ────────────────────────────────────────────────────────────
NOTIF_CATEGORY_WEAK_PASSWORD_SCAN = "weak_password_scan"

# ─── Layering Contract (hard import rules - enforced by tests) ───────────────
# core → may import: utils, data
# database → may import: utils
# dashboard → may import: utils (gets the scan client and repository injected)
# NEVER: core imports database, dashboard imports core directly
