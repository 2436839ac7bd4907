"""
core/notify.py
Scan-complete notification events.

The event layout follows the app's notification keys; delivery is up to the
sink (any callable taking the event dict). The default sink only logs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from utils.constants import NOTIF_CATEGORY_WEAK_PASSWORD_SCAN
from utils.logger import get_logger

log = get_logger("weakscan.notify")


def _count_variant(count: int) -> str:
    if count == 0:
        return "NOT_"
    return "MULTI_" if count > 1 else "SINGLE_"


def format_time(ets: float, tz_name: Optional[str] = None) -> str:
    """'hh:mm AM' in tz_name, or in local time if unset/unknown."""
    tz = None
    if tz_name:
        try:
            tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            log.warning(f"Unknown timezone {tz_name!r}, using local time")
    if tz is None:
        return datetime.fromtimestamp(ets).strftime("%I:%M %p")
    return datetime.fromtimestamp(ets, tz=timezone.utc).astimezone(tz).strftime("%I:%M %p")


def build_event(key: str, ets: float, finding_count: int,
                tz_name: Optional[str] = None) -> dict:
    variant = _count_variant(finding_count)
    time_str = format_time(ets, tz_name)
    return {
        "type":          "FW_NOTIFICATION",
        "titleKey":      "NOTIF_WEAK_PASSWORD_SCAN_COMPLETE_TITLE",
        "bodyKey":       f"NOTIF_WEAK_PASSWORD_SCAN_COMPLETE_{variant}FOUND_BODY",
        "titleLocalKey": "WEAK_PASSWORD_SCAN_COMPLETE",
        "bodyLocalKey":  f"WEAK_PASSSWORD_SCAN_COMPLETE_{variant}FOUND",
        "bodyLocalArgs": [finding_count, time_str],
        "payload": {
            "weakPasswordCount": finding_count,
            "time":              time_str,
            "key":               key,
        },
        "category": NOTIF_CATEGORY_WEAK_PASSWORD_SCAN,
    }


def log_sink(event: dict) -> None:
    log.info(
        f"[notify] {event['category']}: {event['payload']['key']} complete, "
        f"{event['payload']['weakPasswordCount']} weak password(s) at {event['payload']['time']}"
    )


class Notifier:
    """Fire-and-forget: sink errors are logged and never reach the scheduler."""

    def __init__(self, sink: Optional[Callable[[dict], None]] = None,
                 tz_name: Optional[str] = None):
        self._sink = sink or log_sink
        self._tz = tz_name

    def scan_complete(self, key: str, ets: float, finding_count: int) -> dict:
        event = build_event(key, ets, finding_count, self._tz)
        try:
            self._sink(event)
        except Exception as exc:
            log.error(f"Failed to send scan-complete notification for {key}: {exc}")
        return event


__all__ = ["Notifier", "build_event", "format_time", "log_sink"]
