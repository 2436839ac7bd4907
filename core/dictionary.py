"""
core/dictionary.py
Local cache of the cloud-delivered credential dictionary.

The remote side publishes a versioned JSON blob:

    {
      "commonCreds": {"usernames": [...], "passwords": [...],
                      "creds": [{"user": "admin", "password": "admin"}]},
      "customCreds": {"HTTP": {"usernames": [...], "passwords": [...],
                               "creds": [...]}, ...},
      "extraConfig": {"http-form-brute": [{"path": "/login", "method": "POST",
                                           "uservar": "u", "passvar": "p"}]}
    }

and its sha256 next to it. When the sha changes, every service listed in
customCreds gets up to three files in dict_dir (merged with commonCreds,
deduplicated, original order kept):

    <service>_users.lst   one username per line
    <service>_pwds.lst    one password per line
    <service>_creds.lst   one "user/password" per line

extraConfig is stored in the key-value store for the command composer.

Layering: the store is injected (duck-typed get/set/hget/hset); this module
does not import database.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from utils.constants import (
    CREDS_SUFFIX, DICT_SHA_KEY, PWDS_SUFFIX, SYS_CONFIG_EXTRA,
    SYS_CONFIG_HASH, USERS_SUFFIX,
)
from utils.logger import get_logger

log = get_logger("weakscan.dictionary")


class DictionarySyncError(Exception):
    """Raised when the remote dictionary cannot be fetched or parsed."""


# ─── Remote source ───────────────────────────────────────────────────────────

class HttpDictionarySource:
    """Fetch the dictionary blob from `url` and its sha from `url.sha256`."""

    def __init__(self, url: str, timeout: float = 30.0):
        self._url = url
        self._timeout = timeout

    def _get(self, url: str) -> str:
        req = urllib.request.Request(url, headers={"User-Agent": "weakscan"})
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                return resp.read().decode("utf-8", errors="replace")
        except (urllib.error.URLError, OSError) as exc:
            raise DictionarySyncError(f"GET {url} failed: {exc}") from exc

    def fetch_sha(self) -> Optional[str]:
        return self._get(self._url + ".sha256").strip() or None

    def fetch_config(self) -> Optional[str]:
        return self._get(self._url)


# ─── Local cache ─────────────────────────────────────────────────────────────

def _uniq(items: Iterable[Any]) -> List[Any]:
    return list(dict.fromkeys(items))


class DictionaryCache:

    def __init__(self, dict_dir: str | Path, store):
        self.dict_dir = Path(dict_dir)
        self._store = store

    # ── Lookups used by the command composer ─────────────────────────────────

    def _existing(self, service_name: str, suffix: str) -> Optional[Path]:
        path = self.dict_dir / f"{service_name.lower()}{suffix}"
        return path if path.is_file() else None

    def creds_file(self, service_name: str) -> Optional[Path]:
        return self._existing(service_name, CREDS_SUFFIX)

    def users_file(self, service_name: str) -> Optional[Path]:
        return self._existing(service_name, USERS_SUFFIX)

    def passwords_file(self, service_name: str) -> Optional[Path]:
        return self._existing(service_name, PWDS_SUFFIX)

    def extra_config(self) -> Dict[str, Any]:
        """Extra per-script parameters, e.g. {"http-form-brute": [...]}."""
        raw = self._store.hget(SYS_CONFIG_HASH, SYS_CONFIG_EXTRA)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            log.error(f"Stored extra scan config is not valid JSON: {exc}")
            return {}
        return data if isinstance(data, dict) else {}

    # ── Sync ──────────────────────────────────────────────────────────────────

    def sync(self, source) -> bool:
        """
        Refresh local files if the remote sha changed.
        Returns True when new files were materialized.
        Raises DictionarySyncError on fetch/parse failure.
        """
        remote_sha = source.fetch_sha()
        local_sha = self._store.get(DICT_SHA_KEY)
        if not remote_sha or remote_sha == local_sha:
            return False

        log.info("Loading dictionary from cloud...")
        data = source.fetch_config()
        if not data or data.strip() == "[]":
            self._store.set(DICT_SHA_KEY, remote_sha)
            return False

        try:
            dict_data = json.loads(data)
        except ValueError as exc:
            raise DictionarySyncError(f"Error parsing scan config: {exc}") from exc
        if not isinstance(dict_data, dict):
            raise DictionarySyncError("Error parsing scan config: not an object")

        try:
            self.dict_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DictionarySyncError(f"Cannot create {self.dict_dir}: {exc}") from exc

        self.materialize(dict_data)
        self.store_extras(dict_data.get("extraConfig"))
        self._store.set(DICT_SHA_KEY, remote_sha)
        return True

    def materialize(self, dict_data: Dict[str, Any]) -> List[Path]:
        """Write the per-service list files. Returns the paths written."""
        common = dict_data.get("commonCreds") or {}
        common_users = common.get("usernames") or []
        common_pwds  = common.get("passwords") or []
        common_creds = common.get("creds") or []

        written: List[Path] = []
        for service, custom in (dict_data.get("customCreds") or {}).items():
            custom = custom or {}
            base = self.dict_dir / service.lower()

            users = _uniq(list(custom.get("usernames") or []) + list(common_users))
            if users:
                written.append(self._write(base, USERS_SUFFIX, users))

            pwds = _uniq(list(custom.get("passwords") or []) + list(common_pwds))
            if pwds:
                written.append(self._write(base, PWDS_SUFFIX, pwds))

            creds = _uniq(
                f"{c.get('user', '')}/{c.get('password', '')}"
                for c in list(custom.get("creds") or []) + list(common_creds)
            )
            if creds:
                written.append(self._write(base, CREDS_SUFFIX, creds))
        return written

    def store_extras(self, extra_config: Optional[Dict[str, Any]]) -> None:
        if not extra_config:
            return
        self._store.hset(SYS_CONFIG_HASH, SYS_CONFIG_EXTRA, json.dumps(extra_config))

    @staticmethod
    def _write(base: Path, suffix: str, lines: List[str]) -> Path:
        path = base.with_name(base.name + suffix)
        path.write_text("\n".join(str(x) for x in lines))
        return path


__all__ = ["DictionaryCache", "HttpDictionarySource", "DictionarySyncError"]
