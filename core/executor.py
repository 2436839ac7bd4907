"""
core/executor.py
Host executor: runs the full weak-password probe plan for one host.

  • services probed sequentially in priority order
  • per service and address: composed nmap commands run one after another
  • XML output parsed into candidate credentials
  • http-brute candidates re-verified with a narrow single-credential run
  • cancellation checked before every service and every command; a SIGINT
    exit (the scheduler killing the process tree) unwinds the whole host
  • findings deduplicated, persisted per host, last-completed ts updated

Layering: the store is injected; no database imports.
"""

from __future__ import annotations

import asyncio
import signal
import sqlite3
import time
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional, Tuple

from core.brute_config import ServiceProbe
from core.commands import CommandComposer, ProbeCommand
from core.models import Finding, HostResult, SubTask, dedup_findings, now_ts
from utils.constants import EMPTY_PASSWORD, SIGINT_EXIT_CODE
from utils.logger import get_logger

log = get_logger("weakscan.executor")

VERSION_PROBE_SCRIPTS = {"redis-info"}   # a reported version means no auth needed
VERIFY_SCRIPTS = {"http-brute"}
VALID_CREDS_MARKER = "Valid credentials"


class ProbeError(Exception):
    """A probe command failed; the next command still runs."""


class ProbeInterrupted(ProbeError):
    """A probe command was killed by SIGINT; the host scan unwinds."""


# ─── Output parsing ──────────────────────────────────────────────────────────

def parse_output(script_name: str, xml_text: str) -> List[Tuple[str, str]]:
    """
    Extract (username, password) candidates from nmap -oX output.
    Raises ET.ParseError on malformed XML.
    """
    root = ET.fromstring(xml_text)

    if script_name in VERSION_PROBE_SCRIPTS:
        for service in root.iterfind("./host/ports/port/service"):
            if service.get("version"):
                return [("", "")]
        return []

    candidates: List[Tuple[str, str]] = []
    for account in root.iterfind("./host/ports/port/script/table/table"):
        username: Optional[str] = None
        password: Optional[str] = None
        for elem in account.iterfind("elem"):
            key = elem.get("key")
            if key == "username":
                username = elem.text or ""
            elif key == "password":
                password = elem.text or ""
        if username is not None or password is not None:
            candidates.append((username or "", password or ""))
    return candidates


# ─── Executor ────────────────────────────────────────────────────────────────

class HostExecutor:

    def __init__(
        self,
        composer: CommandComposer,
        resolver,
        services: List[ServiceProbe],
        store,
        dict_dir: str | Path,
        skip_verify: bool = False,
    ):
        self._composer = composer
        self._resolver = resolver
        self._services = services
        self._store = store
        self._dict_dir = Path(dict_dir)
        self._skip_verify = skip_verify

    # ── Host level ────────────────────────────────────────────────────────────

    async def scan_host(self, host_id: str, subtask: SubTask) -> HostResult:
        ips = self._resolver.ips_for(host_id)
        findings: List[Finding] = []
        interrupted = False

        for probe in self._services:
            if subtask.token.cancelled:
                log.info(f"Host scan {host_id} is terminated by stop request")
                break
            for ip in ips:
                log.info(f"Scan host {host_id} {ip} on port {probe.port_id} ...")
                found, interrupted = await self.guess_passwords(ip, probe, subtask)
                findings.extend(found)
                if interrupted:
                    break
            if interrupted:
                break

        result = HostResult(host=host_id, ts=now_ts(), findings=dedup_findings(findings))
        self._persist(host_id, result)
        return result

    def _persist(self, host_id: str, result: HostResult) -> None:
        try:
            self._store.save_host_result(host_id, result.to_dict())
            self._store.set_last_completed(int(result.ts))
        except (sqlite3.Error, OSError) as exc:
            log.error(f"Failed to persist result of {host_id}: {exc}")

    # ── Service level ─────────────────────────────────────────────────────────

    async def guess_passwords(
        self, ip: str, probe: ServiceProbe, subtask: SubTask
    ) -> Tuple[List[Finding], bool]:
        """Run every composed command. Returns (findings, interrupted)."""
        findings: List[Finding] = []
        init_time = time.monotonic()

        commands = self._composer.compose(ip, probe)
        log.debug(f"[commands] {[c.cmd for c in commands]}")

        for command in commands:
            if subtask.token.cancelled:
                log.warning(
                    f"Terminate {subtask.host_id} after {time.monotonic() - init_time:.1f}s, "
                    f"{len(findings)} finding(s) so far"
                )
                return findings, True

            log.info(f"Running command: {command.cmd}")
            start = time.monotonic()
            try:
                stdout = await self.run_command(command.cmd, subtask)
            except ProbeInterrupted:
                log.warning(
                    f"Terminate {subtask.host_id} by signal after "
                    f"{time.monotonic() - init_time:.1f}s"
                )
                return findings, True
            except ProbeError as exc:
                log.error(f"command execute fail: {exc}")
                continue

            try:
                candidates = parse_output(command.script.script_name, stdout)
            except ET.ParseError as exc:
                log.error(f"Failed to parse nmap output of {command.script.script_name}: {exc}")
                continue

            for username, password in candidates:
                finding = Finding(username, password, probe.protocol, probe.port, probe.service_name)
                try:
                    accepted = await self._accept(ip, probe, command, finding, subtask)
                except ProbeInterrupted:
                    log.warning(
                        f"Terminate {subtask.host_id} during verification after "
                        f"{time.monotonic() - init_time:.1f}s"
                    )
                    return dedup_findings(findings), True
                if accepted:
                    findings.append(finding)
            log.info(f"used Time: {time.monotonic() - start:.1f}s")

        return dedup_findings(findings), False

    async def _accept(self, ip: str, probe: ServiceProbe, command: ProbeCommand,
                      finding: Finding, subtask: SubTask) -> bool:
        if self._skip_verify:
            log.debug(f"skip weak password verification for {finding.username}@{ip}:{probe.port}")
            return True
        if await self.recheck(ip, probe.port, command.script.script_name, finding, subtask):
            log.debug(f"weak password verified {finding.username}@{ip}:{probe.port}")
            return True
        log.warning(
            f"weak password false-positive detected {finding.username}@{ip}:{probe.port} "
            f"({command.script.script_name})"
        )
        return False

    # ── Verification ──────────────────────────────────────────────────────────

    async def recheck(self, ip: str, port: int, script_name: str,
                      finding: Finding, subtask: SubTask) -> bool:
        """Raises ProbeInterrupted when the host scan is cancelled."""
        if script_name not in VERIFY_SCRIPTS:
            return True

        credfile = self._dict_dir / f"{ip}_{port}_credentials.lst"
        password = "" if finding.password == EMPTY_PASSWORD else finding.password
        try:
            credfile.parent.mkdir(parents=True, exist_ok=True)
            credfile.write_text(f"{finding.username}/{password}")
        except OSError as exc:
            log.warning(f"fail to write credfile {credfile}: {exc}")
            return True

        cmd = self._composer.verify_command(ip, port, credfile)
        log.info(f"[recheck] Running command: {cmd} (user={finding.username})")
        try:
            stdout = await self.run_command(cmd, subtask)
        except ProbeInterrupted:
            raise
        except ProbeError as exc:
            log.warning(f"fail to run verification for {finding.username}@{ip}:{port}: {exc}")
            return True
        finally:
            credfile.unlink(missing_ok=True)

        valid = sum(1 for line in stdout.splitlines() if VALID_CREDS_MARKER in line)
        return valid == 1

    # ── Process ───────────────────────────────────────────────────────────────

    async def run_command(self, cmd: str, subtask: SubTask) -> str:
        """
        Run cmd through the shell, recording its pid on the subtask so a stop
        request can kill it. Returns stdout.
        """
        if subtask.token.cancelled:
            raise ProbeInterrupted(f"{cmd!r} not started, host scan cancelled")
        try:
            proc = await asyncio.create_subprocess_shell(
                cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ProbeError(f"cannot start {cmd!r}: {exc}") from exc

        subtask.pid = proc.pid
        try:
            out, err = await proc.communicate()
        finally:
            subtask.pid = None

        rc = proc.returncode
        if subtask.token.cancelled or rc in (SIGINT_EXIT_CODE, -signal.SIGINT):
            raise ProbeInterrupted(f"{cmd!r} interrupted (rc={rc})")
        stderr = err.decode("utf-8", errors="replace").strip()
        if rc != 0:
            raise ProbeError(f"{cmd!r} exited with {rc}: {stderr}")
        if stderr:
            raise ProbeError(f"{cmd!r} wrote to stderr: {stderr}")
        return out.decode("utf-8", errors="replace")


__all__ = ["HostExecutor", "ProbeError", "ProbeInterrupted", "parse_output"]
