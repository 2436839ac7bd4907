"""
core/commands.py
Probe command composer.

For one (ip, service) pair produces the ordered nmap invocations:

  1. default     one command per script, built-in nmap dictionaries
  2. credfile    brute scripts only, if <service>_creds.lst exists
                 → brute.mode=creds,brute.credfile=<file>
  3. userpass    brute scripts only, if <service>_users.lst and/or
                 <service>_pwds.lst exist → userdb=<file>,passdb=<file>

Strategies 2 and 3 are resolved once per service from the files actually
present; a strategy with no input produces no commands at all.
http-form-brute fans out into one command per configured form
(extraConfig["http-form-brute"]) under strategies 2 and 3.

Every command runs under `timeout <command_timeout_s>s` and writes XML to
stdout (-oX -).
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.brute_config import BruteScript, ServiceProbe
from utils.constants import COMMAND_TIMEOUT_S, VERIFY_TIMELIMIT

FORM_BRUTE_SCRIPT = "http-form-brute"
_FORM_FIELDS = ("path", "method", "uservar", "passvar")


@dataclass(frozen=True)
class ProbeCommand:
    cmd:      str
    script:   BruteScript
    strategy: str


def multiply_script_args(script_args: List[str], extras: List[Dict[str, Any]]) -> List[List[str]]:
    """One copy of script_args per form definition, with its form fields appended."""
    arg_list = []
    for extra in extras:
        new_args = list(script_args)
        for name in _FORM_FIELDS:
            value = extra.get(name)
            if value:
                new_args.append(f"{FORM_BRUTE_SCRIPT}.{name}={value}")
        arg_list.append(new_args)
    return arg_list


# ─── Strategies ──────────────────────────────────────────────────────────────

class ProbeStrategy:
    """Base: how credentials are supplied to each script of a service."""

    name = "base"
    fan_out = False

    def extra_args(self, script: BruteScript) -> Optional[List[str]]:
        """Script args added by this strategy; None skips the script."""
        raise NotImplementedError

    def build(self, composer: "CommandComposer", ip: str, probe: ServiceProbe,
              extra_config: Dict[str, Any]) -> List[ProbeCommand]:
        forms = extra_config.get(FORM_BRUTE_SCRIPT) if self.fan_out else None
        commands: List[ProbeCommand] = []
        for script in probe.scripts:
            added = self.extra_args(script)
            if added is None:
                continue
            script_args = [script.script_args] if script.script_args else []
            script_args.extend(added)

            if script.script_name == FORM_BRUTE_SCRIPT and forms:
                for args in multiply_script_args(script_args, forms):
                    commands.append(ProbeCommand(
                        composer.format_command(ip, probe.port, script, args),
                        script, self.name,
                    ))
                continue

            commands.append(ProbeCommand(
                composer.format_command(ip, probe.port, script, script_args),
                script, self.name,
            ))
        return commands


class DefaultStrategy(ProbeStrategy):
    name = "default"

    def extra_args(self, script: BruteScript) -> Optional[List[str]]:
        return []


class CredFileStrategy(ProbeStrategy):
    name = "credfile"
    fan_out = True

    def __init__(self, creds_file: Path):
        self.creds_file = creds_file

    def extra_args(self, script: BruteScript) -> Optional[List[str]]:
        if not script.is_brute:
            return None
        return [f"brute.mode=creds,brute.credfile={self.creds_file}"]


class UserPassStrategy(ProbeStrategy):
    name = "userpass"
    fan_out = True

    def __init__(self, users_file: Optional[Path], passwords_file: Optional[Path]):
        if users_file is None and passwords_file is None:
            raise ValueError("UserPassStrategy needs a user list or a password list")
        self.users_file = users_file
        self.passwords_file = passwords_file

    def extra_args(self, script: BruteScript) -> Optional[List[str]]:
        if not script.is_brute:
            return None
        args = []
        if self.users_file:
            args.append(f"userdb={self.users_file}")
        if self.passwords_file:
            args.append(f"passdb={self.passwords_file}")
        return args


# ─── Composer ────────────────────────────────────────────────────────────────

class CommandComposer:

    def __init__(self, cache, nmap_bin: str = "nmap",
                 timeout_s: int = COMMAND_TIMEOUT_S, use_sudo: bool = False):
        self._cache = cache
        self._nmap = nmap_bin
        self._timeout_s = timeout_s
        self._sudo = use_sudo

    def strategies_for(self, service_name: str) -> List[ProbeStrategy]:
        strategies: List[ProbeStrategy] = [DefaultStrategy()]
        creds = self._cache.creds_file(service_name)
        if creds:
            strategies.append(CredFileStrategy(creds))
        users = self._cache.users_file(service_name)
        pwds = self._cache.passwords_file(service_name)
        if users or pwds:
            strategies.append(UserPassStrategy(users, pwds))
        return strategies

    def compose(self, ip: str, probe: ServiceProbe) -> List[ProbeCommand]:
        extra_config = self._cache.extra_config()
        commands: List[ProbeCommand] = []
        for strategy in self.strategies_for(probe.service_name):
            commands.extend(strategy.build(self, ip, probe, extra_config))
        return commands

    def _prefix(self) -> str:
        return "sudo " if self._sudo else ""

    def format_command(self, ip: str, port: int, script: BruteScript,
                       script_args: List[str]) -> str:
        parts = [f"--script {shlex.quote(script.script_name)}"]
        if script.other_args:
            parts.append(" ".join(shlex.quote(a) for a in shlex.split(script.other_args)))
        if script_args:
            parts.append(f"--script-args {shlex.quote(','.join(script_args))}")
        return (
            f"{self._prefix()}timeout {self._timeout_s}s {self._nmap} -p {port} "
            f"{' '.join(parts)} {shlex.quote(ip)} -oX -"
        )

    def verify_command(self, ip: str, port: int, credfile: Path) -> str:
        """Narrow http-brute run against a single-line credential file."""
        args = f"unpwdb.timelimit={VERIFY_TIMELIMIT},brute.mode=creds,brute.credfile={credfile}"
        return (
            f"{self._prefix()}{self._nmap} -p {port} --script http-brute "
            f"--script-args {shlex.quote(args)} {shlex.quote(ip)}"
        )


__all__ = [
    "ProbeCommand", "ProbeStrategy", "DefaultStrategy", "CredFileStrategy",
    "UserPassStrategy", "CommandComposer", "multiply_script_args",
]
