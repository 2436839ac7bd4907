"""
core/process.py
Best-effort termination of a probe's process tree.

nmap runs as `sh -c "timeout ... nmap ..."`, so the pid the executor knows
is the shell; the probe itself is a grandchild. The whole tree is walked
with psutil and each process gets SIGINT, deepest first. Processes owned by
root (use_sudo) are signalled through `sudo -n kill`.
"""

from __future__ import annotations

import signal
import subprocess
from typing import List

import psutil

from utils.logger import get_logger

log = get_logger("weakscan.process")


def _descendants(pid: int) -> List[psutil.Process]:
    """pid's process plus all descendants, leaves first."""
    root = psutil.Process(pid)
    tree = [root]
    frontier = [root]
    # children() is re-queried per level so processes forked while walking are picked up
    while frontier:
        nxt = []
        for proc in frontier:
            try:
                nxt.extend(proc.children())
            except psutil.Error as exc:
                log.debug(f"Cannot list children of {proc.pid}: {exc}")
        tree.extend(nxt)
        frontier = nxt
    return list(reversed(tree))


def _sudo_kill(pid: int, sig: int) -> bool:
    try:
        subprocess.run(
            ["sudo", "-n", "kill", f"-{int(sig)}", str(pid)],
            check=True, capture_output=True, timeout=10,
        )
        return True
    except (subprocess.SubprocessError, OSError) as exc:
        log.error(f"Failed to kill task pid {pid}: {exc}")
        return False


def kill_process_tree(pid: int, sig: int = signal.SIGINT, use_sudo: bool = False) -> int:
    """
    Signal pid and every descendant. Never raises; failures are logged.
    Returns the number of processes signalled.
    """
    try:
        procs = _descendants(pid)
    except psutil.NoSuchProcess:
        log.info(f"Process {pid} already exited")
        return 0
    except psutil.Error as exc:
        log.error(f"Failed to inspect task pid {pid}: {exc}")
        return 0

    signalled = 0
    for proc in procs:
        try:
            proc.send_signal(sig)
            signalled += 1
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied as exc:
            if use_sudo and _sudo_kill(proc.pid, sig):
                signalled += 1
            elif not use_sudo:
                log.error(f"Failed to kill task pid {proc.pid}: {exc}")
        except psutil.Error as exc:
            log.error(f"Failed to kill task pid {proc.pid}: {exc}")
    return signalled


__all__ = ["kill_process_tree"]
