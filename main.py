#!/usr/bin/env python3
"""
WeakScan - Weak-Credential Scan Scheduler
main.py - CLI entry point

Usage:
  python3 main.py --serve
  python3 main.py --scan tag 3
  python3 main.py --scan host AA:BB:CC:DD:EE:FF --skip-verify
  python3 main.py --scan host 0.0.0.0 --include-vpn
  python3 main.py --list
  python3 main.py --sync-dict
  python3 main.py --hash-password s3cret
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime

from database.migrations import migrate
from database.repository import Repository
from utils.config import ConfigError, Settings, load_settings
from utils.logger import get_logger, set_level

log = get_logger("weakscan")


# ─── One-shot scan ───────────────────────────────────────────────────────────

async def _run_scan(settings: Settings, repo: Repository, scope_type: str,
                    target: str, options: dict) -> int:
    """Schedule one scan, wait for it, print the findings. Returns finding count."""
    from core.service import build_service
    from core.targets import task_key

    service = build_service(settings, repo)
    await service.start()
    try:
        await service.sync_dictionary()
        key = task_key(scope_type, target)
        snapshot = await service.schedule_scan(scope_type, target, options)
        task = snapshot["tasks"].get(key, {})
        log.info(f"Task {key}: {task.get('state')} with {len(task.get('pendingHosts', []))} pending host(s)")
        await service.scheduler.wait_task(key)
        await service.scheduler.drain()
        final = (await service.list_scans())["tasks"].get(key, {})
    finally:
        await service.close()

    print_task(key, final)
    return sum(len(r.get("result") or []) for r in final.get("results", []))


# ─── Output ──────────────────────────────────────────────────────────────────

def _fmt_ts(ts) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S") if ts else "-"


def print_task(key: str, task: dict) -> None:
    results = task.get("results", [])
    count = sum(len(r.get("result") or []) for r in results)
    print(f"\n{'═'*60}")
    print(f"  TASK {key}  [{task.get('state', '?')}]")
    print(f"{'─'*60}")
    print(f"  Started       : {_fmt_ts(task.get('ts'))}")
    print(f"  Finished      : {_fmt_ts(task.get('ets'))}")
    print(f"  Hosts scanned : {len(results)}")
    print(f"  Pending hosts : {len(task.get('pendingHosts', []))}")
    print(f"  Weak passwords: {count}")
    print(f"{'═'*60}\n")

    for r in results:
        if not r.get("result"):
            continue
        print(f"  ┌─ {r['host']}")
        print(f"  │  {'PORT':<8} {'SERVICE':<12} {'USERNAME':<20} PASSWORD")
        print(f"  │  {'─'*58}")
        for f in r["result"]:
            print(f"  │  {f.get('port', ''):<8} {f.get('serviceName', ''):<12} "
                  f"{f.get('username') or '<empty>':<20} {f.get('password') or '<empty>'}")
        print()


def show_tasks(repo: Repository) -> None:
    tasks = repo.load_tasks()
    if not tasks:
        print("  No scan tasks. Run: python3 main.py --scan <type> <target>")
        return
    print(f"\n  {'KEY':<32} {'STATE':<10} {'PENDING':<8} {'HOSTS':<6} {'FOUND':<6} STARTED")
    print("  " + "─" * 84)
    for key, t in sorted(tasks.items(), key=lambda kv: kv[1].get("ts", 0), reverse=True):
        found = sum(len(r.get("result") or []) for r in t.get("results", []))
        print(f"  {key:<32} {t.get('state', '?'):<10} {len(t.get('pendingHosts', [])):<8} "
              f"{len(t.get('results', [])):<6} {found:<6} {_fmt_ts(t.get('ts'))}")
    last = repo.get_last_completed()
    if last:
        print(f"\n  Last host completed: {_fmt_ts(last)}")


# ─── Server ──────────────────────────────────────────────────────────────────

def serve(settings: Settings, repo: Repository, args: argparse.Namespace) -> None:
    from core.runtime import ServiceThread
    from core.service import build_service
    from dashboard.app import run_dashboard

    runner = ServiceThread(lambda: build_service(settings, repo)).start()
    dash_cfg = {
        **settings.dashboard,
        "host":        args.host or settings.dashboard.get("host", "127.0.0.1"),
        "port":        args.api_port or settings.dashboard.get("port", 5000),
        "enable_auth": args.enable_auth or settings.dashboard.get("enable_auth", False),
    }
    try:
        run_dashboard(dash_cfg, runner, repo)
    finally:
        runner.stop()


# ─── CLI ─────────────────────────────────────────────────────────────────────

def build_cli() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="weakscan",
        description="WeakScan - weak-credential scan scheduler (nmap brute scripts)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Scopes:       host <mac|guid|0.0.0.0>   intf <uuid>   tag <id>

Examples:
  %(prog)s --serve --host 127.0.0.1 --api-port 5000
  %(prog)s --scan tag 3
  %(prog)s --scan host AA:BB:CC:DD:EE:FF --skip-verify
  %(prog)s --list
""",
    )
    g = ap.add_argument_group
    s = g("Scan")
    s.add_argument("--scan",        nargs=2, metavar=("TYPE", "TARGET"),
                   help="Run one scan in-process and wait for it")
    s.add_argument("--include-vpn", action="store_true",
                   help="With 'host 0.0.0.0': also scan VPN identities")
    s.add_argument("--skip-verify", action="store_true",
                   help="Accept candidates without re-verification")

    st = g("State")
    st.add_argument("--list",       action="store_true", help="Show persisted scan tasks")
    st.add_argument("--clear-db",   action="store_true", help="Delete tasks and host results")
    st.add_argument("--db-path",    metavar="FILE", help="sqlite file (default from config)")

    d = g("Dictionary")
    d.add_argument("--sync-dict",   action="store_true", help="Fetch the credential dictionary now")

    srv = g("Server")
    srv.add_argument("--serve",      action="store_true", help="Run scheduler + HTTP API")
    srv.add_argument("--host",       default=None)
    srv.add_argument("--api-port",   type=int, default=None, metavar="PORT")
    srv.add_argument("--enable-auth", action="store_true", help="Enable HTTP basic auth")
    srv.add_argument("--hash-password", metavar="PASSWORD",
                     help="Print a bcrypt hash for dashboard.auth_password")

    ap.add_argument("--config",    default="config.yaml", metavar="FILE")
    ap.add_argument("--verbose",   action="store_true", help="Debug logging")
    ap.add_argument("--version",   action="version",   version="WeakScan 1.0")
    return ap


def main() -> None:
    ap   = build_cli()
    if len(sys.argv) == 1:
        ap.print_help(); sys.exit(0)
    args = ap.parse_args()

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        log.error(str(exc)); sys.exit(2)
    if args.db_path:
        settings.db_path = args.db_path
    if args.skip_verify:
        settings.skip_verify = True
    set_level("DEBUG" if args.verbose else settings.log_level)

    if args.hash_password:
        from dashboard.app import hash_password
        print(hash_password(args.hash_password))
        return

    repo = Repository(settings.db_path)
    migrate(settings.db_path)   # apply any pending schema migrations

    try:
        if args.scan:
            scope_type, target = args.scan
            options = {"includeVPNNetworks": args.include_vpn}
            try:
                asyncio.run(_run_scan(settings, repo, scope_type, target, options))
            except ValueError as exc:
                log.error(str(exc)); sys.exit(1)

        elif args.list:
            show_tasks(repo)

        elif args.sync_dict:
            from core.service import build_service
            service = build_service(settings, repo)
            if not service.has_dictionary_source:
                log.error("dictionary.url is not configured"); sys.exit(1)
            changed = asyncio.run(service.sync_dictionary())
            print(json.dumps({"updated": changed}))

        elif args.serve:
            serve(settings, repo, args)

        elif args.clear_db:
            confirm = input("  [!] Delete ALL scan tasks and results? (yes/no): ")
            if confirm.strip().lower() == "yes":
                repo.clear_all()
                print("  ✓ Database cleared")
            else:
                print("  Cancelled")

    except KeyboardInterrupt:
        print("\n  [!] Interrupted by user")
        sys.exit(0)
    except Exception as exc:
        log.exception(f"Fatal error: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
