"""WeakScan Dashboard - Public API

Flask-based HTTP API for scheduling, listing and stopping weak-password
scans and for reading per-host results.

Usage:
    from dashboard.app import create_app, run_dashboard
    from dashboard.app import hash_password, verify_password
"""
from dashboard.app import create_app, run_dashboard, hash_password, verify_password

__all__ = [
    "create_app",
    "run_dashboard",
    "hash_password",
    "verify_password",
]
