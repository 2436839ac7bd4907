"""WeakScan Database - sqlite3 key-value and host-result store"""
from database.repository import Repository
from database.migrations import migrate

__all__ = ["Repository", "migrate"]
