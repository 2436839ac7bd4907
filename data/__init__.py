"""WeakScan Data - Bundled data files

This package contains read-only data files used by the scanner:

  brute_config.yaml - per-port weak-password probe definitions
                      (service name, protocol and the nmap brute scripts
                      to run; loaded by core/brute_config.py)

These files are accessed via their filesystem path using pathlib:

    from pathlib import Path
    DATA_DIR = Path(__file__).parent
    BRUTE_CONFIG = DATA_DIR / "brute_config.yaml"
"""
from pathlib import Path as _Path

DATA_DIR     = _Path(__file__).parent
BRUTE_CONFIG = DATA_DIR / "brute_config.yaml"

__all__ = [
    "DATA_DIR",
    "BRUTE_CONFIG",
]
