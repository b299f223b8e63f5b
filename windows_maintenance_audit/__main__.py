"""Module entry-point for ``python -m windows_maintenance_audit``."""
from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
