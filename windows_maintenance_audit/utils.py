"""Shared helpers for the Windows maintenance audit."""
from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Sequence

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
PACKAGE_LOGGER = "windows_maintenance_audit"

logger = logging.getLogger(__name__)


class AuditError(RuntimeError):
    """Raised when an audit run fails as a whole and no result can be returned."""


class CommandFailed(OSError):
    """Raised by :func:`run_command` when a command exits non-zero or cannot start."""


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """Attach console and optional file handlers to the package logger.

    Progress messages go to stderr at INFO (DEBUG when ``verbose``). When
    ``log_file`` is given every record is also written there.
    """

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.handlers.clear()
    level = logging.DEBUG if verbose else logging.INFO

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        package_logger.addHandler(file_handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    package_logger.addHandler(stderr_handler)

    package_logger.setLevel(logging.DEBUG if log_file else level)
    return package_logger


def run_command(cmd: Sequence[str], *, timeout: int = 60) -> str:
    """Run ``cmd`` and return its decoded stdout.

    Output is decoded as UTF-8 with replacement so that localised console code
    pages never raise :class:`UnicodeDecodeError`.
    """

    try:
        completed = subprocess.run(
            list(cmd),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise CommandFailed(f"{cmd[0]}: {exc}") from exc

    if completed.returncode != 0:
        stderr = (completed.stderr or "").strip()
        raise CommandFailed(f"{cmd[0]} exited with {completed.returncode}: {stderr}")
    return completed.stdout or ""


def run_powershell(script: str, *, timeout: int = 60) -> str:
    """Run a PowerShell snippet with UTF-8 console output."""

    wrapped = (
        "$OutputEncoding = [Console]::OutputEncoding = "
        "[System.Text.UTF8Encoding]::new(); " + script
    )
    cmd = ["powershell", "-NoLogo", "-NoProfile", "-ExecutionPolicy", "Bypass", "-Command", wrapped]
    return run_command(cmd, timeout=timeout).strip()


def as_list(value: object) -> List[object]:
    """Return ``value`` as a list; ``ConvertTo-Json`` emits bare objects for single items."""

    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


__all__ = [
    "AuditError",
    "CommandFailed",
    "as_list",
    "configure_logging",
    "run_command",
    "run_powershell",
]
