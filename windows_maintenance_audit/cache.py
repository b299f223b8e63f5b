"""Time-windowed JSON result cache inside the session data directory.

The cache is advisory: freshness is judged from the file's modification time
and there is no locking between concurrent readers and writers.
"""
from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

APPS_RESULT_NAME = "essential-apps-audit"
OPTIMIZATION_RESULT_NAME = "system-optimization-audit"


class ResultCache:
    """Read and write audit results as ``<data_dir>/<name>.json``."""

    def __init__(self, data_dir: Union[str, Path], max_age_minutes: int = 15, *, enabled: bool = True) -> None:
        self.data_dir = Path(data_dir)
        self.max_age_seconds = max_age_minutes * 60
        self.enabled = enabled

    def path_for(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    def load(self, name: str) -> Optional[Dict[str, Any]]:
        """Return the cached payload when it is fresh enough, else ``None``."""

        if not self.enabled:
            return None
        path = self.path_for(name)
        try:
            age = time.time() - path.stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Cannot inspect cached result %s: %s", path, exc)
            return None
        if age > self.max_age_seconds:
            logger.debug("Cached result %s is %.0f seconds old; ignoring", path, age)
            return None
        try:
            with path.open(encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cached result %s: %s", path, exc)
            return None
        if not isinstance(payload, dict):
            return None
        logger.info("Using cached result from %s", path)
        return payload

    def store(self, name: str, payload: Dict[str, Any]) -> Optional[Path]:
        """Write ``payload``; failures are logged and reported as ``None``."""

        path = self.path_for(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, default=str)
        except OSError as exc:
            logger.warning("Failed to save result to %s: %s", path, exc)
            return None
        logger.debug("Saved result to %s", path)
        return path


__all__ = ["APPS_RESULT_NAME", "OPTIMIZATION_RESULT_NAME", "ResultCache"]
