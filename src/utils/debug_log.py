"""
Debug Log Utility

Provides optional, safe file-based debug logging for viewport loading and
synchronization. Logs are written only when enabled via environment variable;
failures are swallowed so the viewer never crashes due to logging.

Inputs:
    - debug_log(location, message, data) calls from application code
    - Environment: VIEWPORTSYNC_DEBUG_LOG (set to 1, true, or yes to enable)

Outputs:
    - When enabled: appends JSON lines to <project_root>/.debug/debug.log
    - When disabled or on error: no side effects

Requirements:
    - Standard library only: pathlib, os, json, time
"""

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

# Project root: this file is src/utils/debug_log.py -> parent=utils, parent.parent=src, parent.parent.parent=project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

# Enable only when env is set to 1, true, or yes (case-insensitive). Default off.
_DEBUG_ENV = os.getenv("VIEWPORTSYNC_DEBUG_LOG", "0").strip().lower()
DEBUG_LOG_ENABLED = _DEBUG_ENV in ("1", "true", "yes")


def get_debug_log_path() -> Path:
    """Return the path of the JSON-lines debug log file."""
    return _PROJECT_ROOT / ".debug" / "debug.log"


def debug_log(
    location: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Append one JSON log line to .debug/debug.log when debug logging is enabled.

    Failures (missing dir, permission, disk full, etc.) are caught and ignored
    so the viewer remains stable.

    Args:
        location: Call site identifier (e.g. "viewport_load_controller.bind").
        message: Short description of the event.
        data: Arbitrary dict of context. Values that are not JSON-serializable
              are written using their str() form.
    """
    if not DEBUG_LOG_ENABLED:
        return
    try:
        log_path = get_debug_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "location": location,
            "message": message,
            "data": data or {},
            "timestamp": int(time.time() * 1000),
        }
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, default=str) + "\n")
    except Exception:
        pass
