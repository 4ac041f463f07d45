from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

USER_CONFIG_PATH = Path.home() / ".tasks_md_config.yaml"

DEFAULT_TASKS_DIR = "tasks"
DEFAULT_SESSION_TTL_SECONDS = 3600
DEFAULT_TRANSPORT_MODE = "stateful"
TRANSPORT_MODES = ("stateful", "stateless")


def _config_path() -> Path:
    override = os.environ.get("TASKS_MD_CONFIG")
    return Path(override).expanduser() if override else USER_CONFIG_PATH


def _load_config() -> Dict[str, Any]:
    path = _config_path()
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def _setting(env_name: str, key: str) -> Any:
    value = os.environ.get(env_name)
    if value not in (None, ""):
        return value
    return _load_config().get(key)


def _as_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def get_tasks_dir() -> Path:
    """Board root: TASKS_DIR env, then ``tasks_dir`` in the user config, then ./tasks."""
    value = _setting("TASKS_DIR", "tasks_dir") or DEFAULT_TASKS_DIR
    return Path(str(value)).expanduser().resolve()


def get_ownership() -> Optional[Tuple[Optional[int], Optional[int]]]:
    """(uid, gid) new files are chowned to, or None when not configured."""
    uid = _as_int(_setting("PUID", "puid"))
    gid = _as_int(_setting("PGID", "pgid"))
    if uid is None and gid is None:
        return None
    return uid, gid


def get_session_ttl_seconds() -> float:
    value = _setting("TASKS_MD_SESSION_TTL", "session_ttl_seconds")
    try:
        ttl = float(value) if value not in (None, "") else DEFAULT_SESSION_TTL_SECONDS
    except (TypeError, ValueError):
        ttl = DEFAULT_SESSION_TTL_SECONDS
    return max(ttl, 0.0)


def get_transport_mode() -> str:
    value = str(_setting("TASKS_MD_MCP_MODE", "mcp_mode") or DEFAULT_TRANSPORT_MODE).strip().lower()
    return value if value in TRANSPORT_MODES else DEFAULT_TRANSPORT_MODE


def get_log_level() -> str:
    return str(_setting("TASKS_MD_LOG_LEVEL", "log_level") or "WARNING").strip().upper()
