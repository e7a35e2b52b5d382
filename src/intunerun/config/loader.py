# src/intunerun/config/loader.py
from __future__ import annotations
import json, logging, os, pathlib
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

SETTINGS_ENV = "INTUNERUN_SETTINGS"
DEFAULT_SETTINGS_PATH = "config/appsettings.json"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def settings_path() -> pathlib.Path:
    return pathlib.Path(os.environ.get(SETTINGS_ENV) or DEFAULT_SETTINGS_PATH)


def load_appsettings(path: Optional[pathlib.Path] = None) -> dict:
    p = pathlib.Path(path) if path else settings_path()
    if not p.exists():
        return {}
    try:
        text = p.read_text(encoding="utf-8").strip()
        if not text:
            return {}
        data = json.loads(text)
    except (OSError, ValueError) as ex:
        # malformed JSON → fall back to defaults
        log.warning("Ignoring unreadable settings file %s: %s", p, ex)
        return {}
    return data if isinstance(data, dict) else {}


def _env_bool(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env(name: str, cast, default):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return cast(raw.strip())


def get_http_config(settings: Optional[dict] = None) -> Dict[str, Any]:
    cfg = (settings if settings is not None else load_appsettings()).get("http", {})
    return {
        "timeout_seconds": float(cfg.get("timeout_seconds", 30)),
        "max_retries": int(cfg.get("max_retries", 5)),
        "initial_backoff_seconds": float(cfg.get("initial_backoff_seconds", 5)),
    }


def get_run_config(settings: Optional[dict] = None) -> Dict[str, Any]:
    cfg = (settings if settings is not None else load_appsettings()).get("run", {})
    max_actions = cfg.get("max_actions")
    out = {
        "batch_size": int(cfg.get("batch_size", 50)),
        "inter_batch_delay_seconds": float(cfg.get("inter_batch_delay_seconds", 10)),
        "max_actions": int(max_actions) if max_actions is not None else None,
        "dry_run": bool(cfg.get("dry_run", False)),
    }
    out["batch_size"] = _env("INTUNERUN_BATCH_SIZE", int, out["batch_size"])
    out["inter_batch_delay_seconds"] = _env("INTUNERUN_INTER_BATCH_DELAY", float, out["inter_batch_delay_seconds"])
    out["max_actions"] = _env("INTUNERUN_MAX_ACTIONS", int, out["max_actions"])
    dry = _env_bool("INTUNERUN_DRY_RUN")
    if dry is not None:
        out["dry_run"] = dry
    return out


def get_auth_config(settings: Optional[dict] = None) -> Dict[str, str]:
    cfg = (settings if settings is not None else load_appsettings()).get("auth", {})
    return {
        "tenant_id": os.environ.get("AZURE_TENANT_ID") or str(cfg.get("tenant_id", "")),
        "client_id": os.environ.get("GRAPH_CLIENT_ID") or str(cfg.get("client_id", "")),
        # secrets never come from the settings file
        "client_secret": os.environ.get("GRAPH_CLIENT_SECRET", ""),
    }
