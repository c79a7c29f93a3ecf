"""Config — layered settings for the tick scraper
===============================================
Precedence, lowest first:

1. ``DEFAULTS`` below
2. ``config.yml`` at the repo root (or ``--config``)
3. environment / ``.env``: ``BLP_HOST``, ``BLP_PORT``, ``IB_HOST``,
   ``IB_PORT``, ``IB_CLIENT_ID``, ``TICK_OUT_DIR``

Command-line flags are applied on top by ``intraday_tick.py``.

All request datetimes are **GMT** (tz-aware UTC).
"""
from __future__ import annotations

import copy
import datetime as dt
import logging
import os
import pathlib
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

import yaml
from dotenv import load_dotenv

_LOG = logging.getLogger(__name__)

# ───────────────────────── paths & defaults ────────────────────────────────
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
CONFIG_PATH = _REPO_ROOT / "config.yml"

PROVIDERS = ("bloomberg", "ib")

# IntradayTickRequest eventTypes enumeration
EVENT_TYPES = (
    "TRADE", "BID", "ASK", "BID_BEST", "ASK_BEST", "BID_YIELD", "ASK_YIELD",
    "MID_PRICE", "AT_TRADE", "BEST_BID", "BEST_ASK", "SETTLE",
)

DEFAULTS: Dict = {
    "provider": "bloomberg",
    "bloomberg": {"host": "localhost", "port": 8194, "service": "//blp/refdata"},
    "ib": {"host": "127.0.0.1", "port": 7497, "client_id": 23,
           "page_size": 1000, "use_rth": False},
    "request": {
        "security": "IBM US Equity",
        "event_types": ["TRADE", "BID", "ASK"],
        "window": {"start": "15:30", "end": "15:35"},
    },
    "output": {"dir": "data/ticks"},
}

_ENV_OVERRIDES = (
    ("BLP_HOST", "bloomberg", "host", str),
    ("BLP_PORT", "bloomberg", "port", int),
    ("IB_HOST", "ib", "host", str),
    ("IB_PORT", "ib", "port", int),
    ("IB_CLIENT_ID", "ib", "client_id", int),
    ("TICK_OUT_DIR", "output", "dir", str),
)

# ───────────────────────── data classes ────────────────────────────────────
@dataclass(frozen=True, slots=True)
class RequestParams:
    security: str
    event_types: Tuple[str, ...]
    start: dt.datetime
    end: dt.datetime


@dataclass(frozen=True, slots=True)
class ConnectionSettings:
    provider: str
    host: str
    port: int
    client_id: int = 0

# ───────────────────────── loaders ─────────────────────────────────────────
def load_config(path: Optional[pathlib.Path] = None, *, use_env: bool = True) -> Dict:
    """Return the merged settings dict.

    A missing default ``config.yml`` is fine (defaults apply); a missing file
    passed explicitly is an error.
    """
    cfg = copy.deepcopy(DEFAULTS)
    cfg_path = pathlib.Path(path) if path else CONFIG_PATH
    if cfg_path.is_file():
        try:
            loaded = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"{cfg_path}: invalid YAML ({exc})") from exc
        if not isinstance(loaded, dict):
            raise ValueError(f"{cfg_path}: expected a mapping, got {type(loaded).__name__}")
        _merge(cfg, loaded)
        _LOG.debug("Loaded %s", cfg_path)
    elif path is not None:
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    if use_env:
        load_dotenv()
        for var, section, key, cast in _ENV_OVERRIDES:
            raw = os.getenv(var)
            if not raw:
                continue
            try:
                cfg[section][key] = cast(raw)
            except ValueError as exc:
                raise ValueError(f"{var}={raw!r} is not a valid {cast.__name__}") from exc
    return cfg


def _merge(base: Dict, override: Dict):
    for key, val in override.items():
        if isinstance(val, dict) and isinstance(base.get(key), dict):
            _merge(base[key], val)
        else:
            base[key] = val


def connection_settings(cfg: Dict, provider: Optional[str] = None,
                        host: Optional[str] = None, port: Optional[int] = None,
                        client_id: Optional[int] = None) -> ConnectionSettings:
    provider = provider or cfg["provider"]
    if provider not in PROVIDERS:
        raise ValueError(f"unknown provider {provider!r} (expected one of {', '.join(PROVIDERS)})")
    section = cfg[provider]
    if client_id is None:
        client_id = section.get("client_id", 0)
    return ConnectionSettings(
        provider=provider,
        host=host or section["host"],
        port=int(port or section["port"]),
        client_id=int(client_id),
    )


def normalize_event_types(events: Iterable[str]) -> Tuple[str, ...]:
    """Upper-case, de-duplicate (order kept) and validate event type names."""
    out = []
    for ev in events:
        name = ev.strip().upper()
        if name not in EVENT_TYPES:
            raise ValueError(f"unknown event type {ev!r}")
        if name not in out:
            out.append(name)
    if not out:
        raise ValueError("at least one event type is required")
    return tuple(out)
