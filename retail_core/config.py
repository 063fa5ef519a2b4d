from __future__ import annotations

import json
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Optional

import streamlit as st

from retail_core.money import to_money

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "RETAIL_CORE_DATA_DIR"
ENV_LOG_LEVEL = "RETAIL_CORE_LOG_LEVEL"
SESSION_DATA_DIR = "retail_core_data_dir"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "Rs"
    # Credit sales above this total need the admin password at confirmation.
    large_credit_threshold: Decimal = Decimal("1000.00")
    log_level: str = "INFO"


def _default_data_dir() -> Path:
    return Path.home() / ".retail_core"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = _load_persisted_settings(data_dir)
    payload["data_dir"] = str(data_dir)
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state[SESSION_DATA_DIR] = str(data_dir)


def load_settings(data_dir: Optional[Path] = None) -> Settings:
    """
    Build Settings without touching Streamlit state.

    Priority for the data directory: explicit argument, environment variable,
    persisted settings in the default folder, the default folder.
    """
    if data_dir is not None:
        resolved = Path(data_dir).expanduser().resolve()
    elif os.getenv(ENV_DATA_DIR):
        resolved = Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        resolved = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    resolved.mkdir(parents=True, exist_ok=True)
    persisted = _load_persisted_settings(resolved)

    log_level = os.getenv(ENV_LOG_LEVEL) or persisted.get("log_level") or "INFO"
    return Settings(
        data_dir=resolved,
        db_path=resolved / "app.db",
        currency=str(persisted.get("currency", "Rs")),
        large_credit_threshold=to_money(persisted.get("large_credit_threshold", "1000")),
        log_level=str(log_level).upper(),
    )


@st.cache_resource
def get_settings() -> Settings:
    # Session state (set via Data Management page) wins over everything else.
    if SESSION_DATA_DIR in st.session_state:
        return load_settings(Path(st.session_state[SESSION_DATA_DIR]))
    return load_settings()
