from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .loader import DEFAULT_CONFIG_PATH

"""Runtime settings resolved from the environment.

Resolution order:
    1. `.env` loaded with python-dotenv (overrides existing variables)
    2. variables already present in the process environment
    3. the defaults below
"""

__all__ = [
    "EngineSettings",
    "load_settings",
]

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EngineSettings:
    config_path: Path = DEFAULT_CONFIG_PATH
    log_level: str = "INFO"
    concurrent: bool = True  # dispatch sheets of one request concurrently
    show_progress: bool = True  # tqdm bar, only effective on a TTY
    error_log_dir: Path | None = None  # None disables the JSON Lines error log


def _env(name: str, default: str) -> str:
    # an empty variable counts as unset
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _env_flag(name: str, default: bool) -> bool:
    raw = _env(name, "")
    if raw == "":
        return default
    return raw.lower() in _TRUE_VALUES


def load_settings(env_file: Path | None = Path(".env"), override: bool = True) -> EngineSettings:
    if env_file is not None and env_file.exists():
        load_dotenv(dotenv_path=env_file, override=override)

    error_log_dir = _env("SHEETFLOW_ERROR_LOG_DIR", "")
    return EngineSettings(
        config_path=Path(_env("SHEETFLOW_CONFIG", str(DEFAULT_CONFIG_PATH))),
        log_level=_env("SHEETFLOW_LOG_LEVEL", "INFO").upper(),
        concurrent=_env_flag("SHEETFLOW_CONCURRENT", True),
        show_progress=_env_flag("SHEETFLOW_PROGRESS", True),
        error_log_dir=Path(error_log_dir) if error_log_dir else None,
    )
