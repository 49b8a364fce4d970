"""Runtime settings, read from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DATA_DIR = Path.home() / ".realty-coordinator"
DEFAULT_GEMINI_MODEL = "gemini-1.5-pro"


@dataclass
class Settings:
    """Coordinator settings.

    Every field maps to one environment variable:

    - ``REALTY_DATA_DIR``: directory for the SQLite task journal
    - ``GEMINI_API_KEY`` (or ``GEMINI_BEARER_TOKEN``): text-generation key
    - ``GEMINI_MODEL``: model name, with or without the ``models/`` prefix
    - ``REALTY_AGENT_TIMEOUT``: per-agent invocation timeout in seconds (0 disables)
    - ``REALTY_MAX_TASK_HISTORY``: finalized task records kept in memory (0 = unbounded)
    - ``REALTY_MARKET_API_URL``: base URL of a live market-data service
    - ``REALTY_LOG_LEVEL``: logging level name
    """

    data_dir: Path = DEFAULT_DATA_DIR
    gemini_api_key: str | None = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    agent_timeout: float | None = 60.0
    max_task_history: int | None = 1000
    market_api_url: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ

        timeout = float(env.get("REALTY_AGENT_TIMEOUT", "60"))
        history = int(env.get("REALTY_MAX_TASK_HISTORY", "1000"))
        if timeout < 0:
            raise ValueError(f"REALTY_AGENT_TIMEOUT must be >= 0, got {timeout}")
        if history < 0:
            raise ValueError(f"REALTY_MAX_TASK_HISTORY must be >= 0, got {history}")

        data_dir = env.get("REALTY_DATA_DIR")
        return cls(
            data_dir=Path(data_dir).expanduser() if data_dir else DEFAULT_DATA_DIR,
            gemini_api_key=env.get("GEMINI_API_KEY") or env.get("GEMINI_BEARER_TOKEN") or None,
            gemini_model=env.get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            agent_timeout=timeout or None,
            max_task_history=history or None,
            market_api_url=env.get("REALTY_MARKET_API_URL") or None,
            log_level=env.get("REALTY_LOG_LEVEL", "INFO").upper(),
        )


def get_settings() -> Settings:
    """Settings for the current process environment."""
    return Settings.from_env()
