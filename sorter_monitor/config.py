"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``SORTER_MONITOR_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The monitor, snapshot builder, advisor and CLI all receive an ``AppConfig``
instance — never raw dicts or module-level URL/path globals.  The instance is
frozen, so it can be shared freely between components.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

logger = logging.getLogger(__name__)

# ── Sub-config models ─────────────────────────────────────────────────────────


class PackingConfig(BaseModel):
    """Static description of the packing plant and its dashboard URL."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    url: str = "http://192.168.121.2"
    sorters: int = 2
    lines: int = 0
    fruit: str = ""

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("sorters")
    @classmethod
    def validate_sorters(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"sorters must be >= 1, got {v}.")
        return v

    @property
    def assignments_url(self) -> str:
        return f"{self.url}/api/api/assignments_list"

    @property
    def sorter_ids(self) -> list[int]:
        return list(range(1, self.sorters + 1))


class MonitorConfig(BaseModel):
    """Polling loop parameters."""

    model_config = ConfigDict(frozen=True)

    interval_seconds: int = 30
    capture_charts: bool = True
    advise_every: int = 10            # advise on every Nth cycle
    request_timeout_s: float = 10.0   # assignment API timeout

    @field_validator("interval_seconds", "advise_every")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v


class DataConfig(BaseModel):
    """Output folder for snapshots, change log and training CSV."""

    model_config = ConfigDict(frozen=True)

    folder: str = "training_data"

    @property
    def dataset_file(self) -> Path:
        return Path(self.folder) / "dataset.json"

    @property
    def current_snapshot_file(self) -> Path:
        return Path(self.folder) / "current_snapshot.json"

    @property
    def changes_log_file(self) -> Path:
        return Path(self.folder) / "changes_log.json"

    @property
    def last_assignments_file(self) -> Path:
        return Path(self.folder) / "last_assignments.json"

    @property
    def training_csv_file(self) -> Path:
        return Path(self.folder) / "training_data.csv"


class ScraperConfig(BaseModel):
    """Chart page reader settings.

    ``renderer`` is ``"browser"`` (headless Chromium, for the client-side
    rendered dashboard) or ``"http"`` (plain GET, server-rendered pages).
    """

    model_config = ConfigDict(frozen=True)

    timeout_s: float = 30.0
    renderer: str = "browser"

    @field_validator("renderer")
    @classmethod
    def validate_renderer(cls, v: str) -> str:
        valid = {"browser", "http"}
        if v.lower() not in valid:
            raise ValueError(f"renderer must be one of {sorted(valid)}, got '{v}'.")
        return v.lower()


class AdvisorConfig(BaseModel):
    """Imbalance advisor and optional text-generation enrichment.

    Enrichment is off unless ``enabled`` is true *and* ``model`` is set.
    """

    model_config = ConfigDict(frozen=True)

    threshold_pct: float = 8.0
    enabled: bool = False
    ollama_url: str = "http://localhost:11434"
    model: str = ""
    timeout_s: float = 15.0
    temperature: float = 0.1
    num_predict: int = 200
    top_p: float = 0.9

    @field_validator("threshold_pct")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"threshold_pct must be >= 0, got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/sorter_monitor.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    Constructed once by ``load_config()`` and passed by reference into the
    cycle coordinator, snapshot builder, clients and advisor.
    """

    model_config = ConfigDict(frozen=True)

    packing: PackingConfig = PackingConfig()
    monitor: MonitorConfig = MonitorConfig()
    data: DataConfig = DataConfig()
    scraper: ScraperConfig = ScraperConfig()
    advisor: AdvisorConfig = AdvisorConfig()
    logging: LoggingConfig = LoggingConfig()


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.  When the default file is
            missing the built-in defaults are used; an explicit path that
            does not exist is an error.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    raw: dict[str, Any] = {}
    if config_path is None:
        default_path = root / "config" / "default.toml"
        if default_path.exists():
            raw = _read_toml(default_path)
            config_path = default_path
        else:
            logger.warning("No config file at %s — using built-in defaults.", default_path)
    else:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        raw = _read_toml(config_path)

    # Also merge local.toml if present (gitignored local overrides)
    if config_path is not None:
        local_config_path = config_path.parent / "local.toml"
        if local_config_path.exists():
            raw = _deep_merge(raw, _read_toml(local_config_path))

    # 3. Apply SORTER_MONITOR_* environment variable overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply SORTER_MONITOR_* env vars to the raw config dict.

    Supported overrides:
      SORTER_MONITOR_BASE_URL     → raw["packing"]["url"]
      SORTER_MONITOR_INTERVAL     → raw["monitor"]["interval_seconds"]
      SORTER_MONITOR_DATA_FOLDER  → raw["data"]["folder"]
      SORTER_MONITOR_LOG_LEVEL    → raw["logging"]["level"]
      SORTER_MONITOR_OLLAMA_URL   → raw["advisor"]["ollama_url"]
    """
    if base_url := os.environ.get("SORTER_MONITOR_BASE_URL"):
        raw.setdefault("packing", {})["url"] = base_url

    if interval := os.environ.get("SORTER_MONITOR_INTERVAL"):
        raw.setdefault("monitor", {})["interval_seconds"] = int(interval)

    if folder := os.environ.get("SORTER_MONITOR_DATA_FOLDER"):
        raw.setdefault("data", {})["folder"] = folder

    if log_level := os.environ.get("SORTER_MONITOR_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if ollama_url := os.environ.get("SORTER_MONITOR_OLLAMA_URL"):
        raw.setdefault("advisor", {})["ollama_url"] = ollama_url

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    return AppConfig(
        packing=PackingConfig(**raw.get("packing", {})),
        monitor=MonitorConfig(**raw.get("monitor", {})),
        data=DataConfig(**raw.get("data", {})),
        scraper=ScraperConfig(**raw.get("scraper", {})),
        advisor=AdvisorConfig(**raw.get("advisor", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
    )
