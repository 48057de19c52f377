"""Global application configuration."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def _default_data_dir() -> Path:
    """Return the platform-appropriate data directory."""
    override = os.environ.get("PII_PIPELINE_DATA_DIR")
    if override:
        return Path(override)
    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif os.uname().sysname == "Darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "pii-pipeline"


class AppConfig(BaseModel):
    """Application-wide settings — loaded once at startup."""

    # Directories
    data_dir: Path = Field(default_factory=_default_data_dir)

    # ML token classifier
    ml_enabled: bool = True
    ml_model: str = "Davlan/bert-base-multilingual-cased-ner-hrl"
    ml_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    ml_timeout_s: float = Field(default=30.0, gt=0.0)
    ml_workers: int = Field(default=1, ge=0, le=16)   # 0 = in-process only

    # Retry policy around ML inference
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_initial_delay_ms: float = Field(default=100.0, ge=0.0)
    retry_max_delay_ms: float = Field(default=5000.0, ge=0.0)
    retry_multiplier: float = Field(default=2.0, ge=1.0)

    # Detection behaviour
    address_proximity: int = Field(default=50, ge=1, le=500)
    context_window: int = Field(default=100, ge=1, le=1000)
    deny_list_enabled: bool = True
    show_components: bool = False
    validation_floor: float = Field(default=0.35, ge=0.0, le=1.0)

    # Batch processing
    batch_workers: int = Field(default=4, ge=1, le=64)

    # Server
    host: str = "127.0.0.1"
    port: int = Field(default=8910, ge=0, le=65535)   # 0 = random

    def model_post_init(self, __context: object) -> None:
        # Load any previously-saved user settings from disk
        self._load_user_settings()

    # ------------------------------------------------------------------
    # Persistence: user-editable settings are saved to a JSON sidecar
    # ------------------------------------------------------------------

    # Keys that are persisted when changed via the API
    _PERSISTABLE_KEYS: set[str] = {
        "ml_enabled", "ml_model", "ml_threshold",
        "address_proximity", "context_window",
        "deny_list_enabled", "show_components", "validation_floor",
    }

    @property
    def _settings_path(self) -> Path:
        return self.data_dir / "settings.json"

    def _load_user_settings(self) -> None:
        """Read persisted user settings from disk and apply them."""
        path = self._settings_path
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8-sig"))
            for key, value in data.items():
                if key in self._PERSISTABLE_KEYS and hasattr(self, key):
                    setattr(self, key, value)
            logger.info(f"Loaded user settings from {path}")
        except (OSError, ValueError) as exc:
            logger.warning(f"Failed to load settings from {path}: {exc}")

    def save_user_settings(self) -> None:
        """Persist current user-editable settings to disk."""
        data = {k: getattr(self, k) for k in self._PERSISTABLE_KEYS if hasattr(self, k)}
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._settings_path.write_text(
                json.dumps(data, indent=2, default=str),
                encoding="utf-8",
            )
            logger.info(f"Saved user settings to {self._settings_path}")
        except OSError as exc:
            logger.warning(f"Failed to save settings: {exc}")

    def pipeline_options(self) -> dict:
        """Run options handed to ``DetectionPipeline.configure``."""
        return {
            "ml_enabled": self.ml_enabled,
            "ml_threshold": self.ml_threshold,
            "ml_timeout_s": self.ml_timeout_s,
            "retry_max_attempts": self.retry_max_attempts,
            "retry_initial_delay_ms": self.retry_initial_delay_ms,
            "retry_max_delay_ms": self.retry_max_delay_ms,
            "retry_multiplier": self.retry_multiplier,
            "batch_workers": self.batch_workers,
            "address_proximity": self.address_proximity,
            "context_window": self.context_window,
            "deny_list_enabled": self.deny_list_enabled,
            "show_components": self.show_components,
            "validation_floor": self.validation_floor,
        }


# Singleton: importable from anywhere
config = AppConfig()
