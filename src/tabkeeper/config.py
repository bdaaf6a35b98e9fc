"""
Configuration for tabkeeper.

Values come from ``config/default.yaml`` (or the file named by
``TABKEEPER_CONFIG``), then ``TABKEEPER_<FIELD>`` environment variables,
validated by a pydantic model.
"""

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from tabkeeper.logger import get_logger

logger = get_logger(__name__)

PROJECT_DIR = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_DIR / "config" / "default.yaml"
ENV_PREFIX = "TABKEEPER_"

load_dotenv(PROJECT_DIR / ".env")

DATA_DIR = Path(os.getenv("TABKEEPER_DATA_DIR", str(Path.home() / ".tabkeeper")))


class Config(BaseModel):
    """Validated runtime settings."""

    restore_settle_seconds: float = Field(default=0.5, ge=0)
    invoke_timeout_seconds: float = Field(default=30.0, gt=0)
    command_timeout_seconds: float = Field(default=45.0, gt=0)
    anchor_mode: Literal["first", "home"] = "first"
    home_tab_url: str = "chrome-extension://tabkeeper/home.html"
    new_tab_url: str = "chrome://newtab/"
    placeholder_prefixes: list[str] = Field(
        default_factory=lambda: [
            "chrome://",
            "chrome-extension://",
            "edge://",
            "about:blank",
            "about:newtab",
        ]
    )
    restore_on_startup: bool = True
    storage_backend: Literal["file", "memory"] = "file"
    host: str = "127.0.0.1"
    port: int = 8765

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """Build a config from the YAML file and environment overrides."""
        values = _read_yaml(path or _config_path())
        values.update(_env_overrides(cls))
        try:
            return cls(**values)
        except ValidationError as e:
            logger.error(f"Invalid configuration, falling back to defaults: {e}")
            return cls()

    def reload(self, path: Optional[Path] = None) -> None:
        """Re-read configuration in place so existing references see changes."""
        fresh = self.load(path)
        for name in type(self).model_fields:
            setattr(self, name, getattr(fresh, name))

    def is_placeholder_url(self, url: Optional[str]) -> bool:
        """True for internal pages that carry no user intent (new tab, extension pages)."""
        if not url:
            return False
        return url.startswith(tuple(self.placeholder_prefixes))

    def is_restorable_url(self, url: Optional[str]) -> bool:
        return bool(url) and not self.is_placeholder_url(url)


def _config_path() -> Path:
    override = os.getenv(f"{ENV_PREFIX}CONFIG")
    return Path(override) if override else DEFAULT_CONFIG_PATH


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Could not parse {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: expected a mapping")
        return {}
    return data


def _env_overrides(model: type[BaseModel]) -> dict[str, Any]:
    """Collect TABKEEPER_<FIELD> variables; list fields accept JSON or commas."""
    overrides: dict[str, Any] = {}
    for name, field in model.model_fields.items():
        raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if raw is None:
            continue
        if field.annotation == list[str]:
            try:
                overrides[name] = json.loads(raw)
            except json.JSONDecodeError:
                overrides[name] = [p.strip() for p in raw.split(",") if p.strip()]
        else:
            overrides[name] = raw
    return overrides


CONFIG = Config.load()
