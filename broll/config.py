import json
import os
import shutil
from pathlib import Path
from typing import Any, Dict

from .completion_client import DEFAULT_ENDPOINT_URL
from .models import ExtractionMode

CONFIG_ROOT_DIR = Path.home() / ".broll-keywords"


def get_default_config_dir() -> Path:
    env_override = os.getenv("BROLL_KEYWORDS_CONFIG_DIR")
    if env_override:
        return Path(env_override).expanduser()
    return CONFIG_ROOT_DIR


def get_default_config_path() -> Path:
    return get_default_config_dir() / "config.json"


DEFAULT_CONFIG_PATH = get_default_config_path()

_INT_KEYS = {"batch_size", "max_attempts", "window_width", "window_height"}
_FLOAT_KEYS = {"request_delay", "request_timeout"}
_BOOL_KEYS = {"encode_messages"}


class AppConfig:
    """Reads, repairs and saves the extractor settings file."""

    def __init__(self, config_path: Path):
        self.config_path = Path(config_path)
        self.load_warning: str | None = None
        self.defaults: Dict[str, Any] = {
            "endpoint_url": DEFAULT_ENDPOINT_URL,
            "model": "gpt-4",
            "mode": ExtractionMode.SHORT_PHRASE.value,
            "batch_size": 0,
            "request_delay": None,
            "request_timeout": 120.0,
            "max_attempts": 1,
            "encode_messages": True,
            "knowledge_base_path": "",
            "schema_tool_path": "",
            "output_dir": str(Path.home()),
            "window_width": 900,
            "window_height": 760,
        }
        self.settings = self.load_config()

    def _preserve_corrupt_config(self) -> Path | None:
        """Keep a copy of the unreadable config so users can inspect what went wrong."""
        if not self.config_path.exists():
            return None
        suffix = self.config_path.suffix or ".json"
        backup = self.config_path.with_suffix(suffix + ".corrupt")
        counter = 1
        while backup.exists():
            backup = self.config_path.with_suffix(f"{suffix}.corrupt{counter}")
            counter += 1
        try:
            shutil.copy2(self.config_path, backup)
            return backup
        except OSError:
            return None

    def _migrate_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        """Fall back to the default mode when the stored one is not recognised."""
        migrated = dict(settings)
        mode = migrated.get("mode")
        if mode is not None:
            try:
                migrated["mode"] = ExtractionMode.from_flag(str(mode)).value
            except ValueError:
                migrated["mode"] = self.defaults["mode"]
        return migrated

    def load_config(self) -> Dict[str, Any]:
        self.load_warning = None
        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    raw_settings = json.load(f)
                if isinstance(raw_settings, dict):
                    return {**self.defaults, **self._migrate_settings(raw_settings)}
                self.load_warning = f"Config at {self.config_path} is not a JSON object. Using defaults."
            except (json.JSONDecodeError, IOError) as exc:
                backup = self._preserve_corrupt_config()
                note = f"Failed to parse config at {self.config_path}: {exc}. Using defaults."
                if backup:
                    note += f" Saved unreadable copy as {backup.name}."
                self.load_warning = note
        return dict(self.defaults)

    def save_config(self):
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self.settings, f, indent=4, ensure_ascii=False)
        except IOError:
            pass

    def get(self, key: str) -> Any:
        if key in _INT_KEYS:
            try:
                return int(self.settings.get(key, self.defaults.get(key, 0)))
            except (TypeError, ValueError):
                return int(self.defaults.get(key, 0))
        if key in _FLOAT_KEYS:
            if key == "request_delay" and self.settings.get(key) in (None, ""):
                return None
            try:
                return float(self.settings.get(key, self.defaults.get(key, 0.0)))
            except (TypeError, ValueError):
                return float(self.defaults.get(key, 0.0))
        if key in _BOOL_KEYS:
            return bool(self.settings.get(key, self.defaults.get(key, False)))
        if key == "mode":
            return ExtractionMode.from_flag(str(self.settings.get(key) or self.defaults["mode"]))
        return self.settings.get(key, self.defaults.get(key))

    def set(self, key: str, value: Any):
        """Update one setting and save immediately."""
        if isinstance(value, ExtractionMode):
            value = value.value
        self.settings[key] = value
        self.save_config()
