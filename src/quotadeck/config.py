import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "quotadeck"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"
DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_REFRESH_INTERVAL = 60
DEFAULT_REQUEST_TIMEOUT = 10

CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "baseUrl": {"type": "string"},
        "password": {"type": "string"},
        "refreshInterval": {"type": "integer", "minimum": 0},
        "requestTimeout": {"type": "number", "exclusiveMinimum": 0},
        "showExhausted": {"type": "boolean"},
        "showHiddenModels": {"type": "boolean"},
        "preferencesDbPath": {"type": "string"},
    },
}


def validate_schema(
    data: Dict[str, Any], schema: Dict[str, Any], filename: str
) -> bool:
    """Validate data against schema. Returns True if valid, logs warning if invalid."""
    try:
        jsonschema.validate(instance=data, schema=schema)
        return True
    except jsonschema.ValidationError as e:
        logger.warning(f"Schema validation failed for {filename}: {e.message}")
        return False
    except jsonschema.SchemaError as e:
        logger.error(f"Invalid schema for {filename}: {e.message}")
        return False


class Config:
    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir or DEFAULT_CONFIG_DIR
        self.config_file = self.config_dir / "config.json"
        self.data = self._load()

    def _load(self):
        if not self.config_file.exists():
            return {}
        try:
            with open(self.config_file, "r") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                return {}
            validate_schema(data, CONFIG_SCHEMA, "config.json")
            return data
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {self.config_file}: {e}")
            return {}

    def save(self):
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(self.data, f, indent=2)

    @property
    def base_url(self) -> str:
        return (self.data.get("baseUrl") or DEFAULT_BASE_URL).rstrip("/")

    @property
    def password(self) -> Optional[str]:
        return self.data.get("password") or None

    @property
    def preferences_db_path(self) -> Path:
        """Get the path to the preferences database."""
        custom_path = self.data.get("preferencesDbPath")
        if custom_path:
            return Path(custom_path).expanduser()
        return self.config_dir / "preferences.db"

    @property
    def show_exhausted(self) -> bool:
        return self.data.get("showExhausted", True)

    @property
    def show_hidden_models(self) -> bool:
        return self.data.get("showHiddenModels", False)

    @property
    def refresh_interval(self) -> int:
        """Get the full refresh interval in seconds (default: 60, 0 disables)."""
        value = self.data.get("refreshInterval")
        if value is None:
            return DEFAULT_REFRESH_INTERVAL
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return DEFAULT_REFRESH_INTERVAL

    @property
    def request_timeout(self) -> float:
        value = self.data.get("requestTimeout")
        try:
            return float(value) if value and float(value) > 0 else DEFAULT_REQUEST_TIMEOUT
        except (TypeError, ValueError):
            return DEFAULT_REQUEST_TIMEOUT
