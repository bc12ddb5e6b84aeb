import json
import os
import sys
from typing import Any, Dict, Optional

from errors import ValidationError

APP_NAME = "spotic"
CONFIG_FILE_NAME = "config.json"
CREDENTIALS_FILE_NAME = "credentials.json"
LOG_FILE_NAME = "spotic.log"

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify Web API (OAuth PKCE)
    "spotify_client_id": "",
    "spotify_redirect_uri": "http://127.0.0.1:8080/callback",
    "spotify_scopes": [
        "user-read-currently-playing",
        "user-read-playback-state",
        "user-modify-playback-state",
        "playlist-read-private",
        "user-library-read",
    ],

    # Timeouts (seconds)
    "http_timeout": 30,
    "callback_timeout": 300,

    "search_limit": 10,
    "open_browser": True,

    # Logging
    "log_file": True,
    "log_level": "INFO",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": True},
    "spotify_scopes": {"type": list, "required": True, "element_type": str},
    "http_timeout": {"type": (int, float), "required": False, "min": 1, "max": 300},
    "callback_timeout": {"type": (int, float), "required": False, "min": 10, "max": 3600},
    "search_limit": {"type": int, "required": False, "min": 1, "max": 50},
    "open_browser": {"type": bool, "required": False},
    "log_file": {"type": bool, "required": False},
    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
}


def data_dir() -> str:
    """Per-user directory holding config.json, credentials.json and the log file."""
    override = os.environ.get("SPOTIC_HOME", "").strip()
    if override:
        return override

    home = os.path.expanduser("~")
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA", os.path.join(home, "AppData", "Roaming"))
    else:
        base = os.environ.get("XDG_DATA_HOME", os.path.join(home, ".local", "share"))
    return os.path.join(base, APP_NAME)


def config_path() -> str:
    return os.path.join(data_dir(), CONFIG_FILE_NAME)


def credentials_path() -> str:
    return os.path.join(data_dir(), CREDENTIALS_FILE_NAME)


def log_path() -> str:
    return os.path.join(data_dir(), LOG_FILE_NAME)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields.

    A missing file is not an error: the defaults are used as-is.
    """
    path = path or config_path()
    config: Dict[str, Any] = {}

    if os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Config file {path} contains invalid JSON: {e}") from e
        except OSError as e:
            raise ValidationError(f"Config file {path} could not be read: {e}") from e

        if not isinstance(config, dict):
            raise ValidationError(f"Config file {path} must contain a JSON object")

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    env_client_id = os.environ.get("SPOTIC_CLIENT_ID", "").strip()
    if env_client_id:
        config["spotify_client_id"] = env_client_id

    is_valid, errors = validate_config(config)
    if not is_valid:
        raise ValidationError(f"Invalid config {path}: {'; '.join(errors)}")

    return config


def save_config(config: Dict[str, Any], path: Optional[str] = None) -> None:
    """Save configuration to file."""
    path = path or config_path()
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
    except OSError as e:
        raise IOError(f"Failed to save config: {e}") from e


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # bool is an int subclass; only accept it where the schema asks for bool
        expected_type = rules.get("type")
        if isinstance(value, bool) and expected_type is not bool:
            errors.append(f"Field '{key}' must not be a boolean")
            continue

        if expected_type and not isinstance(value, expected_type):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        if isinstance(value, (int, float)):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors
