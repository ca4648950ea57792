import json
import os
from typing import Any, Dict

CONFIG_PATH = "config.json"

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify Web API (OAuth PKCE)
    # SPOTIFY_CLIENT_ID / SPOTIFY_REDIRECT_URI environment variables override these.
    "spotify_client_id": "",
    "spotify_redirect_uri": "http://127.0.0.1:8888/callback",
    "spotify_scopes": [],
    "token_store_path": "data/spotify_tokens.json",

    # Poster output
    "output_dir": "posters",
    "default_template": "mobile",
    "device_scale": 2,

    # Assets (empty = built-in fallbacks)
    "font_regular": "",
    "font_bold": "",
    "icon_dir": "",

    "http_timeout": 30,

    # Logging
    "log_level": "INFO",
    "log_file": "",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": True},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "token_store_path": {"type": str, "required": True},

    "output_dir": {"type": str, "required": True},
    "default_template": {
        "type": str,
        "required": False,
        "choices": ["mobile", "polaroid", "spotify_code"],
    },
    "device_scale": {"type": (int, float), "required": False, "min": 1, "max": 4},

    "font_regular": {"type": str, "required": False},
    "font_bold": {"type": str, "required": False},
    "icon_dir": {"type": str, "required": False},

    "http_timeout": {"type": (int, float), "required": False, "min": 1, "max": 300},

    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    "log_file": {"type": str, "required": False},
}


def load_config() -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file {CONFIG_PATH} not found.")

    with open(CONFIG_PATH, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def save_config(config: Dict[str, Any]) -> bool:
    """Save configuration to file."""
    try:
        with open(CONFIG_PATH, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        raise IOError(f"Failed to save config: {e}")


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

        # Type check (bool is an int subclass, so it never satisfies a numeric field)
        expected_type = rules.get("type")
        if expected_type and (not isinstance(value, expected_type) or (isinstance(value, bool) and expected_type is not bool)):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        # List element type check (when schema uses: {"type": list, "element_type": ...})
        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        # Choices check
        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        # Range check for numeric values
        if isinstance(value, (int, float)):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def update_config(key: str, value: Any) -> tuple[bool, str]:
    """
    Update a single config field with validation.
    Returns (success, message).
    """
    config = load_config()

    # Check if key is valid
    if key not in CONFIG_SCHEMA:
        return False, f"Unknown config key: {key}"

    # Create temporary config with new value
    test_config = config.copy()
    test_config[key] = value

    # Validate the change
    is_valid, errors = validate_config(test_config)
    if not is_valid:
        return False, f"Validation failed: {', '.join(errors)}"

    # Save the updated config
    config[key] = value
    save_config(config)

    return True, f"Updated '{key}' to '{value}'"


def reset_to_defaults() -> tuple[bool, str]:
    """Reset configuration to default values."""
    try:
        save_config(DEFAULT_CONFIG.copy())
        return True, "Configuration reset to defaults"
    except IOError as e:
        return False, f"Failed to reset config: {e}"


def get_config_value(key: str, default: Any = None) -> Any:
    """Get a single config value with optional default."""
    try:
        config = load_config()
        return config.get(key, default)
    except (OSError, json.JSONDecodeError):
        return default
