"""Global configuration for backlog-helper."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

_log = logging.getLogger("backlog.config")

CONFIG_ENV = "BACKLOG_HELPER_CONFIG"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULTS: dict[str, Any] = {
    "storage": {
        "file": "project_data.xlsx",
        "daily_backup": True,
        "backup_retain_days": 7,
    },
    "logging": {
        "level": "WARNING",
    },
}


def _deep_merge(defaults: dict, overrides: dict) -> dict:
    """Merge overrides into defaults recursively. Only known keys are kept."""
    result = {}
    for key, default_val in defaults.items():
        if key in overrides:
            override_val = overrides[key]
            if isinstance(default_val, dict) and isinstance(override_val, dict):
                result[key] = _deep_merge(default_val, override_val)
            else:
                result[key] = override_val
        else:
            result[key] = default_val if not isinstance(default_val, dict) else dict(default_val)
    return result


def config_path() -> Path:
    """Return the path to the config file ($BACKLOG_HELPER_CONFIG or ~/.backlog_helper.yaml)."""
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".backlog_helper.yaml"


def _read_file() -> dict[str, Any]:
    path = config_path()
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            loaded = yaml.safe_load(f)
    except (yaml.YAMLError, OSError):
        return {}  # malformed or unreadable, fall back to defaults
    return loaded if isinstance(loaded, dict) else {}


def check_value(section: str, key: str, value: Any) -> Optional[str]:
    """Return why *value* does not fit section.key, or None if it does.

    A value must have the type of its default; logging.level must also
    name a standard level.
    """
    default = DEFAULTS[section][key]
    if isinstance(default, bool):
        if not isinstance(value, bool):
            return "expected true or false"
    elif isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            return "expected a whole number"
        if value < 0:
            return "expected zero or more"
    elif not isinstance(value, str) or not value.strip():
        return "expected non-empty text"
    if (section, key) == ("logging", "level") and value.upper() not in LOG_LEVELS:
        return f"expected one of {', '.join(LOG_LEVELS)}"
    return None


def get_config() -> dict[str, Any]:
    """Load the config file and merge with defaults.

    Missing keys use defaults, and so do values of the wrong type (logged
    as a warning).
    """
    cfg = _deep_merge(DEFAULTS, _read_file())
    for section, defaults in DEFAULTS.items():
        if not isinstance(cfg[section], dict):
            _log.warning("ignoring config section %s: not a mapping", section)
            cfg[section] = dict(defaults)
            continue
        for key, default in defaults.items():
            problem = check_value(section, key, cfg[section][key])
            if problem:
                _log.warning("ignoring %s.%s = %r in %s: %s",
                             section, key, cfg[section][key], config_path(), problem)
                cfg[section][key] = default
    return cfg


def parse_value(text: str) -> Any:
    """Parse a command-line value as YAML so 'false' and '7' keep their types."""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return text


def set_config(section: str, key: str, value: Any) -> dict[str, Any]:
    """Set a known config key within a section. Returns the updated config.

    Raises KeyError for an unknown key and ValueError for a value that
    does not fit it; the file is left unchanged in both cases.
    """
    if section not in DEFAULTS or key not in DEFAULTS[section]:
        raise KeyError(f"Unknown config key: {section}.{key}")
    problem = check_value(section, key, value)
    if problem:
        raise ValueError(f"Invalid value for {section}.{key}: {value!r} ({problem})")
    path = config_path()
    file_cfg = _read_file()
    if not isinstance(file_cfg.get(section), dict):
        file_cfg[section] = {}
    file_cfg[section][key] = value
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(file_cfg, f, default_flow_style=False)
    return get_config()
