"""Configuration management."""
import os
import yaml
from pathlib import Path

_config = None
_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"

ENV_OVERRIDES = {
    "ALERTENGINE_LOG_LEVEL": ("logging", "level"),
    "ALERTENGINE_HISTORY_LIMIT": ("alerts", "history_limit"),
    "ALERTENGINE_PORT": ("web", "port"),
    "ALERTENGINE_EVAL_INTERVAL": ("alerts", "evaluation_interval"),
}

REQUIRED_SECTIONS = ["service", "alerts", "notifications", "intelligence", "web", "logging"]


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    global _config

    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path:
        if not Path(path).exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    for env_key, config_path in ENV_OVERRIDES.items():
        val = os.environ.get(env_key)
        if val:
            d = config
            for k in config_path[:-1]:
                d = d.setdefault(k, {})
            try:
                d[config_path[-1]] = int(val)
            except ValueError:
                d[config_path[-1]] = val

    _validate_config(config)
    _config = config
    return config


def get_config():
    """Return cached config, loading defaults if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config):
    for section in REQUIRED_SECTIONS:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    alerts = config["alerts"]
    if not isinstance(alerts.get("history_limit"), int) or alerts["history_limit"] < 1:
        raise ValueError("alerts.history_limit must be an integer >= 1")
    if not isinstance(alerts.get("evaluation_interval"), (int, float)) or alerts["evaluation_interval"] < 1:
        raise ValueError("alerts.evaluation_interval must be >= 1 second")

    threshold = config["intelligence"].get("anomaly", {}).get("threshold", 0.5)
    if not 0 < threshold < 1:
        raise ValueError("intelligence.anomaly.threshold must be between 0 and 1")

    if not isinstance(config["web"].get("port"), int):
        raise ValueError("web.port must be an integer")
