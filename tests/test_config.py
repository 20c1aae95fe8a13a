"""Tests for configuration loading and validation."""
import pytest

from config import load_config, _deep_merge


def test_defaults_load():
    config = load_config()
    assert config["alerts"]["history_limit"] == 1000
    assert config["web"]["port"] == 5000
    assert config["intelligence"]["anomaly"]["method"] == "statistical"


def test_user_file_deep_merges(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("alerts:\n  history_limit: 50\nweb:\n  port: 8080\n")
    config = load_config(str(path))
    assert config["alerts"]["history_limit"] == 50
    assert config["alerts"]["evaluation_interval"] == 30
    assert config["web"]["port"] == 8080


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config("/nonexistent/config.yaml")


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("ALERTENGINE_PORT", "9090")
    monkeypatch.setenv("ALERTENGINE_LOG_LEVEL", "DEBUG")
    config = load_config()
    assert config["web"]["port"] == 9090
    assert config["logging"]["level"] == "DEBUG"


@pytest.mark.parametrize("body", [
    "alerts:\n  history_limit: 0\n",
    "alerts:\n  evaluation_interval: 0\n",
    "intelligence:\n  anomaly:\n    threshold: 1.5\n",
    "web:\n  port: http\n",
])
def test_invalid_values_rejected(tmp_path, body):
    path = tmp_path / "config.yaml"
    path.write_text(body)
    with pytest.raises(ValueError):
        load_config(str(path))


def test_deep_merge_does_not_mutate_base():
    base = {"a": {"b": 1, "c": 2}}
    merged = _deep_merge(base, {"a": {"b": 5}})
    assert merged == {"a": {"b": 5, "c": 2}}
    assert base["a"]["b"] == 1
