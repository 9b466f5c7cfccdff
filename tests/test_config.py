"""Test settings and logging configuration."""
import json
import logging

from api.config import Settings, get_settings
from api.logging_config import JSONFormatter, configure_logging


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("PLAYBACK_FRAME_MS", "20")
    get_settings.cache_clear()
    settings = get_settings()
    assert settings.frame_ms == 20
    assert settings.driver_enabled is False  # set by the autouse fixture


def test_production_logging_is_json():
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    try:
        configure_logging(Settings(env="production", log_level="debug"))
        assert root.level == logging.DEBUG
        formatter = root.handlers[0].formatter
        assert isinstance(formatter, JSONFormatter)

        record = logging.LogRecord("engine.engine", logging.INFO, __file__, 1,
                                   "Loaded timeline with %d events", (4,), None)
        line = json.loads(formatter.format(record))
        assert line["message"] == "Loaded timeline with 4 events"
        assert line["logger"] == "engine.engine"
    finally:
        root.setLevel(saved[0])
        root.handlers[:] = saved[1]


def test_development_logging_is_plain_text():
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    try:
        configure_logging(Settings(env="development"))
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)
    finally:
        root.setLevel(saved[0])
        root.handlers[:] = saved[1]
