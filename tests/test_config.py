"""Tests for config.py and logging_config.py."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from config import (
    BaseConfig,
    DevelopmentConfig,
    ProductionConfig,
    config_by_name,
    load_config,
)
from logging_config import JSONFormatter, StoreContextFilter, init_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfig:
    def test_testing_config(self):
        assert config_by_name["testing"].TESTING is True
        assert config_by_name["testing"].STORE_DATABASE == ":memory:"
        assert config_by_name["testing"].REDIS_URL == ""

    def test_environment_lookup(self):
        assert config_by_name["production"] is ProductionConfig
        assert issubclass(DevelopmentConfig, BaseConfig)

    def test_load_config_uses_store_env(self, monkeypatch):
        monkeypatch.setenv("STORE_ENV", "testing")
        settings = load_config()
        assert settings["TESTING"] is True
        assert settings["STORE_DATABASE"] == ":memory:"

    def test_unknown_env_falls_back_to_development(self, monkeypatch):
        monkeypatch.setenv("STORE_ENV", "staging")
        assert load_config()["LOG_LEVEL"] == DevelopmentConfig.LOG_LEVEL

    def test_overrides_applied(self, monkeypatch):
        monkeypatch.setenv("STORE_ENV", "testing")
        settings = load_config({"STORE_NAMESPACE": "school-42", "AUTOSYNC_SECONDS": 5})
        assert settings["STORE_NAMESPACE"] == "school-42"
        assert settings["AUTOSYNC_SECONDS"] == 5

    def test_only_settings_exported(self, monkeypatch):
        monkeypatch.setenv("STORE_ENV", "testing")
        assert all(name.isupper() for name in load_config())


class TestProductionValidation:
    def test_defaults_pass(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "AUTOSYNC_SECONDS", 30)
        monkeypatch.setattr(ProductionConfig, "TEACHER_FALLBACK_POLICY", "first")
        monkeypatch.setattr(ProductionConfig, "STORE_NAMESPACE", "classroom-store")
        ProductionConfig.validate()

    def test_collects_every_error(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "AUTOSYNC_SECONDS", 0)
        monkeypatch.setattr(ProductionConfig, "TEACHER_FALLBACK_POLICY", "coin_flip")
        monkeypatch.setattr(ProductionConfig, "STORE_NAMESPACE", "")
        with pytest.raises(RuntimeError) as excinfo:
            ProductionConfig.validate()
        message = str(excinfo.value)
        assert "AUTOSYNC_SECONDS" in message
        assert "TEACHER_FALLBACK_POLICY" in message
        assert "STORE_NAMESPACE" in message

    def test_load_config_validates_production(self, monkeypatch):
        monkeypatch.setenv("STORE_ENV", "production")
        monkeypatch.setattr(ProductionConfig, "TEACHER_FALLBACK_POLICY", "coin_flip")
        with pytest.raises(RuntimeError):
            load_config()


class TestLogging:
    def test_json_formatter(self):
        record = logging.LogRecord("repository", logging.WARNING, __file__, 1, "sync %s", ("failed",), None)
        entry = json.loads(JSONFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "repository"
        assert entry["message"] == "sync failed"
        assert "exception" not in entry

    def test_json_formatter_includes_exception(self):
        try:
            raise ValueError("bad shape")
        except ValueError:
            record = logging.LogRecord("models", logging.ERROR, __file__, 1, "oops", (), sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad shape" in entry["exception"]

    def test_init_logging_json(self, restore_root_logger):
        init_logging({"LOG_FORMAT": "json", "LOG_LEVEL": "debug"})
        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("apscheduler").level == logging.WARNING

    def test_init_logging_text_and_bad_level(self, restore_root_logger):
        init_logging({"LOG_FORMAT": "text", "LOG_LEVEL": "chatty"})
        root = restore_root_logger
        assert root.level == logging.INFO
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_json_entries_carry_namespace(self, restore_root_logger):
        init_logging({"LOG_FORMAT": "json", "STORE_NAMESPACE": "school-a"})
        handler = restore_root_logger.handlers[0]
        record = logging.LogRecord("repository", logging.INFO, __file__, 1, "synced", (), None)
        assert handler.filter(record)
        entry = json.loads(handler.format(record))
        assert entry["namespace"] == "school-a"

    def test_text_entries_carry_namespace(self, restore_root_logger):
        init_logging({"LOG_FORMAT": "text", "STORE_NAMESPACE": "school-a"})
        handler = restore_root_logger.handlers[0]
        record = logging.LogRecord("repository", logging.INFO, __file__, 1, "synced", (), None)
        handler.filter(record)
        assert "school-a repository: synced" in handler.format(record)

    def test_filter_keeps_explicit_namespace(self):
        record = logging.LogRecord("kv_store", logging.INFO, __file__, 1, "x", (), None)
        record.namespace = "other"
        assert StoreContextFilter("school-a").filter(record) is True
        assert record.namespace == "other"

    def test_json_formatter_omits_empty_namespace(self):
        record = logging.LogRecord("repository", logging.INFO, __file__, 1, "x", (), None)
        StoreContextFilter("").filter(record)
        assert "namespace" not in json.loads(JSONFormatter().format(record))
