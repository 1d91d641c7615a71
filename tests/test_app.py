"""Tests for the create_store() composition root."""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from kv_store import Scope
from repository import Repository
from scheduler import ManualScheduler
from storage_backend import SQLiteBackend


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestCreateStore:
    def test_testing_store(self):
        from app import create_store
        repo = create_store({"STORE_NAMESPACE": "app-test"})
        assert isinstance(repo, Repository)
        assert isinstance(repo.scheduler, ManualScheduler)
        assert isinstance(repo.store._backends[Scope.DURABLE], SQLiteBackend)
        assert repo.store.namespace == "app-test"
        assert repo.autosync_running
        assert repo.validate().ok

    def test_settings_reach_the_repository(self):
        from app import create_store
        repo = create_store({"AUTOSYNC_SECONDS": 5, "TEACHER_FALLBACK_POLICY": "least_loaded"})
        assert repo.autosync_seconds == 5
        assert repo.scheduler.advance(5) == 1
        assert repo.store.get(Scope.DURABLE, "accounts") is not None

    def test_unknown_policy_rejected(self):
        from app import create_store
        with pytest.raises(ValueError):
            create_store({"TEACHER_FALLBACK_POLICY": "random"})

    def test_data_survives_restart(self, db_path):
        from app import create_store
        repo = create_store({"STORE_DATABASE": db_path})
        repo.remove("accounts", "parent-002")
        repo.destroy()

        reopened = create_store({"STORE_DATABASE": db_path})
        assert reopened.accounts.get("parent-002") is None
        assert len(reopened.accounts) == 9

    def test_env_config_when_no_overrides(self, monkeypatch):
        from app import create_store
        monkeypatch.setenv("STORE_ENV", "testing")
        repo = create_store()
        assert isinstance(repo.scheduler, ManualScheduler)

    def test_final_flush_registered_outside_tests(self):
        from app import create_store
        with patch("app.atexit.register") as register, \
                patch("app.init_scheduler", return_value=ManualScheduler()):
            repo = create_store({"TESTING": False})
        register.assert_called_once_with(repo.destroy)

    def test_no_exit_hook_in_tests(self):
        from app import create_store
        with patch("app.atexit.register") as register:
            create_store({})
        register.assert_not_called()

    def test_destroy_shuts_down_its_scheduler(self):
        from app import create_store
        repo = create_store({})
        with patch.object(repo.scheduler, "shutdown") as shutdown:
            repo.destroy()
        shutdown.assert_called_once_with()
