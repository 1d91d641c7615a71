"""
Classroom Store: composition root.

Builds the embedded store from configuration: logging, storage media,
KeyValueStore, scheduler and Repository. Host code calls create_store()
once and keeps the returned Repository for the life of the process.
"""

from __future__ import annotations

import atexit
import logging
from typing import Any

from config import TestingConfig, load_config
from integrity import get_teacher_policy
from kv_store import KeyValueStore
from logging_config import init_logging
from repository import Repository
from scheduler import init_scheduler
from storage_backend import MemoryBackend, create_durable_backend

logger = logging.getLogger(__name__)


def create_store(test_config: dict[str, Any] | None = None) -> Repository:
    # Load config
    if test_config is not None:
        settings = {name: getattr(TestingConfig, name) for name in dir(TestingConfig) if name.isupper()}
        settings.update(test_config)
    else:
        settings = load_config()

    # Structured logging
    init_logging(settings)

    # Storage: durable medium from config, transient scope lives in memory
    store = KeyValueStore(
        durable=create_durable_backend(settings),
        transient=MemoryBackend(),
        namespace=settings["STORE_NAMESPACE"],
    )

    repo = Repository(
        store,
        scheduler=init_scheduler(settings),
        autosync_seconds=settings["AUTOSYNC_SECONDS"],
        teacher_policy=get_teacher_policy(settings["TEACHER_FALLBACK_POLICY"]),
        owns_scheduler=True,
    )

    # Final flush before the interpreter exits
    if not settings.get("TESTING"):
        atexit.register(repo.destroy)

    logger.info("Classroom store ready (namespace=%s)", store.namespace)
    return repo
