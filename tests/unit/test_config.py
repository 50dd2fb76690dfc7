from __future__ import annotations

import pytest
from pydantic import ValidationError

from gradebook.config import Settings

ENV_VARS = (
    "DB_HOST",
    "DB_PORT",
    "DB_USER",
    "DB_PASSWORD",
    "DB_NAME",
    "STORE_BACKEND",
    "DEFAULT_PAGE_SIZE",
    "ENFORCE_SCORE_BOUND",
)


def test_defaults(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    settings = Settings(_env_file=None)

    assert settings.store_backend == "postgres"
    assert settings.default_page_size == 50
    assert settings.enforce_score_bound is False
    assert settings.dsn.endswith("@localhost:5432/gradebook")


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DB_HOST", "db.internal")
    monkeypatch.setenv("DB_NAME", "grades")
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("ENFORCE_SCORE_BOUND", "true")
    monkeypatch.setenv("MAX_PAGE_SIZE", "100")

    settings = Settings(_env_file=None)

    assert settings.store_backend == "memory"
    assert settings.enforce_score_bound is True
    assert settings.max_page_size == 100
    assert "@db.internal:5432/grades" in settings.dsn


def test_unknown_backend_is_rejected(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "mongo")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
