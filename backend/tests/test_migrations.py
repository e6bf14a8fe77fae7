# tests/test_migrations.py
from __future__ import annotations

import logging

from sqlalchemy import create_engine, inspect, text

from tenantdesk.core.config import settings
from tenantdesk.db import bootstrap


def test_startup_upgrade_keeps_app_log_level(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    monkeypatch.setattr(settings, "DATABASE_URL_SYNC", url)

    root = logging.getLogger()
    previous = root.level
    root.setLevel(logging.INFO)
    try:
        bootstrap._upgrade_head()
        assert root.level == logging.INFO
    finally:
        root.setLevel(previous)

    engine = create_engine(url)
    try:
        tables = set(inspect(engine).get_table_names())
        assert {"tenants", "users", "projects", "tasks", "audit_logs", "app_status"} <= tables
        with engine.connect() as conn:
            status = conn.execute(text("SELECT value FROM app_status WHERE key = 'seed_status'")).scalar()
        assert status == bootstrap.SEED_PENDING
    finally:
        engine.dispose()
