# tests/test_migrate.py
from __future__ import annotations

import pytest
from alembic.script import ScriptDirectory

from upvista_core.core.settings import settings
from upvista_core.scripts.migrate import MIGRATIONS_DIR, build_config


def test_build_config_points_at_migrations() -> None:
    cfg = build_config("postgresql+psycopg_async://user:pw@db/upvista")

    assert cfg.get_main_option("sqlalchemy.url") == "postgresql+psycopg://user:pw@db/upvista"
    assert cfg.get_main_option("script_location") == MIGRATIONS_DIR


def test_build_config_requires_a_database_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "database_url", None)

    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        build_config()


def test_schema_revision_is_the_single_head() -> None:
    script = ScriptDirectory.from_config(build_config("postgresql+psycopg://localhost/upvista"))

    assert script.get_heads() == ["5c1e2a9d7b40"]
    assert script.get_revision("5c1e2a9d7b40").down_revision is None
