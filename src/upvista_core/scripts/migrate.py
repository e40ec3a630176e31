"""Apply the store schema migrations."""
from __future__ import annotations

import os

from alembic import command
from alembic.config import Config

from upvista_core.core.settings import settings

MIGRATIONS_DIR = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "..", "..", "migrations")
)


def build_config(database_url: str | None = None) -> Config:
    """Return an Alembic config pointed at the migrations folder and database."""
    url = database_url or settings.database_url
    if not url:
        raise RuntimeError("DATABASE_URL must be set to run migrations")
    cfg = Config(os.path.join(MIGRATIONS_DIR, "alembic.ini"))
    # Alembic runs synchronously; use the psycopg driver.
    cfg.set_main_option("sqlalchemy.url", url.replace("+psycopg_async", "+psycopg"))
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    return cfg


def run_upgrade_head() -> None:
    command.upgrade(build_config(), "head")


if __name__ == "__main__":
    run_upgrade_head()
