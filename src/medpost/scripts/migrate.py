# src/medpost/scripts/migrate.py
from __future__ import annotations

import os

from alembic import command
from alembic.config import Config

from medpost.core.settings import settings

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", ".."))


def build_config(database_url: str | None = None) -> Config:
    """Return an Alembic config pointing at the project's migrations."""
    cfg = Config(os.path.join(PROJECT_ROOT, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(PROJECT_ROOT, "migrations"))
    # Alembic runs synchronously, so async driver URLs are swapped for psycopg.
    cfg.set_main_option("sqlalchemy.url", database_url or settings.database_url_sync)
    return cfg


def run_upgrade_head(database_url: str | None = None) -> None:
    command.upgrade(build_config(database_url), "head")


if __name__ == "__main__":
    run_upgrade_head()
