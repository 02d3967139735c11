from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from apexchat.core.database import Database

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _current_env() -> str:
    return os.getenv("ENVIRONMENT", os.getenv("ENV", "dev")).strip().lower()


def _is_production() -> bool:
    return _current_env() in {"prod", "production"}


def alembic_url(database_url: str) -> str:
    """Escape a database URL for alembic's ConfigParser, which treats % as interpolation."""
    return database_url.replace("%", "%%")


def _require_alembic_config(alembic_config_path: Path) -> Config:
    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, alembic_config_path)
        raise RuntimeError("alembic config not found")
    return Config(str(alembic_config_path))


def validate_database_environment(database: Database) -> None:
    if _is_production() and database.is_sqlite:
        logger.critical("%s SQLite is forbidden in production", MIGRATIONS_PREFIX)
        raise RuntimeError("SQLite is forbidden in production environment")


def should_auto_apply_migrations() -> bool:
    """AUTO_APPLY_MIGRATIONS wins when set; otherwise only production upgrades on boot."""
    raw = os.getenv("AUTO_APPLY_MIGRATIONS", "").strip().lower()
    if raw in _FALSE_VALUES:
        return False
    if raw in _TRUE_VALUES:
        return True
    return _is_production()


def apply_migrations(database: Database, *, alembic_config_path: Path) -> None:
    if not should_auto_apply_migrations():
        logger.info("%s auto migration skipped env=%s", MIGRATIONS_PREFIX, _current_env())
        return

    _require_alembic_config(alembic_config_path)
    alembic_config_path = alembic_config_path.resolve()

    logger.info("%s applying migrations to head", MIGRATIONS_PREFIX)
    # separate process: alembic's env.py reconfigures logging through fileConfig
    try:
        subprocess.run(
            [sys.executable, "-m", "alembic", "-c", str(alembic_config_path), "upgrade", "head"],
            check=True,
            capture_output=True,
            text=True,
            env={**os.environ, "DATABASE_URL": database.url},
            cwd=str(alembic_config_path.parent),
        )
    except subprocess.CalledProcessError as exc:
        logger.critical(
            "%s migration apply failed returncode=%s stderr=%s",
            MIGRATIONS_PREFIX,
            exc.returncode,
            (exc.stderr or "").strip(),
        )
        raise RuntimeError("Automatic migration failed") from exc

    logger.info("%s migrations applied", MIGRATIONS_PREFIX)


def ensure_migrations_applied(database: Database, *, alembic_config_path: Path) -> None:
    """Refuse to serve webhooks against a schema behind the migration head.

    SQLite databases are built with ``create_all`` and carry no revision.
    """
    if _current_env() == "test" or database.is_sqlite:
        logger.info("%s skipped migration check env=%s", MIGRATIONS_PREFIX, _current_env())
        return

    alembic_cfg = _require_alembic_config(alembic_config_path)
    expected_heads = set(ScriptDirectory.from_config(alembic_cfg).get_heads())

    with database.engine.connect() as connection:
        current_heads = set(MigrationContext.configure(connection).get_current_heads())

    if not current_heads:
        logger.critical("%s database has no alembic revision", MIGRATIONS_PREFIX)
        raise RuntimeError("Database has no migration state")

    if current_heads != expected_heads:
        logger.critical(
            "%s pending migration detected current=%s expected=%s",
            MIGRATIONS_PREFIX,
            sorted(current_heads),
            sorted(expected_heads),
        )
        raise RuntimeError("Pending migrations detected")

    logger.info("%s migration state verified heads=%s", MIGRATIONS_PREFIX, sorted(current_heads))
