"""Migration status checker.

Called during application startup so that a database that was never
migrated, or is behind the Alembic head, fails loudly instead of producing
cryptic errors on the first request.
"""

from pathlib import Path
from typing import Any

from alembic import script
from alembic.config import Config
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine

from voicescribe.core.logging import get_logger

logger = get_logger(__name__)

ALEMBIC_INI_PATH = Path(__file__).resolve().parents[3] / "alembic.ini"


def get_head_revision(alembic_ini_path: Path = ALEMBIC_INI_PATH) -> str | None:
    """Return the latest revision known to the migration scripts."""
    if not alembic_ini_path.exists():
        logger.error("alembic_ini_not_found", path=str(alembic_ini_path))
        return None

    alembic_cfg = Config(str(alembic_ini_path))
    alembic_cfg.set_main_option(
        "script_location", str(alembic_ini_path.parent / "alembic")
    )
    script_dir = script.ScriptDirectory.from_config(alembic_cfg)
    return script_dir.get_current_head()


async def check_migration_status(
    engine: AsyncEngine,
    alembic_ini_path: Path = ALEMBIC_INI_PATH,
) -> dict[str, Any]:
    """Check if database migrations are up to date.

    Returns:
        Dictionary with:
        - alembic_table_exists: whether the alembic_version table exists
        - current_revision: current database revision
        - head_revision: latest available revision
        - is_up_to_date: whether the database is at the latest revision
    """
    result: dict[str, Any] = {
        "alembic_table_exists": False,
        "current_revision": None,
        "head_revision": None,
        "is_up_to_date": False,
    }

    async with engine.connect() as conn:
        table_exists = await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).has_table("alembic_version")
        )
        result["alembic_table_exists"] = table_exists

        if not table_exists:
            logger.warning("alembic_version_table_missing")
            return result

        current_rev = await conn.scalar(text("SELECT version_num FROM alembic_version"))
        result["current_revision"] = current_rev

    head_revision = get_head_revision(alembic_ini_path)
    result["head_revision"] = head_revision
    result["is_up_to_date"] = head_revision is not None and current_rev == head_revision

    if result["is_up_to_date"]:
        logger.info("migrations_up_to_date", revision=current_rev)
    else:
        logger.warning(
            "migrations_out_of_date",
            current_revision=current_rev,
            head_revision=head_revision,
        )

    return result


async def require_migrations(
    engine: AsyncEngine,
    fail_on_outdated: bool = True,
    alembic_ini_path: Path = ALEMBIC_INI_PATH,
) -> None:
    """Check migration status and optionally fail if not up to date.

    Raises:
        RuntimeError: If migrations are not up to date and fail_on_outdated=True
    """
    status = await check_migration_status(engine, alembic_ini_path)

    if not status["alembic_table_exists"]:
        error_msg = (
            "DATABASE NOT INITIALIZED: the alembic_version table does not exist. "
            "Run `alembic upgrade head`."
        )
    elif not status["is_up_to_date"]:
        error_msg = (
            f"DATABASE MIGRATIONS OUT OF DATE: current revision "
            f"{status['current_revision']}, head revision {status['head_revision']}. "
            f"Run `alembic upgrade head`."
        )
    else:
        return

    logger.error("migration_check_failed", detail=error_msg)
    if fail_on_outdated:
        raise RuntimeError(error_msg)
