from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from loguru import logger

from todo_calendar.logging_setup import setup_logging


def _load_env() -> None:
    env_path = find_dotenv(usecwd=True)
    if env_path:
        logger.info("Loaded .env from {}", env_path)
        load_dotenv(env_path, override=True)
    else:
        logger.warning("No .env found")


def _run_migrations() -> None:
    from alembic import command
    from alembic.config import Config

    from todo_calendar.db.session import build_database_url

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(Path(__file__).resolve().parent / "db" / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", build_database_url())
    command.upgrade(alembic_cfg, "head")


def main() -> None:
    _load_env()
    setup_logging()

    # Settings are read after .env is loaded.
    from todo_calendar.config import settings
    from todo_calendar.recurring.manager import CalendarManager
    from todo_calendar.storage.sql_store import SqlKeyValueStore

    Path(settings.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
    _run_migrations()

    manager = CalendarManager(SqlKeyValueStore())
    total = manager.generate_instances(settings.generation_days_ahead)
    if total is None:
        logger.error("Calendar generation failed")
        raise SystemExit(1)
    removed = manager.cleanup_old_tasks(settings.cleanup_max_age_days)
    logger.info("Calendar maintenance done: total={} removed={} stats={}", total, removed, manager.get_stats())


if __name__ == "__main__":
    main()
