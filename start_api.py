#!/usr/bin/env python3
"""
Container entrypoint: wait for Postgres, migrate to head, seed the demo
operator, then exec uvicorn.
"""
import logging
import os
import sys
import time

import psycopg2
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings

logger = logging.getLogger("start_api")


def wait_for_database(url: str, timeout_s: int) -> None:
    if not url.startswith("postgresql"):
        return
    # libpq does not understand the SQLAlchemy driver suffix
    dsn = url.replace("postgresql+psycopg2://", "postgresql://")
    deadline = time.time() + timeout_s
    while True:
        try:
            psycopg2.connect(dsn).close()
            logger.info("database is ready")
            return
        except psycopg2.OperationalError as e:
            if time.time() > deadline:
                logger.error("timed out after %ss waiting for database: %s", timeout_s, e)
                raise
            time.sleep(1)


def migrate(url: str) -> None:
    cfg = Config(os.path.join(os.path.dirname(os.path.abspath(__file__)), "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", url)
    command.upgrade(cfg, "head")


def seed(url: str) -> None:
    # Fresh engine so seeding sees the tables created by the migration above.
    engine = create_engine(url, pool_pre_ping=True)
    try:
        from app.seed import run
        run(sessionmaker(bind=engine, autocommit=False, autoflush=False)())
    finally:
        engine.dispose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    url = settings.DATABASE_URL
    wait_for_database(url, int(os.getenv("DB_WAIT_TIMEOUT", "60")))
    migrate(url)
    if os.getenv("SEED_DEMO_DATA", "1") == "1":
        seed(url)
    port = os.getenv("PORT", "8000")
    os.execv(
        sys.executable,
        [sys.executable, "-m", "uvicorn", "app.main:app", "--host", "0.0.0.0", "--port", port],
    )


if __name__ == "__main__":
    main()
