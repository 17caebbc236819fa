from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from app.core.config import settings
from app.db.session import Base

# Registers every table on Base.metadata for autogenerate.
from app.models import booking, dive_session, notification, operator, payment_event, user  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# start_api.py passes the runtime url explicitly; otherwise fall back to app settings.
database_url = config.get_main_option("sqlalchemy.url") or settings.DATABASE_URL
target_metadata = Base.metadata


def run_offline(url: str) -> None:
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


def run_online(url: str) -> None:
    engine = create_engine(url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline(database_url)
else:
    run_online(database_url)
