# alembic/env.py
import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv

# Run from the project root: `alembic upgrade head`
if os.getcwd() not in sys.path:
    sys.path.insert(0, os.getcwd())

# DATABASE_URL must be in the environment before the session module is imported
load_dotenv()

from facility_compliance.db.session import engine  # noqa: E402
from facility_compliance.models import Base  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option("sqlalchemy.url", engine.url.render_as_string(hide_password=False))

MANAGED_TABLES = frozenset(Base.metadata.tables)


def include_object(object, name, type_, reflected, compare_to):
    # Autogenerate only diffs the compliance tables; anything else in the
    # database (alembic_version, tables owned by other services) is left alone.
    if type_ == "table":
        return name in MANAGED_TABLES
    if reflected and compare_to is None:
        return False
    return True


def skip_empty_revisions(context, revision, directives):
    if getattr(context.config.cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []


def _options() -> dict:
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        "include_object": include_object,
        "process_revision_directives": skip_empty_revisions,
        # SQLite needs copy-and-move for ALTER TABLE
        "render_as_batch": engine.url.get_backend_name() == "sqlite",
    }


if context.is_offline_mode():
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_options(),
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    with engine.connect() as connection:
        context.configure(connection=connection, **_options())
        with context.begin_transaction():
            context.run_migrations()
