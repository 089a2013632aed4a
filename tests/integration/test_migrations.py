"""
Alembic migration tests for both services.

Each service keeps its own version table so the two can share one
database; the migrated schema must match the ORM models.
"""
import pytest
from sqlalchemy import inspect

from services.agent_controller import models as controller_models
from services.agent_controller.migrations import MIGRATIONS_DIR as CONTROLLER_MIGRATIONS
from services.agent_manager import models as manager_models
from services.agent_manager.migrations import MIGRATIONS_DIR as MANAGER_MIGRATIONS
from shared.db import Database, downgrade_migrations, run_migrations

pytestmark = pytest.mark.integration

SERVICES = [
    pytest.param(MANAGER_MIGRATIONS, manager_models.Base, "agent_manager_alembic_version", id="agent-manager"),
    pytest.param(
        CONTROLLER_MIGRATIONS, controller_models.Base, "agent_controller_alembic_version", id="agent-controller"
    ),
]


@pytest.fixture
def database(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'migrations.db'}")
    yield database
    database.dispose()


@pytest.mark.parametrize("migrations, base, version_table", SERVICES)
class TestMigrations:
    """Upgrade and downgrade against a fresh SQLite file."""

    def test_upgrade_matches_models(self, database, migrations, base, version_table):
        run_migrations(migrations, database.engine)

        inspector = inspect(database.engine)
        tables = set(inspector.get_table_names())
        assert version_table in tables
        for name, table in base.metadata.tables.items():
            assert name in tables
            migrated = {column["name"] for column in inspector.get_columns(name)}
            assert migrated == {column.name for column in table.columns}, name

    def test_upgrade_is_idempotent(self, database, migrations, base, version_table):
        run_migrations(migrations, database.engine)
        run_migrations(migrations, database.engine)
        assert set(base.metadata.tables) <= set(inspect(database.engine).get_table_names())

    def test_downgrade_to_base(self, database, migrations, base, version_table):
        run_migrations(migrations, database.engine)
        downgrade_migrations(migrations, database.engine)

        remaining = set(inspect(database.engine).get_table_names())
        assert remaining.isdisjoint(base.metadata.tables)


def test_services_share_a_database(database):
    """Separate version tables let both services migrate the same database."""
    run_migrations(MANAGER_MIGRATIONS, database.engine)
    run_migrations(CONTROLLER_MIGRATIONS, database.engine)

    tables = set(inspect(database.engine).get_table_names())
    assert {"agents", "clients", "agent_manager_alembic_version", "agent_controller_alembic_version"} <= tables
