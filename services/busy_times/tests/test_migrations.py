"""
Tests that the Alembic migrations build the same schema as the models.
"""

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from services.busy_times.models import Base, get_engine
from services.busy_times.tests.test_base import BaseBusyTimesTest

ALEMBIC_DIR = Path(__file__).resolve().parents[1] / "alembic"


class TestMigrations(BaseBusyTimesTest):
    def setup_method(self, method=None):
        super().setup_method(method)
        # Start from an empty database rather than the create_all schema
        Base.metadata.drop_all(get_engine())

        self.alembic_config = Config()
        self.alembic_config.set_main_option("script_location", str(ALEMBIC_DIR))

    def test_upgrade_matches_models(self):
        command.upgrade(self.alembic_config, "head")

        inspector = inspect(get_engine())
        assert set(inspector.get_table_names()) == set(Base.metadata.tables) | {
            "alembic_version"
        }
        for table in Base.metadata.sorted_tables:
            migrated = {column["name"] for column in inspector.get_columns(table.name)}
            assert migrated == set(table.columns.keys()), table.name

    def test_downgrade_removes_tables(self):
        command.upgrade(self.alembic_config, "head")
        command.downgrade(self.alembic_config, "base")

        assert set(inspect(get_engine()).get_table_names()) == {"alembic_version"}
