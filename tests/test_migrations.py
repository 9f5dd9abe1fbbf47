"""
Migration integrity: a single linear chain, and the schema it builds
matches what the application expects.
"""
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text

from core.database import Base, engine

API_ROOT = Path(__file__).resolve().parents[1]
EXPECTED_HEADS = {"001"}


@pytest.fixture
def alembic_config():
    # No ini file: keeps alembic from reconfiguring application logging
    cfg = Config()
    cfg.set_main_option("script_location", str(API_ROOT / "alembic"))
    return cfg


def test_single_head_and_root(alembic_config):
    script = ScriptDirectory.from_config(alembic_config)
    assert set(script.get_heads()) == EXPECTED_HEADS

    roots = [r.revision for r in script.walk_revisions() if r.down_revision is None]
    assert len(roots) == 1, f"new migrations must chain off the head, found roots {roots}"


def test_upgrade_builds_model_tables(alembic_config):
    Base.metadata.drop_all(bind=engine)
    try:
        command.upgrade(alembic_config, "head")

        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        assert set(Base.metadata.tables) <= tables

        for name, table in Base.metadata.tables.items():
            migrated = {col["name"] for col in inspector.get_columns(name)}
            assert migrated == set(table.columns.keys()), name

        unique = {uc["name"] for uc in inspector.get_unique_constraints("coach_athlete")}
        assert "uq_coach_athlete_pair" in unique

        command.downgrade(alembic_config, "base")
        remaining = set(inspect(engine).get_table_names())
        assert not (set(Base.metadata.tables) & remaining)
    finally:
        with engine.begin() as conn:
            conn.execute(text("DROP TABLE IF EXISTS alembic_version"))
