import importlib.util
from pathlib import Path
from unittest.mock import Mock

import pytest

from dochub.db.base import Base
from dochub.models import file, folder, user  # noqa: F401

MIGRATION = Path(__file__).resolve().parents[1] / "alembic" / "versions" / "001_initial.py"


@pytest.fixture
def recorded_upgrade(monkeypatch):
    spec = importlib.util.spec_from_file_location("initial_migration", MIGRATION)
    migration = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(migration)

    op = Mock()
    op.f.side_effect = lambda name: name
    monkeypatch.setattr(migration, "op", op)
    migration.upgrade()
    return op


def test_initial_migration_creates_every_mapped_table(recorded_upgrade):
    created = {call.args[0] for call in recorded_upgrade.create_table.call_args_list}
    assert created == set(Base.metadata.tables)


def test_seeded_roles_leave_ids_to_the_sequence(recorded_upgrade):
    table, rows = recorded_upgrade.bulk_insert.call_args.args
    assert "id" not in table.c
    assert [row["name"] for row in rows] == ["Admin", "User"]
    assert all("id" not in row for row in rows)
