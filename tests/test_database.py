"""Tests for session management and the Alembic migration."""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from database import build_session_factory, check_connection, init_db, session_scope
from models import Base, LedgerState

MIGRATION = (
    Path(__file__).resolve().parent.parent
    / "alembic" / "versions" / "20261017_000001_create_subscription_ledger_tables.py"
)


@pytest.fixture
def bare_engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    yield engine
    engine.dispose()


def _load_migration():
    module_spec = importlib.util.spec_from_file_location("create_subscription_ledger_tables", MIGRATION)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def _run(engine, step):
    with engine.begin() as conn:
        context = MigrationContext.configure(conn)
        with Operations.context(context):
            step()


class TestSessionScope:
    def test_commits_on_success(self, session_factory):
        with session_scope(session_factory) as db:
            db.add(LedgerState(owner="o", fee_collector="o", custody_account="v", total_collected=0))

        with session_scope(session_factory) as db:
            assert db.query(LedgerState).count() == 1

    def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            with session_scope(session_factory) as db:
                db.add(LedgerState(owner="o", fee_collector="o", custody_account="v", total_collected=0))
                db.flush()
                raise RuntimeError("boom")

        with session_scope(session_factory) as db:
            assert db.query(LedgerState).count() == 0


class TestDatabaseHelpers:
    def test_init_db_creates_tables(self, bare_engine):
        init_db(bare_engine)
        assert set(inspect(bare_engine).get_table_names()) == set(Base.metadata.tables)

    def test_check_connection(self, bare_engine):
        assert check_connection(bare_engine) is True

    def test_check_connection_failure(self):
        engine = create_engine("sqlite:////nonexistent-dir/ledger.db")
        assert check_connection(engine) is False


class TestMigration:
    def test_upgrade_matches_models(self, bare_engine):
        migration = _load_migration()

        _run(bare_engine, migration.upgrade)

        inspector = inspect(bare_engine)
        assert set(inspector.get_table_names()) == set(Base.metadata.tables)
        for name, table in Base.metadata.tables.items():
            migrated = {column["name"] for column in inspector.get_columns(name)}
            assert migrated == set(table.columns.keys()), name

    def test_migrated_schema_accepts_ledger_rows(self, bare_engine):
        migration = _load_migration()
        _run(bare_engine, migration.upgrade)
        factory = build_session_factory(bare_engine)

        with session_scope(factory) as db:
            db.add(LedgerState(owner="o", fee_collector="o", custody_account="v", total_collected=0))

        with session_scope(factory) as db:
            assert db.query(LedgerState).one().total_collected == 0

    def test_migrated_schema_rejects_shared_custody_account(self, bare_engine):
        migration = _load_migration()
        _run(bare_engine, migration.upgrade)
        factory = build_session_factory(bare_engine)

        with session_scope(factory) as db:
            db.add(LedgerState(owner="o", fee_collector="o", custody_account="v", total_collected=0))

        with pytest.raises(IntegrityError):
            with session_scope(factory) as db:
                db.add(LedgerState(owner="m", fee_collector="m", custody_account="v", total_collected=0))

    def test_downgrade_drops_everything(self, bare_engine):
        migration = _load_migration()
        _run(bare_engine, migration.upgrade)

        _run(bare_engine, migration.downgrade)

        assert inspect(bare_engine).get_table_names() == []
