"""Tests for database configuration and session management."""

import pytest
from sqlalchemy import MetaData, inspect, text
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

import media_assets.db.database as db_module
from media_assets.db import (
    create_db_engine,
    create_session_factory,
    drop_db,
    get_db,
    init_db,
    uses_single_connection,
)
from media_assets.models import AssetRecord


@pytest.fixture
def temp_engine():
    """Create an empty in-memory SQLite engine."""
    engine = create_db_engine("sqlite://")
    yield engine
    engine.dispose()


class TestCreateEngine:
    """Test engine construction."""

    def test_memory_sqlite_shares_one_connection(self, temp_engine):
        assert isinstance(temp_engine.pool, StaticPool)

    def test_uses_single_connection(self, temp_engine, tmp_path):
        assert uses_single_connection(temp_engine)

        file_engine = create_db_engine(f"sqlite:///{tmp_path / 'file.db'}")
        try:
            assert not uses_single_connection(file_engine)
        finally:
            file_engine.dispose()

    def test_sqlite_pragmas(self, temp_engine):
        with temp_engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_sqlite_data_directory_creation(self, tmp_path):
        """Test that the SQLite data directory is created automatically."""
        db_path = tmp_path / "subdir" / "test.db"
        engine = create_db_engine(f"sqlite:///{db_path}")
        try:
            assert db_path.parent.is_dir()
        finally:
            engine.dispose()

    def test_file_database_is_shared_between_sessions(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'shared.db'}")
        try:
            init_db(engine)
            factory = create_session_factory(engine)
            with factory() as first, factory() as second:
                assert first.query(AssetRecord).count() == 0
                assert second.query(AssetRecord).count() == 0
        finally:
            engine.dispose()


class TestDatabaseOperations:
    """Test init_db and drop_db."""

    def test_init_db_creates_tables(self, temp_engine):
        """Test that init_db creates all tables."""
        assert inspect(temp_engine).get_table_names() == []

        init_db(temp_engine)

        assert inspect(temp_engine).get_table_names() == ["assets"]

    def test_reflect_tables(self, temp_engine):
        """Test reflecting tables from the database."""
        init_db(temp_engine)

        metadata = MetaData()
        metadata.reflect(bind=temp_engine)

        assets = metadata.tables["assets"]
        assert assets.columns["id"].primary_key
        assert assets.columns["id"].type.length == 32  # uuid4 hex
        for column in ("parent_id", "original_key", "rendition_keys", "is_primary", "order", "checksum"):
            assert column in assets.columns

    def test_init_db_is_idempotent(self, temp_engine):
        init_db(temp_engine)
        init_db(temp_engine)
        assert inspect(temp_engine).get_table_names() == ["assets"]

    def test_drop_db_removes_tables(self, temp_engine):
        """Test that drop_db removes all tables."""
        init_db(temp_engine)
        assert len(inspect(temp_engine).get_table_names()) > 0

        drop_db(temp_engine)

        assert inspect(temp_engine).get_table_names() == []


class TestDatabaseSession:
    """Test database session management."""

    def test_get_db_dependency(self, temp_engine, monkeypatch):
        """Test the get_db generator."""
        init_db(temp_engine)
        factory = create_session_factory(temp_engine)
        monkeypatch.setattr(db_module, "get_session_factory", lambda: factory)

        db_gen = get_db()
        session = next(db_gen)
        try:
            assert isinstance(session, Session)
            assert session.query(AssetRecord).all() == []
        finally:
            db_gen.close()

    def test_uncommitted_changes_are_discarded(self, temp_engine, monkeypatch):
        """Test that closing the session drops uncommitted work."""
        init_db(temp_engine)
        factory = create_session_factory(temp_engine)
        monkeypatch.setattr(db_module, "get_session_factory", lambda: factory)

        db_gen = get_db()
        session = next(db_gen)
        session.execute(
            text(
                "INSERT INTO assets (id, parent_id, original_key, rendition_keys, is_primary, "
                '"order", created_at, content_type, format, width, height, size_bytes, checksum) '
                "VALUES ('x', 'p', 'k', '{}', 0, 0, '2026-10-19 00:00:00', 'image/png', 'png', "
                "1, 1, 1, 'c')"
            )
        )
        with pytest.raises(StopIteration):
            next(db_gen)

        with factory() as new_session:
            assert new_session.query(AssetRecord).count() == 0
