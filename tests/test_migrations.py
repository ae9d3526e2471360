# mypy: ignore-errors
"""Tests for the schema migration and table bootstrap scripts."""

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

from ratwatch.core.settings import settings
from ratwatch.db.session import Base
from ratwatch.scripts import ensure_db
from ratwatch.scripts.migrate import MIGRATIONS_DIR, build_config


def _config(url):
    # No ini file, so the test run keeps its own logging configuration.
    cfg = Config()
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg


def test_build_config_points_at_migrations() -> None:
    cfg = build_config()
    assert cfg.get_main_option("script_location") == MIGRATIONS_DIR
    assert cfg.get_main_option("sqlalchemy.url")


def test_upgrade_matches_models(tmp_path) -> None:
    """The migrated schema has every table and column the models declare."""
    url = f"sqlite:///{tmp_path / 'migrated.db'}"

    command.upgrade(_config(url), "head")

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        assert set(Base.metadata.tables) <= set(inspector.get_table_names())
        for name, table in Base.metadata.tables.items():
            columns = {column["name"] for column in inspector.get_columns(name)}
            assert columns == set(table.columns.keys()), name
    finally:
        engine.dispose()


def test_upgrade_enforces_one_active_watch(tmp_path) -> None:
    """The migrated schema refuses a second active watch for the same slot."""
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    command.upgrade(_config(url), "head")
    row = {
        "group_id": 1,
        "channel_id": 2,
        "accused_user_id": 3,
        "initiator_user_id": 4,
        "origin_message_id": 0,
        "deadline": "2026-03-14 12:00:00",
        "created_at": "2026-03-14 11:00:00",
        "guilty_votes": 0,
        "not_guilty_votes": 0,
    }
    insert = text(
        "INSERT INTO watch (id, group_id, channel_id, accused_user_id, initiator_user_id, "
        "origin_message_id, deadline, state, created_at, guilty_votes, not_guilty_votes) "
        "VALUES (:id, :group_id, :channel_id, :accused_user_id, :initiator_user_id, "
        ":origin_message_id, :deadline, :state, :created_at, :guilty_votes, :not_guilty_votes)"
    )

    engine = create_engine(url)
    try:
        with engine.begin() as conn:
            conn.execute(insert, {**row, "id": "a" * 32, "state": "cleared_early"})
            conn.execute(insert, {**row, "id": "b" * 32, "state": "pending"})
        with pytest.raises(IntegrityError), engine.begin() as conn:
            conn.execute(insert, {**row, "id": "c" * 32, "state": "voting"})
    finally:
        engine.dispose()


def test_env_falls_back_to_app_database(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'app.db'}"
    monkeypatch.setattr(settings, "database_url", url)
    cfg = Config()
    cfg.set_main_option("script_location", MIGRATIONS_DIR)

    command.upgrade(cfg, "head")

    engine = create_engine(url)
    try:
        assert "watch" in inspect(engine).get_table_names()
    finally:
        engine.dispose()


def test_downgrade_drops_tables(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    cfg = _config(url)

    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")

    engine = create_engine(url)
    try:
        assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
    finally:
        engine.dispose()


def test_ensure_db_creates_tables(capsys) -> None:
    ensure_db.main([])
    ensure_db.main(["--drop-tables"])

    out = capsys.readouterr().out
    assert "[ensure_db] dropped all tables" in out
    assert out.count("[ensure_db] tables ready on sqlite") == 2
