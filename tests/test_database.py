# -*- coding: utf-8 -*-
"""数据库连接地址解析。"""
from pathlib import Path

from backend.database.database import DEFAULT_SQLITE_PATH, database_url, sqlite_file, utcnow


class TestDatabaseUrl:
    def test_default_sqlite_file(self):
        assert database_url({}) == f"sqlite+aiosqlite:///{DEFAULT_SQLITE_PATH}"

    def test_sqlite_path(self):
        assert database_url({"SQLITE_PATH": "/tmp/a.db"}) == "sqlite+aiosqlite:////tmp/a.db"

    def test_database_url_wins(self):
        env = {"DATABASE_URL": "sqlite+aiosqlite:///:memory:", "SQLITE_PATH": "/tmp/a.db"}
        assert database_url(env) == "sqlite+aiosqlite:///:memory:"


class TestSqliteFile:
    def test_file(self):
        assert sqlite_file("sqlite+aiosqlite:////tmp/data/novels.db") == Path("/tmp/data/novels.db")

    def test_memory(self):
        assert sqlite_file("sqlite+aiosqlite:///:memory:") is None

    def test_other_backend(self):
        assert sqlite_file("postgresql+asyncpg://u:p@localhost/novels") is None


def test_utcnow_is_naive():
    assert utcnow().tzinfo is None
