# -*- coding: utf-8 -*-
"""
数据库：SQLAlchemy 异步引擎与会话。

连接地址优先取 DATABASE_URL（任意 async 驱动 URL），否则使用 SQLite 文件
SQLITE_PATH（默认项目下 data/novels.db，aiosqlite 驱动）。
表结构由 metadata.create_all 建立，不做迁移管理。
"""
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator, Mapping, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

DEFAULT_SQLITE_PATH = Path(__file__).resolve().parents[2] / "data" / "novels.db"


def database_url(env: Mapping[str, str] = os.environ) -> str:
    """DATABASE_URL > SQLITE_PATH > 默认 SQLite 文件。"""
    if env.get("DATABASE_URL"):
        return env["DATABASE_URL"]
    return f"sqlite+aiosqlite:///{env.get('SQLITE_PATH') or DEFAULT_SQLITE_PATH}"


def sqlite_file(url: str) -> Optional[Path]:
    """SQLite 文件库返回其路径；内存库或其他数据库返回 None。"""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or parsed.database in (None, "", ":memory:"):
        return None
    return Path(parsed.database)


def _flag(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in ("1", "true", "yes")


Base = declarative_base()

# SQL_ECHO=1 打印 SQL
engine = create_async_engine(database_url(), echo=_flag("SQL_ECHO"))
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


def utcnow() -> datetime:
    """naive UTC；SQLite 不存时区，所有时间列统一按此写入。"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def init_sqlite_async() -> None:
    """建表；SQLite 文件库先确保所在目录存在。"""
    path = sqlite_file(str(engine.url))
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_engine() -> None:
    await engine.dispose()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI 依赖：每个请求一个会话。
    服务层只 flush，请求正常结束时在这里统一 commit，出错则回滚。
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()
