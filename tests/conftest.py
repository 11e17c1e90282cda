# -*- coding: utf-8 -*-
"""测试公共 fixture：每个测试独立的临时 SQLite 数据库、会话与 HTTP 客户端。"""
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


# ---------- 数据库 ----------

@pytest.fixture
def tmp_db_path(tmp_path):
    return tmp_path / "test_novels.db"


@pytest_asyncio.fixture
async def engine(tmp_db_path):
    import backend.models  # noqa: F401
    from backend.database import Base

    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_db_path}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


# ---------- HTTP ----------

@pytest_asyncio.fixture
async def client(session_factory):
    """不触发 lifespan，会话依赖替换为临时库。"""
    from httpx import ASGITransport, AsyncClient

    from backend.app.main import app
    from backend.database import get_async_session

    async def override_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ---------- 样例数据 ----------

@pytest_asyncio.fixture
async def novel(session):
    from backend.schemas.novel import NovelCreate
    from backend.services.novel_service import create_novel

    n = await create_novel(session, NovelCreate(title="회귀한 검성", genre="REGRESSION", setting="MURIM_WORLD"))
    await session.commit()
    return n


@pytest_asyncio.fixture
async def other_novel(session):
    from backend.schemas.novel import NovelCreate
    from backend.services.novel_service import create_novel

    n = await create_novel(session, NovelCreate(title="재벌집 막내아들"))
    await session.commit()
    return n


@pytest.fixture
def timestamps():
    """按序递增的 naive UTC 时间，用于显式指定发展记录的先后。"""
    base = datetime(2024, 1, 1, 12, 0, 0)
    return [base + timedelta(minutes=i) for i in range(20)]
