# -*- coding: utf-8 -*-
"""数据库配置：SQLAlchemy 异步引擎与会话。"""
from .database import (
    AsyncSessionLocal,
    Base,
    close_engine,
    engine,
    get_async_session,
    init_sqlite_async,
    utcnow,
)

__all__ = [
    "AsyncSessionLocal",
    "Base",
    "close_engine",
    "engine",
    "get_async_session",
    "init_sqlite_async",
    "utcnow",
]
