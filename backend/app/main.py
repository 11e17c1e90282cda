# -*- coding: utf-8 -*-
"""FastAPI 应用入口：网文情节线状态与一致性检查后端。"""
from contextlib import asynccontextmanager
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

load_dotenv()

from backend.database import close_engine, init_sqlite_async  # noqa: E402
from backend.routers import chapters, characters, consistency, evolution, novels, plotlines  # noqa: E402
from backend.services.errors import ServiceError  # noqa: E402
from backend.utils.logger import get_logger  # noqa: E402

logger = get_logger("backend")


@asynccontextmanager
async def lifespan(app: FastAPI):
    import backend.models  # noqa: F401  注册 ORM 表后再建表
    await init_sqlite_async()
    logger.info("数据库已初始化")
    yield
    await close_engine()


app = FastAPI(
    title="NovelState API",
    description="网文情节线状态演化与一致性检查后端（SQLite）",
    lifespan=lifespan,
)

app.include_router(novels.router)
app.include_router(characters.router)
app.include_router(chapters.router)
app.include_router(plotlines.router)
app.include_router(consistency.router)
app.include_router(evolution.router)


# ---------- 统一错误响应 {success: false, error, details?} ----------

def _failure(status_code: int, error: str, details: Optional[Any] = None) -> JSONResponse:
    content = {"success": False, "error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s 失败: %s", request.method, request.url.path, exc.message)
    return _failure(exc.status_code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _failure(400, "Invalid request data", exc.errors())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s 未处理异常", request.method, request.url.path)
    return _failure(500, "Internal server error")


@app.get("/health")
async def health():
    """健康检查。"""
    return {"status": "ok"}
