# -*- coding: utf-8 -*-
"""

用法示例：
  # 建表（data/novels.db，或 SQLITE_PATH / DATABASE_URL 指定的位置）
  python main.py init-db

  # 启动 HTTP 服务
  python main.py serve --host 0.0.0.0 --port 8000

  # 情节线状态迁移：先预览，再执行（可重复执行）
  python main.py migrate-status --novel-id <novel_id> --preview
  python main.py migrate-status --novel-id <novel_id>

  # 一致性检查：单章或整本小说，--ai 追加 AI 复核
  python main.py check --chapter-id <chapter_id>
  python main.py check --novel-id <novel_id> --ai

  # 自动演化：单章或整本小说最近 3 章（需配置 AI）
  python main.py evolve --chapter-id <chapter_id>
"""
import argparse
import asyncio
import json

from dotenv import load_dotenv
load_dotenv()


def _print_json(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def cmd_init_db(args):
    """创建所有表。"""
    import backend.models  # noqa: F401  注册 ORM 表
    from backend.database import close_engine, engine, init_sqlite_async
    from backend.utils import get_logger

    async def run():
        await init_sqlite_async()
        await close_engine()

    asyncio.run(run())
    get_logger().info("数据库已初始化: %s", engine.url)


def cmd_serve(args):
    """以 uvicorn 启动 FastAPI 应用。"""
    import uvicorn

    uvicorn.run("backend.app.main:app", host=args.host, port=args.port, reload=args.reload)


def cmd_migrate_status(args):
    """情节线状态迁移；--preview 只读预览。"""
    import backend.models  # noqa: F401
    from backend.database import AsyncSessionLocal, close_engine, init_sqlite_async
    from backend.services.plotline_evolution import migrate_plotline_statuses, preview_status_migration
    from backend.utils import get_logger

    log = get_logger()

    async def run():
        await init_sqlite_async()
        try:
            async with AsyncSessionLocal() as session:
                if args.preview:
                    return await preview_status_migration(session, args.novel_id)
                result = await migrate_plotline_statuses(session, args.novel_id)
                await session.commit()
                return result
        finally:
            await close_engine()

    result = asyncio.run(run())
    if not args.preview:
        summary = result["summary"]
        log.info(
            "迁移完成: 共 %s 条，枚举映射 %s 条，按发展记录更新 %s 条",
            summary["total_plotlines"], summary["enum_updated"], summary["development_updated"],
        )
    _print_json(result)


def cmd_check(args):
    """一致性检查：--chapter-id 优先，否则 --novel-id。"""
    import backend.models  # noqa: F401
    from backend.database import AsyncSessionLocal, close_engine, init_sqlite_async
    from backend.services.consistency_service import ConsistencyChecker

    checker = ConsistencyChecker()

    async def run():
        await init_sqlite_async()
        try:
            async with AsyncSessionLocal() as session:
                if args.chapter_id:
                    return {"chapter_consistency": await checker.check_chapter(session, args.chapter_id, use_ai=args.ai)}
                return {"novel_consistency": await checker.check_novel(session, args.novel_id, use_ai=args.ai)}
        finally:
            await close_engine()

    _print_json(asyncio.run(run()))


def cmd_evolve(args):
    """章节写完后的自动演化：--chapter-id 单章，否则对 --novel-id 最近 3 章。"""
    import backend.models  # noqa: F401
    from backend.database import AsyncSessionLocal, close_engine, init_sqlite_async
    from backend.services.evolution_service import EvolutionService

    service = EvolutionService()

    async def run():
        await init_sqlite_async()
        try:
            async with AsyncSessionLocal() as session:
                if args.chapter_id:
                    result = await service.perform_post_chapter_evolution(session, args.chapter_id)
                else:
                    result = await service.evolve_novel(session, args.novel_id)
                await session.commit()
                return result
        finally:
            await close_engine()

    _print_json(asyncio.run(run()))


def main():
    from backend.services.errors import ServiceError
    from backend.utils import get_logger

    parser = argparse.ArgumentParser(description="NovelState: 情节线状态演化与一致性检查")
    sub = parser.add_subparsers(dest="command", required=True)

    # init-db
    p_init = sub.add_parser("init-db", help="创建数据库表")
    p_init.set_defaults(func=cmd_init_db)

    # serve
    p_serve = sub.add_parser("serve", help="启动 HTTP 服务（uvicorn）")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true", help="开发模式：代码变更自动重载")
    p_serve.set_defaults(func=cmd_serve)

    # migrate-status
    p_migrate = sub.add_parser("migrate-status", help="情节线状态迁移：遗留枚举映射 + 按发展记录重推状态")
    p_migrate.add_argument("--novel-id", required=True, help="小说 id")
    p_migrate.add_argument("--preview", action="store_true", help="只预览将发生的变化，不写库")
    p_migrate.set_defaults(func=cmd_migrate_status)

    # check
    p_check = sub.add_parser("check", help="一致性检查（规则 + 可选 AI 复核）")
    target = p_check.add_mutually_exclusive_group(required=True)
    target.add_argument("--chapter-id", default="", help="检查单章")
    target.add_argument("--novel-id", default="", help="检查整本小说")
    p_check.add_argument("--ai", action="store_true", help="追加 AI 复核（失败时降级，不影响规则检查结果）")
    p_check.set_defaults(func=cmd_check)

    # evolve
    p_evolve = sub.add_parser("evolve", help="自动演化：角色档案、情节线状态")
    target = p_evolve.add_mutually_exclusive_group(required=True)
    target.add_argument("--chapter-id", default="", help="演化单章")
    target.add_argument("--novel-id", default="", help="演化整本小说的最近 3 章")
    p_evolve.set_defaults(func=cmd_evolve)

    args = parser.parse_args()
    try:
        args.func(args)
    except ServiceError as e:
        get_logger().error("%s", e.message)
        _print_json({"success": False, "error": e.message, "details": e.details})
        raise SystemExit(1)


if __name__ == "__main__":
    main()
