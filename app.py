#!/usr/bin/env python3
"""GymControl 后台 - 应用入口

启动：
1. REST API（会员、缴费、提醒、仪表盘）
2. 缴费提醒清扫任务（启动时执行一次，之后每天定时执行）

使用方式：
    python app.py

    # 指定端口
    python app.py --port 5000

    # 指定数据库
    python app.py --db sqlite:///data/gym.db

环境变量（在 .env 文件中配置，运行 python scripts/setup_env.py 生成）：
    DATABASE_URL         数据库连接地址
    WEB_HOST / WEB_PORT  监听地址与端口
    ADMIN_EMAIL          默认管理员邮箱（首次启动时创建）
    ADMIN_PASSWORD       默认管理员密码
    ALERT_DAYS_BEFORE    提前提醒天数（默认 5）
    ALERT_CHECK_HOUR     每日清扫时间-小时（默认 9）
    ALERT_CHECK_MINUTE   每日清扫时间-分钟（默认 0）
"""
import argparse
import asyncio
import signal

from loguru import logger


async def _cleanup(web, scheduler, db):
    """统一资源清理函数。"""
    logger.info("Cleaning up...")

    if scheduler is not None:
        try:
            scheduler.stop()
        except Exception as e:
            logger.warning(f"Error stopping scheduler: {e}")

    if web is not None:
        try:
            await web.shutdown()
        except Exception as e:
            logger.warning(f"Error stopping web server: {e}")

    if db is not None:
        try:
            db.close()
        except Exception as e:
            logger.warning(f"Error closing database: {e}")

    logger.info("Service stopped")


async def main():
    from config.settings import settings

    parser = argparse.ArgumentParser(description="GymControl back office")
    parser.add_argument("--host", default=settings.web_host,
                        help=f"监听地址 (默认: {settings.web_host})")
    parser.add_argument("--port", type=int, default=settings.web_port,
                        help=f"监听端口 (默认: {settings.web_port})")
    parser.add_argument("--db", default=settings.database_url,
                        help="数据库连接 URL")
    parser.add_argument("--no-scheduler", action="store_true",
                        help="不启动缴费提醒定时任务")
    args = parser.parse_args()

    web = None
    scheduler = None
    db = None

    try:
        from database import DatabaseManager
        from business.alert_sweep import AlertSweep
        from business.auth import AuthService
        from business.membership_service import MembershipService
        from business.scheduler import Scheduler
        from interface import WebServer

        db = DatabaseManager(args.db)
        db.create_tables()
        logger.info(f"Database connected: {db.database_url}")

        auth = AuthService(db, token_ttl_hours=settings.token_ttl_hours)
        auth.ensure_default_admin(
            settings.admin_email, settings.admin_password, settings.admin_name
        )
        service = MembershipService(db)
        sweep = AlertSweep(db, lookahead_days=settings.alert_days_before)

        if not args.no_scheduler:
            scheduler = Scheduler(asyncio.get_running_loop())
            scheduler.add_daily_task(
                sweep.run_scheduled,
                hour=settings.alert_check_hour,
                minute=settings.alert_check_minute,
                task_id="payment_alerts",
                task_name="Payment alert sweep",
                run_at_start=True,
            )
            scheduler.start()

        web = WebServer(
            db, auth, service, sweep,
            host=args.host, port=args.port, page_size=settings.page_size,
        )
        await web.startup()

        print()
        print("=" * 60)
        print("  GymControl started")
        print(f"  API:       http://localhost:{args.port}/api")
        print(f"  Database:  {db.database_url}")
        print(f"  Alerts:    daily at {settings.alert_check_hour:02d}:"
              f"{settings.alert_check_minute:02d}, "
              f"{settings.alert_days_before} day(s) ahead"
              if scheduler else "  Alerts:    scheduler disabled")
        print("=" * 60)
        print("  Press Ctrl+C to stop")
        print()

        loop = asyncio.get_running_loop()
        shutdown_event = asyncio.Event()
        _shutdown_requested = False

        def signal_handler(signum):
            """处理退出信号"""
            nonlocal _shutdown_requested
            if _shutdown_requested:
                logger.warning("Second signal received, forcing exit...")
                for task in asyncio.all_tasks(loop):
                    task.cancel()
                return
            _shutdown_requested = True
            logger.info(f"Received signal {signum}, shutting down...")
            shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler, sig)

        await shutdown_event.wait()

    except asyncio.CancelledError:
        logger.info("Cancelled, cleaning up...")
    finally:
        await _cleanup(web, scheduler, db)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
