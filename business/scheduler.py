"""定时任务调度器 - 通用的任务调度框架

具体的业务任务（如缴费提醒清扫）通过回调函数注入，
见 business/alert_sweep.py。
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.base import JobLookupError
from typing import Callable, Optional
from loguru import logger
import asyncio


class Scheduler:
    """基于 AsyncIOScheduler 的每日任务调度。

    只负责“何时执行”，执行什么由调用方以回调形式传入。
    同步任务函数在调度器的线程池中执行，不阻塞事件循环。
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """初始化调度器

        Args:
            loop: 事件循环，为 None 时使用当前事件循环
        """
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = asyncio.new_event_loop()
                asyncio.set_event_loop(loop)
        self.scheduler = AsyncIOScheduler(event_loop=loop)

    def add_daily_task(
        self,
        task_func: Callable,
        hour: int = 9,
        minute: int = 0,
        task_id: str = 'daily_task',
        task_name: str = 'Daily task',
        run_at_start: bool = False
    ):
        """添加每日定时任务

        Args:
            task_func: 任务函数（同步或 async 函数）
            hour: 小时 (0-23)
            minute: 分钟 (0-59)
            task_id: 任务ID
            task_name: 任务名称
            run_at_start: 调度器启动时是否立即执行一次
        """
        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise ValueError(f"Invalid daily time {hour}:{minute}")

        self.scheduler.add_job(
            task_func,
            trigger=CronTrigger(hour=hour, minute=minute),
            id=task_id,
            name=task_name,
            replace_existing=True
        )
        if run_at_start:
            # 不带 trigger 的任务在调度器启动后立即执行一次
            self.scheduler.add_job(
                task_func,
                id=f"{task_id}_startup",
                name=f"{task_name} (startup)",
                replace_existing=True
            )
        logger.info(f"Added daily task '{task_name}' at {hour:02d}:{minute:02d}")

    def get_job(self, job_id: str):
        return self.scheduler.get_job(job_id)

    def start(self):
        self.scheduler.start()
        logger.info("Scheduler started")

    def stop(self):
        """停止调度器，不等待正在执行的任务。"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

    def remove_job(self, job_id: str):
        """按 ID 移除任务，任务不存在时只记录警告。"""
        try:
            self.scheduler.remove_job(job_id)
            logger.info(f"Job {job_id} removed")
        except JobLookupError as e:
            logger.warning(f"Failed to remove job {job_id}: {e}")
