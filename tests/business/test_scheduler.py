"""调度器测试（不启动调度器，只检查登记的任务）。"""
import asyncio

import pytest
from apscheduler.triggers.cron import CronTrigger

from business.scheduler import Scheduler


def noop():
    pass


@pytest.fixture
def scheduler():
    loop = asyncio.new_event_loop()
    yield Scheduler(loop=loop)
    loop.close()


def cron_fields(job):
    return {field.name: str(field) for field in job.trigger.fields}


class TestScheduler:

    def test_daily_task_uses_cron_time(self, scheduler):
        scheduler.add_daily_task(noop, hour=9, minute=30, task_id="payment_alerts")

        job = scheduler.get_job("payment_alerts")
        assert job is not None
        assert isinstance(job.trigger, CronTrigger)
        fields = cron_fields(job)
        assert fields["hour"] == "9"
        assert fields["minute"] == "30"

    def test_run_at_start_adds_startup_job(self, scheduler):
        scheduler.add_daily_task(noop, task_id="payment_alerts", run_at_start=True)

        assert scheduler.get_job("payment_alerts") is not None
        assert scheduler.get_job("payment_alerts_startup") is not None

    def test_without_run_at_start(self, scheduler):
        scheduler.add_daily_task(noop, task_id="payment_alerts")
        assert scheduler.get_job("payment_alerts_startup") is None

    @pytest.mark.parametrize("hour,minute", [(24, 0), (-1, 0), (9, 60)])
    def test_invalid_time(self, scheduler, hour, minute):
        with pytest.raises(ValueError):
            scheduler.add_daily_task(noop, hour=hour, minute=minute)

    def test_remove_job(self, scheduler):
        scheduler.add_daily_task(noop, task_id="payment_alerts")
        scheduler.remove_job("payment_alerts")
        assert scheduler.get_job("payment_alerts") is None

        # 不存在的任务只记录警告
        scheduler.remove_job("missing")

    def test_stop_when_not_running(self, scheduler):
        scheduler.stop()
