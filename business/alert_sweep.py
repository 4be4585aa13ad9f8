"""提醒清扫任务：每日根据会员缴费状态重新生成提醒。

每次运行：
1. 计算今天和提醒窗口 ``today + lookahead_days``；
2. 删除提醒日期为今天的全部提醒（同一天重复运行不会产生重复提醒）；
3. 窗口内到期的激活会员各生成一条 PAYMENT_DUE_SOON；
4. 已逾期的激活会员各生成一条 PAYMENT_OVERDUE；
5. 在同一事务中写入并提交。

即将到期要求 ``next_payment_date >= today``，逾期要求 ``< today``，
因此同一会员在一次运行中至多出现在一个集合里。
清扫只写提醒表，从不修改会员或缴费记录。
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config.messages import payment_due_soon_message, payment_overdue_message
from database import DatabaseManager
from database.models import AlertType
from .exceptions import StoreUnavailableError

DEFAULT_LOOKAHEAD_DAYS = 5


@dataclass
class SweepResult:
    """一次清扫的结果统计"""
    run_date: date
    due_soon: int = 0
    overdue: int = 0
    created: int = 0
    deleted: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_date": self.run_date.isoformat(),
            "due_soon": self.due_soon,
            "overdue": self.overdue,
            "created": self.created,
            "deleted": self.deleted,
        }


class AlertSweep:
    """提醒清扫任务。

    Args:
        db: 数据库门面。
        lookahead_days: 即将到期的提前天数窗口，默认5天。
    """

    def __init__(self, db: DatabaseManager,
                 lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS) -> None:
        if lookahead_days < 0:
            raise ValueError("lookahead_days cannot be negative")
        self.db = db
        self.lookahead_days = lookahead_days

    def run(self, today: Optional[date] = None) -> SweepResult:
        """立即执行一次清扫。

        Args:
            today: 基准日期，默认为本地今天。

        Returns:
            SweepResult 统计。

        Raises:
            StoreUnavailableError: 数据库操作失败，本次运行整体回滚。
        """
        today = today or date.today()
        horizon = today + timedelta(days=self.lookahead_days)
        result = SweepResult(run_date=today)

        session = self.db.get_session()
        try:
            result.deleted = self.db.alerts.delete_by_date(today, session=session)

            due_soon = self.db.members.get_due_between(today, horizon, session=session)
            overdue = self.db.members.get_overdue(today, session=session)

            alerts: List[Dict[str, Any]] = []
            for member in due_soon:
                days = (member.next_payment_date - today).days
                alerts.append({
                    "member_id": member.id,
                    "alert_type": AlertType.PAYMENT_DUE_SOON.value,
                    "message": payment_due_soon_message(member.full_name, member.document, days),
                    "alert_date": today,
                })
            for member in overdue:
                days = (today - member.next_payment_date).days
                alerts.append({
                    "member_id": member.id,
                    "alert_type": AlertType.PAYMENT_OVERDUE.value,
                    "message": payment_overdue_message(member.full_name, member.document, days),
                    "alert_date": today,
                })

            result.created = self.db.alerts.bulk_create(alerts, session=session)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreUnavailableError(f"Alert sweep failed: {e}") from e
        finally:
            session.close()

        result.due_soon = len(due_soon)
        result.overdue = len(overdue)
        logger.info(
            f"Alert sweep {today}: due soon={result.due_soon}, "
            f"overdue={result.overdue}, created={result.created}, "
            f"replaced={result.deleted}"
        )
        return result

    def run_scheduled(self) -> Optional[SweepResult]:
        """调度器入口：失败时记录日志并等待下一次调度，不向外抛出。"""
        logger.info("Checking payment alerts...")
        try:
            return self.run()
        except StoreUnavailableError as e:
            logger.error(f"Payment alert sweep aborted, will retry next run: {e}")
            return None
