"""数据库管理器：统一门面（Facade）。

DatabaseManager 是 database 模块的统一入口，组合了所有子仓库，
提供两套 API：

1. **子仓库访问**（细粒度）：
   通过 ``db.members``、``db.payments`` 等属性直接访问子仓库，
   返回 ORM 对象，适合在同一事务中组合多个操作（见 business 层）。

2. **便捷方法**（粗粒度）：
   提供扁平化的查询方法（如 ``list_members()``、``get_dashboard()``），
   返回字典/基本类型，供 HTTP 层直接输出为 JSON。

会员与缴费的写操作涉及缴费周期推算，由
``business.membership_service.MembershipService`` 负责。
"""
from datetime import date, timedelta
from calendar import monthrange
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from config.messages import month_name
from .connection import DatabaseConnection
from .entity_repos import AdminRepository, MemberRepository
from .business_repos import PaymentRepository, AlertRepository
from .serializers import (
    alert_to_dict, member_due_to_dict, member_to_dict, payment_to_dict,
)


def month_bounds(year: int, month: int):
    """某月的第一天和最后一天。"""
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


class DatabaseManager:
    """数据库管理器：统一门面。

    Attributes:
        conn: 数据库连接管理器。
        admins: 管理员仓库。
        members: 会员仓库。
        payments: 缴费记录仓库。
        alerts: 提醒仓库。

    Example::

        db = DatabaseManager("sqlite:///data/gym.db")
        db.create_tables()

        # 通过子仓库访问（返回 ORM 对象）
        member = db.members.get(1)

        # 通过便捷方法访问（返回字典）
        summary = db.get_alert_summary()
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        """初始化数据库管理器。

        Args:
            database_url: 数据库连接URL。为None时使用本地默认 SQLite 文件。
        """
        # 基础设施层
        self.conn = DatabaseConnection(database_url)

        # 实体仓库
        self.admins = AdminRepository(self.conn)
        self.members = MemberRepository(self.conn)

        # 业务记录仓库
        self.payments = PaymentRepository(self.conn)
        self.alerts = AlertRepository(self.conn)

    # ================================================================
    # 基础设施方法
    # ================================================================

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        self.conn.create_tables()

    def get_session(self) -> Session:
        """获取数据库会话。"""
        return self.conn.get_session()

    @property
    def database_url(self) -> str:
        """数据库连接URL。"""
        return self.conn.database_url

    @property
    def engine(self):
        """SQLAlchemy 引擎对象。"""
        return self.conn.engine

    def close(self) -> None:
        """关闭数据库连接，释放所有资源。"""
        self.conn.close()

    # ================================================================
    # 会员查询
    # ================================================================

    def list_members(self, page: int = 1, limit: int = 10, search: str = "",
                     is_active: Optional[bool] = None) -> Dict[str, Any]:
        """分页查询会员。

        每条会员附带最近一次缴费（``payments``，最多1条）和缴费总数
        （``payment_count``）。

        Returns:
            ``{"members": [...], "pagination": {...}}``
        """
        with self.get_session() as session:
            members, pagination = self.members.list(
                page, limit, search, is_active, session=session
            )
            rows = []
            for member in members:
                data = member_to_dict(member)
                ordered = sorted(
                    member.payments,
                    key=lambda p: (p.payment_date, p.id), reverse=True
                )
                data["payments"] = [payment_to_dict(p) for p in ordered[:1]]
                data["payment_count"] = len(member.payments)
                rows.append(data)
        return {"members": rows, "pagination": pagination}

    def get_member_detail(self, member_id: int) -> Dict[str, Any]:
        """会员详情，附带全部缴费记录（最新的在前）。"""
        with self.get_session() as session:
            member = self.members.get_with_payments(member_id, session=session)
            data = member_to_dict(member)
            ordered = sorted(
                member.payments, key=lambda p: (p.payment_date, p.id), reverse=True
            )
            data["payments"] = [payment_to_dict(p) for p in ordered]
        return data

    # ================================================================
    # 缴费查询
    # ================================================================

    def list_payments(self, page: int = 1, limit: int = 10,
                      member_id: Optional[int] = None,
                      start_date: Optional[date] = None,
                      end_date: Optional[date] = None) -> Dict[str, Any]:
        """分页查询缴费记录。

        Returns:
            ``{"payments": [...], "pagination": {...}}``
        """
        with self.get_session() as session:
            payments, pagination = self.payments.list(
                page, limit, member_id, start_date, end_date, session=session
            )
            rows = [payment_to_dict(p, p.member) for p in payments]
        return {"payments": rows, "pagination": pagination}

    def get_payment_detail(self, payment_id: int) -> Dict[str, Any]:
        with self.get_session() as session:
            payment = self.payments.get(payment_id, session=session)
            data = payment_to_dict(payment, payment.member)
        return data

    def get_monthly_payment_report(self, year: int,
                                   month: Optional[int] = None) -> Dict[str, Any]:
        """缴费月报；不指定月份时统计全年。"""
        if month:
            start, end = month_bounds(year, month)
        else:
            start, end = date(year, 1, 1), date(year, 12, 31)

        with self.get_session() as session:
            payments = self.payments.get_between(start, end, session=session)
            rows = [payment_to_dict(p, p.member) for p in payments]

        by_type: Dict[str, int] = {}
        for row in rows:
            by_type[row["payment_type"]] = by_type.get(row["payment_type"], 0) + 1

        return {
            "total_amount": sum(row["amount"] for row in rows),
            "total_payments": len(rows),
            "payments_by_type": by_type,
            "payments": rows,
        }

    # ================================================================
    # 提醒
    # ================================================================

    def list_alerts(self, page: int = 1, limit: int = 10,
                    is_read: Optional[bool] = None) -> Dict[str, Any]:
        """分页查询提醒。"""
        alerts, pagination = self.alerts.list(page, limit, is_read)
        return {
            "alerts": [alert_to_dict(a) for a in alerts],
            "pagination": pagination,
        }

    def get_alert_summary(self) -> Dict[str, Any]:
        """提醒汇总：总数、未读数、未读按类型计数。"""
        with self.get_session() as session:
            return {
                "total": self.alerts.count(session=session),
                "unread": self.alerts.count(is_read=False, session=session),
                "by_type": self.alerts.unread_by_type(session=session),
            }

    def get_alerts_by_member(self, member_id: int) -> List[Dict[str, Any]]:
        with self.get_session() as session:
            self.members.get(member_id, session=session)
            alerts = self.alerts.get_by_member(member_id, session=session)
        return [alert_to_dict(a) for a in alerts]

    def create_alert(self, member_id: int, alert_type: str,
                     message: str) -> Dict[str, Any]:
        """手动创建提醒（提醒日期为今天）。"""
        with self.get_session() as session:
            self.members.get(member_id, session=session)
            alert = self.alerts.create(member_id, alert_type, message, session=session)
            session.commit()
        return alert_to_dict(alert)

    def mark_alert_read(self, alert_id: int) -> Dict[str, Any]:
        return alert_to_dict(self.alerts.mark_read(alert_id))

    def mark_all_alerts_read(self) -> int:
        return self.alerts.mark_all_read()

    def delete_alert(self, alert_id: int) -> None:
        with self.get_session() as session:
            alert = self.alerts.get(alert_id, session=session)
            session.delete(alert)
            session.commit()

    def delete_read_alerts(self) -> int:
        return self.alerts.delete_read()

    # ================================================================
    # 仪表盘
    # ================================================================

    def get_dashboard(self, today: Optional[date] = None,
                      lookahead_days: int = 5) -> Dict[str, Any]:
        """仪表盘数据。

        Args:
            today: 统计基准日期，默认今天。
            lookahead_days: 即将到期的天数窗口。

        Returns:
            ``stats``、``payments_by_type``、``alerts``（即将到期与逾期会员，
            各最多10个）、``recent_payments``（最近5笔）。
        """
        today = today or date.today()
        horizon = today + timedelta(days=lookahead_days)
        month_start, month_end = month_bounds(today.year, today.month)

        with self.get_session() as session:
            revenue, payment_count = self.payments.totals_between(
                month_start, month_end, session=session
            )
            stats = {
                "total_members": self.members.count(session=session),
                "active_members": self.members.count(is_active=True, session=session),
                "inactive_members": self.members.count(is_active=False, session=session),
                "members_with_payments_due": self.members.count_due_between(
                    today, horizon, session=session
                ),
                "members_with_overdue_payments": self.members.count_overdue(
                    today, session=session
                ),
                "monthly_revenue": revenue,
                "total_payments_this_month": payment_count,
                "unread_alerts": self.alerts.count(is_read=False, session=session),
            }
            due_soon = self.members.get_due_between(today, horizon, limit=10, session=session)
            overdue = self.members.get_overdue(today, limit=10, session=session)
            recent = self.payments.recent(5, session=session)

            return {
                "stats": stats,
                "payments_by_type": self.payments.totals_by_type(
                    month_start, month_end, session=session
                ),
                "alerts": {
                    "members_due_soon": [member_due_to_dict(m) for m in due_soon],
                    "members_overdue": [member_due_to_dict(m) for m in overdue],
                },
                "recent_payments": [payment_to_dict(p, p.member) for p in recent],
            }

    def get_monthly_stats(self, year: int) -> Dict[str, Any]:
        """某年每月的收入、缴费笔数和新注册会员数。"""
        monthly = []
        with self.get_session() as session:
            for month in range(1, 13):
                start, end = month_bounds(year, month)
                revenue, count = self.payments.totals_between(start, end, session=session)
                monthly.append({
                    "month": month,
                    "month_name": month_name(month),
                    "revenue": revenue,
                    "payments_count": count,
                    "new_members": self.members.count_registered_between(
                        start, end, session=session
                    ),
                })
        return {"year": year, "monthly_stats": monthly}
