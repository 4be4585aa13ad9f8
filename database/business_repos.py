"""业务记录仓库：缴费与提醒的数据访问层。

缴费记录是日常经营产生的交易数据；提醒由每日清扫任务生成。
仓库只负责读写，缴费周期的推算在 business 层完成。
"""
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from business.exceptions import EntityNotFoundError
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import Alert, Payment, QUALIFYING_PAYMENT_TYPES


class PaymentRepository(BaseCRUD):
    """缴费记录仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def get(self, payment_id: int,
            session: Optional[Session] = None) -> Payment:
        """获取缴费记录（预加载会员），不存在时抛出 EntityNotFoundError。"""
        def _query(sess):
            payment = sess.query(Payment).options(
                joinedload(Payment.member)
            ).filter(Payment.id == payment_id).first()
            if payment is None:
                raise EntityNotFoundError(f"Payment {payment_id} not found")
            return payment

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def create(self, member_id: int, amount: Any, payment_date: date,
               payment_type: str, description: Optional[str] = None,
               session: Optional[Session] = None) -> Payment:
        """创建缴费记录。"""
        def _do(sess):
            payment = Payment(
                member_id=member_id,
                amount=amount,
                payment_date=payment_date,
                payment_type=payment_type,
                description=description,
            )
            sess.add(payment)
            sess.flush()
            return payment

        if session:
            return _do(session)

        with self._get_session() as sess:
            payment = _do(sess)
            sess.commit()
            return payment

    def list(self, page: int = 1, limit: int = 10,
             member_id: Optional[int] = None,
             start_date: Optional[date] = None,
             end_date: Optional[date] = None,
             session: Optional[Session] = None
             ) -> Tuple[List[Payment], Dict[str, int]]:
        """分页列出缴费记录（按缴费日期倒序），会员已预加载。"""
        def _query(sess):
            query = sess.query(Payment).options(joinedload(Payment.member))
            if member_id is not None:
                query = query.filter(Payment.member_id == member_id)
            if start_date is not None:
                query = query.filter(Payment.payment_date >= start_date)
            if end_date is not None:
                query = query.filter(Payment.payment_date <= end_date)
            query = query.order_by(Payment.payment_date.desc(), Payment.id.desc())
            return self._paginate(query, page, limit)

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def latest_qualifying(self, member_id: int,
                          session: Optional[Session] = None) -> Optional[Payment]:
        """会员最近一次 MONTHLY/ANNUAL 缴费，没有则返回 None。"""
        def _query(sess):
            return sess.query(Payment).filter(
                Payment.member_id == member_id,
                Payment.payment_type.in_(QUALIFYING_PAYMENT_TYPES),
            ).order_by(Payment.payment_date.desc(), Payment.id.desc()).first()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_between(self, start: date, end: date,
                    session: Optional[Session] = None) -> List[Payment]:
        """缴费日期落在 [start, end] 的记录（预加载会员）。"""
        def _query(sess):
            return sess.query(Payment).options(joinedload(Payment.member)).filter(
                Payment.payment_date >= start,
                Payment.payment_date <= end,
            ).order_by(Payment.payment_date.desc(), Payment.id.desc()).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def totals_between(self, start: date, end: date,
                       session: Optional[Session] = None) -> Tuple[float, int]:
        """区间内的 (总金额, 笔数)。"""
        def _query(sess):
            total, count = sess.query(
                func.coalesce(func.sum(Payment.amount), 0),
                func.count(Payment.id),
            ).filter(
                Payment.payment_date >= start,
                Payment.payment_date <= end,
            ).one()
            return float(total or 0), int(count or 0)

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def totals_by_type(self, start: date, end: date,
                       session: Optional[Session] = None
                       ) -> List[Dict[str, Any]]:
        """区间内按缴费类型汇总金额和笔数。"""
        def _query(sess):
            rows = sess.query(
                Payment.payment_type,
                func.coalesce(func.sum(Payment.amount), 0),
                func.count(Payment.id),
            ).filter(
                Payment.payment_date >= start,
                Payment.payment_date <= end,
            ).group_by(Payment.payment_type).order_by(Payment.payment_type).all()
            return [
                {"type": payment_type, "amount": float(amount or 0), "count": count}
                for payment_type, amount, count in rows
            ]

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def recent(self, limit: int = 5,
               session: Optional[Session] = None) -> List[Payment]:
        """最近的缴费记录（预加载会员）。"""
        def _query(sess):
            return sess.query(Payment).options(joinedload(Payment.member)).order_by(
                Payment.payment_date.desc(), Payment.id.desc()
            ).limit(limit).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)


class AlertRepository(BaseCRUD):
    """提醒仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def get(self, alert_id: int,
            session: Optional[Session] = None) -> Alert:
        return self.get_or_raise(Alert, alert_id, session=session)

    def create(self, member_id: int, alert_type: str, message: str,
               alert_date: Optional[date] = None,
               session: Optional[Session] = None) -> Alert:
        """创建单条提醒（手动提醒）。"""
        def _do(sess):
            alert = Alert(
                member_id=member_id,
                alert_type=alert_type,
                message=message,
                alert_date=alert_date or date.today(),
            )
            sess.add(alert)
            sess.flush()
            return alert

        if session:
            return _do(session)

        with self._get_session() as sess:
            alert = _do(sess)
            sess.commit()
            return alert

    def bulk_create(self, alerts: Iterable[Dict[str, Any]],
                    session: Optional[Session] = None) -> int:
        """批量写入提醒。

        Args:
            alerts: 提醒字段字典序列（member_id、alert_type、message、alert_date）。

        Returns:
            写入条数。
        """
        def _do(sess):
            objects = [Alert(**data) for data in alerts]
            sess.add_all(objects)
            sess.flush()
            return len(objects)

        if session:
            return _do(session)

        with self._get_session() as sess:
            created = _do(sess)
            sess.commit()
            return created

    def delete_by_date(self, alert_date: date,
                       session: Optional[Session] = None) -> int:
        """删除指定日期生成的全部提醒，返回删除条数。"""
        def _do(sess):
            return sess.query(Alert).filter(
                Alert.alert_date == alert_date
            ).delete(synchronize_session=False)

        if session:
            return _do(session)

        with self._get_session() as sess:
            deleted = _do(sess)
            sess.commit()
            return deleted

    def list(self, page: int = 1, limit: int = 10,
             is_read: Optional[bool] = None,
             session: Optional[Session] = None
             ) -> Tuple[List[Alert], Dict[str, int]]:
        """分页列出提醒（按提醒日期倒序）。"""
        def _query(sess):
            query = sess.query(Alert)
            if is_read is not None:
                query = query.filter(Alert.is_read == is_read)
            query = query.order_by(Alert.alert_date.desc(), Alert.id.desc())
            return self._paginate(query, page, limit)

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_by_member(self, member_id: int,
                      session: Optional[Session] = None) -> List[Alert]:
        """会员的全部提醒，最新的在前。"""
        def _query(sess):
            return sess.query(Alert).filter(
                Alert.member_id == member_id
            ).order_by(Alert.alert_date.desc(), Alert.id.desc()).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_by_date(self, alert_date: date,
                    session: Optional[Session] = None) -> List[Alert]:
        def _query(sess):
            return sess.query(Alert).filter(
                Alert.alert_date == alert_date
            ).order_by(Alert.id.asc()).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def mark_read(self, alert_id: int,
                  session: Optional[Session] = None) -> Alert:
        """标记单条提醒为已读。"""
        alert = self.update_by_id(Alert, alert_id, session=session, is_read=True)
        if alert is None:
            raise EntityNotFoundError(f"Alert {alert_id} not found")
        return alert

    def mark_all_read(self, session: Optional[Session] = None) -> int:
        """将所有未读提醒标记为已读，返回更新条数。"""
        def _do(sess):
            return sess.query(Alert).filter(
                Alert.is_read.is_(False)
            ).update({Alert.is_read: True}, synchronize_session=False)

        if session:
            return _do(session)

        with self._get_session() as sess:
            updated = _do(sess)
            sess.commit()
            return updated

    def delete_read(self, session: Optional[Session] = None) -> int:
        """删除所有已读提醒，返回删除条数。"""
        def _do(sess):
            return sess.query(Alert).filter(
                Alert.is_read.is_(True)
            ).delete(synchronize_session=False)

        if session:
            return _do(session)

        with self._get_session() as sess:
            deleted = _do(sess)
            sess.commit()
            return deleted

    def count(self, is_read: Optional[bool] = None,
              session: Optional[Session] = None) -> int:
        def _query(sess):
            query = sess.query(func.count(Alert.id))
            if is_read is not None:
                query = query.filter(Alert.is_read == is_read)
            return query.scalar()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def unread_by_type(self, session: Optional[Session] = None) -> Dict[str, int]:
        """未读提醒按类型计数。"""
        def _query(sess):
            rows = sess.query(Alert.alert_type, func.count(Alert.id)).filter(
                Alert.is_read.is_(False)
            ).group_by(Alert.alert_type).all()
            return {alert_type: count for alert_type, count in rows}

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)
