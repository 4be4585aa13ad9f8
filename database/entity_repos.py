"""实体仓库：基础实体的数据访问层。

管理系统中的基础实体（管理员、会员）。
每个仓库继承 BaseCRUD 获得通用能力，并添加领域特定的查询方法。
"""
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from business.exceptions import EntityNotFoundError
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import Admin, Member


class AdminRepository(BaseCRUD):
    """管理员仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def get_by_email(self, email: str,
                     session: Optional[Session] = None) -> Optional[Admin]:
        """按邮箱查找管理员。"""
        def _query(sess):
            return sess.query(Admin).filter(Admin.email == email).first()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def create(self, email: str, password_hash: str, name: str,
               session: Optional[Session] = None) -> Admin:
        """创建管理员。"""
        def _do(sess):
            admin = Admin(email=email, password_hash=password_hash, name=name)
            sess.add(admin)
            sess.flush()
            return admin

        if session:
            return _do(session)

        with self._get_session() as sess:
            admin = _do(sess)
            sess.commit()
            return admin

    def count(self, session: Optional[Session] = None) -> int:
        def _query(sess):
            return sess.query(func.count(Admin.id)).scalar()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)


class MemberRepository(BaseCRUD):
    """会员仓库。

    除基本 CRUD 外，提供清扫任务和仪表盘所需的
    按 ``next_payment_date`` 的区间查询（只针对激活会员）。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def get(self, member_id: int,
            session: Optional[Session] = None) -> Member:
        """获取会员，不存在时抛出 EntityNotFoundError。"""
        return self.get_or_raise(Member, member_id, session=session)

    def get_with_payments(self, member_id: int,
                          session: Optional[Session] = None) -> Member:
        """获取会员并预加载缴费记录。"""
        def _query(sess):
            member = sess.query(Member).options(
                selectinload(Member.payments)
            ).filter(Member.id == member_id).first()
            if member is None:
                raise EntityNotFoundError(f"Member {member_id} not found")
            return member

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def list(self, page: int = 1, limit: int = 10, search: str = "",
             is_active: Optional[bool] = None,
             session: Optional[Session] = None
             ) -> Tuple[List[Member], Dict[str, int]]:
        """分页列出会员（最新创建的在前）。

        Args:
            page: 页码，从1开始。
            limit: 每页条数。
            search: 在名、姓、证件号、邮箱中不区分大小写搜索。
            is_active: 按激活状态过滤（None 表示不过滤）。

        Returns:
            (会员列表, 分页信息)，会员已预加载缴费记录。
        """
        def _query(sess):
            query = sess.query(Member).options(selectinload(Member.payments))
            keyword = (search or "").strip().lower()
            if keyword:
                pattern = f"%{keyword}%"
                query = query.filter(or_(
                    func.lower(Member.first_name).like(pattern),
                    func.lower(Member.last_name).like(pattern),
                    func.lower(Member.document).like(pattern),
                    func.lower(Member.email).like(pattern),
                ))
            if is_active is not None:
                query = query.filter(Member.is_active == is_active)
            query = query.order_by(Member.created_at.desc(), Member.id.desc())
            return self._paginate(query, page, limit)

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_due_between(self, start: date, end: date,
                        limit: Optional[int] = None,
                        session: Optional[Session] = None) -> List[Member]:
        """激活会员中 next_payment_date 落在 [start, end] 的会员。"""
        def _query(sess):
            query = sess.query(Member).filter(
                Member.is_active.is_(True),
                Member.next_payment_date.isnot(None),
                Member.next_payment_date >= start,
                Member.next_payment_date <= end,
            ).order_by(Member.next_payment_date.asc(), Member.id.asc())
            if limit:
                query = query.limit(limit)
            return query.all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_overdue(self, before: date, limit: Optional[int] = None,
                    session: Optional[Session] = None) -> List[Member]:
        """激活会员中 next_payment_date 早于 before 的会员。"""
        def _query(sess):
            query = sess.query(Member).filter(
                Member.is_active.is_(True),
                Member.next_payment_date.isnot(None),
                Member.next_payment_date < before,
            ).order_by(Member.next_payment_date.asc(), Member.id.asc())
            if limit:
                query = query.limit(limit)
            return query.all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def count(self, is_active: Optional[bool] = None,
              session: Optional[Session] = None) -> int:
        """统计会员数量。"""
        def _query(sess):
            query = sess.query(func.count(Member.id))
            if is_active is not None:
                query = query.filter(Member.is_active == is_active)
            return query.scalar()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def count_due_between(self, start: date, end: date,
                          session: Optional[Session] = None) -> int:
        def _query(sess):
            return sess.query(func.count(Member.id)).filter(
                Member.is_active.is_(True),
                Member.next_payment_date >= start,
                Member.next_payment_date <= end,
            ).scalar()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def count_overdue(self, before: date,
                      session: Optional[Session] = None) -> int:
        def _query(sess):
            return sess.query(func.count(Member.id)).filter(
                Member.is_active.is_(True),
                Member.next_payment_date < before,
            ).scalar()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def count_registered_between(self, start: date, end: date,
                                 session: Optional[Session] = None) -> int:
        """统计注册日期落在 [start, end] 的会员数。"""
        def _query(sess):
            return sess.query(func.count(Member.id)).filter(
                Member.registration_date >= start,
                Member.registration_date <= end,
            ).scalar()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)
