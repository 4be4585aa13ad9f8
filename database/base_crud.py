"""通用 CRUD 基类。

所有仓库继承 BaseCRUD 获得通用的增删改查能力。
每个方法都接受可选的外部会话 ``session``：
- 传入时在调用方的事务中执行，不提交，由调用方统一 commit；
- 不传时自行开启会话并提交。
"""
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy.orm import Query, Session

from business.exceptions import EntityNotFoundError
from .connection import DatabaseConnection


class BaseCRUD:
    """通用 CRUD 操作。

    Attributes:
        conn: 数据库连接管理器。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        self.conn = conn

    def _get_session(self) -> Session:
        return self.conn.get_session()

    def get_by_id(self, model: Type, obj_id: int,
                  session: Optional[Session] = None) -> Optional[Any]:
        """按主键获取对象，不存在返回 None。"""
        if session:
            return session.get(model, obj_id)

        with self._get_session() as sess:
            return sess.get(model, obj_id)

    def get_or_raise(self, model: Type, obj_id: int,
                     session: Optional[Session] = None) -> Any:
        """按主键获取对象。

        Raises:
            EntityNotFoundError: 对象不存在。
        """
        obj = self.get_by_id(model, obj_id, session=session)
        if obj is None:
            raise EntityNotFoundError(f"{model.__name__} {obj_id} not found")
        return obj

    def get_all(self, model: Type, filters: Optional[Dict[str, Any]] = None,
                session: Optional[Session] = None) -> List[Any]:
        """按等值条件获取对象列表。

        Args:
            model: ORM 模型类。
            filters: 字段名到值的映射（等值过滤）。
        """
        def _query(sess):
            query = sess.query(model)
            if filters:
                query = query.filter_by(**filters)
            return query.all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def update_by_id(self, model: Type, obj_id: int,
                     session: Optional[Session] = None,
                     **fields: Any) -> Optional[Any]:
        """按主键更新字段，对象不存在返回 None。"""
        def _do(sess):
            obj = sess.get(model, obj_id)
            if obj is None:
                return None
            for key, value in fields.items():
                setattr(obj, key, value)
            sess.flush()
            return obj

        if session:
            return _do(session)

        with self._get_session() as sess:
            obj = _do(sess)
            sess.commit()
            return obj

    def delete_by_id(self, model: Type, obj_id: int,
                     session: Optional[Session] = None) -> bool:
        """按主键删除对象。

        Returns:
            是否删除成功（对象不存在时为 False）。
        """
        def _do(sess):
            obj = sess.get(model, obj_id)
            if obj is None:
                return False
            sess.delete(obj)
            sess.flush()
            return True

        if session:
            return _do(session)

        with self._get_session() as sess:
            deleted = _do(sess)
            sess.commit()
            return deleted

    @staticmethod
    def _paginate(query: Query, page: int, limit: int) -> Tuple[List[Any], Dict[str, int]]:
        """对查询分页。

        Returns:
            (当前页对象列表, 分页信息字典)。
        """
        page = max(1, int(page))
        limit = max(1, int(limit))
        total = query.order_by(None).count()
        items = query.offset((page - 1) * limit).limit(limit).all()
        pagination = {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit,
        }
        return items, pagination
