"""管理员认证：bcrypt 密码哈希 + 内存 token。

token 为随机字符串，保存在进程内存中并带有过期时间，
进程重启后需要重新登录。
"""
import secrets
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import bcrypt
from loguru import logger

from database import DatabaseManager
from database.models import Admin
from database.serializers import admin_to_dict
from .exceptions import AuthenticationError, ValidationError

MIN_PASSWORD_LENGTH = 6


def _to_bcrypt_secret(password: str) -> bytes:
    """bcrypt 只使用前72字节，超出部分显式截断。"""
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    """生成 bcrypt 哈希（UTF-8 字符串）。"""
    hashed = bcrypt.hashpw(_to_bcrypt_secret(password), bcrypt.gensalt(rounds=12))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """校验密码与 bcrypt 哈希是否匹配。"""
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


class AuthService:
    """管理员登录、token 校验与修改密码。

    Args:
        db: 数据库门面。
        token_ttl_hours: token 有效期（小时）。
    """

    def __init__(self, db: DatabaseManager, token_ttl_hours: int = 168) -> None:
        self.db = db
        self.token_ttl = timedelta(hours=token_ttl_hours)
        # token -> (admin_id, 过期时间)
        self._tokens: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def ensure_default_admin(self, email: str, password: str, name: str) -> bool:
        """没有任何管理员时创建默认管理员。

        Returns:
            是否新建了管理员。
        """
        if self.db.admins.count() > 0:
            return False
        self.db.admins.create(email, hash_password(password), name)
        logger.info(f"Default admin created: {email}")
        return True

    def _generate_token(self, admin_id: int) -> str:
        token = secrets.token_hex(32)
        with self._lock:
            self._tokens[token] = (admin_id, datetime.now() + self.token_ttl)
        return token

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """邮箱密码登录。

        Returns:
            ``{"token": ..., "admin": {...}}``

        Raises:
            ValidationError: 邮箱或密码为空。
            AuthenticationError: 凭证无效。
        """
        if not email or not password:
            raise ValidationError("email and password are required")
        admin = self.db.admins.get_by_email(email)
        if admin is None or not verify_password(password, admin.password_hash):
            raise AuthenticationError("Invalid credentials")
        return {"token": self._generate_token(admin.id), "admin": admin_to_dict(admin)}

    def verify(self, token: Optional[str]) -> Dict[str, Any]:
        """校验 token，返回对应管理员。

        Raises:
            AuthenticationError: token 缺失、无效、过期或管理员已不存在。
        """
        if not token:
            raise AuthenticationError("Access token required")
        with self._lock:
            entry = self._tokens.get(token)
            if entry is not None and datetime.now() > entry[1]:
                del self._tokens[token]
                entry = None
        if entry is None:
            raise AuthenticationError("Invalid or expired token")

        admin = self.db.admins.get_by_id(Admin, entry[0])
        if admin is None:
            raise AuthenticationError("Invalid token")
        return admin_to_dict(admin)

    def logout(self, token: str) -> None:
        with self._lock:
            self._tokens.pop(token, None)

    def change_password(self, admin_id: int, current_password: str,
                        new_password: str) -> None:
        """修改密码。

        Raises:
            ValidationError: 参数缺失或新密码太短。
            AuthenticationError: 当前密码错误。
        """
        if not current_password or not new_password:
            raise ValidationError("current_password and new_password are required")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"new password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        with self.db.get_session() as session:
            admin = self.db.admins.get_or_raise(Admin, admin_id, session=session)
            if not verify_password(current_password, admin.password_hash):
                raise AuthenticationError("Current password is incorrect")
            admin.password_hash = hash_password(new_password)
            session.commit()
        logger.info(f"Password changed for admin {admin_id}")
