"""SQLAlchemy ORM 模型定义。

本模块定义了所有数据库表的ORM模型，包括：
- 管理员（后台登录账号）
- 会员（健身房会员及其缴费周期状态）
- 缴费记录
- 提醒（由每日清扫任务生成）
"""
from enum import Enum
from typing import List, Optional
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime,
    DECIMAL, ForeignKey
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from datetime import datetime, date

# SQLAlchemy declarative base，所有模型都继承自此类
Base = declarative_base()

# 允许使用旧式类型注解（兼容 SQLAlchemy 2.0）
Base.__allow_unmapped__ = True


class MembershipType(str, Enum):
    """会员类型：决定缴费周期"""
    MONTHLY = "MONTHLY"
    ANNUAL = "ANNUAL"


class PaymentType(str, Enum):
    """缴费类型，只有 MONTHLY/ANNUAL 会影响会员的缴费日期"""
    MONTHLY = "MONTHLY"
    ANNUAL = "ANNUAL"
    REGISTRATION = "REGISTRATION"
    PENALTY = "PENALTY"
    OTHER = "OTHER"


class AlertType(str, Enum):
    """提醒类型"""
    PAYMENT_DUE_SOON = "PAYMENT_DUE_SOON"
    PAYMENT_OVERDUE = "PAYMENT_OVERDUE"
    MEMBER_INACTIVE = "MEMBER_INACTIVE"


# 影响缴费周期的缴费类型
QUALIFYING_PAYMENT_TYPES = (PaymentType.MONTHLY.value, PaymentType.ANNUAL.value)


class Admin(Base):
    """管理员表模型。

    Attributes:
        id: 主键，自增整数。
        email: 登录邮箱，唯一。
        password_hash: bcrypt 密码哈希。
        name: 显示名称。
        created_at: 创建时间。
        updated_at: 更新时间。
    """
    __tablename__ = "admins"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    email: str = Column(String(120), nullable=False, unique=True)
    password_hash: str = Column(String(128), nullable=False)
    name: str = Column(String(100), nullable=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Member(Base):
    """会员表模型。

    存储会员的基本资料和缴费周期状态。
    ``next_payment_date`` 存在时，总是严格晚于 ``registration_date``，
    且落在以注册日期为锚点的整周期上。

    Attributes:
        id: 主键，自增整数。
        first_name: 名，必填。
        last_name: 姓，必填。
        document: 证件号，唯一，必填。
        email: 邮箱，可选，唯一。
        phone: 电话，可选。
        address: 地址，可选。
        birth_date: 出生日期，可选。
        registration_date: 注册日期，缴费周期的锚点。
        membership_type: 会员类型 MONTHLY / ANNUAL，默认 MONTHLY。
        monthly_fee: 月费，DECIMAL(10,2)，默认0。
        last_payment_date: 最近一次周期缴费日期。
        next_payment_date: 下一次应缴日期。
        is_active: 是否激活，默认True。
        notes: 备注。
        version_id: 乐观锁版本号，防止并发缴费更新丢失。

    Relationships:
        payments: 该会员的缴费记录（随会员删除）。
        alerts: 该会员的提醒（随会员删除）。
    """
    __tablename__ = "members"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    first_name: str = Column(String(50), nullable=False)
    last_name: str = Column(String(50), nullable=False)
    document: str = Column(String(30), nullable=False, unique=True)
    email: Optional[str] = Column(String(120), unique=True)
    phone: Optional[str] = Column(String(30))
    address: Optional[str] = Column(String(200))
    birth_date: Optional[date] = Column(Date)
    registration_date: date = Column(Date, nullable=False, default=date.today)
    membership_type: str = Column(String(10), nullable=False, default=MembershipType.MONTHLY.value)
    monthly_fee = Column(DECIMAL(10, 2), nullable=False, default=0)
    last_payment_date: Optional[date] = Column(Date)
    next_payment_date: Optional[date] = Column(Date, index=True)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    notes: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    version_id: int = Column(Integer, nullable=False, default=1)

    # Relationships
    payments: List["Payment"] = relationship(
        "Payment", back_populates="member",
        cascade="all, delete-orphan", passive_deletes=True
    )
    alerts: List["Alert"] = relationship(
        "Alert", back_populates="member",
        cascade="all, delete-orphan", passive_deletes=True
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Payment(Base):
    """缴费记录表模型。

    Attributes:
        id: 主键，自增整数。
        member_id: 会员ID，外键。
        amount: 金额，DECIMAL(10,2)，必须为正。
        payment_date: 缴费日期。
        payment_type: 缴费类型，见 PaymentType。
        description: 说明，可选。
    """
    __tablename__ = "payments"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    member_id: int = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(DECIMAL(10, 2), nullable=False)
    payment_date: date = Column(Date, nullable=False, default=date.today, index=True)
    payment_type: str = Column(String(20), nullable=False, default=PaymentType.MONTHLY.value)
    description: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    member: "Member" = relationship("Member", back_populates="payments")


class Alert(Base):
    """提醒表模型。

    由每日清扫任务生成，或由管理员手动创建。

    Attributes:
        id: 主键，自增整数。
        member_id: 会员ID，外键。
        alert_type: 提醒类型，见 AlertType。
        message: 面向用户的提醒文案。
        is_read: 是否已读，默认False。
        alert_date: 提醒生成日期。
    """
    __tablename__ = "alerts"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    member_id: int = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    alert_type: str = Column(String(30), nullable=False)
    message: str = Column(Text, nullable=False)
    is_read: bool = Column(Boolean, nullable=False, default=False)
    alert_date: date = Column(Date, nullable=False, default=date.today, index=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    # Relationships
    member: "Member" = relationship("Member", back_populates="alerts")
