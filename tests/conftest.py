"""公共测试夹具。

每个测试使用独立的临时 SQLite 文件数据库，以及绑定到该数据库的业务服务。
"""
import os
import shutil
import tempfile
from datetime import date

import pytest

from database import DatabaseManager
from database.models import Member
from business.alert_sweep import AlertSweep
from business.membership_service import MembershipService


@pytest.fixture
def temp_db():
    """创建临时数据库并返回 DatabaseManager，测试结束后删除。"""
    temp_dir = tempfile.mkdtemp(prefix="gym-tests-")
    db_path = os.path.join(temp_dir, "test.db")
    manager = DatabaseManager(database_url=f"sqlite:///{db_path}")
    manager.create_tables()

    try:
        yield manager
    finally:
        manager.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def service(temp_db):
    return MembershipService(temp_db)


@pytest.fixture
def sweep(temp_db):
    return AlertSweep(temp_db, lookahead_days=5)


@pytest.fixture
def today():
    """固定的“今天”，让清扫测试结果可重复。"""
    return date(2024, 6, 15)


def make_member(service, suffix="1", **overrides):
    """辅助函数：通过服务创建会员，返回会员字典。"""
    data = {
        "first_name": "Juan",
        "last_name": f"Pérez {suffix}",
        "document": f"DOC-{suffix}",
        "registration_date": "2024-01-10",
        "membership_type": "MONTHLY",
        "monthly_fee": 5000,
    }
    data.update(overrides)
    return service.create_member(data)


def set_next_payment_date(db, member_id, next_payment_date, is_active=True):
    """辅助函数：直接设置会员的缴费日期（绕过周期计算）。"""
    db.members.update_by_id(
        Member, member_id,
        next_payment_date=next_payment_date, is_active=is_active,
    )
