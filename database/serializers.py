"""ORM 对象到字典的转换。

仓库返回 ORM 对象，门面和 HTTP 层通过这里转换为可 JSON 序列化的字典：
日期转 ISO 字符串，金额（Decimal）转 float。
"""
from datetime import date, datetime
from typing import Any, Dict, Optional

from .models import Admin, Alert, Member, Payment


def _iso(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _money(value: Optional[Any]) -> float:
    if value is None:
        return 0.0
    return float(value)


def admin_to_dict(admin: Admin) -> Dict[str, Any]:
    return {"id": admin.id, "name": admin.name, "email": admin.email}


def member_summary(member: Member) -> Dict[str, Any]:
    """会员摘要（嵌入到缴费、仪表盘列表中）"""
    return {
        "id": member.id,
        "first_name": member.first_name,
        "last_name": member.last_name,
        "document": member.document,
    }


def member_to_dict(member: Member) -> Dict[str, Any]:
    return {
        "id": member.id,
        "first_name": member.first_name,
        "last_name": member.last_name,
        "document": member.document,
        "email": member.email,
        "phone": member.phone,
        "address": member.address,
        "birth_date": _iso(member.birth_date),
        "registration_date": _iso(member.registration_date),
        "membership_type": member.membership_type,
        "monthly_fee": _money(member.monthly_fee),
        "last_payment_date": _iso(member.last_payment_date),
        "next_payment_date": _iso(member.next_payment_date),
        "is_active": member.is_active,
        "notes": member.notes,
        "created_at": _iso(member.created_at),
        "updated_at": _iso(member.updated_at),
    }


def member_due_to_dict(member: Member) -> Dict[str, Any]:
    """仪表盘到期列表中的会员条目"""
    data = member_summary(member)
    data["next_payment_date"] = _iso(member.next_payment_date)
    data["monthly_fee"] = _money(member.monthly_fee)
    return data


def payment_to_dict(payment: Payment, member: Optional[Member] = None) -> Dict[str, Any]:
    data = {
        "id": payment.id,
        "member_id": payment.member_id,
        "amount": _money(payment.amount),
        "payment_date": _iso(payment.payment_date),
        "payment_type": payment.payment_type,
        "description": payment.description,
        "created_at": _iso(payment.created_at),
        "updated_at": _iso(payment.updated_at),
    }
    if member is not None:
        data["member"] = member_summary(member)
    return data


def alert_to_dict(alert: Alert) -> Dict[str, Any]:
    return {
        "id": alert.id,
        "member_id": alert.member_id,
        "alert_type": alert.alert_type,
        "message": alert.message,
        "is_read": alert.is_read,
        "alert_date": _iso(alert.alert_date),
        "created_at": _iso(alert.created_at),
    }
