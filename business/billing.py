"""缴费周期计算器。

根据会员的注册日期和会员类型（月卡/年卡）推算下一次缴费日期。
本模块为纯函数，不访问数据库。

月末对齐规则：
    每个候选日期都从注册日期直接推算（注册日 + k 个周期），
    而不是逐次累加。目标月份天数不足时取该月最后一天。
    因此 1 月 31 日注册的月卡依次到期于 2 月 29 日（闰年）、
    3 月 31 日、4 月 30 日……，周期不会漂移。
"""
from calendar import monthrange
from datetime import date, datetime
from typing import Optional, Union

from database.models import MembershipType
from .exceptions import InvalidDateError, UnsupportedMembershipTypeError

DateLike = Union[date, datetime, str]

PERIOD_MONTHS = {
    MembershipType.MONTHLY: 1,
    MembershipType.ANNUAL: 12,
}


def to_date(value: Optional[DateLike], field: str = "date") -> date:
    """将 date / datetime / ISO 字符串解析为 date。

    Args:
        value: 待解析的值。
        field: 字段名，用于错误信息。

    Returns:
        解析后的 date 对象。

    Raises:
        InvalidDateError: 值为空或无法解析。
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
    raise InvalidDateError(f"Invalid {field}: {value!r}")


def to_membership_type(value) -> MembershipType:
    """解析会员类型，只接受 MONTHLY / ANNUAL。

    Raises:
        UnsupportedMembershipTypeError: 类型不支持周期推算。
    """
    try:
        membership_type = MembershipType(value)
    except ValueError:
        raise UnsupportedMembershipTypeError(
            f"Unsupported membership type: {value!r}"
        ) from None
    return membership_type


def add_months(anchor: date, months: int) -> date:
    """日历月加法，日期超出目标月天数时取月末。"""
    year = anchor.year + (anchor.month - 1 + months) // 12
    month = (anchor.month - 1 + months) % 12 + 1
    last_day = monthrange(year, month)[1]
    return date(year, month, min(anchor.day, last_day))


def advance(anchor: DateLike, membership_type, periods: int = 1) -> date:
    """从 anchor 推进 periods 个完整周期。

    Args:
        anchor: 锚点日期（通常为注册日期）。
        membership_type: MONTHLY 或 ANNUAL。
        periods: 周期数。

    Returns:
        推进后的日期。
    """
    anchor = to_date(anchor, "anchor")
    months = PERIOD_MONTHS[to_membership_type(membership_type)]
    return add_months(anchor, months * periods)


def next_due_date(registration_date: DateLike, membership_type,
                  as_of: Optional[DateLike] = None) -> date:
    """计算严格晚于 as_of 的下一个缴费日期。

    从注册日期开始按周期推进，直到结果严格大于 as_of。

    Args:
        registration_date: 注册日期。
        membership_type: MONTHLY 或 ANNUAL。
        as_of: 参考日期。登记缴费时为缴费日期，预测时默认为今天。

    Returns:
        下一个缴费日期，与注册日期处于同一周期节奏上。

    Raises:
        InvalidDateError: 日期无法解析。
        UnsupportedMembershipTypeError: 会员类型不支持。
    """
    registration = to_date(registration_date, "registration_date")
    reference = to_date(as_of, "as_of") if as_of is not None else date.today()
    months = PERIOD_MONTHS[to_membership_type(membership_type)]

    # 先跳过整段已过去的周期，再逐个检查
    elapsed = (reference.year - registration.year) * 12 + (reference.month - registration.month)
    periods = max(1, elapsed // months)
    candidate = add_months(registration, months * periods)
    while candidate <= reference:
        periods += 1
        candidate = add_months(registration, months * periods)
    return candidate
