"""缴费周期计算器测试。"""
from datetime import date, datetime, timedelta

import pytest

from business.billing import (
    add_months, advance, next_due_date, to_date, to_membership_type,
)
from business.exceptions import InvalidDateError, UnsupportedMembershipTypeError
from database.models import MembershipType


class TestAddMonths:
    """日历月加法与月末对齐。"""

    def test_plain_month(self):
        assert add_months(date(2024, 1, 10), 1) == date(2024, 2, 10)

    def test_clamps_to_leap_february(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_clamps_to_common_february(self):
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_crosses_year(self):
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)

    def test_twelve_months_from_leap_day(self):
        assert add_months(date(2024, 2, 29), 12) == date(2025, 2, 28)
        assert add_months(date(2024, 2, 29), 48) == date(2028, 2, 29)


class TestAdvance:

    def test_monthly_advance_adds_one_month(self):
        assert advance(date(2024, 3, 15), MembershipType.MONTHLY) == date(2024, 4, 15)

    def test_annual_advance_adds_one_year(self):
        assert advance(date(2024, 3, 15), "ANNUAL") == date(2025, 3, 15)

    def test_multiple_periods_from_anchor(self):
        assert advance("2024-01-31", "MONTHLY", periods=3) == date(2024, 4, 30)


class TestNextDueDate:
    """next_due_date 的核心性质。"""

    def test_month_end_registration_clamps(self):
        """1月31日注册的月卡，当天缴费后下次为2月29日（闰年）"""
        assert next_due_date(date(2024, 1, 31), "MONTHLY", date(2024, 1, 31)) == date(2024, 2, 29)

    def test_no_drift_after_short_month(self):
        """2月29日之后回到31日，周期不漂移"""
        reg = date(2024, 1, 31)
        assert next_due_date(reg, "MONTHLY", date(2024, 2, 29)) == date(2024, 3, 31)
        assert next_due_date(reg, "MONTHLY", date(2024, 3, 31)) == date(2024, 4, 30)
        assert next_due_date(reg, "MONTHLY", date(2024, 4, 30)) == date(2024, 5, 31)

    def test_leap_day_annual_registration(self):
        reg = date(2024, 2, 29)
        assert next_due_date(reg, "ANNUAL", reg) == date(2025, 2, 28)
        assert next_due_date(reg, "ANNUAL", date(2027, 3, 1)) == date(2028, 2, 29)

    def test_result_is_strictly_after_as_of(self):
        reg = date(2024, 1, 10)
        due = next_due_date(reg, "MONTHLY", date(2024, 2, 10))
        assert due == date(2024, 3, 10)

    def test_as_of_before_due_keeps_current_cycle(self):
        reg = date(2024, 1, 10)
        assert next_due_date(reg, "MONTHLY", date(2024, 2, 9)) == date(2024, 2, 10)

    def test_annual_payment_one_day_early_is_not_doubled(self):
        """年卡在到期前一天缴费，下次到期为原锚点加一年，而不是两年"""
        reg = date(2024, 3, 1)
        current_due = next_due_date(reg, "ANNUAL", reg)
        assert current_due == date(2025, 3, 1)

        due = next_due_date(reg, "ANNUAL", current_due - timedelta(days=1))
        assert due == date(2025, 3, 1)
        assert due != date(2026, 3, 1)

    def test_late_payment_skips_to_next_cycle(self):
        reg = date(2024, 1, 15)
        assert next_due_date(reg, "MONTHLY", date(2024, 5, 20)) == date(2024, 6, 15)

    def test_idempotent(self):
        reg = date(2023, 8, 31)
        as_of = date(2024, 2, 12)
        assert next_due_date(reg, "MONTHLY", as_of) == next_due_date(reg, "MONTHLY", as_of)

    def test_future_registration(self):
        """注册日期在参考日期之后时，首个到期日为注册日加一个周期"""
        assert next_due_date(date(2024, 6, 1), "MONTHLY", date(2024, 5, 1)) == date(2024, 7, 1)

    def test_defaults_to_today(self):
        reg = date.today() - timedelta(days=400)
        due = next_due_date(reg, "MONTHLY")
        assert due > date.today()
        assert due <= date.today() + timedelta(days=31)

    @pytest.mark.parametrize("membership_type", ["MONTHLY", "ANNUAL"])
    def test_properties_hold_across_a_year(self, membership_type):
        """一年内任意参考日：结果严格晚于参考日，落在注册锚点的整周期上，且是最早的一个"""
        reg = date(2024, 1, 31)
        months = 1 if membership_type == "MONTHLY" else 12
        anchors = [add_months(reg, months * k) for k in range(0, 30)]
        as_of = reg
        while as_of < date(2025, 2, 1):
            due = next_due_date(reg, membership_type, as_of)
            assert due > as_of
            assert due in anchors
            assert anchors[anchors.index(due) - 1] <= as_of
            as_of += timedelta(days=1)

    def test_accepts_strings_and_datetimes(self):
        assert next_due_date("2024-01-10", "MONTHLY", datetime(2024, 1, 10, 18, 30)) == date(2024, 2, 10)
        assert next_due_date("2024-01-10T00:00:00.000Z", "MONTHLY", "2024-01-10") == date(2024, 2, 10)


class TestInputErrors:

    @pytest.mark.parametrize("value", [None, "", "not-a-date", "2024-13-01", 20240101])
    def test_invalid_date(self, value):
        with pytest.raises(InvalidDateError):
            to_date(value)

    def test_invalid_registration_date_in_calculator(self):
        with pytest.raises(InvalidDateError):
            next_due_date("31/01/2024", "MONTHLY", date(2024, 2, 1))

    @pytest.mark.parametrize("value", ["WEEKLY", "monthly", None, "REGISTRATION"])
    def test_unsupported_membership_type(self, value):
        with pytest.raises(UnsupportedMembershipTypeError):
            to_membership_type(value)

    def test_calculator_rejects_unknown_type(self):
        with pytest.raises(UnsupportedMembershipTypeError):
            next_due_date(date(2024, 1, 1), "QUARTERLY", date(2024, 1, 1))

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            to_date("garbage")
