"""会员与缴费服务测试：缴费日期的推进与回滚。"""
from datetime import date, timedelta

import pytest

from business.exceptions import (
    ConcurrentModificationError, DuplicateEntityError, EntityNotFoundError,
    InvalidDateError, UnsupportedMembershipTypeError, ValidationError,
)
from tests.conftest import make_member


def pay(service, member_id, payment_date, payment_type="MONTHLY", amount=5000):
    return service.record_payment({
        "member_id": member_id,
        "amount": amount,
        "payment_type": payment_type,
        "payment_date": payment_date,
    })


class TestCreateMember:

    def test_first_due_date_is_one_cycle_after_registration(self, service):
        member = make_member(service)

        assert member["registration_date"] == "2024-01-10"
        assert member["next_payment_date"] == "2024-02-10"
        assert member["last_payment_date"] is None
        assert member["is_active"] is True
        assert member["monthly_fee"] == 5000.0

    def test_annual_member(self, service):
        member = make_member(service, membership_type="ANNUAL", registration_date="2024-02-29")
        assert member["next_payment_date"] == "2025-02-28"

    def test_defaults(self, service):
        member = service.create_member({
            "first_name": "Ana", "last_name": "Martínez", "document": "111",
        })
        assert member["membership_type"] == "MONTHLY"
        assert member["registration_date"] == date.today().isoformat()
        assert member["next_payment_date"] > member["registration_date"]

    def test_missing_required_fields(self, service):
        with pytest.raises(ValidationError):
            service.create_member({"first_name": "Ana", "last_name": "Martínez"})

    def test_duplicate_document(self, service):
        make_member(service, suffix="1")
        with pytest.raises(DuplicateEntityError):
            make_member(service, suffix="2", document="DOC-1")

    def test_unsupported_membership_type(self, service):
        with pytest.raises(UnsupportedMembershipTypeError):
            make_member(service, membership_type="WEEKLY")

    def test_invalid_registration_date(self, service):
        with pytest.raises(InvalidDateError):
            make_member(service, registration_date="10/01/2024")

    def test_future_registration_rejected(self, service, temp_db):
        """注册日期不能晚于今天"""
        with pytest.raises(InvalidDateError):
            make_member(service, registration_date=date.today() + timedelta(days=30))
        assert temp_db.members.count() == 0

    def test_registration_today_allowed(self, service):
        member = make_member(service, registration_date=date.today())
        assert member["registration_date"] == date.today().isoformat()

    def test_blank_email_stored_as_null(self, service):
        """空邮箱不参与唯一约束"""
        first = make_member(service, suffix="1", email="")
        second = make_member(service, suffix="2", email="  ")
        assert first["email"] is None
        assert second["email"] is None


class TestRecordPayment:

    def test_monthly_payment_advances_due_date(self, service, temp_db):
        member = make_member(service)
        payment = pay(service, member["id"], "2024-02-10")

        assert payment["member"]["id"] == member["id"]
        detail = temp_db.get_member_detail(member["id"])
        assert detail["last_payment_date"] == "2024-02-10"
        assert detail["next_payment_date"] == "2024-03-10"

    def test_late_payment_keeps_registration_anchor(self, service, temp_db):
        member = make_member(service)
        pay(service, member["id"], "2024-03-15")

        detail = temp_db.get_member_detail(member["id"])
        assert detail["next_payment_date"] == "2024-04-10"

    def test_month_end_registration(self, service, temp_db):
        member = make_member(service, registration_date="2024-01-31")
        pay(service, member["id"], "2024-01-31")
        assert temp_db.get_member_detail(member["id"])["next_payment_date"] == "2024-02-29"

        pay(service, member["id"], "2024-02-29")
        assert temp_db.get_member_detail(member["id"])["next_payment_date"] == "2024-03-31"

    def test_annual_payment_one_day_before_due(self, service, temp_db):
        member = make_member(service, membership_type="ANNUAL", registration_date="2024-03-01")
        assert member["next_payment_date"] == "2025-03-01"

        pay(service, member["id"], "2025-02-28", payment_type="ANNUAL")

        detail = temp_db.get_member_detail(member["id"])
        assert detail["last_payment_date"] == "2025-02-28"
        assert detail["next_payment_date"] == "2025-03-01"

    @pytest.mark.parametrize("payment_type", ["REGISTRATION", "PENALTY", "OTHER"])
    def test_non_qualifying_payment_leaves_dates(self, service, temp_db, payment_type):
        member = make_member(service)
        pay(service, member["id"], "2024-02-20", payment_type=payment_type)

        detail = temp_db.get_member_detail(member["id"])
        assert detail["last_payment_date"] is None
        assert detail["next_payment_date"] == "2024-02-10"
        assert len(detail["payments"]) == 1

    def test_amount_must_be_positive(self, service):
        member = make_member(service)
        with pytest.raises(ValidationError):
            pay(service, member["id"], "2024-02-10", amount=0)
        with pytest.raises(ValidationError):
            pay(service, member["id"], "2024-02-10", amount="abc")

    def test_unknown_payment_type(self, service):
        member = make_member(service)
        with pytest.raises(ValidationError):
            pay(service, member["id"], "2024-02-10", payment_type="DONATION")

    def test_backdated_payment_does_not_move_dates_backwards(self, service, temp_db):
        """补登较早的缴费时，仍以最近一次周期缴费为准"""
        member = make_member(service)
        pay(service, member["id"], "2024-03-10")
        pay(service, member["id"], "2024-02-10")

        detail = temp_db.get_member_detail(member["id"])
        assert detail["last_payment_date"] == "2024-03-10"
        assert detail["next_payment_date"] == "2024-04-10"

    @pytest.mark.parametrize("member_id", ["abc", "1.5", -3])
    def test_invalid_member_id(self, service, member_id):
        with pytest.raises(ValidationError):
            pay(service, member_id, "2024-02-10")

    def test_unknown_member(self, service):
        with pytest.raises(EntityNotFoundError):
            pay(service, 999, "2024-02-10")

    def test_failed_payment_is_not_persisted(self, service, temp_db):
        member = make_member(service)
        with pytest.raises(InvalidDateError):
            pay(service, member["id"], "yesterday")
        assert temp_db.list_payments()["pagination"]["total"] == 0


class TestPaymentRollback:
    """修改/删除缴费后，缴费日期从剩余的周期缴费重新推导。"""

    def test_deleting_only_monthly_payment_clears_dates(self, service, temp_db):
        member = make_member(service)
        payment = pay(service, member["id"], "2024-02-10")

        service.delete_payment(payment["id"])

        detail = temp_db.get_member_detail(member["id"])
        assert detail["last_payment_date"] is None
        assert detail["next_payment_date"] is None
        assert detail["payments"] == []

    def test_deleting_latest_restores_previous_cycle(self, service, temp_db):
        member = make_member(service)
        pay(service, member["id"], "2024-02-10")
        latest = pay(service, member["id"], "2024-03-10")

        service.delete_payment(latest["id"])

        detail = temp_db.get_member_detail(member["id"])
        assert detail["last_payment_date"] == "2024-02-10"
        assert detail["next_payment_date"] == "2024-03-10"

    def test_deleting_non_qualifying_payment_keeps_dates(self, service, temp_db):
        member = make_member(service)
        pay(service, member["id"], "2024-02-10")
        fee = pay(service, member["id"], "2024-02-11", payment_type="REGISTRATION")

        service.delete_payment(fee["id"])

        detail = temp_db.get_member_detail(member["id"])
        assert detail["last_payment_date"] == "2024-02-10"
        assert detail["next_payment_date"] == "2024-03-10"

    def test_retyping_payment_rederives(self, service, temp_db):
        member = make_member(service)
        payment = pay(service, member["id"], "2024-02-10")

        updated = service.update_payment(payment["id"], {"payment_type": "OTHER"})

        assert updated["payment_type"] == "OTHER"
        detail = temp_db.get_member_detail(member["id"])
        assert detail["last_payment_date"] is None
        assert detail["next_payment_date"] is None

    def test_update_amount_only(self, service, temp_db):
        member = make_member(service)
        payment = pay(service, member["id"], "2024-02-10")

        updated = service.update_payment(payment["id"], {"amount": "7500.50"})

        assert updated["amount"] == 7500.5
        assert temp_db.get_member_detail(member["id"])["next_payment_date"] == "2024-03-10"

    def test_delete_missing_payment(self, service):
        with pytest.raises(EntityNotFoundError):
            service.delete_payment(12345)


class TestMemberMaintenance:

    def test_membership_type_change_without_payments(self, service):
        """从未缴费：按新会员类型以注册日期为参考计算"""
        member = make_member(service)

        updated = service.update_member(member["id"], {"membership_type": "ANNUAL"})

        assert updated["membership_type"] == "ANNUAL"
        assert updated["next_payment_date"] == "2025-01-10"

    def test_registration_change_without_payments(self, service):
        member = make_member(service)
        updated = service.update_member(member["id"], {"registration_date": "2024-01-31"})
        assert updated["next_payment_date"] == "2024-02-29"

    def test_type_change_follows_latest_payment(self, service, temp_db):
        """已有周期缴费时，修改会员类型与修改/删除缴费得到同一个缴费日期"""
        member = make_member(service, membership_type="ANNUAL")
        pay(service, member["id"], "2024-01-10", payment_type="ANNUAL")
        fee = pay(service, member["id"], "2024-01-12", payment_type="PENALTY")

        updated = service.update_member(member["id"], {"membership_type": "MONTHLY"})
        assert updated["next_payment_date"] == "2025-01-10"

        service.update_payment(fee["id"], {"payment_type": "MONTHLY"})
        service.update_payment(fee["id"], {"payment_type": "PENALTY"})
        assert temp_db.get_member_detail(member["id"])["next_payment_date"] == "2025-01-10"

    def test_future_registration_rejected_on_update(self, service):
        member = make_member(service)
        future = (date.today() + timedelta(days=1)).isoformat()
        with pytest.raises(InvalidDateError):
            service.update_member(member["id"], {"registration_date": future})

    def test_profile_update_keeps_due_date(self, service):
        member = make_member(service)
        updated = service.update_member(member["id"], {"phone": "+54 11 5555", "notes": "VIP"})

        assert updated["phone"] == "+54 11 5555"
        assert updated["next_payment_date"] == member["next_payment_date"]

    def test_required_field_cannot_be_blanked(self, service):
        member = make_member(service)
        with pytest.raises(ValidationError):
            service.update_member(member["id"], {"first_name": "  "})

    def test_toggle_status(self, service):
        member = make_member(service)
        assert service.toggle_member_status(member["id"])["is_active"] is False
        assert service.toggle_member_status(member["id"])["is_active"] is True

    def test_delete_member_cascades(self, service, temp_db):
        member = make_member(service)
        payment = pay(service, member["id"], "2024-02-10")
        alert = temp_db.create_alert(member["id"], "PAYMENT_DUE_SOON", "manual")

        service.delete_member(member["id"])

        with pytest.raises(EntityNotFoundError):
            temp_db.get_member_detail(member["id"])
        with pytest.raises(EntityNotFoundError):
            temp_db.get_payment_detail(payment["id"])
        with pytest.raises(EntityNotFoundError):
            temp_db.alerts.get(alert["id"])

    def test_stale_member_write_is_rejected(self, service, temp_db):
        """两个写操作基于同一版本的会员时，后提交者被拒绝"""
        member = make_member(service)

        with pytest.raises(ConcurrentModificationError):
            with service._transaction() as session:
                stale = temp_db.members.get(member["id"], session=session)
                service.toggle_member_status(member["id"])
                stale.notes = "edited from a stale copy"
                session.flush()

        detail = temp_db.get_member_detail(member["id"])
        assert detail["is_active"] is False
        assert detail["notes"] is None
