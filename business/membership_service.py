"""会员与缴费服务：缴费周期计算器的调用方。

所有会改变会员缴费状态的写操作都在这里完成，每个操作一个事务：

- 新建会员：按注册日期计算首个缴费日期；
- 登记缴费：MONTHLY/ANNUAL 缴费从最近一次周期缴费重新推导下一次缴费日期；
- 修改/删除缴费：从剩余的最近一次周期缴费重新推导，没有则清空两个日期。

会员表带乐观锁版本号，并发的缴费写入冲突时抛出
ConcurrentModificationError，由调用方（HTTP 客户端）重试。
"""
from contextlib import contextmanager
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from database import DatabaseManager
from database.models import (
    Member, MembershipType, Payment, PaymentType, QUALIFYING_PAYMENT_TYPES,
)
from database.serializers import member_to_dict, payment_to_dict
from .billing import next_due_date, to_date, to_membership_type
from .exceptions import (
    ConcurrentModificationError, DuplicateEntityError, InvalidDateError,
    ValidationError,
)

# 会员资料中可直接编辑的字段
MEMBER_PROFILE_FIELDS = (
    "first_name", "last_name", "document", "email", "phone",
    "address", "notes",
)


def _parse_amount(value: Any, field: str = "amount") -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be numeric") from None
    if not amount.is_finite():
        raise ValidationError(f"{field} must be numeric")
    return amount


def _parse_payment_type(value: Any) -> str:
    try:
        return PaymentType(value).value
    except ValueError:
        raise ValidationError(f"Unsupported payment type: {value!r}") from None


def _parse_member_id(value: Any) -> int:
    try:
        member_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"member_id must be an integer: {value!r}") from None
    if isinstance(value, bool) or member_id <= 0:
        raise ValidationError(f"member_id must be a positive integer: {value!r}")
    return member_id


def _parse_registration_date(value: Any) -> date:
    """注册日期只能是今天或更早。"""
    registration = to_date(value, "registration_date")
    if registration > date.today():
        raise InvalidDateError(f"registration_date cannot be in the future: {registration}")
    return registration


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class MembershipService:
    """会员与缴费的事务性写操作。

    Args:
        db: 数据库门面，提供各子仓库和会话。
    """

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        """开启事务：正常结束提交，异常回滚并转换为业务异常。"""
        session = self.db.get_session()
        try:
            yield session
            session.commit()
        except StaleDataError as e:
            session.rollback()
            logger.warning(f"Concurrent member update rejected: {e}")
            raise ConcurrentModificationError(
                "Member was modified by another request, retry"
            ) from e
        except IntegrityError as e:
            session.rollback()
            raise DuplicateEntityError(
                "A member with this document or email already exists"
            ) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ================================================================
    # 会员
    # ================================================================

    def create_member(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """新建会员并计算首个缴费日期。

        Args:
            data: 会员数据字典，支持以下键：
                - first_name / last_name / document: 必填
                - email / phone / address / notes: 可选
                - birth_date: 可选
                - registration_date: 注册日期，默认今天，不能晚于今天
                - membership_type: MONTHLY / ANNUAL，默认 MONTHLY
                - monthly_fee: 月费，默认0

        Returns:
            新会员的字典表示。

        Raises:
            ValidationError: 必填字段缺失或金额无效。
            DuplicateEntityError: 证件号或邮箱已存在。
        """
        for field in ("first_name", "last_name", "document"):
            if not str(data.get(field) or "").strip():
                raise ValidationError("first_name, last_name and document are required")

        registration = _parse_registration_date(data.get("registration_date") or date.today())
        membership_type = to_membership_type(
            data.get("membership_type") or MembershipType.MONTHLY.value
        )
        monthly_fee = _parse_amount(data.get("monthly_fee") or 0, "monthly_fee")
        if monthly_fee < 0:
            raise ValidationError("monthly_fee cannot be negative")

        with self._transaction() as session:
            member = Member(
                first_name=data["first_name"].strip(),
                last_name=data["last_name"].strip(),
                document=str(data["document"]).strip(),
                email=_blank_to_none(data.get("email")),
                phone=_blank_to_none(data.get("phone")),
                address=_blank_to_none(data.get("address")),
                notes=_blank_to_none(data.get("notes")),
                birth_date=(
                    to_date(data["birth_date"], "birth_date")
                    if data.get("birth_date") else None
                ),
                registration_date=registration,
                membership_type=membership_type.value,
                monthly_fee=monthly_fee,
                next_payment_date=next_due_date(registration, membership_type, registration),
            )
            session.add(member)
            session.flush()

        logger.info(
            f"Member {member.id} created, first payment due {member.next_payment_date}"
        )
        return member_to_dict(member)

    def update_member(self, member_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """修改会员资料。

        注册日期或会员类型变化时重新计算下一次缴费日期：有周期缴费时
        从最近一次周期缴费推导（与删除缴费的规则一致），从未缴费时
        以注册日期为参考。已被清空的缴费日期保持为空。
        注册日期不能晚于今天。
        """
        with self._transaction() as session:
            member = self.db.members.get(member_id, session=session)

            for field in MEMBER_PROFILE_FIELDS:
                if field in data:
                    value = _blank_to_none(data[field])
                    if field in ("first_name", "last_name", "document") and value is None:
                        raise ValidationError(f"{field} cannot be empty")
                    setattr(member, field, value.strip() if isinstance(value, str) else value)

            if "birth_date" in data:
                member.birth_date = (
                    to_date(data["birth_date"], "birth_date") if data["birth_date"] else None
                )
            if data.get("monthly_fee") is not None:
                fee = _parse_amount(data["monthly_fee"], "monthly_fee")
                if fee < 0:
                    raise ValidationError("monthly_fee cannot be negative")
                member.monthly_fee = fee
            if data.get("is_active") is not None:
                member.is_active = bool(data["is_active"])

            cycle_changed = False
            if data.get("registration_date"):
                registration = _parse_registration_date(data["registration_date"])
                cycle_changed |= registration != member.registration_date
                member.registration_date = registration
            if data.get("membership_type"):
                membership_type = to_membership_type(data["membership_type"]).value
                cycle_changed |= membership_type != member.membership_type
                member.membership_type = membership_type

            if cycle_changed and member.next_payment_date is not None:
                self._recompute_due_date(member, session)
            session.flush()

        return member_to_dict(member)

    def toggle_member_status(self, member_id: int) -> Dict[str, Any]:
        """切换会员激活状态。"""
        with self._transaction() as session:
            member = self.db.members.get(member_id, session=session)
            member.is_active = not member.is_active
            session.flush()

        logger.info(f"Member {member_id} is_active -> {member.is_active}")
        return member_to_dict(member)

    def delete_member(self, member_id: int) -> None:
        """删除会员（级联删除缴费和提醒）。"""
        with self._transaction() as session:
            member = self.db.members.get(member_id, session=session)
            session.delete(member)

        logger.info(f"Member {member_id} deleted")

    # ================================================================
    # 缴费
    # ================================================================

    def record_payment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """登记缴费。

        MONTHLY/ANNUAL 缴费会在同一事务中从最近一次周期缴费重新推导
        会员的 ``last_payment_date`` 与 ``next_payment_date``：补登一笔
        早于已有缴费的记录不会让缴费日期倒退。其他类型只写入缴费记录。

        Args:
            data: 缴费数据字典：
                - member_id: 会员ID（必填）
                - amount: 金额，必须大于0（必填）
                - payment_type: 缴费类型，默认 MONTHLY
                - payment_date: 缴费日期，默认今天
                - description: 说明（可选）

        Returns:
            缴费记录字典（含会员摘要）。
        """
        if not data.get("member_id") or data.get("amount") in (None, ""):
            raise ValidationError("member_id and amount are required")
        member_id = _parse_member_id(data["member_id"])
        amount = _parse_amount(data["amount"])
        if amount <= 0:
            raise ValidationError("amount must be greater than 0")
        payment_type = _parse_payment_type(data.get("payment_type") or PaymentType.MONTHLY.value)
        payment_date = to_date(data.get("payment_date") or date.today(), "payment_date")

        with self._transaction() as session:
            member = self.db.members.get(member_id, session=session)
            payment = self.db.payments.create(
                member.id, amount, payment_date, payment_type,
                _blank_to_none(data.get("description")), session=session
            )
            if payment_type in QUALIFYING_PAYMENT_TYPES:
                self._rederive_due_dates(member, session)
            session.flush()
            result = payment_to_dict(payment, member)

        logger.info(
            f"Payment {payment.id} recorded for member {member.id} "
            f"({payment_type}, next due {member.next_payment_date})"
        )
        return result

    def update_payment(self, payment_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """修改缴费记录的金额、类型或说明。

        旧类型或新类型属于周期缴费时，从剩余的最近一次周期缴费
        重新推导会员缴费日期。
        """
        with self._transaction() as session:
            payment = self.db.payments.get(payment_id, session=session)
            old_type = payment.payment_type

            if data.get("amount") not in (None, ""):
                amount = _parse_amount(data["amount"])
                if amount <= 0:
                    raise ValidationError("amount must be greater than 0")
                payment.amount = amount
            if data.get("payment_type"):
                payment.payment_type = _parse_payment_type(data["payment_type"])
            if "description" in data:
                payment.description = _blank_to_none(data["description"])
            session.flush()

            if (old_type in QUALIFYING_PAYMENT_TYPES
                    or payment.payment_type in QUALIFYING_PAYMENT_TYPES):
                self._rederive_due_dates(payment.member, session)
            session.flush()
            result = payment_to_dict(payment, payment.member)

        return result

    def delete_payment(self, payment_id: int) -> None:
        """删除缴费记录，必要时回滚会员的缴费日期。"""
        with self._transaction() as session:
            payment = self.db.payments.get(payment_id, session=session)
            member = payment.member
            was_qualifying = payment.payment_type in QUALIFYING_PAYMENT_TYPES
            session.delete(payment)
            session.flush()
            if was_qualifying:
                self._rederive_due_dates(member, session)

        logger.info(f"Payment {payment_id} deleted")

    def _rederive_due_dates(self, member: Member, session: Session) -> None:
        """从剩余的最近一次周期缴费重新推导会员缴费日期。"""
        latest: Optional[Payment] = self.db.payments.latest_qualifying(
            member.id, session=session
        )
        if latest is None:
            member.last_payment_date = None
            member.next_payment_date = None
        else:
            member.last_payment_date = latest.payment_date
            member.next_payment_date = next_due_date(
                member.registration_date, latest.payment_type, latest.payment_date
            )
        session.flush()

    def _recompute_due_date(self, member: Member, session: Session) -> None:
        """缴费周期锚点变化后重新计算下一次缴费日期。

        有周期缴费时与删除/修改缴费走同一条推导路径（以最近一次缴费的类型为周期）；
        从未缴费时以注册日期为参考，按会员类型计算首个缴费日期。
        """
        if self.db.payments.latest_qualifying(member.id, session=session) is not None:
            self._rederive_due_dates(member, session)
            return
        member.next_payment_date = next_due_date(
            member.registration_date, member.membership_type, member.registration_date
        )
