"""写入示例数据（会员与缴费）

使用方式：
    python scripts/seed.py [DATABASE_URL]

证件号已存在的会员会被跳过，可重复执行。
"""
import sys
import os
from datetime import date, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import DatabaseManager
from business.alert_sweep import AlertSweep
from business.auth import AuthService
from business.exceptions import DuplicateEntityError
from business.membership_service import MembershipService
from config.settings import settings
from loguru import logger


def sample_members(today: date):
    """示例会员：一个即将到期、一个逾期、一个年卡、一个停用"""
    return [
        {
            "first_name": "Juan", "last_name": "Pérez", "document": "12345678",
            "email": "juan.perez@email.com", "phone": "+54 9 11 1234-5678",
            "address": "Av. Corrientes 1234, CABA", "birth_date": "1990-05-15",
            "registration_date": today - timedelta(days=27), "monthly_fee": 5000,
        },
        {
            "first_name": "María", "last_name": "González", "document": "87654321",
            "email": "maria.gonzalez@email.com", "phone": "+54 9 11 8765-4321",
            "address": "Av. Santa Fe 5678, CABA", "birth_date": "1985-08-22",
            "registration_date": today - timedelta(days=75), "monthly_fee": 6000,
        },
        {
            "first_name": "Carlos", "last_name": "Rodríguez", "document": "11223344",
            "email": "carlos.rodriguez@email.com", "phone": "+54 9 11 1122-3344",
            "address": "Av. Rivadavia 9999, CABA", "birth_date": "1988-12-10",
            "registration_date": today - timedelta(days=200),
            "membership_type": "ANNUAL", "monthly_fee": 4500,
        },
        {
            "first_name": "Ana", "last_name": "Martínez", "document": "99887766",
            "email": "ana.martinez@email.com", "phone": "+54 9 11 9988-7766",
            "address": "Av. Cabildo 2468, CABA", "birth_date": "1992-03-07",
            "registration_date": today - timedelta(days=40), "monthly_fee": 5500,
        },
    ]


def seed(database_url=None):
    db = DatabaseManager(database_url or settings.database_url)
    db.create_tables()
    AuthService(db).ensure_default_admin(
        settings.admin_email, settings.admin_password, settings.admin_name
    )
    service = MembershipService(db)
    today = date.today()

    created = {}
    for data in sample_members(today):
        try:
            member = service.create_member(data)
        except DuplicateEntityError:
            logger.info(f"Member {data['document']} already exists, skipped")
            continue
        created[data["document"]] = member
        logger.info(f"Created member {member['first_name']} {member['last_name']}")

    if "12345678" in created:
        service.record_payment({
            "member_id": created["12345678"]["id"], "amount": 5000,
            "payment_type": "REGISTRATION", "payment_date": today - timedelta(days=27),
            "description": "Matrícula",
        })
    if "87654321" in created:
        # 只缴了第一个月，之后逾期
        service.record_payment({
            "member_id": created["87654321"]["id"], "amount": 6000,
            "payment_type": "MONTHLY", "payment_date": today - timedelta(days=74),
            "description": "Pago mensual",
        })
    if "11223344" in created:
        service.record_payment({
            "member_id": created["11223344"]["id"], "amount": 54000,
            "payment_type": "ANNUAL", "payment_date": today - timedelta(days=200),
            "description": "Pago anual",
        })
    if "99887766" in created:
        service.toggle_member_status(created["99887766"]["id"])

    result = AlertSweep(db, settings.alert_days_before).run()
    logger.info(f"Seed completed, alerts: {result.to_dict()}")
    db.close()


if __name__ == "__main__":
    seed(sys.argv[1] if len(sys.argv) > 1 else None)
