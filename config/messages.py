"""面向用户的文案模板（西班牙语区门店）。

提醒消息在清扫任务中生成并落库，因此模板集中放在这里，
更换语言时只需替换本模块。
"""

PAYMENT_DUE_SOON_TEMPLATE = "{full_name} ({document}) - Pago vence en {days} día(s)"
PAYMENT_OVERDUE_TEMPLATE = "{full_name} ({document}) - Pago vencido hace {days} día(s)"

MONTH_NAMES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]


def payment_due_soon_message(full_name: str, document: str, days: int) -> str:
    """即将到期提醒文案"""
    return PAYMENT_DUE_SOON_TEMPLATE.format(
        full_name=full_name, document=document, days=days
    )


def payment_overdue_message(full_name: str, document: str, days: int) -> str:
    """逾期提醒文案"""
    return PAYMENT_OVERDUE_TEMPLATE.format(
        full_name=full_name, document=document, days=days
    )


def month_name(month: int) -> str:
    """月份名称（1-12）"""
    return MONTH_NAMES[month - 1]
