"""业务层：缴费周期计算、会员与缴费服务、提醒清扫与定时调度。"""
