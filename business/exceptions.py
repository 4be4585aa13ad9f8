"""业务异常体系。

所有业务层抛出的异常都继承自 GymControlError，
HTTP 层据此统一映射为带类型的错误响应。
"""


class GymControlError(Exception):
    """所有业务异常的基类。"""


class InvalidDateError(GymControlError, ValueError):
    """日期无法解析为有效的日历日期。"""


class UnsupportedMembershipTypeError(GymControlError, ValueError):
    """会员类型不是 MONTHLY/ANNUAL，无法按周期推算。"""


class StoreUnavailableError(GymControlError):
    """数据存储不可用（清扫任务在下一次调度时重试）。"""


class ConcurrentModificationError(GymControlError):
    """并发修改冲突：会员记录在读取后已被其他事务更新。"""


class EntityNotFoundError(GymControlError):
    """引用的实体不存在。"""


class DuplicateEntityError(GymControlError):
    """违反唯一约束（证件号、邮箱等）。"""


class ValidationError(GymControlError):
    """请求数据不合法。"""


class AuthenticationError(GymControlError):
    """认证失败：凭证无效或 token 过期。"""
