"""全局配置管理

所有用户可配置项均通过 .env 文件设置，运行时自动加载到此处。

使用方式：
    1. 运行 python scripts/setup_env.py 生成 .env 文件
    2. 或手动创建 .env 文件

注意：只有入口（app.py、scripts/）读取全局 ``settings``，
业务层和数据层通过构造参数接收配置值。
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置 - 所有字段均可通过 .env 或环境变量覆盖"""

    # ========== 数据库 ==========
    database_url: str = "sqlite:///data/gym.db"

    # ========== Web API ==========
    web_host: str = "0.0.0.0"
    web_port: int = 5000
    token_ttl_hours: int = 168
    page_size: int = 10

    # ========== 默认管理员（首次启动时创建） ==========
    admin_email: str = "admin@gymcontrol.com"
    admin_password: str = "admin123"
    admin_name: str = "Administrador Principal"

    # ========== 缴费提醒 ==========
    alert_days_before: int = 5
    alert_check_hour: int = 9
    alert_check_minute: int = 0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# 全局配置实例
settings = Settings()
