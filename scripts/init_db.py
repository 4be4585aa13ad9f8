"""初始化数据库：建表并创建默认管理员"""
import sys
import os

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import DatabaseManager
from business.auth import AuthService
from config.settings import settings
from loguru import logger


def init_database(database_url=None):
    """初始化数据库和默认管理员"""
    logger.info("Initializing database...")

    db = DatabaseManager(database_url or settings.database_url)

    logger.info("Creating tables...")
    db.create_tables()

    auth = AuthService(db)
    if not auth.ensure_default_admin(
        settings.admin_email, settings.admin_password, settings.admin_name
    ):
        logger.info("Admin already exists, skipped")

    db.close()
    logger.info("Database initialization completed!")


if __name__ == "__main__":
    init_database(sys.argv[1] if len(sys.argv) > 1 else None)
