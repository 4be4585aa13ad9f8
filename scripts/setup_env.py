#!/usr/bin/env python3
"""交互式生成 .env 配置文件

使用方式：
    python scripts/setup_env.py

逐项询问配置（回车使用默认值），写入项目根目录的 .env。
"""
import os

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_FILE = os.path.join(PROJECT_ROOT, ".env")

# (分组标题, [(env_key, 描述, 默认值, 是否必填), ...])
CONFIG_SECTIONS = [
    ("数据库", [
        ("DATABASE_URL", "数据库连接地址", "sqlite:///data/gym.db", False),
    ]),
    ("Web API", [
        ("WEB_HOST", "Web 监听地址", "0.0.0.0", False),
        ("WEB_PORT", "Web 监听端口", "5000", False),
        ("TOKEN_TTL_HOURS", "登录 token 有效期（小时）", "168", False),
    ]),
    ("默认管理员", [
        ("ADMIN_EMAIL", "默认管理员邮箱", "admin@gymcontrol.com", False),
        ("ADMIN_PASSWORD", "默认管理员密码（至少6位）", "", True),
        ("ADMIN_NAME", "默认管理员名称", "Administrador Principal", False),
    ]),
    ("缴费提醒", [
        ("ALERT_DAYS_BEFORE", "到期前几天开始提醒", "5", False),
        ("ALERT_CHECK_HOUR", "每日提醒清扫时间-小时 (0-23)", "9", False),
        ("ALERT_CHECK_MINUTE", "每日提醒清扫时间-分钟 (0-59)", "0", False),
    ]),
]


def ask(key: str, desc: str, default: str, required: bool) -> str:
    """询问单个配置项，必填项不允许为空"""
    hint = f" (默认: {default})" if default else ""
    print(f"📝 {desc}{' [必填]' if required else ''}")
    while True:
        value = input(f"  {key}{hint}: ").strip() or default
        if value or not required:
            return value
        print(f"  ❌ {key} 是必填项，请输入值。")


def main():
    print()
    print("=" * 60)
    print("  GymControl 配置向导")
    print("=" * 60)
    print()

    if os.path.exists(ENV_FILE):
        choice = input(f"⚠️  已存在 {ENV_FILE}，是否覆盖？(y/N): ").strip().lower()
        if choice != "y":
            print("已取消。")
            return

    lines = ["# GymControl 配置文件", "# 由 scripts/setup_env.py 自动生成"]
    for title, items in CONFIG_SECTIONS:
        lines.extend(["", f"# === {title} ==="])
        for key, desc, default, required in items:
            lines.append(f"{key}={ask(key, desc, default, required)}")
            print()

    with open(ENV_FILE, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")

    print("=" * 60)
    print(f"  ✅ 配置文件已生成: {ENV_FILE}")
    print()
    print("  启动应用：")
    print("    python scripts/init_db.py")
    print("    python app.py")
    print("=" * 60)


if __name__ == "__main__":
    main()
