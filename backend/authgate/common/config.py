"""
配置管理 - 从环境变量加载配置
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """应用配置"""

    # 应用配置
    app_name: str = "authgate"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"

    # 数据库配置 (sqlite | postgres)
    database_type: str = "sqlite"
    sqlite_path: str = "./data/authgate.db"

    # PostgreSQL配置
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "authgate"
    postgres_password: str = "authgate_dev_pass"
    postgres_db: str = "authgate"

    # JWT
    jwt_secret: str = "dev_secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60

    # Password hashing
    bcrypt_rounds: int = 10

    # Notification service
    notification_service_url: str = "http://localhost:4321"
    notification_timeout_seconds: float = 10.0
    skip_notification_health_check: bool = False

    # Auth policy
    require_email_verification: bool = True
    disclose_deactivated_accounts: bool = True

    # Bootstrap admin (created only when the admins table is empty)
    default_admin_username: str = "admin"
    default_admin_password: str = "admin123"
    default_admin_name: str = "Super Admin"

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = "./logs"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def postgres_url(self) -> str:
        """PostgreSQL异步连接URL"""
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    @property
    def sqlite_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.sqlite_path}"

    @property
    def database_url(self) -> str:
        if self.database_type == "sqlite":
            return self.sqlite_url
        return self.postgres_url


# 全局配置实例
settings = Settings()
