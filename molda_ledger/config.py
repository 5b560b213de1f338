import os
from functools import lru_cache
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings:
    def __init__(
        self,
        database_url: str,
        sql_echo: bool,
        default_account_name: str,
        notifier_webhook_url: Optional[str],
        notifier_timeout_secs: float,
        frontend_url: str,
        app_log_level: str = "INFO",
        third_party_log_level: str = "WARNING",
        log_file: Optional[str] = None,
        log_max_bytes: int = 10 * 1024 * 1024,
        log_backup_count: int = 5,
    ) -> None:
        self.database_url = database_url
        self.sql_echo = sql_echo
        self.default_account_name = default_account_name
        self.notifier_webhook_url = notifier_webhook_url
        self.notifier_timeout_secs = notifier_timeout_secs
        self.frontend_url = frontend_url
        self.app_log_level = app_log_level
        self.third_party_log_level = third_party_log_level
        self.log_file = log_file
        self.log_max_bytes = log_max_bytes
        self.log_backup_count = log_backup_count


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///molda_ledger.db"),
        sql_echo=os.getenv("SQL_ECHO", "false").lower() == "true",
        default_account_name=os.getenv("DEFAULT_ACCOUNT_NAME", "Wallet"),
        notifier_webhook_url=os.getenv("NOTIFIER_WEBHOOK_URL") or None,
        notifier_timeout_secs=float(os.getenv("NOTIFIER_TIMEOUT_SECS", "5")),
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
        app_log_level=os.getenv("APP_LOG_LEVEL", "INFO"),
        third_party_log_level=os.getenv("THIRD_PARTY_LOG_LEVEL", "WARNING"),
        log_file=os.getenv("LOG_FILE") or None,
        log_max_bytes=int(os.getenv("LOG_MAX_BYTES", str(10 * 1024 * 1024))),
        log_backup_count=int(os.getenv("LOG_BACKUP_COUNT", "5")),
    )
