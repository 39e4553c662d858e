"""Конфигурация приложения."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from sentinel.core.types import SECONDS_PER_DAY, WEI_PER_XRP


class Settings(BaseSettings):
    """Настройки приложения (переменные окружения с префиксом SENTINEL_)."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="SENTINEL_", extra="allow")

    # Redis (пусто: состояние в памяти процесса)
    redis_url: str = ""

    # Роли
    owner_address: str = ""  # Должен быть установлен через SENTINEL_OWNER_ADDRESS
    auditor_address: str = ""  # Пусто: аудитор совпадает с владельцем
    auditor_name: str = "Agent Sentinel"
    custody_address: str = "sentinel-requests"

    # Политика очереди
    min_audit_fee: int = 5 * WEI_PER_XRP
    refund_timeout_seconds: int = 7 * SECONDS_PER_DAY

    # Реестр
    registry_cooldown_seconds: int = 60

    # Dev: пополнение балансов через /accounts/{identity}/mint
    faucet_enabled: bool = False

    event_log_size: int = 1000
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
