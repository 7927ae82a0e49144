"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseSettings):
    """External price provider endpoints and credentials.

    MetalpriceAPI.com is tried first, Metals.dev second. Both offer a free
    tier of 100 requests per month; an empty key disables the provider.
    """

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    metalprice_api_key: SecretStr = SecretStr("")
    metalprice_url: str = "https://api.metalpriceapi.com/v1/latest"
    metalsdev_api_key: SecretStr = SecretStr("")
    metalsdev_url: str = "https://api.metals.dev/v1/latest"
    request_timeout: float = 10.0  # seconds per provider call


class HistorySettings(BaseSettings):
    """Rolling price history storage.

    All fields configurable via HISTORY_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="HISTORY_")

    db_path: str = "data/metal_rates.db"
    capacity: int = 30  # days kept, oldest evicted first
    seed_days: int = 7  # synthetic days written into an empty history
    timezone: str = "Asia/Kolkata"  # calendar-day boundary for history keys


class RefreshSettings(BaseSettings):
    """Automatic refresh cadence."""

    model_config = SettingsConfigDict(env_prefix="REFRESH_")

    interval_seconds: int = 3600
    enabled: bool = True


class DashboardSettings(BaseSettings):
    """Dashboard API server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "127.0.0.1"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    providers: ProviderSettings = ProviderSettings()
    history: HistorySettings = HistorySettings()
    refresh: RefreshSettings = RefreshSettings()
    dashboard: DashboardSettings = DashboardSettings()
