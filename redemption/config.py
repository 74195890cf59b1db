from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=False)

    # Storage
    database_url: str = "sqlite:///./redemptions.db"

    # Logging
    log_level: str = "INFO"

    # Xsolla merchant reports
    xsolla_base_url: str = "https://api.xsolla.com/merchant/v2"
    xsolla_merchant_id: str = ""
    xsolla_api_key: str = ""
    xsolla_project_id: str = ""
    ledger_status_filter: str = "done"
    ledger_result_limit: int = 100
    ledger_timeout_s: float = 10.0

    # Discord role grant
    discord_api_base_url: str = "https://discord.com/api/v10"
    discord_bot_token: str = ""
    discord_guild_id: str = ""
    discord_role_id: str = ""
    grant_timeout_s: float = 10.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
