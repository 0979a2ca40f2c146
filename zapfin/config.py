from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    openrouter_api_key: str = ""
    llm_model: str = "google/gemini-2.0-flash-exp"
    db_path: str = "zapfin_ledger.json"

    whatsapp_access_token: str = ""
    whatsapp_phone_number_id: str = ""
    whatsapp_verify_token: str = ""

    confirmation_timeout_seconds: float = 300
    confirmation_max_contexts: int = 10_000
    confirmation_sweep_interval_seconds: float = 60

    correction_timeout_seconds: float = 300
    webhook_dedup_size: int = 5_000


@lru_cache
def get_settings() -> Settings:
    return Settings()
