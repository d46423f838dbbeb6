from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    # CORS origins for the health/status HTTP routes (comma-separated via env)
    allowed_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    # Max roll entries kept per room; oldest evicted first
    roll_history_limit: int = 50
    # Pending outbound envelopes per connection before the oldest is dropped
    outbox_size: int = 256
    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )


settings = Settings()
