from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class ClientSettings(BaseSettings):
    """Settings for the API client side. Independent of the server's database and secrets."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    API_URL: str = Field("http://localhost:8000", description="Base URL the API client talks to")
    API_TIMEOUT_SECONDS: float = 30.0

    # Practice countdown
    TIME_SYNC_INTERVAL_SECONDS: int = Field(30, description="Ticks between remaining-time syncs")
    PRACTICE_SECONDS_PER_QUESTION: int = 60  # fallback when the attempt has no time limit

client_settings = ClientSettings()
