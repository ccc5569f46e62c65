from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    DATABASE_URL: str = Field(..., description="Async PostgreSQL connection string (postgresql+asyncpg://...)")

    # Redis
    REDIS_URL: str = Field("redis://localhost:6379/0")

    # Auth
    SECRET_KEY: str = Field(..., description="Secret used to sign bearer tokens")
    TOKEN_TTL_SECONDS: int = 86400  # 24 hours

    # Practice Settings
    PRACTICE_MIN_QUESTIONS: int = 5
    PRACTICE_MAX_QUESTIONS: int = 50
    PRACTICE_SECONDS_PER_QUESTION: int = 60
    PRACTICE_HISTORY_LOOKBACK: int = 5  # previous practices scanned to avoid repeats
    PRACTICE_EXCLUDE_LIMIT: int = 20  # question texts passed to the generator as "do not repeat"
    GENERATION_RATE_LIMIT: int = Field(3, description="Practice generations allowed per user per minute")

    # AI Question Generation (Groq)
    GROQ_API_KEY: str = Field("", description="Groq API key for practice question generation")
    GROQ_MODEL: str = Field("llama-3.3-70b-versatile", description="Groq model to use")
    GROQ_BASE_URL: str = Field("https://api.groq.com/openai/v1/chat/completions")

    # Monitoring
    MONITOR_INTERVAL_SECONDS: int = 30

    # Environment
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    ENV: str = "production"  # development, staging, production
    DEBUG: bool = False

settings = Settings()
