"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the identity registry.

    Every field can be overridden by an environment variable of the same name
    (case-insensitive).  Pydantic-settings handles the parsing automatically.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite:///./idreg.db"
    MAX_IDENTITIES: int = 1_000_000
    BURN_ADDRESS: str = "SP000000000000000000002Q6VF78"
    SECRET_KEY: str = "CHANGE-ME-IN-PRODUCTION"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 480
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    LOG_LEVEL: str = "INFO"


settings = Settings()
