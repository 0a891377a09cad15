from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "assetflow"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./assetflow.db"

    # Token verification (tokens are issued by the identity provider)
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = True

    # Audit settings
    audit_capability_denials: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ASSETFLOW_",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
