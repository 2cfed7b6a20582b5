from pydantic_settings import BaseSettings
from pydantic import ConfigDict

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", extra="ignore")

    ENV: str = "development"

    # Database
    DATABASE_URL: str = "sqlite:///./sessions.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT_SECONDS: int = 10
    DB_STATEMENT_TIMEOUT_SECONDS: int = 5

    # Token signing (independent secrets for access and refresh tokens)
    ACCESS_TOKEN_SECRET: str = ""
    REFRESH_TOKEN_SECRET: str = ""
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    JWT_ISSUER: str = "session-token-service"
    JWT_AUDIENCE: str = "session-token-clients"

    BCRYPT_ROUNDS: int = 12

    # Expired refresh token sweep
    TOKEN_SWEEP_ENABLED: bool = True
    TOKEN_SWEEP_INTERVAL_MINUTES: int = 60
    TOKEN_SWEEP_BATCH_SIZE: int = 500

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


settings = Settings()
