import enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuditWritePolicy(str, enum.Enum):
    # best_effort: a failed activity write is logged and counted, the primary change stands.
    best_effort = "best_effort"
    strict = "strict"


class Settings(BaseSettings):
    # Ignore unknown env vars so a shared .env can carry frontend/provider settings too.
    model_config = SettingsConfigDict(env_file=(".env", "../.env"), case_sensitive=True, extra="ignore")

    PROJECT_NAME: str = "LeadDesk"
    ENVIRONMENT: str = "development"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Bearer tokens are issued by the hosted identity provider; we only verify them.
    AUTH_JWT_SECRET: str = "change_me"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"
    JWT_ISSUER: str = ""

    DATABASE_URL: str = ""
    POSTGRES_SERVER: str = "db"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "leaddesk"

    BACKEND_CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    ALLOWED_HOSTS: list[str] = Field(default_factory=lambda: ["localhost", "127.0.0.1"])
    ENABLE_API_DOCS: bool = False

    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""
    # Public URL Twilio posts status callbacks to; signatures are computed over it.
    TWILIO_STATUS_CALLBACK_URL: str = ""

    IMPORT_BATCH_SIZE: int = 100
    REPORT_QUERY_WORKERS: int = 6
    MAX_REPORTED_ERRORS: int = 100
    AUDIT_WRITE_POLICY: AuditWritePolicy = AuditWritePolicy.best_effort

    @model_validator(mode="after")
    def _prod_guards(self):
        if self.ENVIRONMENT.lower() == "production":
            if self.ENABLE_API_DOCS:
                raise ValueError("ENABLE_API_DOCS must be false in production")
            if not self.AUTH_JWT_SECRET or len(self.AUTH_JWT_SECRET) < 32:
                raise ValueError("AUTH_JWT_SECRET must be 32+ chars in production")
            if any(h == "*" for h in self.ALLOWED_HOSTS):
                raise ValueError('ALLOWED_HOSTS must not contain "*" in production')
            if not self.TWILIO_AUTH_TOKEN:
                raise ValueError("TWILIO_AUTH_TOKEN is required in production")
        else:
            if not self.ALLOWED_HOSTS:
                self.ALLOWED_HOSTS = ["*"]
        if self.IMPORT_BATCH_SIZE < 1:
            raise ValueError("IMPORT_BATCH_SIZE must be positive")
        return self

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
