import json
from typing import Annotated, Any, List, Optional

from pydantic import Field, SecretStr, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_DEFAULT_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _split_csv(v: Any) -> Any:
    if isinstance(v, str):
        raw = v.strip()
        if raw.startswith("["):
            return json.loads(raw)
        return [item.strip() for item in raw.split(",") if item.strip()]
    return v


class Settings(BaseSettings):
    PROJECT_NAME: str = "Landing Contact API"
    VERSION: str = "1.0.0"

    # --- Environment & Debug ---
    ENVIRONMENT: str = "development"
    DEBUG: bool = False  # Exposes exception details in 500 bodies
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    # --- Server ---
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    FRONTEND_DIR: Optional[str] = None

    # --- CORS ---
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        validate_default=True,
        description="Allowed CORS origins, comma separated or JSON list",
    )
    ALLOWED_METHODS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["GET", "POST", "OPTIONS"],
    )
    ALLOWED_HEADERS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [
            "Origin", "X-Requested-With", "Content-Type", "Accept",
            "Authorization", "Cache-Control", "Pragma", "X-Request-ID",
        ],
    )
    CORS_MAX_AGE: int = 86400

    # --- Rate Limiting / Proxy ---
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=3600, gt=0)
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=5, gt=0)
    RATE_LIMIT_RETRY_AFTER: int = Field(default=3600, ge=0)
    RATE_LIMIT_MAX_CLIENTS: int = Field(default=10_000, gt=0)
    TRUSTED_PROXIES: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["127.0.0.1", "::1"],
        description="CIDR ranges of trusted reverse proxies for X-Forwarded-For",
    )

    # --- Mail transport ---
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_SECURE: bool = False  # Implicit TLS (port 465); STARTTLS otherwise
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[SecretStr] = None
    SMTP_TIMEOUT: float = Field(default=10.0, gt=0)
    SMTP_VERIFY_ON_STARTUP: bool = False
    ADMIN_EMAIL: Optional[str] = None
    FROM_EMAIL: Optional[str] = None
    FROM_NAME: str = "Landing Page Contact Form"

    # --- Validation bounds ---
    NAME_MIN_LENGTH: int = 2
    NAME_MAX_LENGTH: int = 100
    EMAIL_MAX_LENGTH: int = 254
    SUBJECT_MIN_LENGTH: int = 5
    SUBJECT_MAX_LENGTH: int = 200
    MESSAGE_MIN_LENGTH: int = 10
    MESSAGE_MAX_LENGTH: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )

    @field_validator(
        "ALLOWED_ORIGINS", "ALLOWED_METHODS", "ALLOWED_HEADERS", "TRUSTED_PROXIES",
        mode="before",
    )
    @classmethod
    def parse_list(cls, v: Any) -> Any:
        return _split_csv(v)

    @field_validator("ALLOWED_ORIGINS", mode="after")
    @classmethod
    def default_allowed_origins(cls, v: List[str], info: ValidationInfo) -> List[str]:
        env = info.data.get("ENVIRONMENT") or "development"
        if not v:
            if env == "production":
                raise ValueError("ALLOWED_ORIGINS must be set for production deployments")
            return list(_DEFAULT_ORIGINS)
        return v

    @field_validator("LOG_LEVEL", mode="after")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def check_length_bounds(self) -> "Settings":
        for field in ("NAME", "SUBJECT", "MESSAGE"):
            low = getattr(self, f"{field}_MIN_LENGTH")
            high = getattr(self, f"{field}_MAX_LENGTH")
            if low < 0 or low > high:
                raise ValueError(
                    f"{field}_MIN_LENGTH must be between 0 and {field}_MAX_LENGTH"
                )
        return self

    @property
    def email_configured(self) -> bool:
        """True when host, credentials user and recipient are all present."""
        return bool(self.SMTP_HOST and self.SMTP_USER and self.ADMIN_EMAIL)

    @property
    def sender_address(self) -> Optional[str]:
        return self.FROM_EMAIL or self.SMTP_USER


settings = Settings()
