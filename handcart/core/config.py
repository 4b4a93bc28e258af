from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Handcart Rental API"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""

    # Operator tokens (ops/admin routes only)
    SECRET_KEY: str = ""
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""
    LOG_MAX_BYTES: int = 10_000_000
    LOG_BACKUP_COUNT: int = 5

    # Vendor (handcart hardware) API
    VENDOR_BASE_URL: str = ""
    MERCHANT_NO: str = ""
    MERCHANT_PRIVATE_KEY_B64: str = ""  # bare base64 PKCS8 DER, or a full PEM
    VENDOR_PUBLIC_KEY_B64: str = ""
    CALLBACK_VERIFY: bool = False  # False = trust-all (no vendor public key distributed yet)
    VENDOR_TIMEOUT: float = 20.0
    VENDOR_SUCCESS_CODE: str = "00000"
    DEFAULT_SITE_NO: str = ""

    # Moyasar payment gateway
    MOYASAR_BASE_URL: str = "https://api.moyasar.com/v1"
    MOYASAR_SECRET_KEY: str = ""
    GATEWAY_TIMEOUT: float = 15.0
    EXPECTED_CURRENCY: str = "SAR"
    ACCEPTED_PAYMENT_STATUSES: str = "paid,authorized"

    # Reconciliation
    STUCK_UNLOCK_MINUTES: int = 10
    RETURN_TASK_MAX_RETRIES: int = 5

    @property
    def accepted_payment_statuses(self) -> set[str]:
        return {s.strip().lower() for s in self.ACCEPTED_PAYMENT_STATUSES.split(",") if s.strip()}


settings = Settings()
