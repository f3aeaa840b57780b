import os
import logging
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()

DEV_ENCRYPTION_KEY = "aHJtcy1kZXYtb25seS1mZXJuZXQta2V5LTMyYnl0ZXM="


class PayrollDefaults(BaseModel):
    """Statutory defaults applied when a company is onboarded."""
    pay_cycle: str = "monthly"
    pay_day: int = 1
    pf_employee_rate: Decimal = Decimal("12")
    pf_employer_rate: Decimal = Decimal("12")
    pf_limit: Decimal = Decimal("15000")
    esi_employee_rate: Decimal = Decimal("0.75")
    esi_employer_rate: Decimal = Decimal("3.25")
    esi_limit: Decimal = Decimal("21000")
    tax_regime: str = os.getenv("DEFAULT_TAX_REGIME", "new")
    tds_rebate_limit: Decimal = Decimal(os.getenv("TDS_REBATE_LIMIT", "700000"))


class Config(BaseModel):
    app_name: str = "HRMS Payroll & Leave"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    version: str = "1.0.0"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./hrms.db")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    request_id_header: str = "X-Request-ID"

    # Sensitive identifiers (bank account, PAN) are stored Fernet-encrypted
    encryption_key: str = os.getenv("ENCRYPTION_KEY", DEV_ENCRYPTION_KEY)

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
            ).split(",")
            if o.strip()
        ]
    )

    # Rate limiting
    rate_limit_enabled: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))
    payroll_run_rate_limit: str = os.getenv("PAYROLL_RUN_RATE_LIMIT", "10/minute")

    payroll: PayrollDefaults = PayrollDefaults()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.is_production:
    if settings.encryption_key == DEV_ENCRYPTION_KEY:
        raise RuntimeError(
            "FATAL: ENCRYPTION_KEY must be set for production. "
            "Generate one with cryptography.fernet.Fernet.generate_key()."
        )
elif settings.encryption_key == DEV_ENCRYPTION_KEY:
    _logger.warning("Using insecure default ENCRYPTION_KEY; only acceptable outside production.")
