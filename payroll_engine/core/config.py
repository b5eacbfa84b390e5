import os
import logging
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()

class PayrollSettings(BaseModel):
    min_year: int = Field(default=int(os.getenv("PAYROLL_MIN_YEAR", "2020")))
    max_year: int = Field(default=int(os.getenv("PAYROLL_MAX_YEAR", "2050")))
    default_working_days: int = Field(default=int(os.getenv("PAYROLL_DEFAULT_WORKING_DAYS", "22")))
    default_overtime_rate: float = Field(default=float(os.getenv("PAYROLL_DEFAULT_OVERTIME_RATE", "1.5")))
    # Worker threads for per-employee computation; 1 computes sequentially
    max_workers: int = Field(default=int(os.getenv("PAYROLL_MAX_WORKERS", "4")))
    generated_by: str = "system"

class Config(BaseModel):
    app_name: str = "Payroll Engine"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./payroll.db")

    # Payroll computation
    payroll: PayrollSettings = PayrollSettings()

    version: str = "1.0.0"
    build_id: str = os.getenv("BUILD_ID", "local")
    request_id_header: str = "X-Request-ID"

settings = Config()

_logger = logging.getLogger(__name__)
if settings.payroll.min_year > settings.payroll.max_year:
    raise RuntimeError(
        f"FATAL: PAYROLL_MIN_YEAR ({settings.payroll.min_year}) is greater than "
        f"PAYROLL_MAX_YEAR ({settings.payroll.max_year})."
    )
if settings.environment != "development" and settings.database_url.startswith("sqlite"):
    _logger.warning("Using SQLite outside development; period uniqueness relies on a single writer file.")
