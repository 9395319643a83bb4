from decimal import Decimal
from typing import List, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "MedClaim Lifecycle Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Claim lifecycle policy
    COVERAGE_PERCENTAGE: Decimal = Decimal("0.8")  # share of claim cost paid out
    REQUIRE_REJECTION_NOTES: bool = True
    PROTECT_COMPLETED_PAYMENTS: bool = False  # refuse to delete claims with completed payments

    # Listing
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # CORS Configuration
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("COVERAGE_PERCENTAGE")
    @classmethod
    def check_coverage(cls, v: Decimal) -> Decimal:
        if not Decimal("0") < v <= Decimal("1"):
            raise ValueError("COVERAGE_PERCENTAGE must be in (0, 1]")
        return v

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    class Config:
        env_file = ".env"
        case_sensitive = True


# Create settings instance
settings = Settings()
