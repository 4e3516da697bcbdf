"""
Engine configuration for strategylab.

Provides:
- Environment-aware settings loaded from env vars / .env
- Simulation and optimization bounds
- Logging options
"""

from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    # Environment
    app_env: str = "development"
    environment: str = ""  # Alias for app_env

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file_enabled: bool = False
    log_file_path: str = "/var/log/strategylab/engine.log"

    # Statistics
    risk_free_rate: float = 0.02  # 2% annual

    # Backtest date-range bounds (days)
    backtest_min_days: int = 30
    backtest_max_days: int = 1095

    # Optimization bounds
    optimization_min_days: int = 60
    optimization_max_days: int = 730
    max_optimization_combinations: int = 100
    optimizer_max_workers: int = 4

    # Position sizing
    min_position_value: float = 1000.0

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    @field_validator("optimizer_max_workers", "max_optimization_combinations")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @property
    def effective_env(self) -> str:
        """Get effective environment name."""
        return self.environment or self.app_env

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.effective_env in ("production", "prod")

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.effective_env in ("development", "dev", "")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars not defined in Settings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
