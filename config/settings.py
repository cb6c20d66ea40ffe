"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Payroll engine configuration from environment variables."""

    rate_schedule: str = "2024"
    rate_schedule_file: str = ""
    max_workers: int = 8
    run_timeout_seconds: float = 30.0
    block_negative_net_pay: bool = False
    log_level: str = "INFO"

    @property
    def run_timeout(self) -> float | None:
        """Fan-in timeout in seconds, or None when disabled (<= 0)."""
        return self.run_timeout_seconds if self.run_timeout_seconds > 0 else None

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
