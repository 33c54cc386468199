# Logging adapter for application-wide logging
from sampling_jobs.adapters.logging_adapter import LoggingAdapter

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings
from rich import print

from sampling_jobs.core.interfaces.logging import LoggingPort

# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class SamplingSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }
    SAMPLING_LOG_LEVEL: str = "INFO"
    SAMPLING_API_URL: str = "http://127.0.0.1:8000/api"
    SAMPLING_API_TOKEN: SecretStr | None = None
    # Polling cadence of the job orchestrator (seconds)
    SAMPLING_POLL_INTERVAL: float = 2.0
    SAMPLING_INITIAL_POLL_DELAY: float = 0.1
    # Total timeout for a single HTTP request (seconds)
    SAMPLING_HTTP_TIMEOUT: float = 10.0
    SAMPLING_DEFAULT_PAGE_SIZE: int = 100
    SAMPLING_MAX_PAGE_SIZE: int = 1000

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("Sampling client settings:")
        print(self)

    @field_validator("SAMPLING_API_URL", mode="before")
    def strip_trailing_slash(cls, value: str) -> str:
        """Endpoint paths are appended with a leading slash."""
        return str(value).rstrip("/")


app_settings = SamplingSettings()

logger = LoggingAdapter("sampling_jobs", app_settings.SAMPLING_LOG_LEVEL)
