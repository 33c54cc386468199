"""Configuration models for core domain components.

This module provides Pydantic-based configuration classes that consolidate
settings for domain managers, enabling dependency injection and testability.
"""

from pydantic import BaseModel, Field, model_validator


class OrchestratorConfig(BaseModel):
    """Configuration for JobOrchestrator behavior.

    Attributes:
        poll_interval: Seconds between status requests (float for test flexibility)
        initial_poll_delay: Seconds before the first status request after submission
        status_fetch_retries: Attempts for the follow-up status fetch of a synchronously completed job
        retry_base_wait: Base wait in seconds for exponential backoff between retries
        retry_max_wait: Maximum wait in seconds between retry attempts
    """

    poll_interval: float = Field(
        default=2.0,
        gt=0,
        description="Interval in seconds between job status polling requests"
    )

    initial_poll_delay: float = Field(
        default=0.1,
        ge=0,
        description="Delay in seconds before the first poll so it does not duplicate the start response"
    )

    status_fetch_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts for the status fetch that follows a synchronous completion"
    )

    retry_base_wait: float = Field(
        default=0.2,
        gt=0,
        description="Base wait time in seconds for exponential backoff between retries"
    )

    retry_max_wait: float = Field(
        default=2.0,
        gt=0,
        description="Maximum wait time in seconds between retry attempts"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @classmethod
    def from_app_settings(cls, settings) -> "OrchestratorConfig":
        """Factory method to construct config from SamplingSettings instance."""
        return cls(
            poll_interval=settings.SAMPLING_POLL_INTERVAL,
            initial_poll_delay=settings.SAMPLING_INITIAL_POLL_DELAY,
        )


class ResultPagerConfig(BaseModel):
    """Configuration for ResultPager behavior.

    Attributes:
        default_page_size: Page size used when the caller does not pass one
        max_page_size: Largest page size the pager will request
        fetch_max_retries: Attempts for transient errors while fetching a page
    """

    default_page_size: int = Field(default=100, ge=1)
    max_page_size: int = Field(default=1000, ge=1)

    fetch_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum retry attempts for transient errors when fetching a page"
    )

    retry_base_wait: float = Field(default=0.2, gt=0)
    retry_max_wait: float = Field(default=2.0, gt=0)

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @model_validator(mode="after")
    def check_page_sizes(self) -> "ResultPagerConfig":
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must not exceed max_page_size")
        return self

    @classmethod
    def from_app_settings(cls, settings) -> "ResultPagerConfig":
        return cls(
            default_page_size=settings.SAMPLING_DEFAULT_PAGE_SIZE,
            max_page_size=settings.SAMPLING_MAX_PAGE_SIZE,
        )
