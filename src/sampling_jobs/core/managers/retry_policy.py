"""Retry classification shared by the managers.

Remote calls are wrapped so that only transient upstream errors reach the
retry adapter as TransientApiError; everything else (4xx, malformed bodies)
escapes on the first attempt. After the retry budget is spent the original
exception is re-raised so callers never see the wrapper.
"""

from typing import Any, Awaitable, Callable, Optional

from sampling_jobs.core.exceptions import (
    SamplingApiException,
    TransientApiError,
    is_transient_error,
)
from sampling_jobs.core.interfaces.retry import RetryPort
from sampling_jobs.core.settings import logger


async def call_with_retry(
    retry: Optional[RetryPort],
    func: Callable[[], Awaitable[Any]],
    *,
    attempts: int,
    wait_initial: float,
    wait_max: float,
    label: str,
) -> Any:
    async def classified():
        try:
            return await func()
        except SamplingApiException as exc:
            if isinstance(exc, TransientApiError) or not is_transient_error(exc):
                raise
            logger.debug(f"[{label}] transient error, will retry: status={exc.response.status}")
            raise TransientApiError(exc.response) from exc

    if retry is None:
        return await func()

    try:
        return await retry.execute(
            classified,
            attempts=attempts,
            wait_initial=wait_initial,
            wait_max=wait_max,
            exception_types=(TransientApiError,),
            label=label,
        )
    except TransientApiError as exc:
        logger.warning(f"[{label}] transient error retry exhausted status={exc.response.status}")
        if isinstance(exc.__cause__, SamplingApiException):
            raise exc.__cause__ from None
        raise
