from typing import Protocol, Any, Awaitable, Callable

class RetryPort(Protocol):
    """Retry with backoff for idempotent remote reads.

    Only status and merged-sample requests go through it; a job submission
    is never repeated. The core passes `exception_types` so that only the
    errors it classified as transient are retried.
    """
    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:  # pragma: no cover - protocol
        """Execute an async callable with retry semantics.

        Args:
            func: Async callable returning a result.
            *args/**kwargs: Passed to the callable.
            Supported kw overrides (optional): attempts, wait_initial, wait_max,
            exception_types, label.
        Returns:
            Result of the successful invocation.
        Raises:
            The last exception once the attempts are used up.
        """
        ...
