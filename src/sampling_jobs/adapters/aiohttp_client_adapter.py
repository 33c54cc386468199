# sampling_jobs/adapters/aiohttp_client_adapter.py
import asyncio
import aiohttp
from typing import Any, Dict, Optional

from sampling_jobs.core.interfaces.http_client import HttpClientPort
from sampling_jobs.core.exceptions import SamplingApiException
from sampling_jobs.core.models.api_error import ApiErrorResponse
from sampling_jobs.core.settings import logger


def _error_detail(body: Any, fallback: str) -> str:
    # FastAPI style {"detail": ...} or {"message": ...}
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if detail:
            return str(detail)
    if isinstance(body, str) and body.strip():
        return body.strip()[:200]
    return fallback


class AioHttpClientAdapter(HttpClientPort):
    def __init__(
        self,
        total_timeout: float = 10.0,
        sock_read_timeout: float = 10.0,
        sock_connect_timeout: float = 5.0,
    ):
        self._session: Optional[aiohttp.ClientSession] = None
        self._default_total = total_timeout
        self._default_sock_read = sock_read_timeout
        self._default_sock_connect = sock_connect_timeout
        # Pre-built ClientTimeout used when callers do not provide a timeout
        self._default_client_timeout = aiohttp.ClientTimeout(
            total=self._default_total,
            sock_read=self._default_sock_read,
            sock_connect=self._default_sock_connect,
        )

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    def _timeout(self, timeout: float | None) -> aiohttp.ClientTimeout:
        if timeout is None:
            return self._default_client_timeout
        # Keep adapter-level sock_read/sock_connect values but apply provided total
        return aiohttp.ClientTimeout(
            total=timeout,
            sock_read=self._default_sock_read,
            sock_connect=self._default_sock_connect,
        )

    async def get(
        self,
        url: str,
        params: Dict[str, Any] | None = None,
        timeout: float | None = None,
        headers: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")

        return await self._fetch_json(
            url,
            params=params,
            headers=headers,
            timeout=self._timeout(timeout),
        )

    async def _fetch_json(self, url: str, **kwargs) -> Dict[str, Any]:
        """
        Fetch JSON from URL with sampling-service specific error handling.

        Translates HTTP/network errors into SamplingApiException.
        """
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")

        try:
            async with self._session.get(url, **kwargs) as response:
                if response.status >= 400:
                    try:
                        body = await response.json()
                    except (aiohttp.ContentTypeError, ValueError):
                        body = await response.text()
                    raise self._http_error(url, response.status, body)

                try:
                    return await response.json()
                except (aiohttp.ContentTypeError, ValueError):
                    # Response isn't JSON; log a snippet and raise domain error
                    response_text = await response.text()
                    logger.error(
                        "Invalid JSON response from sampling service. URL: %s, Content: %s",
                        url,
                        response_text[:500],
                    )
                    raise SamplingApiException(
                        ApiErrorResponse(
                            title="Invalid Response Content",
                            status=502,
                            detail=(
                                "The response from the sampling service was not valid JSON"
                                f": '{response_text[:100]}'"
                            ),
                            instance=url,
                        )
                    )

        except SamplingApiException:
            raise

        except asyncio.TimeoutError:
            logger.error("Timeout when requesting sampling service. URL: %s", url)
            raise self._timeout_error(url)

        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when requesting sampling service. URL: %s, Error: %s",
                url,
                str(client_error),
            )
            raise self._connection_error(url)

    def _http_error(self, url: str, status: int, body: Any) -> SamplingApiException:
        if status == 401:
            logger.warning("Authentication failed when requesting sampling service. URL: %s", url)
            return SamplingApiException(
                ApiErrorResponse(
                    title="Authentication Failed",
                    status=401,
                    detail="Authentication with the sampling service failed.",
                    instance=url,
                )
            )

        logger.error(
            "HTTP error when requesting sampling service. URL: %s, Status: %s",
            url,
            status,
        )
        return SamplingApiException(
            ApiErrorResponse(
                title="Upstream HTTP Error",
                status=status,
                detail=_error_detail(body, f"The sampling service returned an HTTP error: {status}"),
                instance=url,
            )
        )

    def _timeout_error(self, url: str) -> SamplingApiException:
        return SamplingApiException(
            ApiErrorResponse(
                title="Upstream Timeout",
                status=504,
                detail="The request to the sampling service timed out.",
                instance=url,
            )
        )

    def _connection_error(self, url: str) -> SamplingApiException:
        return SamplingApiException(
            ApiErrorResponse(
                title="Upstream Connection Error",
                status=502,
                detail="There was a connection error with the sampling service.",
                instance=url,
            )
        )

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def post(
        self,
        url: str,
        json: Dict[str, Any] | None,
        timeout: float | None = None,
        headers: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")

        try:
            async with self._session.post(url, json=json, timeout=self._timeout(timeout), headers=headers) as response:
                # Attempt to parse JSON, but return status and headers as well
                try:
                    body = await response.json()
                except (aiohttp.ContentTypeError, ValueError):
                    body = await response.text()

                # The caller inspects the status; no raise_for_status here
                return {
                    "status": response.status,
                    "headers": dict(response.headers),
                    "body": body,
                }

        except asyncio.TimeoutError:
            logger.error("Timeout when POSTing to sampling service. URL: %s", url)
            raise self._timeout_error(url)
        except aiohttp.ClientError as client_err:
            logger.error("Connection error when POSTing to sampling service. URL: %s, Error: %s", url, str(client_err))
            raise self._connection_error(url)
