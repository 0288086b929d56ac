import asyncio
import logging
import time
from typing import Any, Awaitable, Dict, Optional, Tuple

import aiohttp

from webtools.constants import (
    API_KEY_MISSING,
    DEFAULT_NUM_RESULTS,
    DEFAULT_PAGE,
    INVALID_QUERY,
    INVALID_URL,
    NETWORK_ERROR,
    REQUEST_CANCELLED,
    REQUEST_FAILED,
    REQUEST_TIMEOUT,
)
from webtools.exceptions import (
    WebToolCancelledError,
    WebToolClientError,
    WebToolConfigError,
    WebToolError,
    WebToolNetworkError,
    WebToolServerError,
    WebToolTimeoutError,
    WebToolValidationError,
)
from webtools.models import (
    AttemptOutcome,
    ClientConfig,
    RequestAttempt,
    ScrapeRequest,
    SearchOptions,
    SearchRequest,
)
from webtools.validation import is_valid_query, is_valid_url

# Markers in an error message that point at a rejected key
AUTH_ERROR_MARKERS = ("401", "Unauthorized", "API key")


class SerperClient:
    """Serper API client with per-attempt deadlines and linear retry backoff"""

    def __init__(
        self,
        api_key: Optional[str],
        config: Optional[ClientConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if not api_key or not api_key.strip():
            raise WebToolConfigError(API_KEY_MISSING)

        self._api_key = api_key
        self.config = config or ClientConfig()
        self._logger = logger or logging.getLogger(__name__)

    async def search(
        self,
        query: Any,
        options: Optional[SearchOptions] = None,
        abort: Optional[asyncio.Event] = None,
    ) -> Any:
        """
        Perform a web search using Serper API

        Args:
            query: Search query, 1-1000 characters after trimming
            options: Result count, page and search type
            abort: Event that cancels the call when set

        Returns:
            The parsed JSON payload returned by Serper

        Raises:
            WebToolValidationError: If the query is malformed
            WebToolError: If the request fails
        """
        if not is_valid_query(query):
            raise WebToolValidationError(INVALID_QUERY)

        options = options or SearchOptions()
        request = SearchRequest(
            q=query.strip(),
            num=options.num or DEFAULT_NUM_RESULTS,
            page=options.page or DEFAULT_PAGE,
            type=options.type,
        )
        return await self._make_request(self.config.search_url, request.to_body(), abort)

    async def scrape(self, url: Any, abort: Optional[asyncio.Event] = None) -> Any:
        """
        Scrape a web page using Serper API

        Args:
            url: Absolute URL of the page
            abort: Event that cancels the call when set

        Returns:
            The parsed JSON payload returned by Serper

        Raises:
            WebToolValidationError: If the URL is malformed
            WebToolError: If the request fails
        """
        if not is_valid_url(url):
            raise WebToolValidationError(INVALID_URL)

        request = ScrapeRequest(url=url)
        return await self._make_request(self.config.scrape_url, request.to_body(), abort)

    async def validate_api_key(self) -> bool:
        """
        Check the key with a one-result search.

        Only authentication failures count as invalid. Any other failure may
        be transient, so the key is reported as potentially valid.
        """
        try:
            await self.search("test query", SearchOptions(num=1))
            return True
        except WebToolError as e:
            message = str(e)
            if getattr(e, "status", None) in (401, 403):
                return False
            if any(marker in message for marker in AUTH_ERROR_MARKERS):
                return False
            self._logger.warning(f"API key check inconclusive, treating key as valid: {message}")
            return True

    async def _make_request(
        self, url: str, body: Dict[str, Any], abort: Optional[asyncio.Event] = None
    ) -> Any:
        """
        Run the attempt loop for one logical call.

        2xx returns at once, 4xx and cancellation end the loop, 5xx and
        transport failures are retried after retry_delay_ms * attempt.
        """
        headers = {
            "X-API-KEY": self._api_key,
            "Content-Type": "application/json",
        }
        max_retries = self.config.max_retries
        last_error: Optional[WebToolError] = None
        start_time = time.monotonic()
        attempt = 0

        try:
            for attempt in range(1, max_retries + 1):
                if abort is not None and abort.is_set():
                    raise WebToolCancelledError(REQUEST_CANCELLED)

                self._logger.debug(f"API request: POST {url} (attempt {attempt}/{max_retries})")

                try:
                    status, data = await self._abortable(self._attempt(url, body, headers), abort)
                except (WebToolServerError, WebToolNetworkError) as e:
                    last_error = e
                    record = self._record(attempt, start_time, AttemptOutcome.RETRYABLE, e)
                    self._logger.warning(
                        f"API request attempt {attempt}/{max_retries} failed "
                        f"after {record.elapsed_ms:.0f}ms: {e}"
                    )
                    if attempt < max_retries:
                        await self._delay(self.config.retry_delay_ms * attempt / 1000, abort)
                    continue
                except WebToolClientError as e:
                    self._log_response(url, self._record(attempt, start_time, AttemptOutcome.TERMINAL, e))
                    raise

                record = self._record(attempt, start_time, AttemptOutcome.SUCCESS, status=status)
                self._log_response(url, record)
                return data

        except WebToolCancelledError:
            self._log_response(url, self._record(attempt, start_time, AttemptOutcome.TERMINAL))
            raise

        self._log_response(url, self._record(max_retries, start_time, AttemptOutcome.TERMINAL, last_error))
        raise last_error or WebToolError(REQUEST_FAILED)

    async def _attempt(
        self, url: str, body: Dict[str, Any], headers: Dict[str, str]
    ) -> Tuple[int, Any]:
        """Send one POST and classify the response"""
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_ms / 1000)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=body, headers=headers) as response:
                    if 200 <= response.status < 300:
                        try:
                            data = await response.json(content_type=None)
                        except ValueError as e:
                            raise WebToolNetworkError(f"{NETWORK_ERROR}: invalid JSON response ({e})")
                        return response.status, data

                    message = await self._error_message(response)
                    if 400 <= response.status < 500:
                        raise WebToolClientError(f"{REQUEST_FAILED}: {message}", status=response.status)
                    raise WebToolServerError(f"{REQUEST_FAILED}: {message}", status=response.status)

        except asyncio.TimeoutError:
            raise WebToolTimeoutError(f"{REQUEST_TIMEOUT} after {self.config.timeout_ms}ms")
        except aiohttp.ClientError as e:
            raise WebToolNetworkError(f"{NETWORK_ERROR}: {str(e)}")

    @staticmethod
    async def _error_message(response) -> str:
        """Prefer the message field of an error body, then the HTTP reason"""
        try:
            payload = await response.json(content_type=None)
        except (aiohttp.ClientError, ValueError):
            payload = None

        if isinstance(payload, dict) and payload.get("message"):
            return str(payload["message"])
        return response.reason or f"HTTP {response.status}"

    async def _abortable(self, operation: Awaitable[Any], abort: Optional[asyncio.Event]) -> Any:
        """Await an operation, cancelling it as soon as the abort event is set"""
        if abort is None:
            return await operation

        task = asyncio.ensure_future(operation)
        waiter = asyncio.ensure_future(abort.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise WebToolCancelledError(REQUEST_CANCELLED)

    async def _delay(self, seconds: float, abort: Optional[asyncio.Event] = None) -> None:
        await self._abortable(asyncio.sleep(seconds), abort)

    @staticmethod
    def _record(
        attempt: int,
        start_time: float,
        outcome: AttemptOutcome,
        error: Optional[BaseException] = None,
        status: Optional[int] = None,
    ) -> RequestAttempt:
        if status is None:
            status = getattr(error, "status", None)
        return RequestAttempt(
            attempt=attempt,
            elapsed_ms=(time.monotonic() - start_time) * 1000,
            outcome=outcome,
            status=status or 0,
        )

    def _log_response(self, url: str, record: RequestAttempt) -> None:
        self._logger.debug(f"API response: {url} - {record.status} ({record.elapsed_ms:.0f}ms)")


def create_serper_client(
    api_key: Optional[str], logger: Optional[logging.Logger] = None, **overrides: Any
) -> SerperClient:
    """Create a client whose config is the defaults with the given overrides applied"""
    return SerperClient(api_key, ClientConfig(**overrides), logger=logger)
