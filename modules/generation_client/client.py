"""
Streaming client for the generation provider.

Sends one OpenAI-style chat completion request with stream=true and hands the
open response back to the caller. The body is never read here.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from shared.config import settings
from shared.errors import GenerationError, RetryableError
from shared.logging import get_logger
from shared.retry import retry_with_backoff
from modules.generation_client.config import RETRYABLE_STATUS_CODES

logger = get_logger("generation_client")


class GenerationClient:
    """Opens streaming generation requests with a fixed-delay retry policy."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_token: Optional[str] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            api_url: Chat completions endpoint (default: settings.generation_api_url)
            api_token: Bearer token (default: settings.generation_api_token)
            max_attempts: Attempts per request, first one included (default: 6)
            retry_delay: Seconds between attempts (default: 2)
            timeout: Read timeout in seconds for the stream (default: 900)
            transport: Optional httpx transport, used by tests
        """
        self.api_url = api_url or settings.generation_api_url
        self.api_token = api_token or settings.generation_api_token
        self.max_attempts = max_attempts or settings.generation_max_attempts
        self.retry_delay = settings.generation_retry_delay_seconds if retry_delay is None else retry_delay
        self.timeout = httpx.Timeout(timeout or settings.generation_timeout_seconds, connect=30.0)
        self._transport = transport

        self._send_with_retry = retry_with_backoff(
            max_attempts=self.max_attempts,
            base_delay=self.retry_delay,
            retryable_exceptions=(RetryableError,),
            backoff="fixed",
        )(self._send)

    def build_payload(self, prompt: str, model: str) -> dict:
        """Request body with the prompt as the single user message."""
        return {
            "messages": [{"role": "user", "content": prompt}],
            "model": model,
            "stream": True,
        }

    async def _send(self, client: httpx.AsyncClient, prompt: str, model: str) -> httpx.Response:
        """Send one attempt and classify the outcome."""
        request = client.build_request(
            "POST",
            self.api_url,
            json=self.build_payload(prompt, model),
            headers={
                "Authorization": f"Bearer {self.api_token}",
                "Accept": "text/event-stream",
            },
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.TransportError as e:
            raise RetryableError(f"Generation API request failed: {str(e)}") from e

        if response.is_success:
            if response.headers.get("content-length") == "0":
                await response.aclose()
                raise GenerationError("No response body from API")
            return response

        await response.aclose()
        message = f"API error: {response.status_code} {response.reason_phrase}"
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise RetryableError(message)
        raise GenerationError(message)

    @asynccontextmanager
    async def open_stream(self, prompt: str, model: str) -> AsyncIterator[httpx.Response]:
        """
        Open the streaming request, retrying HTTP 500/503 and transport errors.

        Usage:
            async with client.open_stream(prompt, model) as response:
                async for chunk in response.aiter_bytes():
                    ...

        Raises:
            GenerationError: On a non-retryable status, an empty body, or when
                every attempt failed
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await self._send_with_retry(client, prompt, model)
            except RetryableError as e:
                raise GenerationError(str(e)) from e

            logger.info(
                "Generation stream opened",
                extra={"model": model, "status_code": response.status_code}
            )
            try:
                yield response
            finally:
                await response.aclose()
