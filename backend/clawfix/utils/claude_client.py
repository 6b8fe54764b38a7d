"""
Thin async wrapper over the Anthropic Messages API.

The SDK's own retry loop is disabled; transient failures (overload, rate
limits, dropped connections) are retried here with capped exponential
backoff so the diagnosis service keeps control of the total wait.
"""
import asyncio
import random
from typing import Optional, Dict, Any

import httpx
from anthropic import AsyncAnthropic, APIStatusError, APIError, APIConnectionError, APITimeoutError

from clawfix.core.config import settings
from clawfix.core.logging_config import logger

TRANSIENT_API_ERROR_TYPES = frozenset({'overloaded_error', 'rate_limit_error', 'server_error'})
TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 529})
TRANSIENT_TRANSPORT_ERRORS = (
    APIConnectionError,
    APITimeoutError,
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.NetworkError,
)


def _build_timeout() -> httpx.Timeout:
    request_timeout = float(settings.CLAUDE_REQUEST_TIMEOUT)
    return httpx.Timeout(request_timeout, connect=float(settings.CLAUDE_CONNECT_TIMEOUT))


class ClaudeClient:
    """Single-shot (non-streaming) completions for the AI augmentor"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_retries: Optional[int] = None
    ):
        sdk_options: Dict[str, Any] = {
            "api_key": api_key or settings.ANTHROPIC_API_KEY,
            "timeout": _build_timeout(),
            "max_retries": 0,
        }
        base_url = (settings.ANTHROPIC_BASE_URL or "").strip()
        if base_url:
            sdk_options["base_url"] = base_url
            logger.info(f"[Claude] Routing requests through {base_url}")

        self.async_client = AsyncAnthropic(**sdk_options)
        self.model = model or settings.CLAUDE_MODEL
        self.max_retries = settings.CLAUDE_MAX_RETRIES if max_retries is None else max_retries

        logger.debug(
            f"[Claude] Client ready | model={self.model} | "
            f"timeout={settings.CLAUDE_REQUEST_TIMEOUT}s | retries={self.max_retries}"
        )

    def _is_retryable_error(self, error: Exception) -> bool:
        """Transport failures always; API errors only when the type or status is transient"""
        if isinstance(error, TRANSIENT_TRANSPORT_ERRORS):
            return True
        if not isinstance(error, (APIStatusError, APIError)):
            return False

        body = getattr(error, 'body', None)
        if isinstance(body, dict):
            return body.get('error', {}).get('type', '') in TRANSIENT_API_ERROR_TYPES
        return getattr(error, 'status_code', None) in TRANSIENT_STATUS_CODES

    def _calculate_retry_delay(self, attempt: int) -> float:
        backoff = min(settings.CLAUDE_RETRY_BASE_DELAY * 2 ** attempt, settings.CLAUDE_RETRY_MAX_DELAY)
        return backoff * (1 + random.uniform(0, 0.25))

    @staticmethod
    def _to_result(response: Any, model: str) -> Dict[str, Any]:
        usage = response.usage
        return {
            "content": response.content[0].text if response.content else "",
            "model": model,
            "input_tokens": usage.input_tokens,
            "output_tokens": usage.output_tokens,
            "total_tokens": usage.input_tokens + usage.output_tokens,
            "stop_reason": response.stop_reason,
            "id": response.id,
        }

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = None,
        temperature: float = None
    ) -> Dict[str, Any]:
        """
        Send one user turn and return the reply.

        Args:
            prompt: The user turn (the serialized diagnostic payload)
            system_prompt: Instructions for the model
            max_tokens: Reply budget, CLAUDE_MAX_TOKENS when omitted
            temperature: Sampling temperature, CLAUDE_TEMPERATURE when omitted

        Returns:
            Dict with content, model, token counts, stop_reason and id
        """
        request = {
            "model": self.model,
            "max_tokens": settings.CLAUDE_MAX_TOKENS if max_tokens is None else max_tokens,
            "temperature": settings.CLAUDE_TEMPERATURE if temperature is None else temperature,
            "system": system_prompt or "",
            "messages": [{"role": "user", "content": prompt}],
        }
        attempts = self.max_retries + 1

        logger.debug(f"[Claude] Request | model={self.model} | max_tokens={request['max_tokens']} | chars={len(prompt)}")

        for attempt in range(attempts):
            try:
                response = await self.async_client.messages.create(**request)
            except Exception as e:
                error_name = type(e).__name__
                if attempt + 1 >= attempts or not self._is_retryable_error(e):
                    logger.error(
                        f"[Claude] Giving up after attempt {attempt + 1}: {error_name}: {e}",
                        extra={
                            "event_type": "claude_api_error",
                            "error_type": error_name,
                            "error_message": str(e),
                            "attempt": attempt + 1,
                        }
                    )
                    raise
                delay = self._calculate_retry_delay(attempt)
                logger.warning(
                    f"[Claude] {error_name} on attempt {attempt + 1}/{attempts}; next try in {delay:.1f}s",
                    extra={
                        "event_type": "claude_api_retry",
                        "error_type": error_name,
                        "attempt": attempt + 1,
                        "retry_delay": delay,
                    }
                )
                await asyncio.sleep(delay)
                continue

            result = self._to_result(response, self.model)
            logger.debug(f"[Claude] Reply {result['id']} | tokens={result['total_tokens']} | stop={result['stop_reason']}")
            return result
