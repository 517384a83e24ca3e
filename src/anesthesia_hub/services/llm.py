"""Generic LLM call helpers."""

import asyncio
import json
import logging
import re
from typing import Any

import anthropic
from anthropic import NOT_GIVEN, AsyncAnthropic
from dotenv import load_dotenv

from anesthesia_hub.config import get_settings
from anesthesia_hub.utils.retry import RetryConfig, retry_async

load_dotenv()

logger = logging.getLogger(__name__)

_PLACEHOLDER_KEYS = {"", "undefined", "null", "none"}


class LLMError(Exception):
    """Base class for LLM failures."""


class LLMConfigurationError(LLMError):
    """Missing or rejected API credentials. Raised before any request is sent."""


class AIServiceUnreachableError(LLMError):
    """Network, timeout, overload or rate-limit failure talking to the LLM service."""


class InvalidAIResponseError(LLMError):
    """The service answered, but with empty or unparseable output."""


def parse_llm_response(response: str) -> Any:
    """Decode JSON from model text, tolerating code fences and surrounding prose."""
    text = response.strip()
    if not text:
        raise InvalidAIResponseError("LLM returned an empty response")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    # Try to find a JSON array or object anywhere in the response
    match = re.search(r"\[.*\]|\{.*\}", text, re.DOTALL)
    if match:
        try:
            return json.loads(match.group())
        except json.JSONDecodeError:
            pass
    raise InvalidAIResponseError(f"LLM response is not valid JSON: {text[:200]}")


def create_client(
    api_key: str | None = None, timeout: float | None = None
) -> AsyncAnthropic:
    """Build an AsyncAnthropic client, failing fast when no API key is configured."""
    settings = get_settings()
    key = api_key if api_key is not None else settings.anthropic_api_key
    if key.strip().lower() in _PLACEHOLDER_KEYS:
        raise LLMConfigurationError("ANTHROPIC_API_KEY is not configured")
    return AsyncAnthropic(
        api_key=key,
        timeout=timeout if timeout is not None else settings.llm_timeout_seconds,
        max_retries=0,  # retries go through RetryConfig
    )


class LLMClient:
    """Thin async wrapper around the Anthropic Messages API.

    The underlying client is created on first use, so a missing key surfaces as
    ``LLMConfigurationError`` at call time rather than at import time.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        client: AsyncAnthropic | None = None,
        model: str | None = None,
        small_model: str | None = None,
        retry: RetryConfig | None = None,
        sleep=asyncio.sleep,
    ):
        settings = get_settings()
        self._api_key = api_key
        self._client = client
        self.model = model or settings.llm_model
        self.small_model = small_model or settings.small_llm_model
        self.retry = retry or RetryConfig(max_retries=2, base_delay=2.0)
        self._sleep = sleep

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = create_client(self._api_key)
        return self._client

    def ensure_configured(self) -> None:
        """Raise ``LLMConfigurationError`` now if no usable API key is set."""
        self._get_client()

    async def _create(self, label: str, **kwargs: Any):
        client = self._get_client()

        async def call():
            try:
                return await client.messages.create(**kwargs)
            except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
                raise LLMConfigurationError(f"LLM credentials rejected: {e}") from e
            except anthropic.APIConnectionError as e:
                raise AIServiceUnreachableError(f"LLM service unreachable: {e}") from e
            except (anthropic.RateLimitError, anthropic.InternalServerError) as e:
                raise AIServiceUnreachableError(
                    f"LLM service unavailable (HTTP {e.status_code})"
                ) from e
            except anthropic.APIStatusError as e:
                raise LLMError(f"LLM request rejected (HTTP {e.status_code}): {e}") from e

        return await retry_async(
            call,
            config=self.retry,
            retry_on=(AIServiceUnreachableError,),
            label=label,
            sleep=self._sleep,
        )

    async def query(
        self,
        prompt: str,
        system: str = "",
        *,
        small: bool = False,
        max_tokens: int = 2048,
    ) -> str:
        """Single-turn text completion. Returns "" when the model produced no text."""
        model = self.small_model if small else self.model
        logger.debug("LLM query model=%s max_tokens=%d", model, max_tokens)
        response = await self._create(
            "llm.query",
            model=model,
            max_tokens=max_tokens,
            system=system or NOT_GIVEN,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(
            block.text for block in response.content if block.type == "text"
        ).strip()

    async def query_tool(
        self,
        prompt: str,
        tool: dict[str, Any],
        system: str = "",
        *,
        small: bool = True,
        max_tokens: int = 8192,
    ) -> dict[str, Any]:
        """Force the model to answer through ``tool`` and return the tool input.

        Falls back to parsing JSON out of a text block if the model ignored the
        tool. Raises ``InvalidAIResponseError`` when neither yields an object.
        """
        model = self.small_model if small else self.model
        logger.debug("LLM tool query model=%s tool=%s", model, tool["name"])
        response = await self._create(
            "llm.query_tool",
            model=model,
            max_tokens=max_tokens,
            system=system or NOT_GIVEN,
            messages=[{"role": "user", "content": prompt}],
            tools=[tool],
            tool_choice={"type": "tool", "name": tool["name"]},
        )

        for block in response.content:
            if block.type == "tool_use" and block.name == tool["name"]:
                if isinstance(block.input, dict):
                    return block.input
                raise InvalidAIResponseError("Tool input is not a JSON object")

        text = "".join(b.text for b in response.content if b.type == "text")
        parsed = parse_llm_response(text)
        if isinstance(parsed, list):
            # A bare array is accepted as the tool's sole array property
            array_props = [
                name
                for name, schema in tool["input_schema"]["properties"].items()
                if schema.get("type") == "array"
            ]
            if len(array_props) == 1:
                return {array_props[0]: parsed}
        if isinstance(parsed, dict):
            return parsed
        raise InvalidAIResponseError("LLM response did not match the tool schema")
