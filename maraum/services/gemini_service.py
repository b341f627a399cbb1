"""Gemini response provider.

Based on official documentation:
- https://ai.google.dev/gemini-api/docs/text-generation
- https://googleapis.github.io/python-genai/

One call generates one assistant turn. The whole call, retries and backoff
waits included, is bounded by the channel timeout. Failures are returned as
a tagged ``ProviderResult`` instead of raised, so the caller decides how to
surface them.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel

from maraum.core.config import Settings, get_settings
from maraum.models.message import ChatType

logger = logging.getLogger(__name__)

Backoff = Callable[[int], float]
Sleep = Callable[[float], Awaitable[None]]

RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"
_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)s\s*$")


class ChannelConfig(BaseModel):
    """Generation parameters for one channel."""

    timeout_seconds: float
    max_output_tokens: int
    temperature: float


class ProviderTurn(BaseModel):
    """Prior turn in provider terms: ``user`` or ``model``."""

    role: str
    text: str


class ProviderRequest(BaseModel):
    """Everything the provider needs to produce one assistant turn."""

    chat_type: ChatType
    system_instruction: str
    history: list[ProviderTurn] = []
    message: str


class ProviderFailure(str, Enum):
    """Classified provider failure."""

    TIMEOUT = "timeout"
    EXHAUSTED_RETRIES = "exhausted-retries"
    REJECTED = "provider-rejected"


class ProviderResult(BaseModel):
    """Tagged outcome of a provider call."""

    text: str | None = None
    failure: ProviderFailure | None = None
    attempts: int = 0
    last_error: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def ok(self) -> bool:
        return self.failure is None


def exponential_backoff(base_seconds: float = 1.0) -> Backoff:
    """Delay before retry ``n`` (1-based): base, 2*base, 4*base, ..."""

    def backoff(retry: int) -> float:
        return base_seconds * (2 ** (retry - 1))

    return backoff


def channel_configs(settings: Settings) -> dict[ChatType, ChannelConfig]:
    return {
        ChatType.MAIN: ChannelConfig(
            timeout_seconds=settings.main_timeout_seconds,
            max_output_tokens=settings.main_max_output_tokens,
            temperature=settings.main_temperature,
        ),
        ChatType.HELPER: ChannelConfig(
            timeout_seconds=settings.helper_timeout_seconds,
            max_output_tokens=settings.helper_max_output_tokens,
            temperature=settings.helper_temperature,
        ),
    }


def is_transient(error: genai_errors.APIError) -> bool:
    """Server errors and rate limits are worth retrying; other 4xx are not."""
    code = error.code or 0
    return code == 429 or code >= 500


def suggested_wait(error: genai_errors.APIError) -> float | None:
    """Wait suggested by a rate-limit response, if any.

    Looks at ``RetryInfo.retryDelay`` in the error details first and the
    ``Retry-After`` header second.
    """
    if error.code != 429:
        return None

    payload = error.details if isinstance(error.details, dict) else {}
    body = payload.get("error", payload)
    for detail in body.get("details") or []:
        if isinstance(detail, dict) and detail.get("@type") == RETRY_INFO_TYPE:
            match = _DURATION_RE.match(str(detail.get("retryDelay", "")))
            if match:
                return float(match.group(1))

    headers = getattr(error.response, "headers", None)
    if headers is not None:
        retry_after = headers.get("retry-after")
        if retry_after:
            try:
                return max(0.0, float(retry_after))
            except ValueError:
                return None
    return None


class _AttemptState:
    """Progress shared with the timeout wrapper so a timeout can report it."""

    def __init__(self) -> None:
        self.attempts = 0
        self.last_error: str | None = None


class GeminiClient:
    """Generates assistant turns with per-channel timeout and bounded retries."""

    def __init__(
        self,
        client: Any = None,
        settings: Settings | None = None,
        backoff: Backoff | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client
        self.channels = channel_configs(self.settings)
        self.max_retries = self.settings.provider_max_retries
        self.backoff = backoff or exponential_backoff(self.settings.provider_backoff_base_seconds)
        self._sleep = sleep

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self.settings.gemini_api_key)
        return self._client

    async def generate(self, request: ProviderRequest) -> ProviderResult:
        """Generate one assistant turn. Never raises for provider failures."""
        channel = self.channels[request.chat_type]
        state = _AttemptState()
        try:
            return await asyncio.wait_for(
                self._generate_with_retries(request, channel, state),
                timeout=channel.timeout_seconds,
            )
        except asyncio.TimeoutError:
            last_error = state.last_error or f"timed out after {channel.timeout_seconds:g}s"
            logger.warning(
                f"Provider timed out after {state.attempts} attempts",
                extra={"chat_type": request.chat_type.value, "attempt": state.attempts},
            )
            return ProviderResult(
                failure=ProviderFailure.TIMEOUT,
                attempts=state.attempts,
                last_error=last_error,
            )

    async def _generate_with_retries(
        self,
        request: ProviderRequest,
        channel: ChannelConfig,
        state: _AttemptState,
    ) -> ProviderResult:
        extra = {"chat_type": request.chat_type.value}
        total_attempts = self.max_retries + 1

        for attempt in range(1, total_attempts + 1):
            state.attempts = attempt
            wait: float | None = None
            try:
                response = await self._call(request, channel)
            except genai_errors.APIError as e:
                state.last_error = f"{e.code} {e.status or type(e).__name__}"
                if not is_transient(e):
                    logger.error(
                        f"Provider rejected request: {state.last_error}",
                        extra={**extra, "attempt": attempt},
                    )
                    return ProviderResult(
                        failure=ProviderFailure.REJECTED,
                        attempts=attempt,
                        last_error=state.last_error,
                    )
                wait = suggested_wait(e)
            except httpx.TransportError as e:
                state.last_error = type(e).__name__
            else:
                text = response.text
                if text and text.strip():
                    usage = response.usage_metadata
                    return ProviderResult(
                        text=text,
                        attempts=attempt,
                        input_tokens=(usage.prompt_token_count or 0) if usage else 0,
                        output_tokens=(usage.candidates_token_count or 0) if usage else 0,
                    )
                state.last_error = "empty response"

            logger.warning(
                f"Provider attempt {attempt}/{total_attempts} failed: {state.last_error}",
                extra={**extra, "attempt": attempt},
            )
            if attempt < total_attempts:
                await self._sleep(wait if wait is not None else self.backoff(attempt))

        return ProviderResult(
            failure=ProviderFailure.EXHAUSTED_RETRIES,
            attempts=total_attempts,
            last_error=state.last_error,
        )

    async def _call(self, request: ProviderRequest, channel: ChannelConfig) -> Any:
        contents = [
            types.Content(role=turn.role, parts=[types.Part(text=turn.text)])
            for turn in request.history
        ]
        contents.append(types.Content(role="user", parts=[types.Part(text=request.message)]))

        return await self.client.aio.models.generate_content(
            model=self.settings.gemini_model,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction=request.system_instruction,
                temperature=channel.temperature,
                max_output_tokens=channel.max_output_tokens,
            ),
        )
