"""Generation oracle adapters.

Every flow talks to the oracle through ``GenerationOracle.generate``: a prompt
goes in, raw text comes out. Transport failures surface as TransportError and
success responses without generated text as MalformedResponseError. There are
no retries and no response caching at this layer.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

import httpx
from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic

from lifemap.core.config import Settings, get_settings
from lifemap.core.errors import MalformedResponseError, OracleConfigurationError, TransportError
from lifemap.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling options understood by every oracle."""

    temperature: float = 0.7
    max_output_tokens: int = 2048
    top_k: int = 40
    top_p: float = 0.95


ADAPTATION_OPTIONS = GenerationOptions(temperature=0.7, max_output_tokens=2048)
PREDICTION_OPTIONS = GenerationOptions(temperature=0.8, max_output_tokens=1024)
STEPS_OPTIONS = GenerationOptions(temperature=0.7, max_output_tokens=2048)
CLASSIFY_OPTIONS = GenerationOptions(temperature=0.0, max_output_tokens=8, top_k=1, top_p=1.0)


class GenerationOracle(ABC):
    """Opaque text-completion service."""

    provider: str = "unknown"

    @abstractmethod
    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        """
        Complete a prompt.

        Raises:
            TransportError: Non-success status or connection failure
            MalformedResponseError: Success response without generated text
        """


class GeminiOracle(GenerationOracle):
    """Gemini generateContent over plain HTTP."""

    provider = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_payload(self, prompt: str, options: GenerationOptions) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": options.temperature,
                "topK": options.top_k,
                "topP": options.top_p,
                "maxOutputTokens": options.max_output_tokens,
            },
        }

    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        options = options or GenerationOptions()
        payload = self.build_payload(prompt, options)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.endpoint,
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"Gemini request could not be sent: {e}")
            raise TransportError(0, str(e)) from e

        if response.is_error:
            logger.error(
                f"Gemini API error: status={response.status_code} body={response.text}"
            )
            raise TransportError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Gemini returned a non-JSON body: {response.text}")
            raise MalformedResponseError(response.text) from e

        return extract_gemini_text(data)


def extract_gemini_text(data: Any) -> str:
    """
    Pull the generated text out of a generateContent response.

    Raises:
        MalformedResponseError: If candidates[0].content.parts[].text is missing
    """
    try:
        parts = data["candidates"][0]["content"]["parts"]
        texts = [part["text"] for part in parts if isinstance(part, dict) and "text" in part]
    except (KeyError, IndexError, TypeError) as e:
        logger.error(f"Invalid Gemini response structure: {json.dumps(data, default=str)}")
        raise MalformedResponseError(data) from e

    if not texts:
        logger.error(f"Gemini response has no text parts: {json.dumps(data, default=str)}")
        raise MalformedResponseError(data)

    return "".join(texts)


class AnthropicOracle(GenerationOracle):
    """Claude messages API through the managed SDK client."""

    provider = "anthropic"

    def __init__(self, api_key: str, model: str, client: AsyncAnthropic | None = None):
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        options = options or GenerationOptions()

        # temperature and top_p are mutually exclusive on current Claude models
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=options.max_output_tokens,
                temperature=options.temperature,
                top_k=options.top_k,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIStatusError as e:
            body = json.dumps(e.body, default=str) if e.body is not None else e.message
            logger.error(f"Anthropic API error: status={e.status_code} body={body}")
            raise TransportError(e.status_code, body) from e
        except APIConnectionError as e:
            logger.error(f"Anthropic request could not be sent: {e}")
            raise TransportError(0, str(e)) from e

        texts = [
            block.text
            for block in (getattr(response, "content", None) or [])
            if isinstance(getattr(block, "text", None), str)
        ]
        if not texts:
            logger.error(f"Anthropic response has no text blocks: {response!r}")
            raise MalformedResponseError(response)

        return "".join(texts)


def get_oracle(settings: Settings | None = None) -> GenerationOracle:
    """
    Build the oracle configured by LLM_PROVIDER.

    Raises:
        OracleConfigurationError: If the provider's API key is not set
    """
    settings = settings or get_settings()

    if settings.LLM_PROVIDER == "anthropic":
        if not settings.ANTHROPIC_API_KEY:
            raise OracleConfigurationError("ANTHROPIC_API_KEY not configured")
        return AnthropicOracle(api_key=settings.ANTHROPIC_API_KEY, model=settings.ANTHROPIC_MODEL)

    if not settings.GEMINI_API_KEY:
        raise OracleConfigurationError("GEMINI_API_KEY not configured")
    return GeminiOracle(
        api_key=settings.GEMINI_API_KEY,
        model=settings.GEMINI_MODEL,
        base_url=settings.GEMINI_BASE_URL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )


class DeferredOracle(GenerationOracle):
    """
    Oracle resolved from configuration on its first generate call.

    A missing provider key therefore raises OracleConfigurationError at the
    call site, after a flow has stored the user's own edit.
    """

    def __init__(self, factory: Callable[[], GenerationOracle] = get_oracle):
        self._factory = factory
        self._oracle: GenerationOracle | None = None

    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        if self._oracle is None:
            self._oracle = self._factory()
        return await self._oracle.generate(prompt, options)
