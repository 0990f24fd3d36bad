"""
Inference clients.

The insight generator only depends on the InferenceClient protocol so tests
and other providers can stand in for OpenAI.
"""
from typing import Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from app.features.scan.exceptions import InferenceUnavailable
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)


class InferenceClient(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the raw completion text. Raise InferenceUnavailable on any transport problem."""
        ...


class OpenAIInferenceClient:
    """Chat-completions client for OpenAI or any OpenAI-compatible endpoint."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self._client = client
        self.model = model or settings.INFERENCE_MODEL
        self.temperature = settings.INFERENCE_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or settings.INFERENCE_MAX_TOKENS

    @property
    def client(self) -> AsyncOpenAI:
        # Built on first use; a missing API key surfaces as an OpenAIError here
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                base_url=settings.OPENAI_BASE_URL,
                timeout=settings.INFERENCE_TIMEOUT_SECONDS,
                max_retries=1,
            )
        return self._client

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise InferenceUnavailable(f"Inference request failed: {e}") from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise InferenceUnavailable("No response from inference service")

        logger.info(f"Inference completed with model {self.model} ({len(content)} chars)")
        return content
