from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from openai import AsyncOpenAI, OpenAIError

from src.core.config import Settings
from src.core.exceptions import AiProviderError
from src.services.prompt_builder import Message


@dataclass
class Completion:
    """Text returned by a completion provider"""
    text: str
    total_tokens: Optional[int] = None


class CompletionProvider(ABC):
    """Capability: given a transcript, return generated text or raise AiProviderError"""

    name = "provider"

    @abstractmethod
    async def complete(self, transcript: List[Message]) -> Completion:
        ...


class OpenAICompletionProvider(CompletionProvider):
    """Chat completions against any OpenAI-compatible endpoint (Groq by default)"""

    name = "openai-compatible"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 120.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.base_url = base_url
        self._client = client or AsyncOpenAI(
            api_key=api_key or "missing",
            base_url=base_url,
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAICompletionProvider":
        return cls(
            api_key=settings.AI_API_KEY,
            base_url=settings.AI_BASE_URL,
            model=settings.AI_MODEL,
            timeout=settings.AI_REQUEST_TIMEOUT,
        )

    async def complete(self, transcript: List[Message]) -> Completion:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=transcript,
            )
        except OpenAIError as e:
            raise AiProviderError(f"{type(e).__name__}: {e}") from e
        
        content = None
        if response.choices:
            content = response.choices[0].message.content
        if not content:
            raise AiProviderError("Empty response from AI")
        
        usage = getattr(response, "usage", None)
        return Completion(
            text=content,
            total_tokens=getattr(usage, "total_tokens", None),
        )

    async def close(self) -> None:
        await self._client.close()
