import pytest
from unittest.mock import AsyncMock, MagicMock
from openai import OpenAIError

from src.core.exceptions import AiProviderError
from src.services.ai_client import CompletionProvider, OpenAICompletionProvider


def make_response(content, total_tokens=12):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(total_tokens=total_tokens)
    return response


def make_provider(client):
    return OpenAICompletionProvider(
        api_key="key",
        base_url="https://api.groq.com/openai/v1",
        model="llama-3.3-70b-versatile",
        client=client
    )


class TestOpenAICompletionProvider:
    """Тесты провайдера, совместимого с OpenAI API"""

    def test_provider_interface_is_abstract(self):
        with pytest.raises(TypeError):
            CompletionProvider()

    @pytest.mark.asyncio
    async def test_complete_returns_text_and_usage(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=make_response("Plan"))
        transcript = [{"role": "user", "content": "Task: X"}]
        
        completion = await make_provider(client).complete(transcript)
        
        assert completion.text == "Plan"
        assert completion.total_tokens == 12
        client.chat.completions.create.assert_awaited_once_with(
            model="llama-3.3-70b-versatile",
            messages=transcript
        )

    @pytest.mark.asyncio
    async def test_sdk_error_becomes_provider_error(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=OpenAIError("rate limited"))
        
        with pytest.raises(AiProviderError) as exc_info:
            await make_provider(client).complete([])
        
        assert exc_info.value.message == "OpenAIError: rate limited"

    @pytest.mark.asyncio
    async def test_empty_content_is_an_error(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=make_response(""))
        
        with pytest.raises(AiProviderError) as exc_info:
            await make_provider(client).complete([])
        
        assert exc_info.value.message == "Empty response from AI"
