"""
Unit tests for the Gemini and OpenAI client wrappers
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from google.genai import errors as genai_errors

from roomlens.core.exceptions import EmptyModelResponse, ProviderError, ProviderNotConfigured
from roomlens.services.chatgpt_service import ChatGPTService
from roomlens.services.google_ai_service import GoogleAIStudioService
from roomlens.services.image_fetch import EncodedImage


def gemini_response(*texts):
    response = MagicMock()
    parts = [MagicMock(text=text) for text in texts]
    response.candidates = [MagicMock(content=MagicMock(parts=parts))]
    return response


def openai_response(text):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=text))]
    response.usage = MagicMock(total_tokens=42)
    return response


@pytest.fixture
def genai_client():
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock()
    return client


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


class TestGoogleAIStudioService:
    """Tests for the Gemini wrapper"""

    @pytest.mark.unit
    def test_unconfigured_without_key(self, bare_settings):
        service = GoogleAIStudioService(bare_settings)

        assert not service.is_configured
        with pytest.raises(ProviderNotConfigured) as exc_info:
            service.require_configured()
        assert exc_info.value.message == "GOOGLE_AI_API_KEY is not configured"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concatenates_text_parts(self, test_settings, genai_client):
        genai_client.aio.models.generate_content.return_value = gemini_response('{"windows": ', "[]}")
        service = GoogleAIStudioService(test_settings, genai_client=genai_client)

        text = await service.generate_text(
            "instruction", image=EncodedImage(base64="aGVsbG8=", mime="image/jpeg"), extra_texts=["context"]
        )

        assert text == '{"windows": []}'
        kwargs = genai_client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == test_settings.google_ai_model
        parts = kwargs["contents"][0].parts
        assert len(parts) == 3
        assert parts[1].inline_data.mime_type == "image/jpeg"
        assert parts[1].inline_data.data == b"hello"
        assert service.usage_stats["successful_requests"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_reply(self, test_settings, genai_client):
        genai_client.aio.models.generate_content.return_value = gemini_response("   ")
        service = GoogleAIStudioService(test_settings, genai_client=genai_client)

        with pytest.raises(EmptyModelResponse):
            await service.generate_text("instruction")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_api_error_becomes_provider_error(self, test_settings, genai_client):
        genai_client.aio.models.generate_content.side_effect = genai_errors.APIError(
            503, {"error": {"message": "overloaded", "status": "UNAVAILABLE"}}
        )
        service = GoogleAIStudioService(test_settings, genai_client=genai_client)

        with pytest.raises(ProviderError) as exc_info:
            await service.generate_text("instruction")
        assert exc_info.value.details["provider"] == "google_ai"
        assert service.usage_stats["failed_requests"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_connection_error_becomes_provider_error(self, test_settings, genai_client):
        genai_client.aio.models.generate_content.side_effect = httpx.ConnectError("connection refused")
        service = GoogleAIStudioService(test_settings, genai_client=genai_client)

        with pytest.raises(ProviderError) as exc_info:
            await service.generate_text("instruction")
        assert exc_info.value.status_code == 502
        assert exc_info.value.details["error"] == "ConnectError"
        assert service.usage_stats["failed_requests"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_becomes_provider_error(self, test_settings, genai_client):
        genai_client.aio.models.generate_content.side_effect = asyncio.TimeoutError()
        service = GoogleAIStudioService(test_settings, genai_client=genai_client)

        with pytest.raises(ProviderError):
            await service.generate_text("instruction")


class TestChatGPTService:
    """Tests for the OpenAI wrapper"""

    @pytest.mark.unit
    def test_unconfigured_without_key(self, bare_settings):
        service = ChatGPTService(bare_settings)

        with pytest.raises(ProviderNotConfigured) as exc_info:
            service.require_configured()
        assert exc_info.value.message == "OPENAI_API_KEY is not configured"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_single_user_turn(self, test_settings, openai_client):
        openai_client.chat.completions.create.return_value = openai_response('{"layout_issues": []}')
        service = ChatGPTService(test_settings, client=openai_client)

        text = await service.complete("instruction", ["Spatial JSON:\n{}"], temperature=0.0)

        assert text == '{"layout_issues": []}'
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.0
        assert kwargs["messages"] == [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "instruction"},
                    {"type": "text", "text": "Spatial JSON:\n{}"},
                ],
            }
        ]
        assert service.api_usage_stats["total_tokens"] == 42

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_reply(self, test_settings, openai_client):
        openai_client.chat.completions.create.return_value = openai_response(None)
        service = ChatGPTService(test_settings, client=openai_client)

        with pytest.raises(EmptyModelResponse):
            await service.complete("instruction", [])

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_openai_error_becomes_provider_error(self, test_settings, openai_client):
        openai_client.chat.completions.create.side_effect = openai.OpenAIError("rate limited")
        service = ChatGPTService(test_settings, client=openai_client)

        with pytest.raises(ProviderError):
            await service.complete("instruction", [])
