"""
Google AI Studio service: Gemini vision calls used for spatial analysis and product keyword extraction
"""
import asyncio
import logging
import time
from datetime import datetime
from typing import Any, List, Optional

import aiohttp
import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from roomlens.core.config import Settings
from roomlens.core.exceptions import EmptyModelResponse, ProviderError, ProviderNotConfigured
from roomlens.services.image_fetch import EncodedImage

logger = logging.getLogger(__name__)

CREDENTIAL_NAME = "GOOGLE_AI_API_KEY"


class GoogleAIStudioService:
    """Thin async wrapper around the Gemini client with a credential check and usage stats"""

    def __init__(self, settings: Settings, genai_client: Optional[genai.Client] = None):
        self.settings = settings
        self.api_key = settings.google_ai_api_key
        self.model = settings.google_ai_model
        self.usage_stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "total_processing_time": 0.0,
            "last_reset": datetime.now(),
        }

        if genai_client is not None:
            self.genai_client = genai_client
        elif self.api_key:
            self.genai_client = genai.Client(api_key=self.api_key)
            if len(self.api_key) > 12:
                logger.info(f"Google AI API Key loaded: {self.api_key[:8]}...{self.api_key[-4:]}")
        else:
            self.genai_client = None
            logger.warning("Google AI API key not configured - spatial analysis will not be available")

    @property
    def is_configured(self) -> bool:
        return self.genai_client is not None

    def require_configured(self) -> None:
        """Raise before any network work when the credential is absent"""
        if not self.is_configured:
            raise ProviderNotConfigured(CREDENTIAL_NAME)

    def _build_parts(self, prompt: str, image: Optional[EncodedImage], extra_texts: List[str]) -> List[types.Part]:
        parts = [types.Part.from_text(text=prompt)]
        if image is not None:
            parts.append(types.Part(inline_data=types.Blob(mime_type=image.mime, data=image.decode())))
        for text in extra_texts:
            parts.append(types.Part.from_text(text=text))
        return parts

    @staticmethod
    def _collect_text(response: Any) -> str:
        """Concatenate every text part of the first candidate"""
        candidates = getattr(response, "candidates", None) or []
        if not candidates or not candidates[0].content or not candidates[0].content.parts:
            return ""
        return "".join(part.text for part in candidates[0].content.parts if getattr(part, "text", None))

    async def generate_text(
        self,
        prompt: str,
        image: Optional[EncodedImage] = None,
        extra_texts: Optional[List[str]] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        purpose: str = "vision request",
    ) -> str:
        """
        Send instruction text, an optional inline image and optional extra text blocks to Gemini.

        Returns:
            The concatenated text content of the reply

        Raises:
            ProviderNotConfigured: when no API key is set
            ProviderError: when the Gemini call fails
            EmptyModelResponse: when the reply carries no text
        """
        self.require_configured()

        contents = [types.Content(role="user", parts=self._build_parts(prompt, image, extra_texts or []))]
        config = types.GenerateContentConfig(
            temperature=self.settings.google_ai_temperature if temperature is None else temperature,
            max_output_tokens=max_output_tokens or self.settings.google_ai_max_tokens,
            response_modalities=["TEXT"],
        )

        start_time = time.time()
        self.usage_stats["total_requests"] += 1
        try:
            response = await self.genai_client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            self.usage_stats["failed_requests"] += 1
            logger.error(f"Gemini {purpose} failed: {e}")
            raise ProviderError(f"Gemini {purpose} failed: {e}", {"provider": "google_ai", "code": e.code}) from e
        except (httpx.HTTPError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.usage_stats["failed_requests"] += 1
            logger.error(f"Gemini {purpose} transport error: {type(e).__name__}: {e}")
            raise ProviderError(
                f"Gemini {purpose} failed: {type(e).__name__}: {e}", {"provider": "google_ai", "error": type(e).__name__}
            ) from e

        processing_time = time.time() - start_time
        self.usage_stats["successful_requests"] += 1
        self.usage_stats["total_processing_time"] += processing_time

        text = self._collect_text(response)
        logger.info(f"Gemini {purpose} completed in {processing_time:.2f}s ({len(text)} chars)")
        if not text.strip():
            raise EmptyModelResponse(f"Gemini returned no text for {purpose}", {"provider": "google_ai"})
        return text
