"""
ChatGPT service: OpenAI chat completions used for design suggestions
"""
import logging
import time
from datetime import datetime
from typing import Any, List, Optional

import openai

from roomlens.core.config import Settings
from roomlens.core.exceptions import EmptyModelResponse, ProviderError, ProviderNotConfigured

logger = logging.getLogger(__name__)

CREDENTIAL_NAME = "OPENAI_API_KEY"


class ChatGPTService:
    """Service for text-only chat completions"""

    def __init__(self, settings: Settings, client: Optional[openai.AsyncOpenAI] = None):
        self.settings = settings
        self.model = settings.openai_model
        self.api_usage_stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "total_tokens": 0,
            "last_reset": datetime.now(),
        }

        if client is not None:
            self.client = client
        elif settings.openai_api_key:
            self.client = openai.AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.openai_timeout,
                max_retries=2,
            )
            logger.info("ChatGPT service initialized")
        else:
            self.client = None
            logger.warning("OpenAI API key not configured - design suggestions will not be available")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def require_configured(self) -> None:
        if not self.is_configured:
            raise ProviderNotConfigured(CREDENTIAL_NAME)

    async def complete(
        self,
        instruction: str,
        user_blocks: List[str],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        purpose: str = "chat request",
    ) -> str:
        """
        Send the instruction and user text blocks as a single user turn.

        Returns:
            The reply text

        Raises:
            ProviderNotConfigured: when no API key is set
            ProviderError: when the OpenAI call fails
            EmptyModelResponse: when the reply carries no text
        """
        self.require_configured()

        content = [{"type": "text", "text": block} for block in [instruction, *user_blocks]]
        start_time = time.time()
        self.api_usage_stats["total_requests"] += 1
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                max_tokens=max_tokens or self.settings.openai_max_tokens,
                temperature=self.settings.openai_temperature if temperature is None else temperature,
            )
        except openai.OpenAIError as e:
            self.api_usage_stats["failed_requests"] += 1
            logger.error(f"OpenAI {purpose} failed: {e}")
            raise ProviderError(f"OpenAI {purpose} failed: {e}", {"provider": "openai"}) from e

        self.api_usage_stats["successful_requests"] += 1
        if getattr(response, "usage", None) is not None:
            self.api_usage_stats["total_tokens"] += response.usage.total_tokens or 0

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""

        logger.info(f"OpenAI {purpose} completed in {time.time() - start_time:.2f}s ({len(text)} chars)")
        if not text.strip():
            raise EmptyModelResponse(f"OpenAI returned no text for {purpose}", {"provider": "openai"})
        return text
