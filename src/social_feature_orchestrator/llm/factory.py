"""Factory for creating LLM providers."""

from __future__ import annotations

import logging

from social_feature_orchestrator.llm.openai_provider import OpenAIProvider
from social_feature_orchestrator.llm.provider import LLMProvider
from social_feature_orchestrator.orchestrator.config import OrchestratorSettings

logger = logging.getLogger(__name__)


class LLMFactory:
    """Factory for creating LLM provider instances."""

    @staticmethod
    def create(settings: OrchestratorSettings) -> LLMProvider:
        """Create an LLM provider from settings.

        Raises:
            ValueError: If no provider can be configured (missing API key).
        """
        logger.info(
            "Creating LLM provider", extra={"provider": "openai", "model": settings.openai_model}
        )
        return OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.openai_temperature,
        )
