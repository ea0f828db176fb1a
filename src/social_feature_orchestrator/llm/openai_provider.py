"""OpenAI LLM provider implementation."""

from __future__ import annotations

import logging
from typing import Any

from openai import OpenAI

from social_feature_orchestrator.llm.provider import LLMProvider, ToolCall, ToolChatResult

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.0,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the OpenAI provider.

        Raises:
            ValueError: If API key is not provided.
        """
        if not api_key and client is None:
            raise ValueError("OpenAI API key is required")

        self.client = client or OpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature

        logger.info("OpenAI provider initialized", extra={"model": self.model})

    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        return self.chat(
            [{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
            **kwargs,
        )

    def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        temp = temperature if temperature is not None else self.temperature

        logger.debug("Generating chat completion", extra={"messages": len(messages)})

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore[arg-type]
            max_tokens=max_tokens,
            temperature=temp,
            **kwargs,
        )

        content = response.choices[0].message.content or ""
        logger.debug("Chat completion received", extra={"characters": len(content)})
        return content

    def chat_with_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        temperature: float | None = None,
        **kwargs: Any,
    ) -> ToolChatResult:
        temp = temperature if temperature is not None else self.temperature

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore[arg-type]
            tools=tools,  # type: ignore[arg-type]
            temperature=temp,
            **kwargs,
        )

        message = response.choices[0].message
        calls = [
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "")
            for call in (message.tool_calls or [])
        ]
        logger.debug(
            "Tool chat turn received",
            extra={"tool_calls": [c.name for c in calls], "characters": len(message.content or "")},
        )
        return ToolChatResult(content=message.content or "", tool_calls=calls)

    def count_tokens(self, text: str) -> int:
        """Count tokens using a simple approximation.

        Note:
            This is a rough approximation (about 4 characters per token).
        """
        return len(text) // 4
