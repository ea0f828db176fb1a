"""Unit tests for the OpenAI-backed LLM provider."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from social_feature_orchestrator.llm.factory import LLMFactory
from social_feature_orchestrator.llm.openai_provider import OpenAIProvider
from social_feature_orchestrator.llm.provider import ToolCall, ToolChatResult
from social_feature_orchestrator.orchestrator.config import OrchestratorSettings


def _completion(
    content: str | None, tool_calls: list[SimpleNamespace] | None = None
) -> SimpleNamespace:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def test_chat_returns_message_content() -> None:
    client = Mock()
    client.chat.completions.create.return_value = _completion("hello")
    provider = OpenAIProvider(api_key="", model="gpt-test", temperature=0.3, client=client)

    assert provider.chat([{"role": "user", "content": "hi"}]) == "hello"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-test"
    assert kwargs["temperature"] == 0.3


def test_generate_wraps_prompt_as_user_message() -> None:
    client = Mock()
    client.chat.completions.create.return_value = _completion(None)
    provider = OpenAIProvider(api_key="k", client=client)

    assert provider.generate("prompt", temperature=0.9) == ""
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
    assert kwargs["temperature"] == 0.9


def test_chat_with_tools_parses_tool_calls() -> None:
    function = SimpleNamespace(name="twitter_replies_fetcher", arguments='{"input": "x"}')
    call = SimpleNamespace(id="call-1", function=function)
    client = Mock()
    client.chat.completions.create.return_value = _completion(None, [call])
    provider = OpenAIProvider(api_key="k", client=client)

    turn = provider.chat_with_tools(
        [{"role": "user", "content": "hi"}], tools=[{"type": "function"}]
    )

    assert turn.content == ""
    assert turn.tool_calls == [
        ToolCall(id="call-1", name="twitter_replies_fetcher", arguments='{"input": "x"}')
    ]
    assert client.chat.completions.create.call_args.kwargs["tools"] == [{"type": "function"}]


def test_assistant_message_echoes_tool_calls() -> None:
    turn = ToolChatResult(content="", tool_calls=[ToolCall(id="c1", name="t", arguments="{}")])

    message = turn.assistant_message()

    assert message["content"] is None
    assert message["tool_calls"][0]["function"] == {"name": "t", "arguments": "{}"}


def test_provider_requires_key_or_client() -> None:
    with pytest.raises(ValueError, match="API key"):
        OpenAIProvider(api_key="")


def test_factory_builds_openai_provider() -> None:
    settings = OrchestratorSettings(_env_file=None, openai_api_key="sk-test", openai_model="gpt-x")

    provider = LLMFactory.create(settings)

    assert isinstance(provider, OpenAIProvider)
    assert provider.model == "gpt-x"
    assert provider.count_tokens("abcdefgh") == 2


def test_factory_rejects_missing_key() -> None:
    with pytest.raises(ValueError):
        LLMFactory.create(OrchestratorSettings(_env_file=None, openai_api_key=""))
