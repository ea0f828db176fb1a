"""LLM-backed social agent.

The agent fetches replies for a tweet, extracts feature requests from them and
saves those requests through its tools. The loop is plain function calling:
the model may request tools for at most `max_iterations` rounds before it has
to answer in text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from openai import OpenAIError

from social_feature_orchestrator.agent.sessions import ChatMessage
from social_feature_orchestrator.agent.tools import AgentTool, FeatureRequestTool, TwitterRepliesTool
from social_feature_orchestrator.llm.provider import LLMProvider
from social_feature_orchestrator.orchestrator.logging import truncate
from social_feature_orchestrator.social.features import FeatureTracker
from social_feature_orchestrator.social.replies import TweetRepliesClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a helpful Twitter analysis assistant with feature request tracking capabilities.

Your main capabilities:
- Fetch replies/comments for any Twitter or X post URL
- Analyze sentiment and engagement of replies
- Automatically track feature requests mentioned in replies
- Summarize key points from the discussion

When you analyze replies and find feature requests (like "dark mode", "responsive design",
"notifications"), you must:
1. Use twitter_replies_fetcher to get the replies
2. Analyze the replies for feature requests
3. Use feature_request_tracker to save every feature request found, with JSON input:
   features (name, description, category, priority), tweetUrl, targetAccount,
   replies (username, text)
4. Then answer the user, mentioning which features were saved

Feature detection examples:
- "dark mode" -> ui, high priority
- "responsive design" -> ui, high priority
- "notifications" -> feature, medium priority
- "search functionality" -> feature, medium priority
- "mobile app" -> feature, high priority

Be conversational, give context and insights rather than raw data."""

MISSING_KEY_RESPONSE = (
    "I'm having trouble connecting to my AI services. "
    "Please make sure the OpenAI API key is properly configured."
)
GENERIC_ERROR_RESPONSE = (
    "I encountered an error while processing your request. "
    "Please try again or rephrase your question."
)
ITERATION_LIMIT_RESPONSE = (
    "I couldn't finish the analysis within the allowed number of steps. "
    "Please try again with a more specific request."
)


@dataclass(frozen=True, slots=True)
class AgentReply:
    success: bool
    response: str
    tools_used: list[str] = field(default_factory=list)
    error: str | None = None


class SocialAgent:
    def __init__(
        self,
        *,
        llm: LLMProvider | None,
        tools: list[AgentTool],
        max_iterations: int = 3,
    ) -> None:
        self._llm = llm
        self._tools = {tool.name: tool for tool in tools}
        self._max_iterations = max_iterations

    @property
    def ready(self) -> bool:
        return self._llm is not None

    def status(self) -> dict[str, Any]:
        return {
            "initialized": self.ready,
            "tools_available": [
                {"name": t.name, "description": t.description} for t in self._tools.values()
            ],
            "model_info": {
                "name": getattr(self._llm, "model", None),
                "provider": "OpenAI",
            },
            "max_iterations": self._max_iterations,
        }

    def process_message(self, message: str, history: list[ChatMessage] | None = None) -> AgentReply:
        if self._llm is None:
            return AgentReply(
                success=False,
                response=MISSING_KEY_RESPONSE,
                error=(
                    "OpenAI API key is not configured. "
                    "Please set OPENAI_API_KEY environment variable."
                ),
            )

        messages: list[dict[str, Any]] = [{"role": "system", "content": SYSTEM_PROMPT}]
        for past in history or []:
            messages.append({"role": past.role, "content": past.content})
        messages.append({"role": "user", "content": message})

        tools_used: list[str] = []
        schemas = [tool.schema() for tool in self._tools.values()]

        try:
            # One extra turn lets the model answer after its last tool round.
            for round_number in range(self._max_iterations + 1):
                turn = self._llm.chat_with_tools(messages, schemas)
                if not turn.tool_calls:
                    logger.info(
                        "Agent answered",
                        extra={"tools_used": tools_used, "response": truncate(turn.content)},
                    )
                    return AgentReply(success=True, response=turn.content, tools_used=tools_used)
                if round_number == self._max_iterations:
                    break

                messages.append(turn.assistant_message())
                for call in turn.tool_calls:
                    tools_used.append(call.name)
                    messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": call.id,
                            "content": self._run_tool(call.name, call.arguments),
                        }
                    )
        except OpenAIError as e:
            logger.warning("LLM provider error", extra={"error": str(e)})
            return AgentReply(
                success=False,
                response=GENERIC_ERROR_RESPONSE,
                tools_used=tools_used,
                error=str(e),
            )

        logger.warning("Agent hit iteration limit", extra={"tools_used": tools_used})
        return AgentReply(
            success=False,
            response=ITERATION_LIMIT_RESPONSE,
            tools_used=tools_used,
            error="Agent stopped due to iteration limit",
        )

    def _run_tool(self, name: str, arguments: str) -> str:
        tool = self._tools.get(name)
        if tool is None:
            return f"Unknown tool: {name}"
        logger.info("Running agent tool", extra={"tool": name, "arguments": truncate(arguments)})
        return tool.run(arguments)


def build_social_agent(
    *,
    llm: LLMProvider | None,
    replies_client: TweetRepliesClient,
    feature_tracker: FeatureTracker | None,
    max_iterations: int = 3,
) -> SocialAgent:
    """Wire the agent with its two standard tools."""

    return SocialAgent(
        llm=llm,
        tools=[TwitterRepliesTool(replies_client), FeatureRequestTool(feature_tracker)],
        max_iterations=max_iterations,
    )
