"""Tools exposed to the social agent through function calling."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from social_feature_orchestrator.errors import ReplyFetchError
from social_feature_orchestrator.social.features import FeatureTracker
from social_feature_orchestrator.social.replies import (
    TweetRepliesClient,
    extract_tweet_id,
    find_tweet_url,
    format_replies_for_agent,
)

logger = logging.getLogger(__name__)

# The agent only needs a digest; the REST endpoint allows up to 100.
AGENT_REPLIES_COUNT = 20


class AgentTool(ABC):
    name: str
    description: str

    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON schema of the single-string input."""

    @abstractmethod
    def run(self, arguments: str) -> str:
        """Execute the tool and return text for the model."""

    def schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters(),
            },
        }


def _input_argument(arguments: str) -> str:
    """Tool calls arrive as JSON objects with a single `input` string."""

    try:
        parsed = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return arguments
    if isinstance(parsed, dict):
        value = parsed.get("input", "")
        return value if isinstance(value, str) else json.dumps(value)
    return arguments


class TwitterRepliesTool(AgentTool):
    name = "twitter_replies_fetcher"
    description = (
        "Fetch replies/comments for a Twitter or X post. Input should be a Twitter/X "
        "status URL (e.g. https://x.com/username/status/1234567890). Returns the replies "
        "with user information and engagement stats."
    )

    def __init__(self, client: TweetRepliesClient) -> None:
        self._client = client

    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"input": {"type": "string", "description": "Twitter/X status URL"}},
            "required": ["input"],
        }

    def run(self, arguments: str) -> str:
        text = _input_argument(arguments)
        url = find_tweet_url(text) or text.strip()
        tweet_id = extract_tweet_id(url)
        if tweet_id is None:
            return "Error fetching Twitter replies: Please provide a valid Twitter/X URL"
        try:
            replies = self._client.get_replies(tweet_id, count=AGENT_REPLIES_COUNT)
        except ReplyFetchError as e:
            logger.warning("Reply fetch failed", extra={"tweet_id": tweet_id, "error": str(e)})
            return f"Error fetching Twitter replies: {e}"
        return format_replies_for_agent(tweet_id, replies)


class FeatureRequestTool(AgentTool):
    name = "feature_request_tracker"
    description = (
        "Save feature requests extracted from Twitter replies to the database. Input is a "
        "JSON string with: features (array of objects with name, description, category in "
        "ui|feature|bug|enhancement, priority in low|medium|high|critical), tweetUrl, "
        "targetAccount, and replies (array of objects with username and text). Duplicates "
        "for the same account are reported, not overwritten. New requests start as 'requested'."
    )

    def __init__(self, tracker: FeatureTracker | None) -> None:
        self._tracker = tracker

    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"input": {"type": "string", "description": "JSON payload"}},
            "required": ["input"],
        }

    def run(self, arguments: str) -> str:
        if self._tracker is None:
            return "Feature request tracking is disabled. Please configure Supabase credentials."
        return self._tracker.track_json(_input_argument(arguments))
