"""Tweet reply fetching via the RapidAPI Twitter proxy.

The provider returns the raw timeline structure; `parse_replies` walks it and
keeps only entries that are replies with text. Anything malformed is skipped
rather than failing the whole batch.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import requests
from pydantic import BaseModel, Field

from social_feature_orchestrator.errors import ReplyFetchError

logger = logging.getLogger(__name__)

DEFAULT_REPLIES_COUNT = 40
MAX_REPLIES_COUNT = 100

_TWEET_ID_RE = re.compile(r"/status/(\d+)")
_TWEET_URL_RE = re.compile(r"^https?://(www\.)?(twitter\.com|x\.com)/\w+/status/\d+")
_TWEET_URL_SEARCH_RE = re.compile(r"https?://(?:www\.)?(?:twitter\.com|x\.com)/\w+/status/\d+")


def extract_tweet_id(url: str) -> str | None:
    match = _TWEET_ID_RE.search(url or "")
    return match.group(1) if match else None


def is_tweet_url(url: str) -> bool:
    return bool(_TWEET_URL_RE.match(url or ""))


def find_tweet_url(text: str) -> str | None:
    """Return the first tweet status URL embedded in free text."""

    match = _TWEET_URL_SEARCH_RE.search(text or "")
    return match.group(0) if match else None


class ReplyUser(BaseModel):
    id: str | None = None
    username: str | None = None
    display_name: str | None = None
    avatar: str | None = None
    verified: bool = False


class ReplyStats(BaseModel):
    replies: int = 0
    retweets: int = 0
    likes: int = 0
    views: int = 0

    @property
    def engagement(self) -> int:
        return self.likes + self.retweets


class Reply(BaseModel):
    id: str | None = None
    text: str
    created_at: str | None = None
    user: ReplyUser = Field(default_factory=ReplyUser)
    stats: ReplyStats = Field(default_factory=ReplyStats)
    in_reply_to_status_id: str | None = None
    in_reply_to_user_id: str | None = None
    in_reply_to_screen_name: str | None = None


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _is_reply(tweet: dict[str, Any]) -> bool:
    legacy = _dict(tweet.get("legacy"))
    return bool(legacy.get("in_reply_to_status_id_str") and legacy.get("full_text"))


def _to_reply(tweet: dict[str, Any]) -> Reply:
    legacy = _dict(tweet.get("legacy"))
    user = _dict(_dict(_dict(tweet.get("core")).get("user_results")).get("result"))
    user_core = _dict(user.get("core"))
    return Reply(
        id=tweet.get("rest_id"),
        text=legacy["full_text"],
        created_at=legacy.get("created_at"),
        user=ReplyUser(
            id=user.get("rest_id"),
            username=user_core.get("screen_name"),
            display_name=user_core.get("name"),
            avatar=_dict(user.get("avatar")).get("image_url"),
            verified=bool(user.get("is_blue_verified", False)),
        ),
        stats=ReplyStats(
            replies=_int(legacy.get("reply_count")),
            retweets=_int(legacy.get("retweet_count")),
            likes=_int(legacy.get("favorite_count")),
            views=_int(_dict(tweet.get("views")).get("count")),
        ),
        in_reply_to_status_id=legacy.get("in_reply_to_status_id_str"),
        in_reply_to_user_id=legacy.get("in_reply_to_user_id_str"),
        in_reply_to_screen_name=legacy.get("in_reply_to_screen_name"),
    )


def _tweets_in_entry(entry: dict[str, Any]) -> list[dict[str, Any]]:
    content = _dict(entry.get("content"))
    tweets: list[dict[str, Any]] = []

    direct = _dict(_dict(content.get("itemContent")).get("tweet_results")).get("result")
    if isinstance(direct, dict):
        tweets.append(direct)

    # Conversation threads nest their tweets one level deeper.
    items = content.get("items")
    if isinstance(items, list):
        for item in items:
            nested = _dict(
                _dict(_dict(_dict(item).get("item")).get("itemContent")).get("tweet_results")
            ).get("result")
            if isinstance(nested, dict):
                tweets.append(nested)
    return tweets


def parse_replies(payload: dict[str, Any]) -> list[Reply]:
    replies: list[Reply] = []
    instructions = _dict(_dict(payload).get("result")).get("instructions")
    if not isinstance(instructions, list):
        return replies

    for instruction in instructions:
        instruction = _dict(instruction)
        if instruction.get("type") != "TimelineAddEntries":
            continue
        entries = instruction.get("entries")
        if not isinstance(entries, list):
            continue
        for entry in entries:
            for tweet in _tweets_in_entry(_dict(entry)):
                if _is_reply(tweet):
                    replies.append(_to_reply(tweet))
    return replies


def format_replies_for_agent(tweet_id: str, replies: list[Reply]) -> str:
    """Render replies as a numbered text block the chat agent can reason over."""

    if not replies:
        return (
            f"No replies found for tweet ID {tweet_id}. The tweet might be new, "
            "have no replies, or the replies might be restricted."
        )

    noun = "reply" if len(replies) == 1 else "replies"
    lines = [f"Found {len(replies)} {noun} for tweet ID {tweet_id}:", ""]
    for index, reply in enumerate(replies, start=1):
        user = reply.user
        verified = " ✓" if user.verified else ""
        lines.append(f"{index}. @{user.username} ({user.display_name}){verified}")
        lines.append(f'   "{reply.text}"')
        lines.append(
            f"   replies: {reply.stats.replies} | retweets: {reply.stats.retweets} | "
            f"likes: {reply.stats.likes} | views: {reply.stats.views}"
        )
        lines.append(f"   Posted: {reply.created_at}")
        lines.append("")

    top = max(replies, key=lambda r: r.stats.engagement)
    lines.append(
        f'Top engaging reply: "{top.text}" by @{top.user.username} with '
        f"{top.stats.likes} likes and {top.stats.retweets} retweets."
    )
    return "\n".join(lines)


class TweetRepliesClient:
    """Fetch replies for a tweet from the RapidAPI Twitter endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        host: str = "twitter241.p.rapidapi.com",
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._host = host
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def get_replies(self, tweet_id: str, count: int = DEFAULT_REPLIES_COUNT) -> list[Reply]:
        if not self._api_key:
            raise ReplyFetchError("RAPIDAPI_KEY is not configured")
        if not 1 <= count <= MAX_REPLIES_COUNT:
            raise ValueError(f"count must be between 1 and {MAX_REPLIES_COUNT}")

        url = f"https://{self._host}/comments"
        try:
            resp = self._session.get(
                url,
                params={"pid": tweet_id, "count": count},
                headers={"x-rapidapi-key": self._api_key, "x-rapidapi-host": self._host},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ReplyFetchError(f"API request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ReplyFetchError(f"Failed to parse API response: {e}") from e

        if resp.status_code != 200:
            message = data.get("message") if isinstance(data, dict) else None
            raise ReplyFetchError(
                f"API request failed with status {resp.status_code}: {message or 'Unknown error'}"
            )

        replies = parse_replies(data if isinstance(data, dict) else {})
        logger.info(
            "Fetched tweet replies",
            extra={"tweet_id": tweet_id, "requested": count, "replies": len(replies)},
        )
        return replies
