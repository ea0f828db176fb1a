"""Intent classification and entity extraction for orchestration chat.

Classification is plain keyword matching against an ordered table; the first
matching row wins. The classifier is a protocol so an LLM-backed strategy can
replace it without touching the chat service.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field


class IntentType(str, Enum):
    DEPLOY = "deploy"
    STATUS = "status"
    FEATURE_QUERY = "feature_query"
    CONFIG = "config"
    HELP = "help"
    GENERAL = "general"


@dataclass(frozen=True, slots=True)
class Intent:
    type: IntentType
    confidence: float


class IntentClassifier(Protocol):
    def classify(self, message: str) -> Intent: ...


KEYWORD_CONFIDENCE = 0.6
FALLBACK_CONFIDENCE = 0.4


class KeywordIntentClassifier:
    """Substring matching over the lowercased message."""

    def classify(self, message: str) -> Intent:
        text = message.lower()
        if "deploy" in text or ("github" in text and "monitor" in text):
            return Intent(IntentType.DEPLOY, KEYWORD_CONFIDENCE)
        if "status" in text or "deployment" in text:
            return Intent(IntentType.STATUS, KEYWORD_CONFIDENCE)
        if "feature" in text or "request" in text:
            return Intent(IntentType.FEATURE_QUERY, KEYWORD_CONFIDENCE)
        if "config" in text or "setting" in text:
            return Intent(IntentType.CONFIG, KEYWORD_CONFIDENCE)
        if "help" in text or "how" in text:
            return Intent(IntentType.HELP, KEYWORD_CONFIDENCE)
        return Intent(IntentType.GENERAL, FALLBACK_CONFIDENCE)


_GITHUB_RE = re.compile(
    r"(?:@?https?://)?github\.com/([a-zA-Z0-9_-]+/[a-zA-Z0-9_-]+)", re.IGNORECASE
)
_SOCIAL_URL_RE = re.compile(
    r"(https?://(?:twitter\.com|x\.com|instagram\.com|linkedin\.com)/\S+)", re.IGNORECASE
)
_INTERVAL_RE = re.compile(r"\b(\d+)\s*(minute|hour|day|second)s?\b", re.IGNORECASE)
_FEATURE_KEYWORD_RE = re.compile(
    r"\b(dark mode|light mode|responsive|mobile|notification|search|filter|export|import"
    r"|dashboard|api|authentication|security|performance|ui|ux)\b",
    re.IGNORECASE,
)

_UNIT_MINUTES: dict[str, float] = {
    "second": 1 / 60,
    "minute": 1.0,
    "hour": 60.0,
    "day": 1440.0,
}


class RepoRef(BaseModel):
    full_name: str
    owner: str
    name: str
    url: str


class UrlRef(BaseModel):
    url: str
    type: str


class Interval(BaseModel):
    value: int
    unit: str

    @property
    def minutes(self) -> float:
        return self.value * _UNIT_MINUTES[self.unit]


class Entities(BaseModel):
    github_url: str | None = None
    social_url: str | None = None
    github_repos: list[RepoRef] = Field(default_factory=list)
    urls: list[UrlRef] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    numbers: list[Interval] = Field(default_factory=list)


def detect_url_type(url: str) -> str:
    if "twitter.com" in url or "x.com" in url:
        return "twitter"
    if "instagram.com" in url:
        return "instagram"
    if "linkedin.com" in url:
        return "linkedin"
    return "social"


def extract_entities(message: str, intent: Intent) -> Entities:
    """Run the independent regex scans over one message."""

    entities = Entities()

    for match in _GITHUB_RE.finditer(message):
        full_name = match.group(1)
        owner, name = full_name.split("/", 1)
        entities.github_repos.append(
            RepoRef(full_name=full_name, owner=owner, name=name, url=f"https://github.com/{full_name}")
        )
    if entities.github_repos:
        entities.github_url = entities.github_repos[0].url

    for match in _SOCIAL_URL_RE.finditer(message):
        url = match.group(1)
        entities.urls.append(UrlRef(url=url, type=detect_url_type(url)))
    if entities.urls:
        entities.social_url = entities.urls[0].url

    if intent.type is IntentType.FEATURE_QUERY:
        entities.keywords = [m.group(1).lower() for m in _FEATURE_KEYWORD_RE.finditer(message)]

    for match in _INTERVAL_RE.finditer(message):
        entities.numbers.append(Interval(value=int(match.group(1)), unit=match.group(2).lower()))

    return entities
