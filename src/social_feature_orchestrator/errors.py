"""Domain exceptions shared across the orchestrator, storage and REST layers.

The REST layer maps these onto HTTP status codes:

- NotFoundError          -> 404
- DuplicateRecordError   -> 409
- IllegalTransitionError -> 409 (defined with the lifecycle state machine)
- StoreUnavailableError  -> 503
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class NotFoundError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class DuplicateRecordError(Exception):
    """Raised when a unique key already exists in the store."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class FeatureRequestAlreadyExists(DuplicateRecordError):
    feature_name: str = ""
    target_account: str = ""


STORE_SETUP_HINT = "Set SUPABASE_URL and SUPABASE_KEY environment variables."


@dataclass(frozen=True, slots=True)
class StoreUnavailableError(Exception):
    """Raised when the relational store is not configured or unreachable."""

    message: str = f"Feature request tracking is not configured. {STORE_SETUP_HINT}"

    def __str__(self) -> str:
        return self.message


class ReplyFetchError(RuntimeError):
    """Raised when the tweet-reply provider fails or returns garbage."""


class DeveloperAgentError(RuntimeError):
    """Raised when the developer agent link cannot complete a round-trip."""


class DeveloperAgentTimeout(DeveloperAgentError):
    """Raised when no correlated response arrives within the request timeout."""
