from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class FeatureStatus(str, Enum):
    REQUESTED = "requested"
    PENDING = "pending"
    SHIPPED = "shipped"
    FAILED = "failed"
    REJECTED = "rejected"


ALLOWED_TRANSITIONS: dict[FeatureStatus, set[FeatureStatus]] = {
    FeatureStatus.REQUESTED: {FeatureStatus.PENDING, FeatureStatus.REJECTED},
    FeatureStatus.PENDING: {FeatureStatus.SHIPPED, FeatureStatus.FAILED, FeatureStatus.REJECTED},
    FeatureStatus.SHIPPED: set(),
    FeatureStatus.FAILED: set(),
    FeatureStatus.REJECTED: set(),
}

# Legacy labels still present in older rows.
_STATUS_ALIASES: dict[str, FeatureStatus] = {
    "developing": FeatureStatus.PENDING,
    "pr_raised": FeatureStatus.PENDING,
}


class IllegalTransitionError(ValueError):
    pass


def parse_status(value: str) -> FeatureStatus:
    normalized = (value or "").strip().lower()
    if normalized in _STATUS_ALIASES:
        return _STATUS_ALIASES[normalized]
    try:
        return FeatureStatus(normalized)
    except ValueError as e:
        allowed = ", ".join(s.value for s in FeatureStatus)
        raise ValueError(f"Unknown feature status {value!r}; expected one of: {allowed}") from e


@dataclass(frozen=True, slots=True)
class TransitionMetadata:
    """Optional data attached to a transition.

    Only the fields relevant to the target state are stamped onto the row; the
    full set is also kept as an opaque JSON blob.
    """

    assigned_to: str | None = None
    pull_request_url: str | None = None
    pull_request_number: int | None = None
    files_modified: list[str] = field(default_factory=list)
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        if self.assigned_to is not None:
            out["assigned_to"] = self.assigned_to
        if self.pull_request_url is not None:
            out["pull_request_url"] = self.pull_request_url
        if self.pull_request_number is not None:
            out["pull_request_number"] = self.pull_request_number
        if self.files_modified:
            out["files_modified"] = list(self.files_modified)
        if self.error is not None:
            out["error"] = self.error
        return out


def transition(*, current: FeatureStatus, to: FeatureStatus, reset: bool = False) -> FeatureStatus:
    """Validate a lifecycle move and return the new status.

    `reset=True` is the operator escape hatch: any state may go back to
    `requested`, nothing else.
    """

    if reset:
        if to is not FeatureStatus.REQUESTED:
            raise IllegalTransitionError(f"Reset must target 'requested', not {to.value}")
        return to
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


def build_status_update(
    *,
    to: FeatureStatus,
    metadata: TransitionMetadata | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Column updates for a row entering `to`.

    - pending:  implementation_started_at (+ assigned_to)
    - shipped:  implementation_completed_at (+ pull request url/number)
    - failed:   implementation_failed_at (+ implementation_error)
    - requested (manual reset): clears the implementation stamps
    """

    meta = metadata or TransitionMetadata()
    stamp = (now or datetime.now(tz=UTC)).isoformat()
    update: dict[str, Any] = {"status": to.value, "updated_at": stamp}

    if to is FeatureStatus.PENDING:
        update["implementation_started_at"] = stamp
        if meta.assigned_to:
            update["assigned_to"] = meta.assigned_to
    elif to is FeatureStatus.SHIPPED:
        update["implementation_completed_at"] = stamp
        if meta.pull_request_url:
            update["pull_request_url"] = meta.pull_request_url
        if meta.pull_request_number is not None:
            update["pull_request_number"] = meta.pull_request_number
    elif to is FeatureStatus.FAILED:
        update["implementation_failed_at"] = stamp
        if meta.error:
            update["implementation_error"] = meta.error
    elif to is FeatureStatus.REQUESTED:
        update.update(
            {
                "assigned_to": None,
                "implementation_started_at": None,
                "implementation_completed_at": None,
                "implementation_failed_at": None,
                "implementation_error": None,
            }
        )

    blob = meta.to_json()
    if blob:
        update["implementation_metadata"] = blob
    return update
