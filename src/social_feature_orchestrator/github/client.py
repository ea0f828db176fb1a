"""GitHub API client wrapper.

Only used to enrich repositories added through the orchestration chat; the
orchestrator itself never writes to GitHub.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from github import Auth, Github, GithubException

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RepositoryInfo:
    """Minimal repository metadata fetched from GitHub."""

    full_name: str
    url: str
    description: str
    default_branch: str


class GitHubClient:
    """Small read-only wrapper around PyGithub."""

    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://api.github.com",
        github_api: Github | None = None,
    ) -> None:
        if not token and github_api is None:
            raise ValueError("GitHub token is required")

        self._github = github_api or Github(auth=Auth.Token(token), base_url=base_url)

    def describe_repository(self, full_name: str) -> RepositoryInfo | None:
        """Look up `owner/name`; returns None when GitHub can't resolve it."""

        name = full_name.strip().strip("/")
        try:
            repo = self._github.get_repo(name)
        except GithubException as e:
            logger.warning(
                "Failed to look up repository",
                extra={"repo": name, "status": getattr(e, "status", None)},
            )
            return None

        info = RepositoryInfo(
            full_name=repo.full_name,
            url=repo.html_url,
            description=repo.description or "",
            default_branch=repo.default_branch or "main",
        )
        logger.debug("Repository resolved", extra={"repo": info.full_name})
        return info

    def close(self) -> None:
        self._github.close()
