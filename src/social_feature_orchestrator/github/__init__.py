"""GitHub integration package."""

from social_feature_orchestrator.github.client import GitHubClient, RepositoryInfo

__all__ = ["GitHubClient", "RepositoryInfo"]
