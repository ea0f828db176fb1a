"""Relational store access (Supabase)."""

from social_feature_orchestrator.storage.database import OrchestrationDatabase, create_database

__all__ = ["OrchestrationDatabase", "create_database"]
