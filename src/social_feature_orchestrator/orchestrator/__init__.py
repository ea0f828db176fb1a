"""Orchestration core.

- settings loaded from `.env`
- structured JSON logging
- the round-robin task scheduler and its relay to the social agent
- the feature request lifecycle and the developer agent link
"""
