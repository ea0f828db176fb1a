"""Feature-request lifecycle.

This package holds:
- the lifecycle state machine (`requested -> pending -> shipped | failed`)
- the pipeline that advances requests by talking to the developer agent
"""

__all__: list[str] = []
