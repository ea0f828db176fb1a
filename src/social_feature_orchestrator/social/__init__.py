"""Social media inputs: tweet replies and the feature requests found in them."""

__all__: list[str] = []
