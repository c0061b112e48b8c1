class SearchConfigurationError(Exception):
    """Raised when a search is configured with invalid fields or thresholds.

    This must not subclass ``ValueError``: pydantic only wraps ``ValueError`` raised in validators.
    """


class UnsupportedExpression(Exception):
    def __init__(self, node, backend: str):
        self.node = node
        super().__init__(f"The {backend} backend cannot compile {type(node).__name__} nodes")
