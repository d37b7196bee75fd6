"""
Error taxonomy for the feed engine.

  InvalidContentType : caller error, raised before any store is touched.
  StoreUnavailable   : a content/interaction store or the cache failed.
                       Adapters raise it `from` the driver error; the engine
                       never retries.

An empty candidate set is not an error: it simply yields an empty feed.
"""


class FeedError(Exception):
    """Base class for all feed engine errors."""


class InvalidContentType(FeedError, ValueError):
    def __init__(self, value: object) -> None:
        super().__init__(
            f"Invalid content type {value!r}. Must be 'post' or 'clip'"
        )
        self.value = value


class StoreUnavailable(FeedError):
    def __init__(self, store: str, operation: str) -> None:
        super().__init__(f"{store} failed during {operation}")
        self.store = store
        self.operation = operation
