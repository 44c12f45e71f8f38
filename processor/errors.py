"""Exceptions raised at the sync pipeline seams."""


class FetchError(Exception):
    """Feed could not be retrieved or decoded."""


class ReconcileError(Exception):
    """Stored events for a feed could not be replaced."""

    def __init__(self, message: str, feed_integration_id: str):
        super().__init__(message)
        self.feed_integration_id = feed_integration_id
