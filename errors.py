"""
Error taxonomy shared by the text-to-speech batch phases.
"""


class ValidationError(ValueError):
    """Malformed input record or result reference. The item is skipped."""
    pass


class InvalidLocator(ValidationError):
    """A result reference that is not a gs://<bucket>/<object> URI."""
    pass


class TransientStoreError(Exception):
    """A single write or fetch against the remote store failed."""
    pass


class SubscriptionError(Exception):
    """The change feed failed; the download phase cannot make progress."""
    pass
