"""Error taxonomy for the reconciliation engine."""

from typing import Optional


class PenbridgeError(Exception):
    """Base class for recoverable bridge errors."""


class RecognizerError(PenbridgeError):
    """Raised when the recognition service fails or returns a malformed response."""


class StoreWriteError(PenbridgeError):
    """Raised when a single create/update/delete against the document store fails."""

    def __init__(self, message: str, block_uuid: Optional[str] = None):
        super().__init__(message)
        self.block_uuid = block_uuid


class InvariantViolation(AssertionError):
    """Programming error: an immutable field was about to be rewritten."""
