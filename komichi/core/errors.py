"""
Error types shared by the similarity core, the engine and the network clients.

Batch-level errors abort the current step; per-item errors only drop the
offending item (see ``is_per_item_error``).
"""

from typing import Optional, Any, Dict


class KomichiError(Exception):
    """
    Base exception for all komichi errors.

    Carries a structured ``details`` mapping next to the message so callers
    and log formatters can report context without parsing strings.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FetchError(KomichiError):
    """
    Raised when a feed, search or listRecords call fails, or when its
    deduplicated and filtered result is empty.
    """

    def __init__(self, message: str,
                 operation: str = 'fetch',
                 status: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.operation = operation
        self.status = status

        self.details.update({
            'operation': operation,
            'status': status
        })


class DimensionMismatch(KomichiError, ValueError):
    """Raised when two dense vectors of different length are compared."""

    def __init__(self, expected: int, actual: int,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}",
            details
        )
        self.expected = expected
        self.actual = actual
        self.details.update({'expected': expected, 'actual': actual})


class LengthMismatch(KomichiError, ValueError):
    """Raised when two fingerprints of different bit length are compared."""

    def __init__(self, expected: int, actual: int,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Fingerprint length mismatch: expected {expected} bits, got {actual}",
            details
        )
        self.expected = expected
        self.actual = actual
        self.details.update({'expected': expected, 'actual': actual})


class InvalidIdentifierError(KomichiError, ValueError):
    """Raised for a malformed actor id, resource id or record key."""

    def __init__(self, identifier: str, kind: str = 'resource',
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Invalid {kind} identifier: {identifier!r}", details)
        self.identifier = identifier
        self.kind = kind
        self.details.update({'identifier': identifier, 'kind': kind})


class InvalidRecordError(KomichiError, ValueError):
    """Raised when a record value matches none of the known record shapes."""

    def __init__(self, message: str, uri: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.uri = uri
        self.details.update({'uri': uri})


class RepresentationError(KomichiError):
    """Raised when a single text cannot be turned into a representation."""

    def __init__(self, message: str, text: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.text = text
        self.details.update({'text_length': len(text) if text is not None else None})


class WriteError(KomichiError):
    """Raised when persisting an index record fails."""

    def __init__(self, message: str,
                 key: Optional[str] = None,
                 status: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.key = key
        self.status = status
        self.details.update({'key': key, 'status': status})


class XrpcError(KomichiError):
    """Raised by the XRPC client for transport failures and non-2xx replies."""

    def __init__(self, message: str,
                 nsid: str,
                 status: Optional[int] = None,
                 error: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.nsid = nsid
        self.status = status
        self.error = error
        self.details.update({'nsid': nsid, 'status': status, 'error': error})


class ExplorationError(KomichiError):
    """
    Raised by an exploration step that failed part-way.

    ``user_message`` is safe to show to an end user; the underlying cause is
    chained as ``__cause__``.
    """

    def __init__(self, user_message: str,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(user_message, details)
        self.user_message = user_message


class IndexStateError(KomichiError, RuntimeError):
    """Raised when an index operation is invalid for the index's current state."""


def is_per_item_error(error: BaseException) -> bool:
    """Check if error only invalidates a single batch item."""
    return isinstance(error, (InvalidIdentifierError, InvalidRecordError, RepresentationError))


def is_representation_mismatch(error: BaseException) -> bool:
    """Check if error is a vector/fingerprint length mismatch."""
    return isinstance(error, (DimensionMismatch, LengthMismatch))
