"""
Error Taxonomy
==============

Every failure the captioner distinguishes has its own exception class. The
enrichment loop relies on the class to decide between aborting the run and
skipping a single asset:

Fatal (terminate the invocation):
- ConfigError: malformed settings, raised before any work starts
- StoreConnectError: the database cannot be reached
- StoreQueryError: the candidate query failed

Per-item (logged, the asset is skipped):
- TransportError: connection failure or timeout talking to Immich or Ollama
- RemoteStatusError: a server answered with an unexpected HTTP status
- DecodeError: image bytes or a JSON reply could not be decoded
- EncodeError: a decoded image could not be re-encoded as JPEG
- IncompleteResponseError: the model reply was not marked as done
- StoreWriteError: the description UPDATE failed
"""

from typing import Optional


class CaptionerError(Exception):
    """Base exception for all immich-captioner errors."""
    pass


class ConfigError(CaptionerError):
    """Raised when the resolved configuration is invalid."""
    pass


# ============================================================================
# DATABASE
# ============================================================================

class StoreError(CaptionerError):
    """Base class for database failures."""
    pass


class StoreConnectError(StoreError):
    """Raised when the database connection cannot be established."""
    pass


class StoreQueryError(StoreError):
    """Raised when fetching a batch of candidates fails."""
    pass


class StoreWriteError(StoreError):
    """Raised when writing a description back fails."""
    pass


# ============================================================================
# REMOTE SERVICES
# ============================================================================

class TransportError(CaptionerError):
    """Raised when a request never produced an HTTP response."""
    pass


class RemoteStatusError(CaptionerError):
    """
    Raised when a server answers with a non-success status.

    Attributes:
        status_code: HTTP status returned by the server.
        body: Response text, when it was read (the inference path reads it to
              surface the server's own error message).
    """

    def __init__(self, status_code: int, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        if body:
            message = f"status {status_code}: {body}"
        else:
            message = f"status {status_code}"
        super().__init__(message)


class IncompleteResponseError(CaptionerError):
    """Raised when the model reply is not flagged as complete."""
    pass


# ============================================================================
# CODECS
# ============================================================================

class DecodeError(CaptionerError):
    """Raised when image bytes or a response body cannot be decoded."""
    pass


class EncodeError(CaptionerError):
    """Raised when an image cannot be re-encoded as JPEG."""
    pass
