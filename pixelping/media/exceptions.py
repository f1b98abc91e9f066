# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

"""Media-layer exceptions raised while loading and decoding the source image.

Pillow, aiohttp and filesystem errors are translated into these types so the
entry point can tell a missing file from a corrupt one without importing
library-specific exception classes.

Every one of these is fatal at startup: they are raised before any socket is
opened, and the caller aborts instead of retrying. The ``retryable`` flag is
kept for callers that fetch remote images and may want to try again.
"""


class MediaSourceError(Exception):
    """Base exception for image loading errors.

    Attributes:
        source_url: Path or URL of the image that caused the error
        error_code: Numeric error code (e.g., errno, HTTP status)
        retryable: Whether the operation could succeed if repeated
    """

    def __init__(
        self,
        message: str,
        source_url: str | None = None,
        error_code: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.source_url = source_url
        self.error_code = error_code
        self.retryable = retryable


class MediaNetworkError(MediaSourceError):
    """HTTP or connection failure while fetching a remote image.

    Server-side (5xx) and connection errors are marked retryable, 4xx are not.
    """

    def __init__(
        self,
        message: str,
        source_url: str | None = None,
        error_code: int | None = None,
        retryable: bool = True,
    ):
        super().__init__(message, source_url, error_code, retryable)


class MediaFormatError(MediaSourceError):
    """Unrecognized image format or data Pillow refuses to identify."""

    def __init__(self, message: str, source_url: str | None = None):
        super().__init__(message, source_url, retryable=False)


class MediaDecodeError(MediaSourceError):
    """Failure while extracting frames from an identified image.

    Raised for truncated frame data, seek failures on animated images and
    images larger than the configured size limit.
    """

    def __init__(
        self,
        message: str,
        source_url: str | None = None,
        error_code: int | None = None,
    ):
        super().__init__(message, source_url, error_code, retryable=False)


class MediaNotFoundError(MediaSourceError):
    """Local file missing or HTTP 404."""

    def __init__(self, message: str, source_url: str | None = None):
        super().__init__(message, source_url, retryable=False)
