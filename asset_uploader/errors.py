"""
Error taxonomy for share uploads.

UploadCancelled is a clean stop and is never retried. TransientNetworkError is
retried by RetryPolicy. PermanentRequestError and AssetFailure fail the whole
batch immediately.
"""
from typing import Optional


class UploadError(Exception):
    """Base class for every upload failure."""


class UploadCancelled(UploadError):
    """The batch was cancelled (user request or sibling failure)."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "Upload cancelled"
        super().__init__(self.reason)


class TransientNetworkError(UploadError):
    """Transport error or non-success response, worth another attempt."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class PermanentRequestError(UploadError):
    """Request the server will never accept (missing upload id, bad manifest)."""


class AssetFailure(UploadError):
    """One asset exhausted its chunk retries. Aborts the entire batch."""

    def __init__(self, asset_path: str, cause: BaseException):
        self.asset_path = asset_path
        self.cause = cause
        super().__init__(f"Asset {asset_path} failed: {cause}")
