"""Custom exceptions for the PixelVault application."""


class PixelVaultException(Exception):
    """Base class for PixelVault exceptions with HTTP status code.

    All custom exceptions inherit from this class and define their
    status_code and error_code for consistent HTTP response handling.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str = "PixelVault error"):
        self.message = message
        super().__init__(message)

    def headers(self) -> dict[str, str]:
        """Extra response headers for this error."""
        return {}


class UnsupportedFormatError(PixelVaultException):
    """Raised when the upload's leading bytes match no known image format.

    Maps to HTTP 415 Unsupported Media Type.
    """
    status_code = 415
    error_code = "unsupported_format"

    def __init__(self, message: str = "Unsupported file type. Only PNG and JPEG are accepted."):
        super().__init__(message)


class DecodeFailureError(PixelVaultException):
    """Raised when a recognised image cannot be decoded.

    Maps to HTTP 422 Unprocessable Entity.
    """
    status_code = 422
    error_code = "decode_failure"

    def __init__(self, image_format: str, reason: str):
        self.image_format = image_format
        self.reason = reason
        super().__init__(f"Could not decode {image_format} image: {reason}")


class MissingUploadError(PixelVaultException):
    """Raised when a multipart upload carries no file part."""
    status_code = 400
    error_code = "missing_upload"

    def __init__(self, message: str = "No file uploaded."):
        super().__init__(message)


class InvalidCredentialError(PixelVaultException):
    """Raised when the shared secret is missing or wrong.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401
    error_code = "invalid_credential"

    def __init__(self, remaining_attempts: int | None = None):
        self.remaining_attempts = remaining_attempts
        message = "Invalid or missing password"
        if remaining_attempts is not None:
            message += f". {remaining_attempts} attempt(s) left before lockout."
        super().__init__(message)


class LockedError(PixelVaultException):
    """Raised while a client is locked out after repeated failures.

    Maps to HTTP 423 Locked, distinct from 401 and 429 so callers can
    tell a lockout apart from a wrong password or throttling.
    """
    status_code = 423
    error_code = "locked"

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            f"Too many failed attempts. Try again in {retry_after} seconds."
        )

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class ThrottledError(PixelVaultException):
    """Raised when a client exceeds its request rate.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, limit: int, reset_time: int, retry_after: int | None = None):
        self.limit = limit
        self.reset_time = reset_time
        self.retry_after = retry_after
        super().__init__("Rate limit exceeded. Please try again later.")

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(self.reset_time),
            "Retry-After": str(self.retry_after or 60),
        }


class RecordNotFoundError(PixelVaultException):
    """Raised when no record exists under the requested identifier."""
    status_code = 404
    error_code = "not_found"

    def __init__(self, key: str):
        self.key = key
        super().__init__("Not found")


class StorageFailureError(PixelVaultException):
    """Raised when the record store fails underneath.

    The client-facing message is generic; the internal detail is kept on
    the exception for server-side logging only.
    """
    status_code = 500
    error_code = "storage_failure"

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__("Storage error")
