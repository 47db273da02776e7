"""Domain error kinds for Feed Notifier."""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    CONFIG_MISSING = "CONFIG_MISSING"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    UPLOAD_ERROR = "UPLOAD_ERROR"
    IMAGE_PROCESS_ERROR = "IMAGE_PROCESS_ERROR"


class NotifierError(Exception):
    """Base error carrying an error code and free-form context."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return the error as a structured dictionary for logging."""
        cause = self.__cause__
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code.value,
            "context": self.context,
            "cause": str(cause) if cause is not None else None,
        }


class ConfigurationError(NotifierError):
    """Raised when required settings are missing."""

    def __init__(self, missing_keys: list[str]):
        super().__init__(
            f"Missing required environment variables: {', '.join(missing_keys)}",
            ErrorCode.CONFIG_MISSING,
            {"missing_keys": list(missing_keys)},
        )
        self.missing_keys = list(missing_keys)


class StateError(NotifierError):
    """Raised when persisted cursor state cannot be read."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Invalid state file {path}: {reason}",
            ErrorCode.PARSE_ERROR,
            {"path": path},
        )


class NetworkError(NotifierError):
    """Raised when an HTTP request fails."""

    def __init__(self, url: str, status_code: int | None = None):
        super().__init__(
            f"Network request failed: {url}",
            ErrorCode.NETWORK_ERROR,
            {"url": url, "status_code": status_code},
        )
        self.status_code = status_code


class AuthError(NotifierError):
    """Raised when logging in to a publish channel fails."""

    def __init__(self, service: str):
        super().__init__(
            f"Authentication failed for {service}",
            ErrorCode.AUTH_ERROR,
            {"service": service},
        )


class UploadError(NotifierError):
    """Raised when a media upload fails or times out."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.UPLOAD_ERROR, context)


class ImageProcessError(NotifierError):
    """Raised when an image cannot be decoded or re-encoded."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.IMAGE_PROCESS_ERROR, context)


class InvalidSettingError(NotifierError):
    """Raised when a setting is present but has an unusable value."""

    def __init__(self, key: str, value: str):
        super().__init__(
            f"Invalid value for {key}: {value!r}",
            ErrorCode.VALIDATION_ERROR,
            {"key": key, "value": value},
        )
        self.key = key


class DocumentNotFoundError(NotifierError):
    """Raised when a slide page offers no downloadable document."""

    def __init__(self, url: str):
        super().__init__(
            f"No downloadable document found at {url}",
            ErrorCode.FILE_NOT_FOUND,
            {"url": url},
        )
