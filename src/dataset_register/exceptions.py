"""
Exception classes for the dataset register.

All exceptions inherit from RegistryError and provide structured
error information with codes, messages, and optional details.
Fetch errors are expected, recoverable outcomes of dereferencing a URL;
callers classify them rather than letting them escape a crawl pass.
"""

from typing import Optional

from .enums import FetchErrorCode


class RegistryError(Exception):
    """Base exception for all dataset register errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class FetchError(RegistryError):
    """Raised when a URL cannot be turned into dataset descriptions."""

    def __init__(
        self,
        url: str,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.url = url
        super().__init__(code, message, {"url": url, **(details or {})})


class HttpError(FetchError):
    """The server answered with an error status."""

    def __init__(self, url: str, status_code: int, message: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(
            url,
            FetchErrorCode.HTTP_ERROR.value,
            message or f"HTTP status {status_code}",
            {"status_code": status_code},
        )


class NoRecordFoundAtUrl(FetchError):
    """The URL was reachable but yielded no usable RDF."""

    def __init__(self, url: str, message: Optional[str] = None) -> None:
        super().__init__(
            url,
            FetchErrorCode.NO_RECORD_FOUND.value,
            message or f"No dataset description found at {url}",
        )


class InvalidContentType(FetchError):
    """The response media type is not an RDF serialization we can parse."""

    def __init__(self, url: str, media_type: str) -> None:
        self.media_type = media_type
        super().__init__(
            url,
            FetchErrorCode.INVALID_CONTENT_TYPE.value,
            f"unrecognized media type: {media_type}",
            {"media_type": media_type},
        )


class StoreError(RegistryError):
    """Raised when a graph store request fails."""

    pass


class ConfigurationError(RegistryError):
    """Raised when configuration is missing or unusable."""

    pass
