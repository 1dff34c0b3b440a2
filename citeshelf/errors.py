"""Exception types for CiteShelf."""

from typing import Optional


class CiteShelfError(Exception):
    """Base class for CiteShelf errors."""


class NotAuthenticatedError(CiteShelfError):
    """No bearer token is available, or the service rejected it."""

    def __init__(self, message: str = "Please log in to continue"):
        super().__init__(message)


class NoTargetsSelectedError(CiteShelfError):
    """A save was requested without any library selected."""

    def __init__(self, message: str = "Please select at least one library"):
        super().__init__(message)


class FormatNotLoadedError(CiteShelfError):
    """Copy or download was attempted on a format that is still loading."""

    def __init__(self, style: str):
        self.style = style
        super().__init__(f"{style} format is still loading")


class APIError(CiteShelfError):
    """Non-success response from the CiteShelf API."""

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        self.message = message or f"HTTP {status}"
        super().__init__(self.message)
