"""Custom exceptions"""

from typing import Optional


class GistreeError(Exception):
    """Base application error"""
    pass


class TransportError(GistreeError):
    """A remote call failed.

    Carries the HTTP status code when the server answered, or ``None`` when
    the request never got a response (connection refused, timeout, ...).
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.status_code}: {self.message}"


class ConfigurationError(GistreeError):
    """Programming or configuration defect (unknown group, unsupported key)"""
    pass
