"""Keycloak-specific exceptions for error handling."""
from __future__ import annotations
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .errors import HTTPErrorResponse


class KeycloakError(Exception):
    """Base exception for all Keycloak operations."""
    pass


class KeycloakAPIError(KeycloakError):
    """HTTP error from Keycloak Admin API.

    Attributes:
        status_code: HTTP status code
        message: Rendered error text (operation prefix + decoded body)
        endpoint: API endpoint that failed
        error_response: Decoded error body, None when the body carried nothing
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        endpoint: str,
        error_response: Optional["HTTPErrorResponse"] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        self.error_response = error_response
        super().__init__(message)


class KeycloakTransportError(KeycloakError):
    """Request never produced an HTTP response (connection, TLS, timeout)."""
    pass


class GroupNotFoundError(KeycloakError):
    """Group does not exist in realm."""

    def __init__(self, message: str = "group not found"):
        super().__init__(message)
