"""Typed client for the Keycloak Admin API groups resource."""
from .config import ClientConfig, load_settings
from .core.keycloak import (
    KeycloakClient,
    GroupService,
    Group,
    GroupAttribute,
    GroupNotFoundError,
    KeycloakError,
    KeycloakAPIError,
    KeycloakTransportError,
)

__all__ = [
    "ClientConfig",
    "load_settings",
    "KeycloakClient",
    "GroupService",
    "Group",
    "GroupAttribute",
    "GroupNotFoundError",
    "KeycloakError",
    "KeycloakAPIError",
    "KeycloakTransportError",
]

__version__ = "0.1.0"
