"""Keycloak Admin API client library for the groups resource.

Architecture:
- client.py: HTTP client with authentication and auto-refresh
- endpoints.py: Endpoint templates and URL building
- groups.py: Group CRUD, search, subgroups, members and permissions
- models.py: Typed resource representations
- utils.py: Query parameter projection and Location parsing
- errors.py: Error response body decoding
- exceptions.py: Typed exceptions for error handling

Usage:
    from kcgroups.config import load_settings
    from kcgroups.core.keycloak import KeycloakClient, GroupAttribute

    client = KeycloakClient.connect(load_settings())
    group_id = client.groups.create("engineering", {"dept": ["eng"]})
    group = client.groups.get_by_attribute(GroupAttribute("dept", "eng"))
"""
from .client import (
    KeycloakClient,
    create_client_with_token,
)
from .endpoints import Endpoint, build_url
from .errors import HTTPErrorResponse
from .exceptions import (
    KeycloakError,
    KeycloakAPIError,
    KeycloakTransportError,
    GroupNotFoundError,
)
from .groups import GroupService, GroupsClient
from .models import (
    Group,
    GroupAttribute,
    SearchGroupParams,
    CountGroupParams,
    CountGroupResponse,
    SubGroupSearchParams,
    GroupMembersParams,
    ManagementPermissionReference,
    User,
)
from .utils import mapper, get_id

__all__ = [
    # Client
    "KeycloakClient",
    "create_client_with_token",
    "Endpoint",
    "build_url",

    # Exceptions
    "HTTPErrorResponse",
    "KeycloakError",
    "KeycloakAPIError",
    "KeycloakTransportError",
    "GroupNotFoundError",

    # Services
    "GroupService",
    "GroupsClient",

    # Models
    "Group",
    "GroupAttribute",
    "SearchGroupParams",
    "CountGroupParams",
    "CountGroupResponse",
    "SubGroupSearchParams",
    "GroupMembersParams",
    "ManagementPermissionReference",
    "User",

    # Helpers
    "mapper",
    "get_id",
]
