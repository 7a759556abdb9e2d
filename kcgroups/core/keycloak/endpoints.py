"""Keycloak Admin API endpoints for the groups resource.

Path templates use the curly-brace placeholders of the Keycloak REST API
documentation: https://www.keycloak.org/docs-api/latest/rest-api/index.html#_groups
"""
from __future__ import annotations
from typing import Mapping, NamedTuple, Optional


class Endpoint(NamedTuple):
    """HTTP method plus path template."""
    method: str
    path: str


GROUPS_LIST = Endpoint("GET", "/admin/realms/{realm}/groups")
GROUPS_CREATE = Endpoint("POST", "/admin/realms/{realm}/groups")
GROUPS_COUNT = Endpoint("GET", "/admin/realms/{realm}/groups/count")
GROUP_GET = Endpoint("GET", "/admin/realms/{realm}/groups/{groupID}")
GROUP_UPDATE = Endpoint("PUT", "/admin/realms/{realm}/groups/{groupID}")
GROUP_DELETE = Endpoint("DELETE", "/admin/realms/{realm}/groups/{groupID}")
GROUP_CHILDREN = Endpoint("GET", "/admin/realms/{realm}/groups/{groupID}/children")
GROUP_CHILD_CREATE = Endpoint("POST", "/admin/realms/{realm}/groups/{groupID}/children")
GROUP_MEMBERS = Endpoint("GET", "/admin/realms/{realm}/groups/{groupID}/members")
GROUP_PERMISSIONS_GET = Endpoint("GET", "/admin/realms/{realm}/groups/{groupID}/management/permissions")
GROUP_PERMISSIONS_UPDATE = Endpoint("PUT", "/admin/realms/{realm}/groups/{groupID}/management/permissions")


def build_url(
    base_url: str,
    realm: str,
    endpoint: Endpoint,
    params: Optional[Mapping[str, str]] = None,
) -> str:
    """Expand an endpoint template into an absolute URL.

    ``{realm}`` always comes from the client configuration; other placeholders
    are replaced from ``params`` (keys without braces). Placeholders with no
    matching key are left in the URL as-is, and values are not URL-encoded.

    Example:
        >>> build_url("https://kc", "demo", GROUP_GET, {"groupID": "123"})
        'https://kc/admin/realms/demo/groups/123'
    """
    path = endpoint.path.replace("{realm}", realm)
    for key, value in (params or {}).items():
        path = path.replace("{" + key + "}", value)
    return base_url.rstrip("/") + path
