"""Keycloak group management operations."""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

import requests

from .client import KeycloakClient
from . import endpoints
from .endpoints import Endpoint
from .errors import HTTPErrorResponse
from .exceptions import GroupNotFoundError, KeycloakAPIError, KeycloakTransportError
from .models import (
    CountGroupParams,
    CountGroupResponse,
    Group,
    GroupAttribute,
    GroupMembersParams,
    ManagementPermissionReference,
    SearchGroupParams,
    SubGroupSearchParams,
    User,
)
from .utils import get_id, mapper

logger = logging.getLogger(__name__)

Attributes = Dict[str, List[str]]


class GroupsClient(Protocol):
    """Group CRUD, subgroup management, search and permission operations."""

    def create(self, name: str, attributes: Optional[Attributes] = None) -> str: ...

    def update(self, group: Group) -> None: ...

    def delete(self, group_id: str) -> None: ...

    def list(self, search: Optional[str] = None, brief_representation: bool = False) -> List[Group]: ...

    def list_paginated(
        self, search: Optional[str], brief_representation: bool, first: int, max: int
    ) -> List[Group]: ...

    def list_with_params(self, params: SearchGroupParams) -> List[Group]: ...

    def list_with_sub_groups(
        self, search_query: str, brief_representation: bool, first: int, max: int
    ) -> List[Group]: ...

    def count(self, search: Optional[str] = None, top: Optional[bool] = None) -> int: ...

    def get(self, group_id: str) -> Group: ...

    def get_by_attribute(self, attribute: GroupAttribute) -> Group: ...

    def list_sub_groups(self, group_id: str) -> List[Group]: ...

    def list_sub_groups_paginated(self, group_id: str, params: SubGroupSearchParams) -> List[Group]: ...

    def create_sub_group(self, group_id: str, name: str, attributes: Optional[Attributes] = None) -> str: ...

    def get_sub_group_by_attribute(self, group: Group, attribute: GroupAttribute) -> Group: ...

    def get_sub_group_by_id(self, group: Group, sub_group_id: str) -> Group: ...

    def list_members(self, group_id: str, params: Optional[GroupMembersParams] = None) -> List[User]: ...

    def get_management_permissions(self, group_id: str) -> ManagementPermissionReference: ...

    def update_management_permissions(
        self, group_id: str, ref: ManagementPermissionReference
    ) -> ManagementPermissionReference: ...


class GroupService:
    """Service for managing Keycloak groups.

    Every call is a fresh round trip; nothing is cached between calls.
    """

    def __init__(self, client: KeycloakClient):
        """Initialize group service.

        Args:
            client: Authenticated Keycloak client
        """
        self.client = client

    # ─────────────────────────────────────────────────────────────────────────
    # CRUD
    # ─────────────────────────────────────────────────────────────────────────
    def create(self, name: str, attributes: Optional[Attributes] = None) -> str:
        """Create a top-level group.

        Args:
            name: Group name (the server may reject an empty one)
            attributes: Custom attributes, each key mapping to a list of values

        Returns:
            ID of the new group, taken from the Location header ("" if absent)
        """
        payload = Group(name=name, attributes=attributes).to_dict()
        resp = self._send("create group", endpoints.GROUPS_CREATE, json=payload)
        group_id = get_id(resp)
        logger.info(f"Group '{name}' created (id={group_id})")
        return group_id

    def update(self, group: Group) -> None:
        """Replace a group's representation.

        Keycloak has no partial update: fetch the group, modify it and pass the
        whole record back.
        """
        if not group.id:
            raise ValueError("the ID of the group is required")
        self._send("update group", endpoints.GROUP_UPDATE, {"groupID": group.id}, json=group.to_dict())

    def delete(self, group_id: str) -> None:
        """Delete a group. Keycloak also deletes its subgroups."""
        _require_group_id(group_id)
        self._send("delete group", endpoints.GROUP_DELETE, {"groupID": group_id})

    def get(self, group_id: str) -> Group:
        """Retrieve a single group by its ID.

        Raises:
            GroupNotFoundError: If Keycloak answers 404
        """
        _require_group_id(group_id)
        resp = self._send(
            "get group", endpoints.GROUP_GET, {"groupID": group_id}, not_found=GroupNotFoundError
        )
        return Group.from_dict(_decode("get group", resp))

    # ─────────────────────────────────────────────────────────────────────────
    # Listing & search
    # ─────────────────────────────────────────────────────────────────────────
    def list(self, search: Optional[str] = None, brief_representation: bool = False) -> List[Group]:
        return self.list_with_params(
            SearchGroupParams(search=search, brief_representation=brief_representation)
        )

    def list_paginated(
        self, search: Optional[str], brief_representation: bool, first: int, max: int
    ) -> List[Group]:
        return self.list_with_params(
            SearchGroupParams(
                search=search,
                brief_representation=brief_representation,
                first=first,
                max=max,
            )
        )

    def list_with_sub_groups(
        self, search_query: str, brief_representation: bool, first: int, max: int
    ) -> List[Group]:
        """List groups with their ``sub_groups`` populated.

        Keycloak only fills ``subGroups`` when a search parameter is present,
        so ``search`` is always sent (an empty string matches every group) and
        ``populateHierarchy`` is forced on.
        """
        return self.list_with_params(
            SearchGroupParams(
                search=search_query or "",
                brief_representation=brief_representation,
                populate_hierarchy=True,
                first=first,
                max=max,
            )
        )

    def list_with_params(self, params: SearchGroupParams) -> List[Group]:
        """List groups with full control over the query parameters."""
        query = _query(params, "failed to initiate search parameters of groups")
        resp = self._send("list groups", endpoints.GROUPS_LIST, params=query)
        return [Group.from_dict(item) for item in _decode("list groups", resp) or []]

    def count(self, search: Optional[str] = None, top: Optional[bool] = None) -> int:
        """Count groups matching ``search``; ``top`` restricts to root groups."""
        query = _query(
            CountGroupParams(search=search, top=top),
            "failed to initiate search parameters of groups",
        )
        resp = self._send("count groups", endpoints.GROUPS_COUNT, params=query)
        return CountGroupResponse.from_dict(_decode("count groups", resp)).count

    def get_by_attribute(self, attribute: GroupAttribute) -> Group:
        """Find the first group whose attribute ``key`` is exactly ``[value]``.

        Keycloak has no attribute-equality search, so pages of ``page_size``
        groups are fetched one after another and scanned locally until a match
        or a short page. Attributes holding several values never match.

        Performance note: this walks every group of the realm in the worst case.

        Raises:
            GroupNotFoundError: If no group matches
        """
        if attribute is None:
            raise ValueError("attribute parameter cannot be None")

        page_size = self.client.page_size
        if page_size <= 0:
            raise ValueError(f"page size must be positive, got {page_size}")
        current_page = 0
        while True:
            logger.debug(f"Searching groups by attribute '{attribute.key}' (page {current_page})")
            groups = self.list_paginated(None, False, current_page * page_size, page_size)

            group = _find_group_by_attribute(groups, attribute)
            if group is not None:
                return group

            if len(groups) < page_size:
                raise GroupNotFoundError()

            current_page += 1

    # ─────────────────────────────────────────────────────────────────────────
    # Subgroups
    # ─────────────────────────────────────────────────────────────────────────
    def create_sub_group(self, group_id: str, name: str, attributes: Optional[Attributes] = None) -> str:
        """Create a child group, or move an existing group under ``group_id``.

        Returns:
            ID of the new subgroup, or "" when Keycloak answered without a
            Location header (204: the group already existed and was re-parented)
        """
        _require_group_id(group_id)
        payload = Group(name=name, attributes=attributes).to_dict()
        resp = self._send(
            "create sub-group", endpoints.GROUP_CHILD_CREATE, {"groupID": group_id}, json=payload
        )
        sub_group_id = get_id(resp)
        if sub_group_id:
            logger.info(f"Sub-group '{name}' created under {group_id} (id={sub_group_id})")
        else:
            logger.warning(f"Sub-group '{name}' returned no Location (status {resp.status_code}); existing group re-parented under {group_id}")
        return sub_group_id

    def list_sub_groups(self, group_id: str) -> List[Group]:
        """Retrieve the direct children of a group."""
        _require_group_id(group_id)
        resp = self._send("list groups", endpoints.GROUP_CHILDREN, {"groupID": group_id})
        return [Group.from_dict(item) for item in _decode("list groups", resp) or []]

    def list_sub_groups_paginated(self, group_id: str, params: SubGroupSearchParams) -> List[Group]:
        """Retrieve direct children with server-side pagination and filtering."""
        _require_group_id(group_id)
        query = _query(params, "failed to initiate search parameters for sub-groups")
        resp = self._send(
            "list sub-groups", endpoints.GROUP_CHILDREN, {"groupID": group_id}, params=query
        )
        return [Group.from_dict(item) for item in _decode("list sub-groups", resp) or []]

    def get_sub_group_by_id(self, group: Group, sub_group_id: str) -> Group:
        """Find a child by ID in an already fetched group (no request is made)."""
        if not sub_group_id:
            raise ValueError("subGroupID parameter cannot be empty")
        for sub_group in group.sub_groups or []:
            if sub_group is not None and sub_group.id == sub_group_id:
                return sub_group
        raise GroupNotFoundError()

    def get_sub_group_by_attribute(self, group: Group, attribute: GroupAttribute) -> Group:
        """Find a child by attribute in an already fetched group (no request is made).

        The parent must have been fetched with its hierarchy populated
        (see ``list_with_sub_groups``), otherwise this always fails.
        """
        if attribute is None:
            raise ValueError("attribute parameter cannot be None")
        if group.sub_groups is None:
            raise GroupNotFoundError()
        sub_group = _find_group_by_attribute(group.sub_groups, attribute)
        if sub_group is None:
            raise GroupNotFoundError()
        return sub_group

    # ─────────────────────────────────────────────────────────────────────────
    # Members & permissions
    # ─────────────────────────────────────────────────────────────────────────
    def list_members(self, group_id: str, params: Optional[GroupMembersParams] = None) -> List[User]:
        _require_group_id(group_id)
        query = _query(params or GroupMembersParams(), "failed to initiate search parameters for group members")
        resp = self._send(
            "list group members", endpoints.GROUP_MEMBERS, {"groupID": group_id}, params=query
        )
        return [User.from_dict(item) for item in _decode("list group members", resp) or []]

    def get_management_permissions(self, group_id: str) -> ManagementPermissionReference:
        _require_group_id(group_id)
        resp = self._send(
            "get management permissions", endpoints.GROUP_PERMISSIONS_GET, {"groupID": group_id}
        )
        return ManagementPermissionReference.from_dict(_decode("get management permissions", resp))

    def update_management_permissions(
        self, group_id: str, ref: ManagementPermissionReference
    ) -> ManagementPermissionReference:
        """Enable or disable fine-grained permissions for a group.

        The first enable makes Keycloak provision the permission resource.
        """
        _require_group_id(group_id)
        resp = self._send(
            "update management permissions",
            endpoints.GROUP_PERMISSIONS_UPDATE,
            {"groupID": group_id},
            json=ref.to_dict(),
        )
        return ManagementPermissionReference.from_dict(_decode("update management permissions", resp))

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────
    def _send(
        self,
        action: str,
        endpoint: Endpoint,
        path_params: Optional[Mapping[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
        not_found: Optional[type] = None,
    ) -> requests.Response:
        """Issue a request and classify its outcome.

        Raises:
            KeycloakTransportError: If no response was received
            not_found: On 404, when given
            KeycloakAPIError: On any other non-2xx status, or if re-authentication fails
        """
        prefix = f"unable to {action}"
        try:
            resp = self.client.request(endpoint, path_params, params=params, json=json)
        except requests.RequestException as e:
            raise KeycloakTransportError(f"{prefix}: {e}") from e
        except KeycloakAPIError as e:
            # token refresh failed before the request was sent
            raise KeycloakAPIError(e.status_code, f"{prefix}: {e.message}", e.endpoint, e.error_response) from e

        if 200 <= resp.status_code < 300:
            return resp

        if resp.status_code == 404 and not_found is not None:
            raise not_found()

        error = HTTPErrorResponse.from_response(resp)
        if error.is_empty():
            detail = f"HTTP {resp.status_code}"
            if resp.text:
                detail = f"{detail}: {resp.text}"
            raise KeycloakAPIError(resp.status_code, f"{prefix}: {detail}", resp.url or "")
        raise KeycloakAPIError(resp.status_code, f"{prefix}: {error}", resp.url or "", error)


def _require_group_id(group_id: str) -> None:
    if not group_id:
        raise ValueError("groupID parameter cannot be empty")


def _decode(action: str, resp: requests.Response) -> Any:
    """Decode a successful response's JSON body."""
    try:
        return resp.json()
    except ValueError as e:
        raise KeycloakAPIError(
            resp.status_code, f"unable to {action}: invalid JSON response: {e}", resp.url or ""
        ) from e


def _query(params: Any, failure: str) -> Dict[str, str]:
    try:
        return mapper(params)
    except ValueError as e:
        raise ValueError(f"{failure}: {e}") from e


def _find_group_by_attribute(groups: List[Group], attribute: GroupAttribute) -> Optional[Group]:
    """Return the first group whose ``attribute.key`` holds exactly ``[attribute.value]``.

    Groups holding several values for the key are skipped as ambiguous.
    """
    for group in groups:
        if group is None or not group.attributes:
            continue
        values = group.attributes.get(attribute.key)
        if values is not None and len(values) == 1 and values[0] == attribute.value:
            return group
    return None
