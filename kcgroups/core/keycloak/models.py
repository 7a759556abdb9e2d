"""Keycloak resource representations used by the groups client.

Every optional field defaults to ``None`` so that "not sent by the server"
stays distinguishable from an explicit zero value (``subGroupCount: 0``).
Field metadata carries the JSON wire name; ``to_dict`` omits ``None`` fields.

Usage:
    group = Group.from_dict(resp.json())
    payload = group.to_dict()
"""
from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


# Marker for fields nesting the record's own type (Group.subGroups)
SELF = "self"


def wire(name: str, record: Optional[Any] = None, many: bool = False):
    """Declare an optional field serialised under ``name``.

    Args:
        name: JSON field name
        record: Nested record class (or SELF), if the value is a record or list of them
        many: True when the value is a list of ``record``
    """
    return field(default=None, metadata={"wire": name, "record": record, "many": many})


class Record:
    """Mixin providing wire-format conversion for dataclass records."""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            name = f.metadata.get("wire", f.name)
            if f.metadata.get("record") is not None:
                if f.metadata.get("many"):
                    value = [item.to_dict() for item in value if item is not None]
                else:
                    value = value.to_dict()
            data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            name = f.metadata.get("wire", f.name)
            if name not in data or data[name] is None:
                continue
            value = data[name]
            record = f.metadata.get("record")
            if record == SELF:
                record = cls
            if record is not None:
                if f.metadata.get("many"):
                    value = [record.from_dict(item) for item in value if item is not None]
                else:
                    value = record.from_dict(value)
            kwargs[f.name] = value
        return cls(**kwargs)


# ─────────────────────────────────────────────────────────────────────────────
# Groups
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class Group(Record):
    """Keycloak GroupRepresentation.

    ``sub_groups`` is only populated by the server when the request carried a
    search or query parameter. ``None`` means "not requested", not "no
    children"; use ``sub_group_count`` for the latter.
    """
    id: Optional[str] = wire("id")
    name: Optional[str] = wire("name")
    description: Optional[str] = wire("description")
    path: Optional[str] = wire("path")
    parent_id: Optional[str] = wire("parentId")
    sub_group_count: Optional[int] = wire("subGroupCount")
    sub_groups: Optional[List["Group"]] = wire("subGroups", SELF, many=True)
    attributes: Optional[Dict[str, List[str]]] = wire("attributes")
    access: Optional[Dict[str, bool]] = wire("access")
    client_roles: Optional[Dict[str, List[str]]] = wire("clientRoles")
    realm_roles: Optional[List[str]] = wire("realmRoles")



@dataclass
class GroupAttribute:
    """Key/value probe used to look groups up by a custom attribute."""
    key: str
    value: str

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "value": self.value}


@dataclass
class SearchGroupParams(Record):
    """Query parameters of GET /groups. Unset fields use Keycloak defaults."""
    brief_representation: Optional[bool] = wire("briefRepresentation")
    populate_hierarchy: Optional[bool] = wire("populateHierarchy")
    exact: Optional[bool] = wire("exact")
    first: Optional[int] = wire("first")
    full: Optional[bool] = wire("full")
    max: Optional[int] = wire("max")
    q: Optional[str] = wire("q")
    search: Optional[str] = wire("search")
    sub_groups_count: Optional[bool] = wire("subGroupsCount")


@dataclass
class CountGroupParams(Record):
    search: Optional[str] = wire("search")
    top: Optional[bool] = wire("top")


@dataclass
class CountGroupResponse:
    count: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CountGroupResponse":
        return cls(count=int(data["count"]))


@dataclass
class SubGroupSearchParams(Record):
    """Query parameters of GET /groups/{id}/children."""
    brief_representation: Optional[bool] = wire("briefRepresentation")
    exact: Optional[bool] = wire("exact")
    first: Optional[int] = wire("first")
    max: Optional[int] = wire("max")
    search: Optional[str] = wire("search")
    sub_groups_count: Optional[bool] = wire("subGroupsCount")


@dataclass
class GroupMembersParams(Record):
    brief_representation: Optional[bool] = wire("briefRepresentation")
    first: Optional[int] = wire("first")
    max: Optional[int] = wire("max")


@dataclass
class ManagementPermissionReference(Record):
    """Fine-grained authorization status of a group; only ``enabled`` is writable."""
    enabled: Optional[bool] = wire("enabled")
    resource: Optional[str] = wire("resource")
    scope_permissions: Optional[Dict[str, str]] = wire("scopePermissions")


# ─────────────────────────────────────────────────────────────────────────────
# Users (group members)
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class UserProfileAttributeMetadata(Record):
    name: Optional[str] = wire("name")
    display_name: Optional[str] = wire("displayName")
    required: Optional[bool] = wire("required")
    read_only: Optional[bool] = wire("readOnly")
    annotations: Optional[Dict[str, Any]] = wire("annotations")
    validators: Optional[Dict[str, Any]] = wire("validators")
    group: Optional[str] = wire("group")
    multivalued: Optional[bool] = wire("multivalued")
    default_value: Optional[str] = wire("defaultValue")


@dataclass
class UserProfileAttributeGroupMetadata(Record):
    name: Optional[str] = wire("name")
    display_header: Optional[str] = wire("displayHeader")
    display_description: Optional[str] = wire("displayDescription")
    annotations: Optional[Dict[str, Any]] = wire("annotations")


@dataclass
class UserProfileMetadata(Record):
    attributes: Optional[List[UserProfileAttributeMetadata]] = wire(
        "attributes", UserProfileAttributeMetadata, many=True
    )
    groups: Optional[List[UserProfileAttributeGroupMetadata]] = wire(
        "groups", UserProfileAttributeGroupMetadata, many=True
    )


@dataclass
class Credential(Record):
    id: Optional[str] = wire("id")
    type: Optional[str] = wire("type")
    user_label: Optional[str] = wire("userLabel")
    created_date: Optional[int] = wire("createdDate")
    secret_data: Optional[str] = wire("secretData")
    credential_data: Optional[str] = wire("credentialData")
    priority: Optional[int] = wire("priority")
    value: Optional[str] = wire("value")
    temporary: Optional[bool] = wire("temporary")
    device: Optional[str] = wire("device")
    hashed_salted_value: Optional[str] = wire("hashedSaltedValue")
    salt: Optional[str] = wire("salt")
    hash_iterations: Optional[int] = wire("hashIterations")
    counter: Optional[int] = wire("counter")
    algorithm: Optional[str] = wire("algorithm")
    digits: Optional[int] = wire("digits")
    period: Optional[int] = wire("period")
    config: Optional[Dict[str, Any]] = wire("config")
    federation_link: Optional[str] = wire("federationLink")


@dataclass
class FederatedIdentity(Record):
    identity_provider: Optional[str] = wire("identityProvider")
    user_id: Optional[str] = wire("userId")
    user_name: Optional[str] = wire("userName")


@dataclass
class UserConsent(Record):
    client_id: Optional[str] = wire("clientId")
    granted_client_scopes: Optional[List[str]] = wire("grantedClientScopes")
    created_date: Optional[int] = wire("createdDate")
    last_updated_date: Optional[int] = wire("lastUpdatedDate")
    granted_realm_roles: Optional[List[str]] = wire("grantedRealmRoles")


@dataclass
class SocialLink(Record):
    social_provider: Optional[str] = wire("socialProvider")
    social_user_id: Optional[str] = wire("socialUserId")
    social_username: Optional[str] = wire("socialUsername")


@dataclass
class User(Record):
    """Keycloak UserRepresentation as returned by the group members listing."""
    id: Optional[str] = wire("id")
    username: Optional[str] = wire("username")
    first_name: Optional[str] = wire("firstName")
    last_name: Optional[str] = wire("lastName")
    email: Optional[str] = wire("email")
    email_verified: Optional[bool] = wire("emailVerified")
    attributes: Optional[Dict[str, List[str]]] = wire("attributes")
    user_profile_metadata: Optional[UserProfileMetadata] = wire("userProfileMetadata", UserProfileMetadata)
    enabled: Optional[bool] = wire("enabled")
    self_link: Optional[str] = wire("self")
    origin: Optional[str] = wire("origin")
    created_timestamp: Optional[int] = wire("createdTimestamp")
    totp: Optional[bool] = wire("totp")
    federation_link: Optional[str] = wire("federationLink")
    service_account_client_id: Optional[str] = wire("serviceAccountClientId")
    credentials: Optional[List[Credential]] = wire("credentials", Credential, many=True)
    disableable_credential_types: Optional[List[str]] = wire("disableableCredentialTypes")
    required_actions: Optional[List[str]] = wire("requiredActions")
    federated_identities: Optional[List[FederatedIdentity]] = wire(
        "federatedIdentities", FederatedIdentity, many=True
    )
    realm_roles: Optional[List[str]] = wire("realmRoles")
    client_roles: Optional[Dict[str, List[str]]] = wire("clientRoles")
    client_consents: Optional[List[UserConsent]] = wire("clientConsents", UserConsent, many=True)
    not_before: Optional[int] = wire("notBefore")
    application_roles: Optional[Dict[str, List[str]]] = wire("applicationRoles")
    social_links: Optional[List[SocialLink]] = wire("socialLinks", SocialLink, many=True)
    groups: Optional[List[str]] = wire("groups")
    access: Optional[Dict[str, bool]] = wire("access")
