import json
from datetime import datetime
from urllib.parse import parse_qs, urlparse

import pytest
import requests
import responses

from kcgroups.core.keycloak.exceptions import (
    GroupNotFoundError,
    KeycloakAPIError,
    KeycloakTransportError,
)
from kcgroups.core.keycloak.errors import HTTPErrorResponse
from kcgroups.core.keycloak.groups import GroupService, GroupsClient
from kcgroups.core.keycloak.models import (
    Group,
    GroupAttribute,
    GroupMembersParams,
    ManagementPermissionReference,
    SearchGroupParams,
    SubGroupSearchParams,
)
from tests.conftest import GROUPS_URL, KC_URL


def _query_of(url: str) -> dict:
    parsed = parse_qs(urlparse(url).query, keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items()}


def _query(call) -> dict:
    return _query_of(call.request.url)


def _body(call) -> dict:
    return json.loads(call.request.body)


def test_group_service_satisfies_protocol(groups):
    client: GroupsClient = groups
    assert isinstance(client, GroupService)


# ─────────────────────────────────────────────────────────────────────────────
# CRUD
# ─────────────────────────────────────────────────────────────────────────────
def test_create_returns_id_from_location(rsps, groups):
    rsps.add(responses.POST, GROUPS_URL, status=201, headers={"Location": f"{GROUPS_URL}/abc123"})

    group_id = groups.create("Eng", {"dept": ["eng"]})

    assert group_id == "abc123"
    assert _body(rsps.calls[0]) == {"name": "Eng", "attributes": {"dept": ["eng"]}}


def test_create_then_get_missing_group_raises_not_found(rsps, groups):
    rsps.add(responses.POST, GROUPS_URL, status=201, headers={"Location": f"{GROUPS_URL}/abc123"})
    rsps.add(responses.GET, f"{GROUPS_URL}/abc123", status=404, json={"error": "Could not find group by id"})

    group_id = groups.create("Eng", {"dept": ["eng"]})
    with pytest.raises(GroupNotFoundError) as exc:
        groups.get(group_id)
    assert type(exc.value) is GroupNotFoundError


def test_create_without_location_returns_empty_id(rsps, groups):
    rsps.add(responses.POST, GROUPS_URL, status=201)
    assert groups.create("Eng") == ""
    assert _body(rsps.calls[0]) == {"name": "Eng"}


def test_create_conflict_is_decoded(rsps, groups):
    rsps.add(
        responses.POST,
        GROUPS_URL,
        status=409,
        json={"errorMessage": "Top level group named 'Eng' already exists."},
    )

    with pytest.raises(KeycloakAPIError) as exc:
        groups.create("Eng")

    assert str(exc.value) == "unable to create group: Top level group named 'Eng' already exists."
    assert exc.value.status_code == 409
    assert exc.value.error_response == HTTPErrorResponse(message="Top level group named 'Eng' already exists.")


def test_undecodable_error_body_falls_back_to_status(rsps, groups):
    rsps.add(responses.POST, GROUPS_URL, status=502, body="Bad Gateway")

    with pytest.raises(KeycloakAPIError) as exc:
        groups.create("Eng")

    assert str(exc.value) == "unable to create group: HTTP 502: Bad Gateway"
    assert exc.value.error_response is None


def test_get_returns_group(rsps, groups):
    rsps.add(
        responses.GET,
        f"{GROUPS_URL}/g1",
        json={"id": "g1", "name": "eng", "path": "/eng", "subGroupCount": 2, "attributes": {"dept": ["eng"]}},
    )

    group = groups.get("g1")

    assert group == Group(id="g1", name="eng", path="/eng", sub_group_count=2, attributes={"dept": ["eng"]})
    assert group.sub_groups is None


def test_get_other_errors_are_not_not_found(rsps, groups):
    rsps.add(responses.GET, f"{GROUPS_URL}/g1", status=403, json={"error": "unknown_error"})

    with pytest.raises(KeycloakAPIError) as exc:
        groups.get("g1")
    assert not isinstance(exc.value, GroupNotFoundError)
    assert str(exc.value) == "unable to get group: unknown_error"


def test_transport_failure_is_wrapped(rsps, groups):
    rsps.add(responses.GET, f"{GROUPS_URL}/g1", body=requests.exceptions.ConnectTimeout("timed out"))

    with pytest.raises(KeycloakTransportError) as exc:
        groups.get("g1")

    assert str(exc.value).startswith("unable to get group: ")
    assert isinstance(exc.value.__cause__, requests.exceptions.ConnectTimeout)


def test_failed_token_refresh_carries_operation_prefix(rsps, kc_client, groups):
    token_url = f"{KC_URL}/realms/demo/protocol/openid-connect/token"
    kc_client._token_url = token_url
    kc_client._token_expires_at = datetime.now()
    rsps.add(responses.POST, token_url, status=401, body="invalid client")

    with pytest.raises(KeycloakAPIError) as exc:
        groups.get("g1")

    assert str(exc.value) == "unable to get group: login failed: invalid client"
    assert exc.value.status_code == 401
    assert exc.value.endpoint == token_url


def test_success_with_invalid_json_body_is_api_error(rsps, groups):
    rsps.add(responses.GET, f"{GROUPS_URL}/g1", status=200, body="")

    with pytest.raises(KeycloakAPIError) as exc:
        groups.get("g1")

    assert str(exc.value).startswith("unable to get group: invalid JSON response")
    assert exc.value.status_code == 200


def test_update_puts_full_record(rsps, groups):
    rsps.add(responses.PUT, f"{GROUPS_URL}/g1", status=204)
    group = Group(id="g1", name="eng", description="Engineering", attributes={"dept": ["eng", "rnd"]})

    groups.update(group)

    assert _body(rsps.calls[0]) == {
        "id": "g1",
        "name": "eng",
        "description": "Engineering",
        "attributes": {"dept": ["eng", "rnd"]},
    }


def test_update_failure_is_decoded(rsps, groups):
    rsps.add(responses.PUT, f"{GROUPS_URL}/g1", status=400, json={"error": "invalid", "error_description": "bad name"})

    with pytest.raises(KeycloakAPIError, match="^unable to update group: invalid: bad name$"):
        groups.update(Group(id="g1", name=""))


def test_delete(rsps, groups):
    rsps.add(responses.DELETE, f"{GROUPS_URL}/g1", status=204)
    groups.delete("g1")
    assert rsps.calls[0].request.method == "DELETE"


def test_delete_missing_group_is_api_error(rsps, groups):
    rsps.add(responses.DELETE, f"{GROUPS_URL}/g1", status=404, json={"error": "Could not find group by id"})

    with pytest.raises(KeycloakAPIError) as exc:
        groups.delete("g1")
    assert exc.value.status_code == 404


# ─────────────────────────────────────────────────────────────────────────────
# Listing & search
# ─────────────────────────────────────────────────────────────────────────────
def test_list_sends_search_and_brief_flag(rsps, groups):
    rsps.add(responses.GET, GROUPS_URL, json=[{"id": "g1", "name": "eng"}, {"id": "g2", "name": "ops"}])

    result = groups.list("e", True)

    assert [g.id for g in result] == ["g1", "g2"]
    assert _query(rsps.calls[0]) == {"search": "e", "briefRepresentation": "true"}


def test_list_without_search_omits_parameter(rsps, groups):
    rsps.add(responses.GET, GROUPS_URL, json=[])

    assert groups.list() == []
    assert _query(rsps.calls[0]) == {"briefRepresentation": "false"}


def test_list_paginated_sends_offset_and_limit(rsps, groups):
    rsps.add(responses.GET, GROUPS_URL, json=[])

    groups.list_paginated(None, False, 0, 10)

    assert _query(rsps.calls[0]) == {"briefRepresentation": "false", "first": "0", "max": "10"}


def test_list_with_params_maps_every_field(rsps, groups):
    rsps.add(responses.GET, GROUPS_URL, json=[])
    params = SearchGroupParams(
        brief_representation=False,
        populate_hierarchy=True,
        exact=True,
        first=5,
        full=True,
        max=20,
        q="dept:eng",
        search="eng",
        sub_groups_count=False,
    )

    groups.list_with_params(params)

    assert _query(rsps.calls[0]) == {
        "briefRepresentation": "false",
        "populateHierarchy": "true",
        "exact": "true",
        "first": "5",
        "full": "true",
        "max": "20",
        "q": "dept:eng",
        "search": "eng",
        "subGroupsCount": "false",
    }


def test_list_with_params_rejects_unencodable_parameters(rsps, groups):
    with pytest.raises(ValueError, match="failed to initiate search parameters of groups"):
        groups.list_with_params(SearchGroupParams(search=object()))
    assert len(rsps.calls) == 0


def test_list_with_sub_groups_forces_search_and_hierarchy(rsps, groups):
    rsps.add(
        responses.GET,
        GROUPS_URL,
        json=[{"id": "g1", "name": "eng", "subGroups": [{"id": "c1", "name": "backend", "subGroups": []}]}],
    )

    result = groups.list_with_sub_groups("", False, 0, 100)

    query = _query(rsps.calls[0])
    assert query["search"] == ""
    assert query["populateHierarchy"] == "true"
    assert query["first"] == "0"
    assert query["max"] == "100"
    assert result[0].sub_groups[0].id == "c1"
    assert result[0].sub_groups[0].sub_groups == []


def test_count(rsps, groups):
    rsps.add(responses.GET, f"{GROUPS_URL}/count", json={"count": 12})

    assert groups.count("eng", True) == 12
    assert _query(rsps.calls[0]) == {"search": "eng", "top": "true"}


def test_count_without_filters(rsps, groups):
    rsps.add(responses.GET, f"{GROUPS_URL}/count", json={"count": 0})

    assert groups.count() == 0
    assert _query(rsps.calls[0]) == {}


# ─────────────────────────────────────────────────────────────────────────────
# Attribute search (page size 2 from the config fixture)
# ─────────────────────────────────────────────────────────────────────────────
def _paged_groups(rsps, all_groups):
    def callback(request):
        query = _query_of(request.url)
        first, size = int(query["first"]), int(query["max"])
        return 200, {}, json.dumps(all_groups[first:first + size])

    rsps.add_callback(responses.GET, GROUPS_URL, callback=callback, content_type="application/json")


def _group(index, **attributes):
    return {"id": f"g{index}", "name": f"group-{index}", "attributes": attributes}


def test_get_by_attribute_stops_on_matching_page(rsps, groups):
    data = [_group(0), _group(1), _group(2), _group(3, ref=["42"]), _group(4)]
    _paged_groups(rsps, data)

    found = groups.get_by_attribute(GroupAttribute("ref", "42"))

    assert found.id == "g3"
    assert len(rsps.calls) == 2
    assert [_query(call)["first"] for call in rsps.calls] == ["0", "2"]
    assert all(_query(call)["max"] == "2" for call in rsps.calls)


def test_get_by_attribute_match_on_first_page(rsps, groups):
    _paged_groups(rsps, [_group(0, ref=["42"]), _group(1)])

    assert groups.get_by_attribute(GroupAttribute("ref", "42")).id == "g0"
    assert len(rsps.calls) == 1


def test_get_by_attribute_exhausts_pages_then_not_found(rsps, groups):
    _paged_groups(rsps, [_group(i) for i in range(5)])

    with pytest.raises(GroupNotFoundError):
        groups.get_by_attribute(GroupAttribute("ref", "42"))
    assert len(rsps.calls) == 3


def test_get_by_attribute_reads_trailing_empty_page(rsps, groups):
    _paged_groups(rsps, [_group(i) for i in range(4)])

    with pytest.raises(GroupNotFoundError):
        groups.get_by_attribute(GroupAttribute("ref", "42"))
    assert [_query(call)["first"] for call in rsps.calls] == ["0", "2", "4"]


def test_get_by_attribute_rejects_multi_valued_attribute(rsps, groups):
    _paged_groups(rsps, [_group(0, ref=["42", "43"])])

    with pytest.raises(GroupNotFoundError):
        groups.get_by_attribute(GroupAttribute("ref", "42"))


def test_get_by_attribute_skips_multi_valued_group_and_keeps_scanning(rsps, groups):
    _paged_groups(rsps, [_group(0, ref=["42", "43"]), _group(1, ref=["42"])])

    assert groups.get_by_attribute(GroupAttribute("ref", "42")).id == "g1"


def test_get_by_attribute_requires_exact_value(rsps, groups):
    _paged_groups(rsps, [_group(0, ref=["420"]), _group(1, REF=["42"])])

    with pytest.raises(GroupNotFoundError):
        groups.get_by_attribute(GroupAttribute("ref", "42"))


def test_get_by_attribute_rejects_non_positive_page_size(rsps, kc_client, groups):
    kc_client.page_size = 0

    with pytest.raises(ValueError, match="page size must be positive"):
        groups.get_by_attribute(GroupAttribute("ref", "42"))
    assert len(rsps.calls) == 0


def test_get_by_attribute_propagates_page_errors(rsps, groups):
    rsps.add(responses.GET, GROUPS_URL, status=500, json={"error": "unknown_error"})

    with pytest.raises(KeycloakAPIError, match="unable to list groups"):
        groups.get_by_attribute(GroupAttribute("ref", "42"))


# ─────────────────────────────────────────────────────────────────────────────
# Subgroups
# ─────────────────────────────────────────────────────────────────────────────
def test_create_sub_group_returns_new_id(rsps, groups):
    rsps.add(
        responses.POST,
        f"{GROUPS_URL}/parent/children",
        status=201,
        headers={"Location": f"{GROUPS_URL}/child-9"},
    )

    assert groups.create_sub_group("parent", "backend", {"tier": ["2"]}) == "child-9"
    assert _body(rsps.calls[0]) == {"name": "backend", "attributes": {"tier": ["2"]}}


def test_create_sub_group_reparenting_returns_empty_id(rsps, groups):
    rsps.add(responses.POST, f"{GROUPS_URL}/parent/children", status=204)

    assert groups.create_sub_group("parent", "backend") == ""


def test_create_sub_group_failure_prefix(rsps, groups):
    rsps.add(responses.POST, f"{GROUPS_URL}/parent/children", status=409, json={"errorMessage": "Sibling group named 'backend' already exists."})

    with pytest.raises(KeycloakAPIError, match="^unable to create sub-group: Sibling group"):
        groups.create_sub_group("parent", "backend")


def test_list_sub_groups(rsps, groups):
    rsps.add(
        responses.GET,
        f"{GROUPS_URL}/parent/children",
        json=[{"id": "c1", "parentId": "parent"}, {"id": "c2", "parentId": "parent"}],
    )

    children = groups.list_sub_groups("parent")

    assert [c.id for c in children] == ["c1", "c2"]
    assert children[0].parent_id == "parent"
    assert _query(rsps.calls[0]) == {}


def test_list_sub_groups_paginated(rsps, groups):
    rsps.add(responses.GET, f"{GROUPS_URL}/parent/children", json=[{"id": "c3"}])

    children = groups.list_sub_groups_paginated(
        "parent", SubGroupSearchParams(search="back", exact=False, first=10, max=5, brief_representation=True)
    )

    assert [c.id for c in children] == ["c3"]
    assert _query(rsps.calls[0]) == {
        "search": "back",
        "exact": "false",
        "first": "10",
        "max": "5",
        "briefRepresentation": "true",
    }


def _parent_with_children():
    return Group(
        id="root",
        sub_groups=[
            Group(id="c1", attributes={"ref": ["a"]}),
            Group(id="c2", attributes={"ref": ["b", "c"]}),
            Group(id="c3", attributes={"ref": ["b"]}),
        ],
    )


def test_get_sub_group_by_id(groups):
    assert groups.get_sub_group_by_id(_parent_with_children(), "c3").id == "c3"


def test_get_sub_group_by_id_not_found(groups):
    with pytest.raises(GroupNotFoundError):
        groups.get_sub_group_by_id(_parent_with_children(), "zzz")


def test_get_sub_group_by_id_without_hierarchy(groups):
    with pytest.raises(GroupNotFoundError):
        groups.get_sub_group_by_id(Group(id="root", sub_group_count=3), "c1")


def test_get_sub_group_by_attribute(groups):
    assert groups.get_sub_group_by_attribute(_parent_with_children(), GroupAttribute("ref", "b")).id == "c3"


def test_get_sub_group_by_attribute_not_found(groups):
    with pytest.raises(GroupNotFoundError):
        groups.get_sub_group_by_attribute(_parent_with_children(), GroupAttribute("ref", "c"))


def test_get_sub_group_by_attribute_without_hierarchy(groups):
    with pytest.raises(GroupNotFoundError):
        groups.get_sub_group_by_attribute(Group(id="root"), GroupAttribute("ref", "a"))


# ─────────────────────────────────────────────────────────────────────────────
# Members & permissions
# ─────────────────────────────────────────────────────────────────────────────
def test_list_members(rsps, groups):
    rsps.add(
        responses.GET,
        f"{GROUPS_URL}/g1/members",
        json=[{"id": "u1", "username": "alice", "email": "alice@example.com", "enabled": True}],
    )

    members = groups.list_members("g1", GroupMembersParams(brief_representation=True, first=0, max=100))

    assert members[0].username == "alice"
    assert members[0].enabled is True
    assert _query(rsps.calls[0]) == {"briefRepresentation": "true", "first": "0", "max": "100"}


def test_list_members_default_params(rsps, groups):
    rsps.add(responses.GET, f"{GROUPS_URL}/g1/members", json=[])

    assert groups.list_members("g1") == []
    assert _query(rsps.calls[0]) == {}


def test_get_management_permissions(rsps, groups):
    rsps.add(
        responses.GET,
        f"{GROUPS_URL}/g1/management/permissions",
        json={"enabled": True, "resource": "res-1", "scopePermissions": {"view": "p1"}},
    )

    ref = groups.get_management_permissions("g1")

    assert ref == ManagementPermissionReference(enabled=True, resource="res-1", scope_permissions={"view": "p1"})


def test_update_management_permissions(rsps, groups):
    rsps.add(
        responses.PUT,
        f"{GROUPS_URL}/g1/management/permissions",
        json={"enabled": False},
    )

    ref = groups.update_management_permissions("g1", ManagementPermissionReference(enabled=False))

    assert ref.enabled is False
    assert _body(rsps.calls[0]) == {"enabled": False}


def test_update_management_permissions_failure(rsps, groups):
    rsps.add(responses.PUT, f"{GROUPS_URL}/g1/management/permissions", status=501, json={"error": "Feature not enabled"})

    with pytest.raises(KeycloakAPIError, match="^unable to update management permissions: Feature not enabled$"):
        groups.update_management_permissions("g1", ManagementPermissionReference(enabled=True))
