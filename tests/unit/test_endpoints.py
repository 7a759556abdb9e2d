from kcgroups.core.keycloak import endpoints
from kcgroups.core.keycloak.endpoints import Endpoint, build_url


def test_build_url_substitutes_realm_and_group_id():
    url = build_url("https://kc", "r1", endpoints.GROUP_CHILDREN, {"groupID": "g1"})
    assert url == "https://kc/admin/realms/r1/groups/g1/children"


def test_build_url_without_params_only_replaces_realm():
    assert build_url("https://kc", "demo", endpoints.GROUPS_LIST) == "https://kc/admin/realms/demo/groups"


def test_build_url_leaves_unresolved_placeholders():
    url = build_url("https://kc", "demo", endpoints.GROUP_GET, {"other": "x"})
    assert url == "https://kc/admin/realms/demo/groups/{groupID}"


def test_build_url_does_not_encode_values():
    url = build_url("https://kc", "demo", endpoints.GROUP_GET, {"groupID": "a b/c"})
    assert url == "https://kc/admin/realms/demo/groups/a b/c"


def test_build_url_strips_trailing_slash_from_base():
    url = build_url("https://kc/", "demo", endpoints.GROUPS_COUNT)
    assert url == "https://kc/admin/realms/demo/groups/count"


def test_build_url_custom_endpoint_replaces_every_occurrence():
    ep = Endpoint("GET", "/x/{id}/y/{id}")
    assert build_url("https://kc", "demo", ep, {"id": "7"}) == "https://kc/x/7/y/7"


def test_endpoint_methods_match_operations():
    assert endpoints.GROUPS_CREATE.method == "POST"
    assert endpoints.GROUP_UPDATE.method == "PUT"
    assert endpoints.GROUP_DELETE.method == "DELETE"
    assert endpoints.GROUP_CHILD_CREATE.method == "POST"
    assert endpoints.GROUP_PERMISSIONS_UPDATE.method == "PUT"
    assert endpoints.GROUP_PERMISSIONS_GET.path.endswith("/management/permissions")


def test_client_build_url_uses_configured_realm(kc_client):
    url = kc_client.build_url(endpoints.GROUP_MEMBERS, {"groupID": "g1"})
    assert url == "https://kc.example.com/admin/realms/demo/groups/g1/members"
