"""Pytest shared fixtures for the Keycloak groups client."""
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import responses

from kcgroups.config import ClientConfig
from kcgroups.core.keycloak import GroupService, create_client_with_token

KC_URL = "https://kc.example.com"
REALM = "demo"
GROUPS_URL = f"{KC_URL}/admin/realms/{REALM}/groups"


def make_config(**overrides) -> ClientConfig:
    base = dict(
        url=KC_URL,
        realm=REALM,
        client_id="automation-cli",
        client_secret="super-secret",
        page_size=2,
    )
    base.update(overrides)
    return ClientConfig(**base)


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def rsps():
    """Mock every requests call; unregistered URLs raise ConnectionError."""
    with responses.RequestsMock() as mock:
        yield mock


@pytest.fixture()
def config() -> ClientConfig:
    return make_config()


@pytest.fixture()
def kc_client(config):
    """Client holding a pre-issued token, so no token request is made."""
    client = create_client_with_token(config, "test-token")
    yield client
    client.close()


@pytest.fixture()
def groups(kc_client) -> GroupService:
    return GroupService(kc_client)
