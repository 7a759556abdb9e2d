"""Low-level HTTP client for Keycloak Admin API.

Handles authentication, token management, and HTTP operations.
"""
from __future__ import annotations
import logging
from typing import Optional, Dict, Any, Mapping, TYPE_CHECKING
from datetime import datetime, timedelta

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ...config.settings import ClientConfig
from .endpoints import Endpoint, build_url
from .exceptions import KeycloakAPIError

if TYPE_CHECKING:
    from .groups import GroupService

logger = logging.getLogger(__name__)

# Refresh tokens this long before they expire
TOKEN_REFRESH_MARGIN = timedelta(seconds=10)
RETRY_STATUSES = (429, 502, 503, 504)


class KeycloakClient:
    """HTTP client for Keycloak Admin API with automatic token management.

    Features:
    - OAuth2 client-credentials authentication with token endpoint discovery
    - Automatic token refresh when expired
    - Retries, timeout, proxy and default headers configured once per session

    Usage:
        client = KeycloakClient.connect(load_settings())
        groups = client.groups.list(search="eng")
    """

    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None):
        """Initialize Keycloak client.

        Args:
            config: Connection and transport settings
            session: Pre-built session to use instead of a new one

        Raises:
            ValueError: If the configuration is invalid
        """
        config.validate()
        self.config = config
        self.base_url = config.base_url
        self.realm = config.realm
        self.page_size = config.page_size
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._token_url: Optional[str] = None
        self._configure_session()

    @classmethod
    def connect(cls, config: ClientConfig, session: Optional[requests.Session] = None) -> "KeycloakClient":
        """Validate configuration, build a client and authenticate it.

        Raises:
            ValueError: If the configuration is invalid
            KeycloakAPIError: If discovery or the token request fails
        """
        client = cls(config, session=session)
        client.authenticate()
        return client

    def _configure_session(self) -> None:
        if self.config.retry_count > 0:
            retry = Retry(
                total=self.config.retry_count,
                backoff_factor=self.config.retry_wait,
                backoff_max=self.config.retry_max_wait,
                status_forcelist=RETRY_STATUSES,
                allowed_methods=None,
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)
        if self.config.headers:
            self.session.headers.update(self.config.headers)
        if self.config.user_agent:
            self.session.headers["User-Agent"] = self.config.user_agent
        if self.config.proxy:
            self.session.proxies.update({"http": self.config.proxy, "https": self.config.proxy})
        self.session.verify = self.config.verify_tls

    @property
    def groups(self) -> "GroupService":
        """Group operations bound to this client."""
        from .groups import GroupService

        return GroupService(self)

    # ─────────────────────────────────────────────────────────────────────────
    # Authentication
    # ─────────────────────────────────────────────────────────────────────────
    def authenticate(self) -> str:
        """Fetch a service account token using client credentials flow.

        Returns:
            Access token
        """
        if not self._token_url:
            self._token_url = self._discover_token_url()

        data = {
            "grant_type": "client_credentials",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        resp = self.session.post(self._token_url, data=data, timeout=self.config.timeout)
        if resp.status_code != 200:
            raise KeycloakAPIError(resp.status_code, f"login failed: {resp.text}", self._token_url)

        payload = _json_object(resp)
        token = payload.get("access_token") if payload else None
        if not token:
            raise KeycloakAPIError(
                resp.status_code, f"login failed: no access_token in response: {resp.text}", self._token_url
            )
        self._token = token
        expires_in = int(payload.get("expires_in") or 60)
        self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)
        logger.info(f"Authenticated client '{self.config.client_id}' on realm '{self.realm}' (expires_in={expires_in}s)")
        return self._token

    def _discover_token_url(self) -> str:
        """Read the token endpoint from the realm's OpenID configuration."""
        url = f"{self.base_url}/realms/{self.realm}/.well-known/openid-configuration"
        resp = self.session.get(url, timeout=self.config.timeout)
        if resp.status_code != 200:
            raise KeycloakAPIError(resp.status_code, f"login failed: {resp.text}", url)
        payload = _json_object(resp)
        token_url = payload.get("token_endpoint") if payload else None
        if not token_url:
            raise KeycloakAPIError(resp.status_code, "login failed: token_endpoint missing from discovery document", url)
        return token_url

    def _ensure_authenticated(self) -> None:
        """Ensure we have a valid token, refreshing if necessary."""
        if not self._token or not self._token_expires_at:
            self.authenticate()
            return
        if datetime.now() >= self._token_expires_at - TOKEN_REFRESH_MARGIN:
            logger.debug("Access token expiring, refreshing")
            self.authenticate()

    # ─────────────────────────────────────────────────────────────────────────
    # Requests
    # ─────────────────────────────────────────────────────────────────────────
    def build_url(self, endpoint: Endpoint, params: Optional[Mapping[str, str]] = None) -> str:
        """Expand an endpoint template against this client's base URL and realm."""
        return build_url(self.base_url, self.realm, endpoint, params)

    def request(
        self,
        endpoint: Endpoint,
        path_params: Optional[Mapping[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
    ) -> requests.Response:
        """Execute a request with automatic authentication.

        Args:
            endpoint: Method and path template
            path_params: Placeholder substitutions (realm is implicit)
            params: Query parameters
            json: JSON payload

        Returns:
            Response object, whatever its status code

        Raises:
            requests.RequestException: On network failure or timeout
        """
        self._ensure_authenticated()
        url = self.build_url(endpoint, path_params)
        headers = {"Authorization": f"Bearer {self._token}"}

        if self.config.debug:
            logger.debug(f"{endpoint.method} {url} params={params} body={json}")

        resp = self.session.request(
            endpoint.method,
            url,
            params=params,
            json=json,
            headers=headers,
            timeout=self.config.timeout,
        )

        if self.config.debug:
            logger.debug(f"{endpoint.method} {url} -> {resp.status_code}")
        return resp

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "KeycloakClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


def _json_object(resp: requests.Response) -> Optional[Dict[str, Any]]:
    """Decode a JSON object body; None if the body is not one."""
    try:
        payload = resp.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def create_client_with_token(
    config: ClientConfig,
    token: str,
    expires_in: int = 3600,
    session: Optional[requests.Session] = None,
) -> KeycloakClient:
    """Create a pre-authenticated KeycloakClient.

    Useful when a token was obtained elsewhere (or in tests). The client will
    still re-authenticate with the configured credentials once it expires.

    Args:
        config: Connection and transport settings
        token: Pre-obtained access token
        expires_in: Token validity in seconds (default: 1 hour)
        session: Pre-built session to use instead of a new one

    Returns:
        KeycloakClient instance with token pre-set
    """
    client = KeycloakClient(config, session=session)
    client._token = token
    client._token_expires_at = datetime.now() + timedelta(seconds=expires_in)
    return client
