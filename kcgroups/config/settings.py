"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
DEFAULT_TIMEOUT = 5.0


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.debug(f"Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            logger.warning(f"Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            logger.debug(f"Loaded {env_var} from environment (fallback)")
            return secret_value

    return None


@dataclass
class ClientConfig:
    """Connection and transport settings for the Keycloak Admin API client."""
    # Connection (required)
    url: str
    realm: str
    client_id: str
    client_secret: str

    # Paging
    page_size: int = DEFAULT_PAGE_SIZE

    # Transport
    timeout: float = DEFAULT_TIMEOUT
    retry_count: int = 0
    retry_wait: float = 0.1
    retry_max_wait: float = 2.0
    debug: bool = False
    headers: Dict[str, str] = field(default_factory=dict)
    user_agent: str = ""
    proxy: str = ""
    verify_tls: bool = True

    @property
    def base_url(self) -> str:
        """Server URL without a trailing slash."""
        return self.url.rstrip("/")

    def validate(self) -> None:
        """Check required settings and option ranges.

        Raises:
            ValueError: On the first violated rule
        """
        if not self.url:
            raise ValueError("URL is required")
        if not self.realm:
            raise ValueError("realm is required")
        if not self.client_id:
            raise ValueError("clientID is required")
        if not self.client_secret:
            raise ValueError("clientSecret is required")
        if self.page_size <= 0:
            raise ValueError(f"page size must be positive, got {self.page_size}")
        if self.timeout < 0:
            raise ValueError(f"timeout must be non-negative, got {self.timeout}")
        if self.retry_count < 0:
            raise ValueError(f"retry count must be non-negative, got {self.retry_count}")


def _env_flag(var_name: str, default: bool) -> bool:
    value = os.environ.get(var_name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_number(var_name: str, default, cast):
    value = os.environ.get(var_name)
    if value is None or not value.strip():
        return default
    try:
        return cast(value.strip())
    except ValueError:
        raise ValueError(f"Environment variable {var_name} must be a number, got '{value}'") from None


def _parse_headers(raw: str) -> Dict[str, str]:
    """Parse 'Name=value,Other=value' into a header mapping."""
    headers: Dict[str, str] = {}
    for item in raw.split(","):
        if not item.strip():
            continue
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Invalid header entry '{item.strip()}': expected Name=value")
        headers[name.strip()] = value.strip()
    return headers


def load_settings(overrides: Optional[Dict[str, object]] = None) -> ClientConfig:
    """Load client settings from environment and /run/secrets.

    Args:
        overrides: Field values that take precedence over the environment

    Returns:
        Unvalidated ClientConfig (call validate() before connecting)
    """
    client_secret = _load_secret_from_file("keycloak_client_secret", "KEYCLOAK_CLIENT_SECRET") or ""

    config = ClientConfig(
        url=os.environ.get("KEYCLOAK_URL", ""),
        realm=os.environ.get("KEYCLOAK_REALM", ""),
        client_id=os.environ.get("KEYCLOAK_CLIENT_ID", ""),
        client_secret=client_secret,
        page_size=_env_number("KEYCLOAK_PAGE_SIZE", DEFAULT_PAGE_SIZE, int),
        timeout=_env_number("KEYCLOAK_TIMEOUT", DEFAULT_TIMEOUT, float),
        retry_count=_env_number("KEYCLOAK_RETRY_COUNT", 0, int),
        retry_wait=_env_number("KEYCLOAK_RETRY_WAIT", 0.1, float),
        retry_max_wait=_env_number("KEYCLOAK_RETRY_MAX_WAIT", 2.0, float),
        debug=_env_flag("KEYCLOAK_DEBUG", False),
        headers=_parse_headers(os.environ.get("KEYCLOAK_HEADERS", "")),
        user_agent=os.environ.get("KEYCLOAK_USER_AGENT", ""),
        proxy=os.environ.get("KEYCLOAK_PROXY", ""),
        verify_tls=_env_flag("KEYCLOAK_VERIFY_TLS", True),
    )

    for name, value in (overrides or {}).items():
        if value is None:
            continue
        if not hasattr(config, name):
            raise ValueError(f"Unknown setting '{name}'")
        setattr(config, name, value)

    logger.debug(f"Settings loaded; realm={config.realm}; client_id={config.client_id}; page_size={config.page_size}")
    return config
