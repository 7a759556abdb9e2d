"""Configuration module for the Keycloak groups client."""
from .settings import ClientConfig, load_settings, DEFAULT_PAGE_SIZE

__all__ = ["ClientConfig", "load_settings", "DEFAULT_PAGE_SIZE"]
