"""Decoding of Keycloak error response bodies."""
from __future__ import annotations
from dataclasses import dataclass

import requests


@dataclass
class HTTPErrorResponse:
    """Error body returned by Keycloak on failed requests.

    Keycloak uses three optional fields depending on the endpoint:
    ``error`` (code), ``errorMessage`` (admin API) and
    ``error_description`` (OAuth2 endpoints).
    """
    error: str = ""
    message: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "HTTPErrorResponse":
        return cls(
            error=str(data.get("error") or ""),
            message=str(data.get("errorMessage") or ""),
            description=str(data.get("error_description") or ""),
        )

    @classmethod
    def from_response(cls, resp: requests.Response) -> "HTTPErrorResponse":
        """Decode a response body, yielding an empty record when it is not a JSON object."""
        try:
            data = resp.json()
        except ValueError:
            return cls()
        if not isinstance(data, dict):
            return cls()
        return cls.from_dict(data)

    def is_empty(self) -> bool:
        """True when none of the fields carries information."""
        return not (self.error or self.message or self.description)

    def __str__(self) -> str:
        return ": ".join(part for part in (self.error, self.message, self.description) if part)
