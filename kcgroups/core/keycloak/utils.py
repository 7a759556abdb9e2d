"""Request helpers shared by Keycloak resource services."""
from __future__ import annotations
import json
from dataclasses import fields, is_dataclass
from typing import Any, Dict, Mapping

import requests


def mapper(record: Any) -> Dict[str, str]:
    """Project a flat options record onto query-string parameters.

    Accepts a record dataclass (wire names taken from its field metadata) or
    a mapping. ``None`` values are omitted, explicit zero values are kept.
    Nested containers are not flattened; they are rendered with ``str()``.

    Raises:
        ValueError: If the record holds a value that cannot be encoded as JSON
    """
    if hasattr(record, "to_dict"):
        data = record.to_dict()
    elif is_dataclass(record) and not isinstance(record, type):
        data = {
            f.metadata.get("wire", f.name): getattr(record, f.name)
            for f in fields(record)
            if getattr(record, f.name) is not None
        }
    elif isinstance(record, Mapping):
        data = {str(key): value for key, value in record.items() if value is not None}
    else:
        raise ValueError(f"failed to marshal record: unsupported type {type(record).__name__}")

    try:
        json.dumps(data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"failed to marshal record: {e}") from e

    return {key: _stringify(value) for key, value in data.items()}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def get_id(resp: requests.Response) -> str:
    """Return the last path segment of the Location header ("" if absent)."""
    location = resp.headers.get("Location", "")
    if not location:
        return ""
    return location.rstrip("/").rsplit("/", 1)[-1]
