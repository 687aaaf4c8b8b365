"""
Redaction Layer for the IdLE Engine.

Produces a scrubbed deep copy of arbitrary data before it leaves the
engine: events, sink deliveries, plan exports and execution results.
Values under sensitive keys and credential-shaped objects are replaced
with a fixed marker. The input is never modified.
"""

import dataclasses
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping
from uuid import UUID

from pydantic import BaseModel, SecretBytes, SecretStr

from ..config import REDACTION_MARKER, SENSITIVE_KEYS
from ..models import AuthSession

SECRET_TYPES = (SecretStr, SecretBytes, AuthSession)

_PASSTHROUGH_TYPES = (str, bytes, int, float, bool, Decimal, datetime, date, UUID, Enum)

_CONTAINER_TYPES = (Mapping, list, tuple, set, frozenset)


def is_secret_value(value: Any) -> bool:
    """True for opaque secret, session and credential objects."""
    return isinstance(value, SECRET_TYPES)


def normalize_key(key: Any) -> str:
    return str(key).lower().replace("_", "").replace("-", "")


def is_sensitive_key(key: Any) -> bool:
    """True if the key names a secret (case, "_" and "-" are ignored)."""
    return normalize_key(key) in SENSITIVE_KEYS


def redact(value: Any) -> Any:
    """
    Return a redacted deep copy of a value.

    Args:
        value: Any data: mappings, lists, models, dataclasses, scalars

    Returns:
        Rebuilt copy with sensitive values replaced by the redaction marker
    """
    return _redact(value, {})


def _redact(value: Any, visited: Dict[int, Any]) -> Any:
    if value is None or isinstance(value, _PASSTHROUGH_TYPES):
        return value

    if is_secret_value(value):
        return REDACTION_MARKER

    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"

    if isinstance(value, _CONTAINER_TYPES) and not value:
        return _empty_like(value)

    marker = id(value)
    if marker in visited:
        # Cycle or shared reference: each object is walked once per call
        return REDACTION_MARKER

    # Holding the object keeps its id from being reused during the call
    visited[marker] = value

    if isinstance(value, BaseModel):
        return _redact_mapping(value.model_dump(), visited)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _redact_mapping(
            {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}, visited
        )
    if isinstance(value, Mapping):
        return _redact_mapping(value, visited)
    if isinstance(value, list):
        return [_redact(item, visited) for item in value]
    if isinstance(value, tuple):
        return tuple(_redact(item, visited) for item in value)
    if isinstance(value, (set, frozenset)):
        return [_redact(item, visited) for item in value]
    if hasattr(value, "__dict__") and not callable(value):
        public = {k: v for k, v in vars(value).items() if not k.startswith("_")}
        return _redact_mapping(public, visited)
    return value


def _empty_like(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {}
    if isinstance(value, tuple):
        return ()
    return []


def _redact_mapping(mapping: Mapping, visited: Dict[int, Any]) -> dict:
    result = {}
    for key, item in mapping.items():
        if is_sensitive_key(key):
            result[key] = REDACTION_MARKER
        else:
            result[key] = _redact(item, visited)
    return result
