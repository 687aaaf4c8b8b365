"""
Dot-path lookup over nested mappings.

Shared by the condition evaluator and the template resolver so both walk
context data the same way.
"""

from typing import Any, Mapping, Tuple

CONTEXT_PREFIX = "context."

_MISSING = object()


def _lookup_key(data: Mapping, key: str) -> Any:
    if key in data:
        return data[key]

    # Fall back to a case-insensitive match
    lowered = key.lower()
    for candidate, value in data.items():
        if isinstance(candidate, str) and candidate.lower() == lowered:
            return value

    return _MISSING


def get_path_value(data: Any, path: str) -> Tuple[bool, Any]:
    """
    Resolve a dot-separated path.

    Args:
        data: Root mapping
        path: Path such as "Request.DesiredState.Department". A leading
              "context." is ignored.

    Returns:
        (found, value). Any missing segment, None intermediate or
        non-mapping intermediate yields (False, None).
    """
    if path.startswith(CONTEXT_PREFIX):
        path = path[len(CONTEXT_PREFIX):]

    current = data
    for segment in path.split("."):
        if current is None or not isinstance(current, Mapping):
            return False, None

        current = _lookup_key(current, segment)
        if current is _MISSING:
            return False, None

    return True, current
