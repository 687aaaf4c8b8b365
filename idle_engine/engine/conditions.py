"""
Declarative condition evaluation for workflow steps.

A condition is plain data, never code. Each node carries exactly one key:

    Groups:     All / Any / None   -> non-empty list of child nodes
    Operators:  Equals    {Path, Value}
                NotEquals {Path, Value}
                Exists    {Path} or a bare path string
                In        {Path, Values}

Comparisons use the string form of both operands, so 30 and "30" are equal.
Schema validation collects every violation and must pass before evaluation.
"""

import logging
from datetime import date, datetime
from typing import Any, List, Mapping, Optional

from ..errors import ConditionSchemaError
from .datapath import get_path_value

logger = logging.getLogger(__name__)

GROUP_KEYS = ("All", "Any", "None")
OPERATOR_KEYS = ("Equals", "NotEquals", "Exists", "In")

_OPERATOR_FIELDS = {
    "Equals": {"Path", "Value"},
    "NotEquals": {"Path", "Value"},
    "Exists": {"Path"},
    "In": {"Path", "Values"},
}


def validate_condition_schema(condition: Any, location: str = "Condition") -> List[str]:
    """
    Validate a condition tree against the grammar.

    Args:
        condition: Condition node
        location: Prefix used in error messages

    Returns:
        List of validation error messages (empty if valid)
    """
    errors: List[str] = []
    _validate_node(condition, location, errors)
    return errors


def _validate_node(node: Any, location: str, errors: List[str]) -> None:
    if not isinstance(node, Mapping):
        errors.append(f"{location}: condition node must be a mapping, got {type(node).__name__}")
        return

    if len(node) == 0:
        errors.append(f"{location}: condition node is empty; expected one of {', '.join(GROUP_KEYS + OPERATOR_KEYS)}")
        return

    unknown = [k for k in node if k not in GROUP_KEYS and k not in OPERATOR_KEYS]
    for key in unknown:
        errors.append(f"{location}: unknown condition key '{key}'")

    known = [k for k in node if k in GROUP_KEYS or k in OPERATOR_KEYS]
    if len(node) > 1:
        errors.append(
            f"{location}: condition node must contain exactly one key, got {', '.join(str(k) for k in node)}"
        )
        return

    if unknown:
        return

    key = known[0]
    value = node[key]

    if key in GROUP_KEYS:
        if not isinstance(value, list) or isinstance(value, str):
            errors.append(f"{location}.{key}: group must be a list of condition nodes")
            return
        if len(value) == 0:
            errors.append(f"{location}.{key}: group must contain at least one condition")
            return
        for index, child in enumerate(value):
            _validate_node(child, f"{location}.{key}[{index}]", errors)
        return

    _validate_operator(key, value, f"{location}.{key}", errors)


def _validate_operator(key: str, value: Any, location: str, errors: List[str]) -> None:
    if key == "Exists" and isinstance(value, str):
        if not value.strip():
            errors.append(f"{location}: Path must be a non-empty string")
        return

    if not isinstance(value, Mapping):
        errors.append(f"{location}: operator arguments must be a mapping")
        return

    fields = _OPERATOR_FIELDS[key]
    for field in value:
        if field not in fields:
            errors.append(f"{location}: unknown key '{field}'")
    for field in sorted(fields):
        if field not in value:
            errors.append(f"{location}: missing required key '{field}'")

    path = value.get("Path")
    if "Path" in value and (not isinstance(path, str) or not path.strip()):
        errors.append(f"{location}.Path: Path must be a non-empty string")

    if "Value" in value and isinstance(value["Value"], (Mapping, list)):
        errors.append(f"{location}.Value: Value must be a scalar")

    if key == "In" and "Values" in value:
        values = value["Values"]
        if isinstance(values, Mapping):
            errors.append(f"{location}.Values: Values must be a scalar or a list, not a mapping")
        elif isinstance(values, list):
            for index, item in enumerate(values):
                if isinstance(item, (Mapping, list)):
                    errors.append(f"{location}.Values[{index}]: list entries must be scalars")


def assert_condition_schema(condition: Any) -> None:
    """Raise ConditionSchemaError listing every violation, if any."""
    errors = validate_condition_schema(condition)
    if errors:
        raise ConditionSchemaError(errors)


def evaluate_condition(condition: Any, context: Mapping[str, Any]) -> bool:
    """
    Validate and evaluate a condition against a context.

    Args:
        condition: Condition node
        context: Nested mapping the paths are resolved against

    Returns:
        True if the condition holds
    """
    assert_condition_schema(condition)
    result = _evaluate_node(condition, context)
    logger.debug(f"Condition evaluated to {result}")
    return result


def _evaluate_node(node: Mapping[str, Any], context: Mapping[str, Any]) -> bool:
    key, value = next(iter(node.items()))

    if key == "All":
        return all(_evaluate_node(child, context) for child in value)
    if key == "Any":
        return any(_evaluate_node(child, context) for child in value)
    if key == "None":
        return not any(_evaluate_node(child, context) for child in value)

    if key == "Exists":
        path = value if isinstance(value, str) else value["Path"]
        found, resolved = get_path_value(context, path)
        return found and resolved is not None

    found, resolved = get_path_value(context, value["Path"])
    left = to_comparable_string(resolved if found else None)

    if key == "Equals":
        return left == to_comparable_string(value["Value"])
    if key == "NotEquals":
        return left != to_comparable_string(value["Value"])

    # In
    candidates = value["Values"]
    if not isinstance(candidates, list):
        candidates = [candidates]
    return any(left == to_comparable_string(c) for c in candidates)


def to_comparable_string(value: Optional[Any]) -> str:
    """String form used by every comparison. None compares as ""."""
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)
