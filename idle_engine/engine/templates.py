"""
Template Resolver for the IdLE Engine.

Resolves {{Path}} placeholders in step inputs against an allowlisted view
of the lifecycle request. A string that is exactly one placeholder keeps
the resolved value's type; anything else is string interpolation. Missing,
null and non-scalar values are errors, as are secrets. A literal \\{{ is
emitted as {{ without substitution.

A mapping of the form {"FromFile": "<path>"} is replaced by the content of
that file, which is resolved as a template in turn.
"""

import logging
import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from uuid import UUID

from ..config import TEMPLATE_ALLOWED_ROOTS
from ..errors import TemplateResolutionError, TemplateSecurityError, TemplateSyntaxError
from ..models import LifecycleRequest
from .datapath import get_path_value
from .redaction import is_secret_value

logger = logging.getLogger(__name__)

PATH_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z0-9_]+)*$")
FROM_FILE_KEY = "FromFile"

SCALAR_TYPES = (str, bool, int, float, Decimal, datetime, date, UUID)

_ESCAPED_OPEN = "\\{{"
_ESCAPED_BLOCK = re.compile(r"\\\{\{([^{}]*)\}\}")
_OPEN_SENTINEL = "\x00IDLE_ESCAPED_OPEN\x00"
_CLOSE_SENTINEL = "\x00IDLE_ESCAPED_CLOSE\x00"
_PLACEHOLDER = re.compile(r"\{\{([^{}]*)\}\}")
_PURE_PLACEHOLDER = re.compile(r"^\s*\{\{([^{}]*)\}\}\s*$")


def build_request_view(request: LifecycleRequest) -> Dict[str, Any]:
    """Build the data view placeholders are resolved against."""
    return {
        "Request": {
            "LifecycleEvent": request.lifecycle_event,
            "IdentityKeys": request.identity_keys,
            "DesiredState": request.desired_state,
            # Input aliases DesiredState; requests carry no separate Input
            "Input": request.desired_state,
            "Changes": request.changes,
            "CorrelationId": request.correlation_id,
            "Actor": request.actor,
        }
    }


def is_allowed_path(path: str) -> bool:
    """True if the path sits under one of the allowlisted roots."""
    lowered = path.lower()
    for root in TEMPLATE_ALLOWED_ROOTS:
        root = root.lower()
        if lowered == root or lowered.startswith(root + "."):
            return True
    return False


def stringify(value: Any) -> str:
    """Text form of a resolved scalar used during interpolation."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class TemplateResolver:
    """
    Resolves template placeholders inside step inputs.

    Each resolver is bound to one request; it holds no other state.
    """

    def __init__(
        self,
        request: LifecycleRequest,
        working_directory: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the resolver.

        Args:
            request: Lifecycle request providing the placeholder values
            working_directory: Base for relative FromFile paths. Defaults to
                              the process working directory.
        """
        self.view = build_request_view(request)
        self.working_directory = Path(working_directory) if working_directory else Path.cwd()

    def resolve(self, value: Any, location: str = "With") -> Any:
        """
        Resolve placeholders in a string, mapping or list.

        Mappings keep their keys and lists keep their order. The input is
        never modified.
        """
        if isinstance(value, str):
            return self.resolve_string(value, location)

        if isinstance(value, Mapping):
            if len(value) == 1 and FROM_FILE_KEY in value:
                return self._resolve_from_file(value[FROM_FILE_KEY], f"{location}.{FROM_FILE_KEY}")
            return {key: self.resolve(item, f"{location}.{key}") for key, item in value.items()}

        if isinstance(value, (list, tuple)):
            return [self.resolve(item, f"{location}[{index}]") for index, item in enumerate(value)]

        return value

    def resolve_string(self, text: str, location: str = "With") -> Any:
        """
        Resolve placeholders in a single string.

        Returns the typed value for a pure placeholder, a string otherwise.
        """
        escaped = _ESCAPED_OPEN in text
        working = _ESCAPED_BLOCK.sub(
            lambda match: f"{_OPEN_SENTINEL}{match.group(1)}{_CLOSE_SENTINEL}", text
        )
        working = working.replace(_ESCAPED_OPEN, _OPEN_SENTINEL)
        self._check_braces(working, text, location)

        if not escaped:
            pure = _PURE_PLACEHOLDER.match(working)
            if pure:
                return self._resolve_placeholder(pure.group(1), text, location)

        resolved = _PLACEHOLDER.sub(
            lambda match: stringify(self._resolve_placeholder(match.group(1), text, location)),
            working,
        )
        return resolved.replace(_OPEN_SENTINEL, "{{").replace(_CLOSE_SENTINEL, "}}")

    def _check_braces(self, working: str, original: str, location: str) -> None:
        remainder = _PLACEHOLDER.sub("", working)
        if "{{" in remainder or "}}" in remainder:
            raise TemplateSyntaxError(
                f"{location}: unbalanced template braces in '{original}'"
            )

    def _resolve_placeholder(self, raw_path: str, original: str, location: str) -> Any:
        path = raw_path.strip()

        if not PATH_PATTERN.match(path):
            raise TemplateSyntaxError(
                f"{location}: invalid placeholder path '{raw_path}' in '{original}'", path=raw_path
            )

        if not is_allowed_path(path):
            raise TemplateSecurityError(
                f"{location}: placeholder path '{path}' is not allowed. "
                f"Allowed roots: {', '.join(TEMPLATE_ALLOWED_ROOTS)}",
                path=path,
            )

        found, value = get_path_value(self.view, path)
        if not found or value is None:
            raise TemplateResolutionError(
                f"{location}: placeholder '{path}' resolved to no value", path=path
            )

        if is_secret_value(value):
            raise TemplateSecurityError(
                f"{location}: placeholder '{path}' resolves to a secret; "
                "acquire credentials through the auth session broker instead",
                path=path,
            )

        if isinstance(value, Enum):
            value = value.value

        if not isinstance(value, SCALAR_TYPES):
            raise TemplateResolutionError(
                f"{location}: placeholder '{path}' resolved to a non-scalar value "
                f"({type(value).__name__})",
                path=path,
            )

        return value

    def _resolve_from_file(self, raw_path: Any, location: str) -> Any:
        if not isinstance(raw_path, str) or not raw_path.strip():
            raise TemplateResolutionError(f"{location}: FromFile requires a non-empty path string")

        resolved_path = self.resolve_string(raw_path, location)
        if not isinstance(resolved_path, str):
            raise TemplateResolutionError(f"{location}: FromFile path must resolve to a string")

        file_path = Path(resolved_path)
        if not file_path.is_absolute():
            file_path = self.working_directory / file_path

        if not file_path.is_file():
            raise TemplateResolutionError(f"{location}: FromFile path not found: {file_path}")

        logger.debug(f"Loading template content from {file_path}")
        content = file_path.read_text(encoding="utf-8")
        return self.resolve_string(content, location)
