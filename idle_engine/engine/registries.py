"""
Step Metadata & Handler Registries for the IdLE Engine.

Both registries are keyed by step type and merged from built-in defaults
and host overrides (host wins). Metadata declares the capabilities a step
type requires. Handlers are referenced by name ("package.module:function"),
never registered as callables: only the host process decides which code a
step type runs.
"""

import copy
import importlib
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..errors import RegistryValidationError, SecurityViolationError, StepHandlerError, StepMetadataError
from .capabilities import normalize_capabilities

logger = logging.getLogger(__name__)

REQUIRED_CAPABILITIES_KEY = "RequiredCapabilities"

BUILTIN_STEP_METADATA: Dict[str, Dict[str, List[str]]] = {
    "IdLE.Step.CreateIdentity": {REQUIRED_CAPABILITIES_KEY: ["IdLE.Identity.Create"]},
    "IdLE.Step.DisableIdentity": {REQUIRED_CAPABILITIES_KEY: ["IdLE.Identity.Disable"]},
    "IdLE.Step.EnableIdentity": {REQUIRED_CAPABILITIES_KEY: ["IdLE.Identity.Enable"]},
    "IdLE.Step.DeleteIdentity": {REQUIRED_CAPABILITIES_KEY: ["IdLE.Identity.Delete"]},
    "IdLE.Step.EnsureAttribute": {REQUIRED_CAPABILITIES_KEY: ["IdLE.Identity.Attribute.Ensure"]},
    "IdLE.Step.EnsureEntitlement": {
        REQUIRED_CAPABILITIES_KEY: [
            "IdLE.Entitlement.List",
            "IdLE.Entitlement.Grant",
            "IdLE.Entitlement.Revoke",
        ]
    },
    "IdLE.Step.TriggerDirectorySync": {
        REQUIRED_CAPABILITIES_KEY: ["IdLE.DirectorySync.Trigger", "IdLE.DirectorySync.Status"]
    },
    "IdLE.Step.EmitEvent": {REQUIRED_CAPABILITIES_KEY: []},
}

BUILTIN_STEP_HANDLERS: Dict[str, str] = {
    "IdLE.Step.CreateIdentity": "idle_engine.steps.identity:create_identity",
    "IdLE.Step.DisableIdentity": "idle_engine.steps.identity:disable_identity",
    "IdLE.Step.EnableIdentity": "idle_engine.steps.identity:enable_identity",
    "IdLE.Step.DeleteIdentity": "idle_engine.steps.identity:delete_identity",
    "IdLE.Step.EnsureAttribute": "idle_engine.steps.identity:ensure_attribute",
    "IdLE.Step.EnsureEntitlement": "idle_engine.steps.entitlement:ensure_entitlement",
    "IdLE.Step.TriggerDirectorySync": "idle_engine.steps.directory_sync:trigger_directory_sync",
    "IdLE.Step.EmitEvent": "idle_engine.steps.events:emit_event",
}


def reject_executable(value: Any, what: str) -> None:
    """Refuse callables where only data or named references are allowed."""
    if callable(value):
        raise SecurityViolationError(
            f"{what} must be data or a named handler reference, not executable code "
            f"({type(value).__name__})"
        )


class StepMetadataCatalog:
    """
    Maps step types to the capabilities they require.

    Required capabilities come only from this catalog, never from workflow
    data. A step type without an entry is a planning error.
    """

    def __init__(self, overrides: Optional[Mapping[str, Any]] = None, include_builtins: bool = True):
        """
        Initialize the catalog.

        Args:
            overrides: Host-supplied entries, merged over the built-ins
            include_builtins: Whether to start from the built-in step types
        """
        merged = copy.deepcopy(BUILTIN_STEP_METADATA) if include_builtins else {}
        for step_type, entry in (overrides or {}).items():
            reject_executable(entry, f"Step metadata for '{step_type}'")
            merged[step_type] = copy.deepcopy(entry)

        self._entries: Dict[str, List[str]] = {}
        errors = []
        for step_type, entry in merged.items():
            if not isinstance(entry, Mapping):
                errors.append(f"Step metadata for '{step_type}' must be a mapping")
                continue
            unknown = [k for k in entry if k != REQUIRED_CAPABILITIES_KEY]
            if unknown:
                errors.append(f"Step metadata for '{step_type}' has unknown key(s): {', '.join(unknown)}")
                continue
            capabilities = entry.get(REQUIRED_CAPABILITIES_KEY) or []
            reject_executable(capabilities, f"RequiredCapabilities for '{step_type}'")
            self._entries[step_type] = normalize_capabilities(capabilities)

        if errors:
            raise RegistryValidationError(errors)

        logger.debug(f"Step metadata catalog holds {len(self._entries)} step types")

    def __contains__(self, step_type: str) -> bool:
        return step_type in self._entries

    def get_required_capabilities(self, step_type: str) -> List[str]:
        """Required capabilities for a step type."""
        if step_type not in self._entries:
            raise StepMetadataError([step_type])
        return list(self._entries[step_type])

    def step_types(self) -> List[str]:
        return sorted(self._entries)


class HandlerRegistry:
    """
    Maps step types to handler references of the form "module:function".

    References are resolved lazily with importlib and cached.
    """

    def __init__(self, overrides: Optional[Mapping[str, Any]] = None, include_builtins: bool = True):
        """
        Initialize the registry.

        Args:
            overrides: Host-supplied step type -> handler reference entries
            include_builtins: Whether to start from the built-in handlers
        """
        merged = dict(BUILTIN_STEP_HANDLERS) if include_builtins else {}
        for step_type, reference in (overrides or {}).items():
            reject_executable(reference, f"Handler for step type '{step_type}'")
            if not isinstance(reference, str) or not reference.strip():
                raise RegistryValidationError(
                    [f"Handler for step type '{step_type}' must be a non-empty string reference"]
                )
            merged[step_type] = reference.strip()

        self._references: Dict[str, str] = merged
        self._resolved: Dict[str, Callable] = {}

    def __contains__(self, step_type: str) -> bool:
        return step_type in self._references

    def get_reference(self, step_type: str) -> Optional[str]:
        return self._references.get(step_type)

    def resolve(self, step_type: str) -> Callable:
        """
        Resolve the handler for a step type.

        Raises:
            StepHandlerError: If no handler is registered or the reference
                              cannot be imported
        """
        if step_type in self._resolved:
            return self._resolved[step_type]

        reference = self._references.get(step_type)
        if reference is None:
            raise StepHandlerError(f"No handler registered for step type '{step_type}'")

        handler = _import_reference(reference)
        if not callable(handler):
            raise StepHandlerError(f"Handler '{reference}' for step type '{step_type}' is not callable")

        self._resolved[step_type] = handler
        return handler


def _import_reference(reference: str) -> Any:
    if ":" in reference:
        module_name, _, attribute = reference.partition(":")
    else:
        module_name, _, attribute = reference.rpartition(".")

    if not module_name or not attribute:
        raise StepHandlerError(f"Invalid handler reference '{reference}'; expected 'module:function'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise StepHandlerError(f"Cannot import handler module '{module_name}': {e}") from e

    target = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise StepHandlerError(f"Handler '{reference}' not found") from e
    return target
