"""
Capability Registry & Gate for the IdLE Engine.

Capabilities are dot-segmented identifiers such as IdLE.Identity.Disable.
Steps require them (through the step metadata catalog) and providers
advertise them through get_capabilities(). Planning fails when a required
capability is not advertised by any provider.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..errors import CapabilityError, CapabilityValidationError
from ..models import EventType

logger = logging.getLogger(__name__)

CAPABILITY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]*(\.[A-Za-z0-9]+)+$")

# Deprecated identifier -> canonical identifier
LEGACY_CAPABILITY_MAP: Dict[str, str] = {
    "IdLE.Identity.Attributes.Ensure": "IdLE.Identity.Attribute.Ensure",
    "IdLE.Identity.Read": "IdLE.Identity.Info.Read",
    "IdLE.Entitlement.Add": "IdLE.Entitlement.Grant",
    "IdLE.Entitlement.Remove": "IdLE.Entitlement.Revoke",
    "IdLE.Mailbox.Read": "IdLE.Mailbox.Info.Read",
    "IdLE.DirectorySync.Start": "IdLE.DirectorySync.Trigger",
}


def normalize_capability(capability: Any, event_sink: Optional[Any] = None) -> str:
    """
    Validate a capability identifier and translate legacy names.

    Args:
        capability: Capability identifier
        event_sink: Optional sink notified when a legacy name is translated

    Returns:
        Canonical capability identifier
    """
    if not isinstance(capability, str) or not CAPABILITY_PATTERN.match(capability.strip()):
        raise CapabilityValidationError(
            f"Invalid capability identifier: {capability!r}. "
            "Expected dot-separated segments such as 'IdLE.Identity.Disable'."
        )

    capability = capability.strip()
    canonical = LEGACY_CAPABILITY_MAP.get(capability)
    if canonical is None:
        return capability

    logger.warning(f"Capability '{capability}' is deprecated; use '{canonical}'")
    if event_sink is not None:
        event_sink.write_event(
            EventType.CAPABILITY_DEPRECATED.value,
            f"Capability '{capability}' is deprecated; use '{canonical}'",
            None,
            {"Capability": capability, "Canonical": canonical},
        )
    return canonical


def normalize_capabilities(capabilities: Iterable[Any], event_sink: Optional[Any] = None) -> List[str]:
    """Normalize a capability list into a sorted, de-duplicated list."""
    if capabilities is None:
        return []
    if isinstance(capabilities, str):
        capabilities = [capabilities]
    return sorted({normalize_capability(c, event_sink) for c in capabilities})


def get_provider_capabilities(provider: Any, event_sink: Optional[Any] = None) -> List[str]:
    """Capabilities advertised by a single provider."""
    get_capabilities = getattr(provider, "get_capabilities", None)
    if get_capabilities is None or not callable(get_capabilities):
        logger.warning(f"Provider {type(provider).__name__} does not expose get_capabilities(); ignoring it")
        return []
    return normalize_capabilities(get_capabilities() or [], event_sink)


def get_available_capabilities(
    providers: Optional[Mapping[str, Any]], event_sink: Optional[Any] = None
) -> List[str]:
    """
    Aggregate capabilities across all configured providers.

    Args:
        providers: Provider alias to provider object

    Returns:
        Sorted union of every provider's capabilities
    """
    available = set()
    for alias, provider in (providers or {}).items():
        provided = get_provider_capabilities(provider, event_sink)
        logger.debug(f"Provider '{alias}' advertises {len(provided)} capabilities")
        available.update(provided)
    return sorted(available)


def assert_plan_capabilities(steps: Sequence[Any], available: Iterable[str]) -> None:
    """
    Fail if any step requires a capability no provider advertises.

    Args:
        steps: Plan steps (primary and OnFailure) with requires_capabilities
        available: Canonical capabilities advertised by the providers
    """
    available_set = set(normalize_capabilities(available))

    required = set()
    for step in steps:
        required.update(step.requires_capabilities)

    missing = required - available_set
    if not missing:
        return

    affected = [
        step.name for step in steps
        if any(capability in missing for capability in step.requires_capabilities)
    ]
    logger.error(f"Capability check failed; missing: {', '.join(sorted(missing))}")
    raise CapabilityError(missing, affected, available_set)
