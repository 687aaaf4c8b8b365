"""
Base Provider Classes for the IdLE Engine.

Providers are the backend connectors steps act on (directory, entitlement
store, directory sync). The engine itself only calls get_capabilities();
step handlers call the domain methods through invoke_provider_method.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

AUTH_SESSION_PARAMETER = "auth_session"


class ProviderResult:
    """Result of a provider operation."""

    def __init__(self, success: bool, message: str = "", data: Optional[Any] = None,
                 error: Optional[str] = None, changed: bool = False, transient: bool = False):
        self.success = success
        self.message = message
        self.data = data
        self.error = error
        self.changed = changed
        self.transient = transient

    def __bool__(self):
        return self.success

    def __str__(self):
        return f"{'✓' if self.success else '✗'} {self.message or self.error or ''}"


def accepts_auth_session(method: Any) -> bool:
    """True if the method can take an auth_session keyword argument."""
    try:
        parameters = inspect.signature(method).parameters
    except (TypeError, ValueError):
        return False

    if AUTH_SESSION_PARAMETER in parameters:
        return True
    return any(p.kind == inspect.Parameter.VAR_KEYWORD for p in parameters.values())


def invoke_provider_method(provider: Any, method_name: str, *args: Any,
                           auth_session: Optional[Any] = None, **kwargs: Any) -> Any:
    """
    Call a provider method, passing the auth session only where accepted.

    Args:
        provider: Provider instance
        method_name: Name of the method to call
        auth_session: Session from the broker, if one was acquired

    Returns:
        Whatever the provider method returns
    """
    method = getattr(provider, method_name, None)
    if method is None or not callable(method):
        raise AttributeError(f"Provider {type(provider).__name__} does not implement '{method_name}'")

    if auth_session is not None and accepts_auth_session(method):
        kwargs[AUTH_SESSION_PARAMETER] = auth_session

    return method(*args, **kwargs)


class BaseProvider(ABC):
    """
    Abstract base class for providers.

    Subclasses advertise their capabilities and implement whichever domain
    operations those capabilities promise.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the provider.

        Args:
            config: Provider-specific configuration
        """
        self.config = config or {}
        self.provider_name = self.__class__.__name__.replace('Provider', '').lower()

        logger.info(f"Initialized {self.__class__.__name__}")

    @abstractmethod
    def get_capabilities(self) -> List[str]:
        """
        Capabilities this provider advertises.

        Returns:
            List of capability identifiers such as 'IdLE.Identity.Disable'
        """
        pass


class MockProvider(BaseProvider):
    """
    In-memory provider for testing and development.

    Implements every built-in step operation without a real backend.
    """

    DEFAULT_CAPABILITIES = [
        "IdLE.Identity.Create",
        "IdLE.Identity.Disable",
        "IdLE.Identity.Enable",
        "IdLE.Identity.Delete",
        "IdLE.Identity.Info.Read",
        "IdLE.Identity.Attribute.Ensure",
        "IdLE.Entitlement.List",
        "IdLE.Entitlement.Grant",
        "IdLE.Entitlement.Revoke",
        "IdLE.DirectorySync.Trigger",
        "IdLE.DirectorySync.Status",
    ]

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 capabilities: Optional[Iterable[str]] = None):
        super().__init__(config)
        self.capabilities = list(capabilities) if capabilities is not None else list(self.DEFAULT_CAPABILITIES)

        # In-memory state
        self.identities: Dict[str, Dict[str, Any]] = {}
        self.sync_runs: List[Dict[str, Any]] = []

    def get_capabilities(self) -> List[str]:
        return list(self.capabilities)

    def create_identity(self, identity_key: str, attributes: Optional[Dict[str, Any]] = None) -> ProviderResult:
        """Mock identity creation. Idempotent."""
        if identity_key in self.identities:
            return ProviderResult(True, f"Identity {identity_key} already exists", changed=False)

        self.identities[identity_key] = {
            "attributes": dict(attributes or {}),
            "enabled": True,
            "entitlements": [],
            "created_at": datetime.now(timezone.utc),
        }

        logger.info(f"Mock created identity: {identity_key}")
        return ProviderResult(True, f"Created identity {identity_key}", changed=True)

    def get_identity(self, identity_key: str) -> ProviderResult:
        if identity_key not in self.identities:
            return ProviderResult(False, error=f"Identity {identity_key} not found")
        return ProviderResult(True, f"Found identity {identity_key}", self.identities[identity_key])

    def set_enabled(self, identity_key: str, enabled: bool) -> ProviderResult:
        """Mock enable/disable."""
        if identity_key not in self.identities:
            return ProviderResult(False, error=f"Identity {identity_key} not found")

        identity = self.identities[identity_key]
        if identity["enabled"] == enabled:
            return ProviderResult(True, f"Identity {identity_key} already {'enabled' if enabled else 'disabled'}")

        identity["enabled"] = enabled
        logger.info(f"Mock {'enabled' if enabled else 'disabled'} identity: {identity_key}")
        return ProviderResult(True, f"{'Enabled' if enabled else 'Disabled'} identity {identity_key}", changed=True)

    def disable_identity(self, identity_key: str) -> ProviderResult:
        return self.set_enabled(identity_key, False)

    def enable_identity(self, identity_key: str) -> ProviderResult:
        return self.set_enabled(identity_key, True)

    def delete_identity(self, identity_key: str) -> ProviderResult:
        """Mock identity deletion. Idempotent."""
        if identity_key not in self.identities:
            return ProviderResult(True, f"Identity {identity_key} already absent")

        del self.identities[identity_key]
        logger.info(f"Mock deleted identity: {identity_key}")
        return ProviderResult(True, f"Deleted identity {identity_key}", changed=True)

    def ensure_attribute(self, identity_key: str, name: str, value: Any) -> ProviderResult:
        """Mock attribute convergence."""
        if identity_key not in self.identities:
            return ProviderResult(False, error=f"Identity {identity_key} not found")

        attributes = self.identities[identity_key]["attributes"]
        if name in attributes and attributes[name] == value:
            return ProviderResult(True, f"Attribute {name} already set on {identity_key}")

        attributes[name] = value
        logger.info(f"Mock set attribute {name} on {identity_key}")
        return ProviderResult(True, f"Set attribute {name} on {identity_key}", changed=True)

    def list_entitlements(self, identity_key: str) -> ProviderResult:
        if identity_key not in self.identities:
            return ProviderResult(False, error=f"Identity {identity_key} not found")
        return ProviderResult(True, f"Entitlements for {identity_key}",
                              list(self.identities[identity_key]["entitlements"]))

    def grant_entitlement(self, identity_key: str, entitlement: str) -> ProviderResult:
        """Mock entitlement grant."""
        if identity_key not in self.identities:
            return ProviderResult(False, error=f"Identity {identity_key} not found")

        entitlements = self.identities[identity_key]["entitlements"]
        if entitlement not in entitlements:
            entitlements.append(entitlement)

        logger.info(f"Mock granted {entitlement} to {identity_key}")
        return ProviderResult(True, f"Granted {entitlement} to {identity_key}", changed=True)

    def revoke_entitlement(self, identity_key: str, entitlement: str) -> ProviderResult:
        """Mock entitlement revocation."""
        if identity_key not in self.identities:
            return ProviderResult(False, error=f"Identity {identity_key} not found")

        entitlements = self.identities[identity_key]["entitlements"]
        if entitlement in entitlements:
            entitlements.remove(entitlement)

        logger.info(f"Mock revoked {entitlement} from {identity_key}")
        return ProviderResult(True, f"Revoked {entitlement} from {identity_key}", changed=True)

    def trigger_directory_sync(self, policy_type: str = "Delta") -> ProviderResult:
        """Mock directory sync cycle; completes immediately."""
        run = {"id": len(self.sync_runs) + 1, "policy_type": policy_type, "state": "Completed"}
        self.sync_runs.append(run)
        logger.info(f"Mock triggered {policy_type} directory sync")
        return ProviderResult(True, f"Triggered {policy_type} directory sync", data=run, changed=True)

    def get_directory_sync_status(self) -> ProviderResult:
        if not self.sync_runs:
            return ProviderResult(True, "No sync runs", data={"state": "Idle"})
        return ProviderResult(True, "Latest sync run", data=self.sync_runs[-1])

    def get_mock_state(self) -> Dict[str, Any]:
        """Get current mock state for inspection."""
        return {
            "identities": self.identities,
            "sync_runs": self.sync_runs,
        }
