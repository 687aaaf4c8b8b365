"""
Providers Package for the IdLE Engine.

This package provides the provider contract, the result type returned by
provider operations and an in-memory provider for testing.
"""

from .base_provider import (
    BaseProvider,
    MockProvider,
    ProviderResult,
    accepts_auth_session,
    invoke_provider_method,
)

__all__ = [
    "BaseProvider",
    "MockProvider",
    "ProviderResult",
    "accepts_auth_session",
    "invoke_provider_method",
]
