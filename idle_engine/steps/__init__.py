"""
Built-in Step Handlers for the IdLE Engine.

Handlers are plain functions invoked as handler(context, step) and are
registered by name in the handler registry.
"""

from .directory_sync import trigger_directory_sync
from .entitlement import ensure_entitlement
from .events import emit_event
from .identity import (
    create_identity,
    delete_identity,
    disable_identity,
    enable_identity,
    ensure_attribute,
)

__all__ = [
    "create_identity",
    "disable_identity",
    "enable_identity",
    "delete_identity",
    "ensure_attribute",
    "ensure_entitlement",
    "trigger_directory_sync",
    "emit_event",
]
