"""
Identity step handlers.

Create, enable, disable and delete identities and converge single
attributes on the provider named by the step.
"""

import logging
from typing import Any

from ..errors import StepExecutionError
from ..models import PlanStep, StepResult
from .helpers import call_provider, completed, get_input

logger = logging.getLogger(__name__)


def create_identity(context: Any, step: PlanStep) -> StepResult:
    """Create the identity with its initial attributes."""
    identity_key = get_input(step, "IdentityKey", required=True)
    attributes = get_input(step, "Attributes") or {}
    if not isinstance(attributes, dict):
        raise StepExecutionError(f"Step '{step.name}': 'Attributes' must be a mapping", step_name=step.name)

    call_provider(context, step, "create_identity", identity_key, attributes)
    return completed(step)


def disable_identity(context: Any, step: PlanStep) -> StepResult:
    identity_key = get_input(step, "IdentityKey", required=True)
    call_provider(context, step, "disable_identity", identity_key)
    return completed(step)


def enable_identity(context: Any, step: PlanStep) -> StepResult:
    identity_key = get_input(step, "IdentityKey", required=True)
    call_provider(context, step, "enable_identity", identity_key)
    return completed(step)


def delete_identity(context: Any, step: PlanStep) -> StepResult:
    identity_key = get_input(step, "IdentityKey", required=True)
    call_provider(context, step, "delete_identity", identity_key)
    return completed(step)


def ensure_attribute(context: Any, step: PlanStep) -> StepResult:
    """Set one attribute (Name/Value) to the desired value."""
    identity_key = get_input(step, "IdentityKey", required=True)
    name = get_input(step, "Name", required=True)
    value = get_input(step, "Value")

    call_provider(context, step, "ensure_attribute", identity_key, name, value)
    return completed(step)
