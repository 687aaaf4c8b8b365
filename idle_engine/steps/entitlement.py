"""
Entitlement step handler.

Converges a single entitlement (group, role, license) to the desired
state: Present grants it if missing, Absent revokes it if held.
"""

import logging
from typing import Any

from ..errors import StepExecutionError
from ..models import PlanStep, StepResult
from .helpers import call_provider, completed, get_input

logger = logging.getLogger(__name__)

VALID_STATES = ("Present", "Absent")


def ensure_entitlement(context: Any, step: PlanStep) -> StepResult:
    identity_key = get_input(step, "IdentityKey", required=True)
    entitlement = get_input(step, "Entitlement", required=True)
    state = get_input(step, "State", "Present")

    if state not in VALID_STATES:
        raise StepExecutionError(
            f"Step '{step.name}': State must be one of {', '.join(VALID_STATES)}, got '{state}'",
            step_name=step.name,
        )

    current = call_provider(context, step, "list_entitlements", identity_key).data or []
    held = str(entitlement) in [str(e) for e in current]

    if state == "Present" and not held:
        call_provider(context, step, "grant_entitlement", identity_key, entitlement)
    elif state == "Absent" and held:
        call_provider(context, step, "revoke_entitlement", identity_key, entitlement)
    else:
        logger.debug(f"Step '{step.name}': entitlement {entitlement} already {state}")

    return completed(step)
