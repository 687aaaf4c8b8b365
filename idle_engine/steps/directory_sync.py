"""
Directory sync step handler.

Triggers a sync cycle and, when Wait is set, polls the provider until the
cycle completes or TimeoutSeconds elapses. The timeout belongs to this
step, not to the engine.
"""

import logging
import time
from typing import Any

from ..errors import StepExecutionError
from ..models import PlanStep, StepResult
from .helpers import call_provider, completed, get_input

logger = logging.getLogger(__name__)

COMPLETED_STATES = ("Completed", "Succeeded", "Idle")


def trigger_directory_sync(context: Any, step: PlanStep) -> StepResult:
    policy_type = get_input(step, "PolicyType", "Delta")
    wait = bool(get_input(step, "Wait", False))
    timeout_seconds = float(get_input(step, "TimeoutSeconds", 300))
    poll_interval = float(get_input(step, "PollIntervalSeconds", 5))

    call_provider(context, step, "trigger_directory_sync", policy_type)
    if not wait:
        return completed(step)

    deadline = time.monotonic() + timeout_seconds
    while True:
        status = call_provider(context, step, "get_directory_sync_status").data or {}
        state = status.get("state")
        if state in COMPLETED_STATES:
            logger.info(f"Step '{step.name}': directory sync finished ({state})")
            return completed(step)

        if time.monotonic() >= deadline:
            raise StepExecutionError(
                f"Step '{step.name}': directory sync did not complete within {timeout_seconds}s "
                f"(last state: {state})",
                step_name=step.name,
                transient=True,
            )
        time.sleep(poll_interval)
