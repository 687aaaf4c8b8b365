"""
Event step handler.

Writes a custom event to the run's event stream.
"""

from typing import Any

from ..models import EventType, PlanStep, StepResult
from .helpers import completed, get_input


def emit_event(context: Any, step: PlanStep) -> StepResult:
    message = get_input(step, "Message", f"Step '{step.name}' emitted an event")
    data = get_input(step, "Data") or {}
    context.event_sink.write_event(EventType.CUSTOM, message, step.name, data)
    return completed(step)
