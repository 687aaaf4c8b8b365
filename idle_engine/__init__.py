"""
Identity Lifecycle Engine (IdLE)

Plans and executes Joiner-Mover-Leaver identity workflows described as
declarative data. Planning turns a workflow and a lifecycle request into
an immutable plan; execution runs that plan against host-supplied
providers with retries, best-effort OnFailure steps and redacted events.
"""

__version__ = "1.0.0"
__author__ = "IdLE Engine Team"
__email__ = "team@example.com"

from .engine import ExecutionEngine, PlanBuilder, export_plan, new_plan
from .errors import (
    CapabilityError,
    IdleEngineError,
    SecurityViolationError,
    TemplateError,
    WorkflowValidationError,
)
from .models import ExecutionOptions, ExecutionResult, LifecycleRequest, Plan, RetryProfile
from .providers import MockProvider

__all__ = [
    "PlanBuilder",
    "new_plan",
    "ExecutionEngine",
    "export_plan",
    "LifecycleRequest",
    "Plan",
    "ExecutionResult",
    "ExecutionOptions",
    "RetryProfile",
    "MockProvider",
    "IdleEngineError",
    "WorkflowValidationError",
    "SecurityViolationError",
    "TemplateError",
    "CapabilityError",
]
