"""
Planning and Execution Engine Package.

This package provides the condition evaluator, template resolver,
capability gate, step registries, plan builder and execution engine.
"""

from .capabilities import (
    assert_plan_capabilities,
    get_available_capabilities,
    normalize_capabilities,
    normalize_capability,
)
from .conditions import evaluate_condition, validate_condition_schema
from .events import EventRecorder
from .executor import ExecutionContext, ExecutionEngine
from .export import export_plan, export_plan_json
from .planner import PlanBuilder, new_plan, validate_workflow
from .redaction import redact
from .registries import HandlerRegistry, StepMetadataCatalog
from .retry import compute_retry_delay, compute_retry_delays, invoke_with_retry
from .templates import TemplateResolver

__all__ = [
    "PlanBuilder",
    "new_plan",
    "validate_workflow",
    "ExecutionEngine",
    "ExecutionContext",
    "EventRecorder",
    "HandlerRegistry",
    "StepMetadataCatalog",
    "TemplateResolver",
    "evaluate_condition",
    "validate_condition_schema",
    "normalize_capability",
    "normalize_capabilities",
    "get_available_capabilities",
    "assert_plan_capabilities",
    "compute_retry_delay",
    "compute_retry_delays",
    "invoke_with_retry",
    "redact",
    "export_plan",
    "export_plan_json",
]
