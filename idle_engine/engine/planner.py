"""
Plan Builder for the IdLE Engine.

Turns a parsed workflow definition and a lifecycle request into an
immutable Plan: shape validated, required capabilities derived from the
step metadata catalog, conditions evaluated to an applicability status,
templates resolved and capabilities checked against the providers.
Planning is a pure function of its inputs.
"""

import copy
import logging
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union
from uuid import UUID

from ..errors import (
    ExecutionOptionsError,
    SecurityViolationError,
    StepMetadataError,
    WorkflowValidationError,
)
from ..models import ExecutionOptions, LifecycleRequest, Plan, PlanStep, PlanStepStatus
from .capabilities import assert_plan_capabilities, get_available_capabilities
from .conditions import evaluate_condition, validate_condition_schema
from .events import EventRecorder
from .registries import StepMetadataCatalog
from .templates import TemplateResolver, build_request_view

logger = logging.getLogger(__name__)

WORKFLOW_KEYS = ("Name", "LifecycleEvent", "Description", "Steps", "OnFailureSteps")
STEP_KEYS = ("Name", "Type", "Description", "Condition", "With", "RetryProfile")

DATA_SCALAR_TYPES = (str, int, float, bool, Decimal, datetime, date, UUID)


def find_executable_values(value: Any, location: str = "Workflow") -> List[str]:
    """Locations of callables anywhere in workflow data."""
    found: List[str] = []
    _scan_executables(value, location, found)
    return found


def _scan_executables(value: Any, location: str, found: List[str]) -> None:
    if callable(value):
        found.append(location)
    elif isinstance(value, Mapping):
        for key, item in value.items():
            _scan_executables(item, f"{location}.{key}", found)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _scan_executables(item, f"{location}[{index}]", found)


def _find_non_data_values(value: Any, location: str, errors: List[str]) -> None:
    if value is None or isinstance(value, DATA_SCALAR_TYPES):
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                errors.append(f"{location}: keys must be strings, got {type(key).__name__}")
            _find_non_data_values(item, f"{location}.{key}", errors)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _find_non_data_values(item, f"{location}[{index}]", errors)
    else:
        errors.append(f"{location}: value of type {type(value).__name__} is not plain data")


def validate_workflow(workflow: Any) -> List[str]:
    """
    Validate the shape of a workflow definition.

    Args:
        workflow: Parsed workflow data

    Returns:
        List of validation error messages (empty if valid)
    """
    if not isinstance(workflow, Mapping):
        return [f"Workflow must be a mapping, got {type(workflow).__name__}"]

    errors: List[str] = []

    for key in workflow:
        if key not in WORKFLOW_KEYS:
            errors.append(f"Workflow: unknown key '{key}'. Allowed keys: {', '.join(WORKFLOW_KEYS)}")

    for key in ("Name", "LifecycleEvent"):
        value = workflow.get(key)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"Workflow: '{key}' is required and must be a non-empty string")

    if "Description" in workflow and not isinstance(workflow["Description"], str):
        errors.append("Workflow: 'Description' must be a string")

    steps = workflow.get("Steps")
    if not isinstance(steps, list):
        errors.append("Workflow: 'Steps' is required and must be a list")
    elif len(steps) == 0:
        errors.append("Workflow: 'Steps' must contain at least one step")
    else:
        _validate_step_list(steps, "Steps", errors)

    if "OnFailureSteps" in workflow and workflow["OnFailureSteps"] is not None:
        on_failure = workflow["OnFailureSteps"]
        if not isinstance(on_failure, list):
            errors.append("Workflow: 'OnFailureSteps' must be a list")
        else:
            _validate_step_list(on_failure, "OnFailureSteps", errors)

    return errors


def _validate_step_list(steps: List[Any], section: str, errors: List[str]) -> None:
    seen: Dict[str, int] = {}

    for index, step in enumerate(steps):
        location = f"{section}[{index}]"
        if not isinstance(step, Mapping):
            errors.append(f"{location}: step must be a mapping")
            continue

        for key in step:
            if key == "RequiresCapabilities":
                errors.append(
                    f"{location}: 'RequiresCapabilities' cannot be declared in workflow data; "
                    "required capabilities come from the step metadata catalog"
                )
            elif key not in STEP_KEYS:
                errors.append(f"{location}: unknown key '{key}'. Allowed keys: {', '.join(STEP_KEYS)}")

        name = step.get("Name")
        if not isinstance(name, str) or not name.strip():
            errors.append(f"{location}: 'Name' is required and must be a non-empty string")
        else:
            lowered = name.strip().lower()
            if lowered in seen:
                errors.append(
                    f"{location}: duplicate step name '{name}' (also used by {section}[{seen[lowered]}])"
                )
            else:
                seen[lowered] = index
            location = f"{location} '{name}'"

        step_type = step.get("Type")
        if not isinstance(step_type, str) or not step_type.strip():
            errors.append(f"{location}: 'Type' is required and must be a non-empty string")

        if "Description" in step and not isinstance(step["Description"], str):
            errors.append(f"{location}: 'Description' must be a string")

        if "RetryProfile" in step and (
            not isinstance(step["RetryProfile"], str) or not step["RetryProfile"].strip()
        ):
            errors.append(f"{location}: 'RetryProfile' must be a non-empty string")

        if step.get("Condition") is not None:
            errors.extend(validate_condition_schema(step["Condition"], f"{location}.Condition"))
            _find_non_data_values(step["Condition"], f"{location}.Condition", errors)

        if "With" in step and step["With"] is not None:
            if not isinstance(step["With"], Mapping):
                errors.append(f"{location}: 'With' must be a mapping")
            else:
                _find_non_data_values(step["With"], f"{location}.With", errors)


def build_planning_context(request: LifecycleRequest, workflow_name: str) -> Dict[str, Any]:
    """Data that step conditions are evaluated against."""
    context = build_request_view(request)
    context["Plan"] = {
        "WorkflowName": workflow_name,
        "LifecycleEvent": request.lifecycle_event,
        "CorrelationId": request.correlation_id,
        "Actor": request.actor,
    }
    return context


class PlanBuilder:
    """
    Builds immutable plans from workflow definitions.

    The builder holds only host configuration (metadata catalog, working
    directory, optional event sink); every build is independent.
    """

    def __init__(
        self,
        step_metadata: Optional[Union[StepMetadataCatalog, Mapping[str, Any]]] = None,
        working_directory: Optional[Union[str, Path]] = None,
        event_sink: Optional[Any] = None,
    ):
        """
        Initialize the plan builder.

        Args:
            step_metadata: Metadata catalog, or host overrides merged over the built-ins
            working_directory: Base directory for FromFile templates
            event_sink: Optional sink for planning diagnostics (legacy capability names)
        """
        if isinstance(step_metadata, StepMetadataCatalog):
            self.catalog = step_metadata
        else:
            self.catalog = StepMetadataCatalog(step_metadata)
        self.working_directory = working_directory
        self.event_sink = event_sink

    def build(
        self,
        workflow: Mapping[str, Any],
        request: LifecycleRequest,
        providers: Optional[Mapping[str, Any]] = None,
        options: Optional[ExecutionOptions] = None,
    ) -> Plan:
        """
        Build a plan.

        Args:
            workflow: Parsed workflow definition
            request: Lifecycle request
            providers: Provider alias -> provider object
            options: Execution options; retry profile references are checked when given

        Returns:
            Immutable Plan

        Raises:
            SecurityViolationError: Executable values in workflow data
            WorkflowValidationError: Shape violations (all of them)
            StepMetadataError: Step types without metadata
            ExecutionOptionsError: Unknown retry profile references
            TemplateError: Placeholder failures
            CapabilityError: Required capabilities not advertised
        """
        executables = find_executable_values(workflow)
        if executables:
            raise SecurityViolationError(
                f"Workflow data must not contain executable values: {', '.join(executables)}"
            )

        workflow_name = workflow.get("Name") if isinstance(workflow, Mapping) else None
        errors = validate_workflow(workflow)
        if errors:
            raise WorkflowValidationError(errors, workflow_name)

        if workflow["LifecycleEvent"].strip().lower() != request.lifecycle_event.lower():
            raise WorkflowValidationError(
                [
                    f"Workflow LifecycleEvent '{workflow['LifecycleEvent']}' does not match "
                    f"request LifecycleEvent '{request.lifecycle_event}'"
                ],
                workflow_name,
            )

        step_defs = list(workflow["Steps"])
        on_failure_defs = list(workflow.get("OnFailureSteps") or [])

        unknown_types = [
            step["Type"] for step in step_defs + on_failure_defs if step["Type"] not in self.catalog
        ]
        if unknown_types:
            raise StepMetadataError(unknown_types)

        if options is not None:
            self._check_retry_profiles(step_defs + on_failure_defs, options)

        logger.info(
            f"Planning workflow '{workflow_name}' for {request.lifecycle_event} "
            f"(correlation {request.correlation_id})"
        )

        resolver = TemplateResolver(request, self.working_directory)
        context = build_planning_context(request, workflow_name)

        steps = [self._plan_step(s, "Steps", i, resolver, context) for i, s in enumerate(step_defs)]
        on_failure_steps = [
            self._plan_step(s, "OnFailureSteps", i, resolver, context) for i, s in enumerate(on_failure_defs)
        ]

        recorder = None
        if self.event_sink is not None:
            recorder = EventRecorder(request.correlation_id, request.actor, self.event_sink)
        available = get_available_capabilities(providers, recorder)
        assert_plan_capabilities(steps + on_failure_steps, available)

        plan = Plan(
            workflow_name=workflow_name,
            lifecycle_event=request.lifecycle_event,
            correlation_id=request.correlation_id,
            actor=request.actor,
            request=request,
            steps=steps,
            on_failure_steps=on_failure_steps,
            providers=dict(providers or {}),
        )

        applicable = len([s for s in steps if s.status == PlanStepStatus.PLANNED])
        logger.info(
            f"Planned workflow '{workflow_name}': {applicable}/{len(steps)} steps applicable, "
            f"{len(on_failure_steps)} OnFailure steps"
        )
        return plan

    def _plan_step(
        self,
        step: Mapping[str, Any],
        section: str,
        index: int,
        resolver: TemplateResolver,
        context: Mapping[str, Any],
    ) -> PlanStep:
        name = step["Name"].strip()
        location = f"{section}[{index}] '{name}'"

        condition = copy.deepcopy(step.get("Condition"))
        status = PlanStepStatus.PLANNED
        if condition is not None and not evaluate_condition(condition, context):
            status = PlanStepStatus.NOT_APPLICABLE
            logger.debug(f"Step '{name}' is not applicable")

        inputs = copy.deepcopy(step.get("With") or {})
        if status == PlanStepStatus.PLANNED:
            # Inputs of steps that will never run are kept unresolved
            inputs = resolver.resolve(inputs, f"{location}.With")

        return PlanStep(
            name=name,
            type=step["Type"],
            description=step.get("Description"),
            condition=condition,
            inputs=inputs,
            requires_capabilities=self.catalog.get_required_capabilities(step["Type"]),
            status=status,
            retry_profile=step.get("RetryProfile"),
        )

    def _check_retry_profiles(self, step_defs: List[Mapping[str, Any]], options: ExecutionOptions) -> None:
        unknown = sorted({
            step["RetryProfile"] for step in step_defs
            if step.get("RetryProfile") and step["RetryProfile"] not in options.retry_profiles
        })
        if unknown:
            raise ExecutionOptionsError(f"Workflow references unknown retry profile(s): {', '.join(unknown)}")


def new_plan(
    workflow: Mapping[str, Any],
    request: LifecycleRequest,
    providers: Optional[Mapping[str, Any]] = None,
    options: Optional[ExecutionOptions] = None,
    step_metadata: Optional[Union[StepMetadataCatalog, Mapping[str, Any]]] = None,
    working_directory: Optional[Union[str, Path]] = None,
    event_sink: Optional[Any] = None,
) -> Plan:
    """Build a plan with a one-off PlanBuilder."""
    builder = PlanBuilder(step_metadata, working_directory, event_sink)
    return builder.build(workflow, request, providers, options)
