"""
Execution Engine for the IdLE Engine.

Walks a plan's steps in order, dispatches each to its registered handler
under the retry policy and records redacted events. The first failing step
stops the primary sequence; the OnFailure steps then run best-effort.
"""

import logging
from typing import Any, List, Mapping, Optional, Union

from ..errors import StepExecutionError, StepHandlerError
from ..models import (
    EventType,
    ExecutionOptions,
    ExecutionResult,
    OnFailureResult,
    OnFailureStatus,
    Plan,
    PlanStep,
    PlanStepStatus,
    RunStatus,
    StepResult,
    StepResultStatus,
)
from .events import EventRecorder, validate_auth_session_broker, validate_event_sink
from .registries import HandlerRegistry
from .retry import invoke_with_retry

logger = logging.getLogger(__name__)


class ExecutionContext:
    """
    What a step handler sees while it runs.

    Attributes:
        plan: The plan being executed
        providers: Provider alias -> provider object
        event_sink: Redacting recorder; write_event(type, message, step_name, data)
    """

    def __init__(
        self,
        plan: Plan,
        providers: Mapping[str, Any],
        event_sink: EventRecorder,
        auth_session_broker: Optional[Any] = None,
    ):
        self.plan = plan
        self.providers = providers
        self.event_sink = event_sink
        self.correlation_id = plan.correlation_id
        self.actor = plan.actor
        self._auth_session_broker = auth_session_broker

    def acquire_auth_session(self, name: str, options: Optional[Mapping[str, Any]] = None) -> Any:
        """Obtain a session from the host's auth session broker."""
        if self._auth_session_broker is None:
            raise StepExecutionError(f"No auth session broker configured to acquire session '{name}'")
        return self._auth_session_broker.acquire_auth_session(name, dict(options or {}))


class ExecutionEngine:
    """
    Executes plans against providers.

    The engine keeps no state between runs; concurrent runs of different
    plans only share the host-supplied collaborators.
    """

    def __init__(
        self,
        handler_registry: Optional[Union[HandlerRegistry, Mapping[str, str]]] = None,
        options: Optional[ExecutionOptions] = None,
        event_sink: Optional[Any] = None,
        auth_session_broker: Optional[Any] = None,
    ):
        """
        Initialize the engine.

        Args:
            handler_registry: Handler registry, or host overrides merged over the built-ins
            options: Execution options (retry profiles)
            event_sink: Object exposing write_event(event); receives redacted events
            auth_session_broker: Object exposing acquire_auth_session(name, options)
        """
        validate_event_sink(event_sink)
        validate_auth_session_broker(auth_session_broker)

        if isinstance(handler_registry, HandlerRegistry):
            self.handlers = handler_registry
        else:
            self.handlers = HandlerRegistry(handler_registry)
        self.options = options or ExecutionOptions()
        self.event_sink = event_sink
        self.auth_session_broker = auth_session_broker

    def execute(
        self,
        plan: Plan,
        providers: Optional[Mapping[str, Any]] = None,
        what_if: bool = False,
    ) -> ExecutionResult:
        """
        Execute a plan.

        Args:
            plan: Plan produced by the plan builder
            providers: Providers to use instead of the ones captured in the plan
            what_if: Validate only; no events, no handler calls

        Returns:
            ExecutionResult with step outcomes, events and the OnFailure section
        """
        if not isinstance(plan, Plan):
            raise TypeError(f"Expected a Plan, got {type(plan).__name__}")

        for step in plan.steps + plan.on_failure_steps:
            self.options.get_retry_profile(step.retry_profile)

        if what_if:
            logger.info(f"WhatIf run for workflow '{plan.workflow_name}'; no steps executed")
            return ExecutionResult(status=RunStatus.WHAT_IF, correlation_id=plan.correlation_id)

        recorder = EventRecorder(plan.correlation_id, plan.actor, self.event_sink)
        context = ExecutionContext(
            _detached_copy(plan),
            dict(providers if providers is not None else plan.providers),
            recorder,
            self.auth_session_broker,
        )

        logger.info(f"Starting run of workflow '{plan.workflow_name}' (correlation {plan.correlation_id})")
        recorder.write_event(
            EventType.RUN_STARTED,
            f"Run started for workflow '{plan.workflow_name}'",
            data={
                "WorkflowName": plan.workflow_name,
                "LifecycleEvent": plan.lifecycle_event,
                "StepCount": len(plan.steps),
            },
        )

        step_results: List[StepResult] = []
        failed_step: Optional[StepResult] = None

        for step in plan.steps:
            if step.status == PlanStepStatus.NOT_APPLICABLE:
                step_results.append(self._not_applicable(step, recorder, "Steps"))
                continue

            recorder.write_event(EventType.STEP_STARTED, f"Step '{step.name}' started", step.name, {"Type": step.type})
            result = self._run_step(step, context, recorder)
            step_results.append(result)

            if result.status == StepResultStatus.FAILED:
                recorder.write_event(
                    EventType.STEP_FAILED,
                    f"Step '{step.name}' failed: {result.error}",
                    step.name,
                    {"Type": step.type, "Error": result.error, "Attempts": result.attempts},
                )
                failed_step = result
                break

            recorder.write_event(
                EventType.STEP_COMPLETED,
                f"Step '{step.name}' completed",
                step.name,
                {"Type": step.type, "Attempts": result.attempts},
            )

        on_failure = OnFailureResult()
        if failed_step is not None and plan.on_failure_steps:
            on_failure = self._run_on_failure(plan, context, recorder, failed_step)

        if failed_step is None:
            status = RunStatus.COMPLETED
            recorder.write_event(EventType.RUN_COMPLETED, f"Run completed for workflow '{plan.workflow_name}'")
            logger.info(f"Completed run of workflow '{plan.workflow_name}'")
        else:
            status = RunStatus.FAILED
            recorder.write_event(
                EventType.RUN_FAILED,
                f"Run failed for workflow '{plan.workflow_name}' at step '{failed_step.name}'",
                data={"FailedStep": failed_step.name, "OnFailureStatus": on_failure.status.value},
            )
            logger.error(f"Run of workflow '{plan.workflow_name}' failed at step '{failed_step.name}'")

        return ExecutionResult(
            status=status,
            correlation_id=plan.correlation_id,
            steps=step_results,
            events=list(recorder.events),
            on_failure=on_failure,
        )

    def _run_on_failure(
        self,
        plan: Plan,
        context: ExecutionContext,
        recorder: EventRecorder,
        failed_step: StepResult,
    ) -> OnFailureResult:
        recorder.write_event(
            EventType.ON_FAILURE_STARTED,
            f"Running {len(plan.on_failure_steps)} OnFailure step(s) after '{failed_step.name}' failed",
            data={"FailedStep": failed_step.name, "StepCount": len(plan.on_failure_steps)},
        )

        results: List[StepResult] = []
        for step in plan.on_failure_steps:
            if step.status == PlanStepStatus.NOT_APPLICABLE:
                results.append(self._not_applicable(step, recorder, "OnFailureSteps"))
                continue

            recorder.write_event(
                EventType.ON_FAILURE_STEP_STARTED, f"OnFailure step '{step.name}' started", step.name, {"Type": step.type}
            )
            result = self._run_step(step, context, recorder)
            results.append(result)

            if result.status == StepResultStatus.FAILED:
                recorder.write_event(
                    EventType.ON_FAILURE_STEP_FAILED,
                    f"OnFailure step '{step.name}' failed: {result.error}",
                    step.name,
                    {"Type": step.type, "Error": result.error, "Attempts": result.attempts},
                )
            else:
                recorder.write_event(
                    EventType.ON_FAILURE_STEP_COMPLETED,
                    f"OnFailure step '{step.name}' completed",
                    step.name,
                    {"Type": step.type, "Attempts": result.attempts},
                )

        executed = [r for r in results if r.status != StepResultStatus.NOT_APPLICABLE]
        failed = [r for r in executed if r.status == StepResultStatus.FAILED]
        if not failed:
            status = OnFailureStatus.COMPLETED
        elif len(failed) == len(executed):
            status = OnFailureStatus.FAILED
        else:
            status = OnFailureStatus.PARTIALLY_FAILED

        recorder.write_event(
            EventType.ON_FAILURE_COMPLETED,
            f"OnFailure steps finished with status {status.value}",
            data={"Status": status.value, "FailedSteps": [r.name for r in failed]},
        )
        return OnFailureResult(status=status, steps=results)

    def _not_applicable(self, step: PlanStep, recorder: EventRecorder, section: str) -> StepResult:
        recorder.write_event(
            EventType.STEP_NOT_APPLICABLE,
            f"Step '{step.name}' is not applicable",
            step.name,
            {"Type": step.type, "Section": section},
        )
        return StepResult(name=step.name, type=step.type, status=StepResultStatus.NOT_APPLICABLE)

    def _run_step(self, step: PlanStep, context: ExecutionContext, recorder: EventRecorder) -> StepResult:
        try:
            handler = self.handlers.resolve(step.type)
        except StepHandlerError as e:
            logger.error(f"Step '{step.name}': {e}")
            return StepResult(name=step.name, type=step.type, status=StepResultStatus.FAILED, error=str(e))

        profile = self.options.get_retry_profile(step.retry_profile)
        attempts = 0

        def run_once() -> Any:
            nonlocal attempts
            attempts += 1
            # Handlers only ever see copies of plan data
            return handler(context, step.model_copy(deep=True))

        def report_retry(attempt: int, delay: int, error: BaseException) -> None:
            recorder.write_event(
                EventType.STEP_RETRYING,
                f"Step '{step.name}' attempt {attempt} failed; retrying in {delay}ms",
                step.name,
                {
                    "Attempt": attempt,
                    "DelayMilliseconds": delay,
                    "ErrorType": type(error).__name__,
                    "ErrorMessage": str(error),
                },
            )

        try:
            outcome = invoke_with_retry(
                run_once,
                profile,
                operation_name=step.type,
                step_name=step.name,
                seed=self.options.retry_seed,
                on_retry=report_retry,
            )
            return _normalize_outcome(step, outcome, attempts)
        except Exception as e:
            logger.error(f"Step '{step.name}' failed after {attempts} attempt(s): {e}")
            return StepResult(
                name=step.name,
                type=step.type,
                status=StepResultStatus.FAILED,
                error=str(e) or type(e).__name__,
                attempts=attempts,
            )


def _detached_copy(plan: Plan) -> Plan:
    """Copy of the plan data for handlers; provider objects are shared, not copied."""
    return plan.model_copy(update={
        "request": plan.request.model_copy(deep=True),
        "steps": tuple(step.model_copy(deep=True) for step in plan.steps),
        "on_failure_steps": tuple(step.model_copy(deep=True) for step in plan.on_failure_steps),
        "providers": dict(plan.providers),
    })


def _normalize_outcome(step: PlanStep, outcome: Any, attempts: int) -> StepResult:
    """
    Convert a handler return value into a StepResult.

    None or any other value means Completed. A StepResult or a mapping with
    a "Status" key may report Completed or Failed; any other status is
    treated as a failure of the step.
    """
    reported: Any = StepResultStatus.COMPLETED.value
    error = None

    if isinstance(outcome, StepResult):
        reported, error = outcome.status.value, outcome.error
    elif isinstance(outcome, Mapping) and "Status" in outcome:
        reported, error = outcome["Status"], outcome.get("Error")

    if reported == StepResultStatus.COMPLETED.value:
        status = StepResultStatus.COMPLETED
    elif reported == StepResultStatus.FAILED.value:
        status = StepResultStatus.FAILED
    else:
        status = StepResultStatus.FAILED
        error = f"Step '{step.name}' handler returned unsupported status '{reported}'"
        logger.error(error)

    if status == StepResultStatus.FAILED and not error:
        error = f"Step '{step.name}' reported failure"

    return StepResult(
        name=step.name,
        type=step.type,
        status=status,
        error=str(error) if error is not None else None,
        attempts=attempts,
    )
