"""
Step handlers used by the test suite.

Handlers are registered by "module:function" reference, so test handlers
live in an importable module rather than inline in the tests.
"""

from idle_engine.errors import SecurityViolationError, StepExecutionError, TransientStepError
from idle_engine.models import EventType

# Step names in call order, reset by the autouse fixture in conftest
CALLS = []


def ok(context, step):
    CALLS.append(step.name)


def fail(context, step):
    CALLS.append(step.name)
    raise StepExecutionError(f"{step.name} broke", step_name=step.name)


def always_transient(context, step):
    CALLS.append(step.name)
    raise TransientStepError(f"{step.name} backend unavailable", step_name=step.name)


def flaky(context, step):
    """Fails with a transient error until the SucceedOnAttempt-th call."""
    CALLS.append(step.name)
    attempts = CALLS.count(step.name)
    if attempts < step.inputs.get("SucceedOnAttempt", 2):
        raise TransientStepError(f"attempt {attempts} timed out", step_name=step.name)


def unmarked_timeout(context, step):
    """Looks transient by name and message, but carries no marker."""
    CALLS.append(step.name)
    raise TimeoutError("temporarily unavailable, please retry")


def report_failed(context, step):
    CALLS.append(step.name)
    return {"Status": "Failed", "Error": "backend rejected the change"}


def emit_secret(context, step):
    CALLS.append(step.name)
    context.event_sink.write_event(
        EventType.CUSTOM,
        "credentials in use",
        step.name,
        {"Password": "hunter2", "api_key": "abc123", "User": "jdoe", "Nested": {"Token": "t0k3n"}},
    )


def use_session(context, step):
    CALLS.append(step.name)
    session = context.acquire_auth_session("Directory", {"Scope": "admin"})
    context.event_sink.write_event(EventType.CUSTOM, "session acquired", step.name, {"Session": session})


def security_violation(context, step):
    CALLS.append(step.name)
    raise SecurityViolationError("handler tried to load executable content")


def report_skipped(context, step):
    CALLS.append(step.name)
    return {"Status": "Skipped"}


def mutate_inputs(context, step):
    """Records the Counter it sees, then tampers with everything it can reach."""
    CALLS.append((step.name, step.inputs["Counter"], step.inputs["Nested"]["Items"][:]))
    step.inputs["Counter"] += 1
    step.inputs["Nested"]["Items"].append("extra")
    context.plan.steps[0].inputs["Counter"] += 10
    context.plan.request.desired_state["Department"] = "Tampered"
