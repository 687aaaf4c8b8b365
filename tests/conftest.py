"""
Shared pytest fixtures for the IdLE Engine test suite.
"""

import pytest

from idle_engine.models import LifecycleRequest

from . import step_handlers

TEST_STEP_TYPES = {
    "Test.Ok": "tests.step_handlers:ok",
    "Test.Fail": "tests.step_handlers:fail",
    "Test.AlwaysTransient": "tests.step_handlers:always_transient",
    "Test.Flaky": "tests.step_handlers:flaky",
    "Test.UnmarkedTimeout": "tests.step_handlers:unmarked_timeout",
    "Test.ReportFailed": "tests.step_handlers:report_failed",
    "Test.EmitSecret": "tests.step_handlers:emit_secret",
    "Test.UseSession": "tests.step_handlers:use_session",
    "Test.SecurityViolation": "tests.step_handlers:security_violation",
    "Test.ReportSkipped": "tests.step_handlers:report_skipped",
    "Test.MutateInputs": "tests.step_handlers:mutate_inputs",
}


@pytest.fixture(autouse=True)
def reset_handler_calls():
    """Clear the handler call log between tests."""
    step_handlers.CALLS.clear()
    yield
    step_handlers.CALLS.clear()


@pytest.fixture
def test_step_metadata():
    """Metadata for the test step types; none of them needs a capability."""
    return {step_type: {"RequiredCapabilities": []} for step_type in TEST_STEP_TYPES}


@pytest.fixture
def test_step_handlers():
    return dict(TEST_STEP_TYPES)


@pytest.fixture
def joiner_request():
    """Sample joiner request."""
    return LifecycleRequest(
        lifecycle_event="Joiner",
        identity_keys={"EmployeeId": "E1001"},
        desired_state={
            "DisplayName": "Ada Lovelace",
            "Department": "Engineering",
            "Title": "Engineer",
            "Manager": "M2000",
        },
        correlation_id="corr-0001",
        actor="hr-system",
    )
