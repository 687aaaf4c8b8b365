"""
Tests for workflow validation and the plan builder.
"""

import copy

import pytest

from idle_engine.engine.planner import PlanBuilder, new_plan, validate_workflow
from idle_engine.errors import (
    CapabilityError,
    ExecutionOptionsError,
    SecurityViolationError,
    StepMetadataError,
    TemplateResolutionError,
    WorkflowValidationError,
)
from idle_engine.models import ExecutionOptions, PlanStepStatus, RetryProfile
from idle_engine.providers import MockProvider


@pytest.fixture
def workflow():
    return {
        "Name": "Joiner - Test",
        "LifecycleEvent": "Joiner",
        "Steps": [
            {
                "Name": "Create",
                "Type": "IdLE.Step.CreateIdentity",
                "With": {
                    "IdentityKey": "{{Request.IdentityKeys.EmployeeId}}",
                    "Attributes": {"DisplayName": "{{Request.Input.DisplayName}}"},
                },
            },
            {
                "Name": "GrantEngineering",
                "Type": "IdLE.Step.EnsureEntitlement",
                "Condition": {"Equals": {"Path": "Request.DesiredState.Department", "Value": "Engineering"}},
                "With": {"IdentityKey": "{{Request.IdentityKeys.EmployeeId}}", "Entitlement": "Eng"},
            },
            {
                "Name": "GrantSales",
                "Type": "IdLE.Step.EnsureEntitlement",
                "Condition": {"Equals": {"Path": "Request.DesiredState.Department", "Value": "Sales"}},
                "With": {"Entitlement": "{{Request.DesiredState.SalesRegion}}"},
            },
        ],
        "OnFailureSteps": [
            {"Name": "Report", "Type": "IdLE.Step.EmitEvent", "With": {"Message": "failed"}},
        ],
    }


@pytest.fixture
def providers():
    return {"Identity": MockProvider()}


class TestWorkflowValidation:
    """Shape validation of workflow data."""

    def test_valid_workflow(self, workflow):
        assert validate_workflow(workflow) == []

    def test_not_a_mapping(self):
        assert validate_workflow(["Steps"]) == ["Workflow must be a mapping, got list"]

    def test_all_violations_reported(self, workflow):
        workflow["Unexpected"] = True
        del workflow["LifecycleEvent"]
        workflow["Steps"][1]["Name"] = "create"
        workflow["Steps"][2]["RequiresCapabilities"] = ["IdLE.Identity.Create"]
        workflow["Steps"][2]["Condition"] = {"Equals": {"Path": "x"}}
        workflow["Steps"][0]["With"] = "not a mapping"

        errors = validate_workflow(workflow)

        assert any("unknown key 'Unexpected'" in e for e in errors)
        assert any("'LifecycleEvent' is required" in e for e in errors)
        assert any("duplicate step name 'create'" in e for e in errors)
        assert any("'RequiresCapabilities' cannot be declared" in e for e in errors)
        assert any("missing required key 'Value'" in e for e in errors)
        assert any("'With' must be a mapping" in e for e in errors)
        assert len(errors) == 6

    def test_empty_steps(self, workflow):
        workflow["Steps"] = []
        assert validate_workflow(workflow) == ["Workflow: 'Steps' must contain at least one step"]

    def test_step_names_unique_per_section(self, workflow):
        workflow["OnFailureSteps"][0]["Name"] = "Create"
        assert validate_workflow(workflow) == []

    def test_non_data_values_rejected(self, workflow):
        workflow["Steps"][0]["With"]["Attributes"]["Obj"] = object()
        errors = validate_workflow(workflow)
        assert len(errors) == 1
        assert "is not plain data" in errors[0]


class TestPlanBuilder:
    """Test cases for PlanBuilder."""

    @pytest.fixture
    def builder(self):
        return PlanBuilder()

    def test_build_plan(self, builder, workflow, joiner_request, providers):
        plan = builder.build(workflow, joiner_request, providers)

        assert plan.workflow_name == "Joiner - Test"
        assert plan.lifecycle_event == "Joiner"
        assert plan.correlation_id == "corr-0001"
        assert plan.actor == "hr-system"
        assert [s.name for s in plan.steps] == ["Create", "GrantEngineering", "GrantSales"]
        assert [s.name for s in plan.on_failure_steps] == ["Report"]

        create = plan.steps[0]
        assert create.status == PlanStepStatus.PLANNED
        assert create.inputs == {"IdentityKey": "E1001", "Attributes": {"DisplayName": "Ada Lovelace"}}
        assert create.requires_capabilities == ["IdLE.Identity.Create"]

    def test_condition_sets_status(self, builder, workflow, joiner_request, providers):
        plan = builder.build(workflow, joiner_request, providers)
        assert plan.steps[1].status == PlanStepStatus.PLANNED
        assert plan.steps[2].status == PlanStepStatus.NOT_APPLICABLE

    def test_not_applicable_inputs_left_unresolved(self, builder, workflow, joiner_request, providers):
        plan = builder.build(workflow, joiner_request, providers)
        assert plan.steps[2].inputs == {"Entitlement": "{{Request.DesiredState.SalesRegion}}"}

    def test_workflow_not_mutated(self, builder, workflow, joiner_request, providers):
        original = copy.deepcopy(workflow)
        builder.build(workflow, joiner_request, providers)
        assert workflow == original

    def test_workflow_capabilities_never_trusted(self, builder, workflow, joiner_request, providers):
        workflow["Steps"][0]["RequiresCapabilities"] = []
        with pytest.raises(WorkflowValidationError):
            builder.build(workflow, joiner_request, providers)

    def test_validation_error_lists_everything(self, builder, workflow, joiner_request):
        workflow["Steps"][0]["Name"] = ""
        workflow["Steps"][1]["Type"] = None
        with pytest.raises(WorkflowValidationError) as exc_info:
            builder.build(workflow, joiner_request)
        assert len(exc_info.value.errors) == 2

    def test_lifecycle_event_mismatch(self, builder, workflow, joiner_request):
        workflow["LifecycleEvent"] = "Leaver"
        with pytest.raises(WorkflowValidationError, match="does not match"):
            builder.build(workflow, joiner_request)

    def test_lifecycle_event_match_ignores_case(self, builder, workflow, joiner_request, providers):
        workflow["LifecycleEvent"] = "joiner"
        assert builder.build(workflow, joiner_request, providers).workflow_name == "Joiner - Test"

    def test_executable_values_rejected(self, builder, workflow, joiner_request):
        workflow["Steps"][0]["With"]["IdentityKey"] = lambda: "E1001"
        with pytest.raises(SecurityViolationError, match=r"Steps\[0\]\.With\.IdentityKey"):
            builder.build(workflow, joiner_request)

    def test_unknown_step_types(self, builder, workflow, joiner_request):
        workflow["Steps"][0]["Type"] = "Custom.Unknown"
        workflow["OnFailureSteps"][0]["Type"] = "Custom.Other"
        with pytest.raises(StepMetadataError) as exc_info:
            builder.build(workflow, joiner_request)
        assert exc_info.value.step_types == ["Custom.Other", "Custom.Unknown"]

    def test_missing_capabilities(self, builder, workflow, joiner_request):
        providers = {"Identity": MockProvider(capabilities=["IdLE.Identity.Create"])}
        with pytest.raises(CapabilityError) as exc_info:
            builder.build(workflow, joiner_request, providers)

        error = exc_info.value
        assert error.missing_capabilities == [
            "IdLE.Entitlement.Grant",
            "IdLE.Entitlement.List",
            "IdLE.Entitlement.Revoke",
        ]
        # NotApplicable steps still count toward the required set
        assert error.affected_steps == ["GrantEngineering", "GrantSales"]

    def test_on_failure_capabilities_checked(self, builder, workflow, joiner_request, providers):
        workflow["OnFailureSteps"].append(
            {"Name": "Delete", "Type": "IdLE.Step.DeleteIdentity", "With": {"IdentityKey": "x"}}
        )
        providers = {"Identity": MockProvider(capabilities=[
            c for c in MockProvider.DEFAULT_CAPABILITIES if c != "IdLE.Identity.Delete"
        ])}
        with pytest.raises(CapabilityError) as exc_info:
            builder.build(workflow, joiner_request, providers)
        assert exc_info.value.affected_steps == ["Delete"]

    def test_template_failure_includes_location(self, builder, workflow, joiner_request, providers):
        workflow["Steps"][0]["With"]["Attributes"]["Office"] = "{{Request.DesiredState.Office}}"
        with pytest.raises(TemplateResolutionError) as exc_info:
            builder.build(workflow, joiner_request, providers)
        assert "Steps[0] 'Create'.With.Attributes.Office" in str(exc_info.value)

    def test_unknown_retry_profile(self, builder, workflow, joiner_request, providers):
        workflow["Steps"][0]["RetryProfile"] = "Aggressive"
        options = ExecutionOptions(retry_profiles={"Standard": RetryProfile()})
        with pytest.raises(ExecutionOptionsError, match="Aggressive"):
            builder.build(workflow, joiner_request, providers, options)

    def test_retry_profile_carried_to_plan(self, builder, workflow, joiner_request, providers):
        workflow["Steps"][0]["RetryProfile"] = "Standard"
        options = ExecutionOptions(retry_profiles={"Standard": RetryProfile()})
        plan = builder.build(workflow, joiner_request, providers, options)
        assert plan.steps[0].retry_profile == "Standard"

    def test_metadata_override(self, workflow, joiner_request):
        builder = PlanBuilder({"IdLE.Step.EmitEvent": {"RequiredCapabilities": ["Custom.Chat.Post"]}})
        with pytest.raises(CapabilityError) as exc_info:
            builder.build(workflow, joiner_request, {"Identity": MockProvider()})
        assert exc_info.value.missing_capabilities == ["Custom.Chat.Post"]

    def test_planning_is_deterministic(self, workflow, joiner_request, providers):
        first = new_plan(workflow, joiner_request, providers)
        second = new_plan(workflow, joiner_request, providers)
        assert first.to_dict() == second.to_dict()

    def test_plan_is_immutable(self, builder, workflow, joiner_request, providers):
        plan = builder.build(workflow, joiner_request, providers)
        with pytest.raises(Exception):
            plan.workflow_name = "changed"
