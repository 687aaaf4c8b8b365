"""
Tests for plan export.
"""

import json

import pytest

from idle_engine.config import REDACTION_MARKER
from idle_engine.engine import export_plan, export_plan_json, new_plan
from idle_engine.models import LifecycleRequest
from idle_engine.providers import MockProvider


@pytest.fixture
def plan():
    workflow = {
        "Name": "Joiner - Export",
        "LifecycleEvent": "Joiner",
        "Steps": [
            {
                "Name": "Create",
                "Type": "IdLE.Step.CreateIdentity",
                "With": {"IdentityKey": "{{Request.IdentityKeys.EmployeeId}}", "Password": "Initial#123"},
            },
            {
                "Name": "Sales",
                "Type": "IdLE.Step.EnsureEntitlement",
                "Condition": {"Equals": {"Path": "Request.DesiredState.Department", "Value": "Sales"}},
                "With": {"Provider": "Directory", "IdentityKey": "x", "Entitlement": "Sales"},
            },
            {"Name": "Announce", "Type": "IdLE.Step.EmitEvent", "With": {"Message": "done"}},
        ],
        "OnFailureSteps": [
            {"Name": "Report", "Type": "IdLE.Step.EmitEvent", "With": {"Message": "failed"}},
        ],
    }
    request = LifecycleRequest(
        lifecycle_event="Joiner",
        identity_keys={"EmployeeId": "E1"},
        desired_state={"Department": "IT", "ClientSecret": "abc"},
        correlation_id="corr-export",
        actor="tester",
    )
    return new_plan(workflow, request, {"Identity": MockProvider()})


class TestPlanExport:
    """Test cases for export_plan."""

    def test_document_structure(self, plan):
        document = export_plan(plan, environment="test", labels=["b", "a"])

        assert document["schemaVersion"] == "1.0"
        assert document["engine"] == {"name": "IdLE"}
        assert document["request"]["type"] == "Joiner"
        assert document["request"]["correlationId"] == "corr-export"
        assert document["request"]["actor"] == "tester"
        assert document["plan"]["id"] == "corr-export"
        assert document["plan"]["workflowName"] == "Joiner - Export"
        assert document["plan"]["mode"] == "Plan"
        assert document["metadata"] == {"generatedBy": "idle_engine", "environment": "test", "labels": ["a", "b"]}

    def test_steps(self, plan):
        steps = export_plan(plan)["plan"]["steps"]

        assert [s["id"] for s in steps] == ["step-01", "step-02", "step-03"]
        assert steps[0]["stepType"] == "IdLE.Step.CreateIdentity"
        assert steps[0]["provider"] == "Identity"
        assert steps[0]["condition"] is None
        assert steps[0]["expectedState"] == "Planned"
        assert steps[1]["provider"] == "Directory"
        assert steps[1]["condition"] == {
            "type": "Declarative",
            "expression": {"Equals": {"Path": "Request.DesiredState.Department", "Value": "Sales"}},
        }
        assert steps[1]["expectedState"] == "NotApplicable"
        assert steps[2]["provider"] is None

    def test_on_failure_steps_numbered_after_primary(self, plan):
        on_failure = export_plan(plan)["plan"]["onFailureSteps"]
        assert [s["id"] for s in on_failure] == ["step-04"]

    def test_export_is_redacted(self, plan):
        document = export_plan(plan)
        assert document["plan"]["steps"][0]["inputs"]["Password"] == REDACTION_MARKER
        assert document["request"]["input"]["ClientSecret"] == REDACTION_MARKER
        assert "Initial#123" not in json.dumps(document)

    def test_export_is_deterministic(self, plan):
        assert export_plan_json(plan) == export_plan_json(plan)

    def test_export_to_file(self, plan, tmp_path):
        path = tmp_path / "out" / "plan.json"
        text = export_plan_json(plan, path)

        assert path.read_text(encoding="utf-8").strip() == text
        assert json.loads(text)["plan"]["workflowName"] == "Joiner - Export"
