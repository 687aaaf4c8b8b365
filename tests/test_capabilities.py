"""
Tests for capability normalization and the planning capability gate.
"""

from unittest.mock import Mock

import pytest

from idle_engine.engine.capabilities import (
    assert_plan_capabilities,
    get_available_capabilities,
    normalize_capabilities,
    normalize_capability,
)
from idle_engine.errors import CapabilityError, CapabilityValidationError
from idle_engine.models import PlanStep
from idle_engine.providers import MockProvider


class TestNormalization:
    """Capability identifier validation and legacy translation."""

    @pytest.mark.parametrize("capability", ["IdLE.Identity.Disable", "A.b", "X1.Y2.Z3"])
    def test_valid_identifiers(self, capability):
        assert normalize_capability(capability) == capability

    @pytest.mark.parametrize("capability", ["", "IdLE", "1dLE.Identity", "IdLE..Identity", "IdLE.Identity.", "IdLE.Id-entity", None, 42])
    def test_invalid_identifiers(self, capability):
        with pytest.raises(CapabilityValidationError):
            normalize_capability(capability)

    def test_legacy_name_translated(self):
        assert normalize_capability("IdLE.Entitlement.Add") == "IdLE.Entitlement.Grant"

    def test_translation_is_idempotent(self):
        once = normalize_capability("IdLE.Identity.Read")
        assert normalize_capability(once) == once == "IdLE.Identity.Info.Read"

    def test_legacy_name_reported_to_sink(self):
        sink = Mock()
        normalize_capability("IdLE.DirectorySync.Start", sink)

        sink.write_event.assert_called_once()
        event_type, _, step_name, data = sink.write_event.call_args[0]
        assert event_type == "CapabilityDeprecated"
        assert step_name is None
        assert data == {"Capability": "IdLE.DirectorySync.Start", "Canonical": "IdLE.DirectorySync.Trigger"}

    def test_legacy_name_without_sink_is_logged(self, caplog):
        with caplog.at_level("WARNING"):
            normalize_capability("IdLE.Entitlement.Remove")
        assert "deprecated" in caplog.text

    def test_normalize_list_sorted_and_deduplicated(self):
        result = normalize_capabilities(["IdLE.Entitlement.Grant", "IdLE.Entitlement.Add", "IdLE.Identity.Create"])
        assert result == ["IdLE.Entitlement.Grant", "IdLE.Identity.Create"]


class TestAvailableCapabilities:
    """Aggregation across providers."""

    def test_union_across_providers(self):
        providers = {
            "Identity": MockProvider(capabilities=["IdLE.Identity.Create", "IdLE.Entitlement.Add"]),
            "Sync": MockProvider(capabilities=["IdLE.DirectorySync.Trigger", "IdLE.Identity.Create"]),
        }
        assert get_available_capabilities(providers) == [
            "IdLE.DirectorySync.Trigger",
            "IdLE.Entitlement.Grant",
            "IdLE.Identity.Create",
        ]

    def test_provider_without_get_capabilities_is_ignored(self):
        providers = {"Legacy": object(), "Identity": MockProvider(capabilities=["IdLE.Identity.Create"])}
        assert get_available_capabilities(providers) == ["IdLE.Identity.Create"]

    def test_no_providers(self):
        assert get_available_capabilities(None) == []


class TestCapabilityGate:
    """assert_plan_capabilities behaviour."""

    @pytest.fixture
    def steps(self):
        return [
            PlanStep(name="Create", type="IdLE.Step.CreateIdentity", requires_capabilities=["IdLE.Identity.Create"]),
            PlanStep(
                name="Grant",
                type="IdLE.Step.EnsureEntitlement",
                requires_capabilities=["IdLE.Entitlement.Grant", "IdLE.Entitlement.List"],
            ),
            PlanStep(name="Notify", type="IdLE.Step.EmitEvent"),
        ]

    def test_all_available(self, steps):
        assert_plan_capabilities(
            steps, ["IdLE.Identity.Create", "IdLE.Entitlement.Grant", "IdLE.Entitlement.List"]
        )

    def test_missing_capabilities_reported(self, steps):
        with pytest.raises(CapabilityError) as exc_info:
            assert_plan_capabilities(steps, ["IdLE.Entitlement.List", "IdLE.Identity.Delete"])

        error = exc_info.value
        assert error.missing_capabilities == ["IdLE.Entitlement.Grant", "IdLE.Identity.Create"]
        assert error.affected_steps == ["Create", "Grant"]
        assert error.available_capabilities == ["IdLE.Entitlement.List", "IdLE.Identity.Delete"]

    def test_legacy_available_name_satisfies_canonical_requirement(self, steps):
        assert_plan_capabilities(
            steps, ["IdLE.Identity.Create", "IdLE.Entitlement.Add", "IdLE.Entitlement.List"]
        )

    def test_error_message_is_deterministic(self, steps):
        messages = set()
        for available in (["IdLE.Identity.Delete", "IdLE.Entitlement.List"], ["IdLE.Entitlement.List", "IdLE.Identity.Delete"]):
            with pytest.raises(CapabilityError) as exc_info:
                assert_plan_capabilities(list(reversed(steps)), available)
            messages.add(str(exc_info.value))
        assert len(messages) == 1
