"""
Plan export for the IdLE Engine.

Serializes a plan to a schema-versioned JSON document for review and
snapshot tests. Engine version and timestamps are left out so identical
plans export identically. Everything passes through redaction first.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..config import ENGINE_NAME, PLAN_EXPORT_SCHEMA_VERSION
from ..models import Plan, PlanStep
from .redaction import redact

DEFAULT_PROVIDER_ALIAS = "Identity"


def _export_step(index: int, step: PlanStep) -> Dict[str, Any]:
    condition = None
    if step.condition is not None:
        condition = {"type": "Declarative", "expression": step.condition}

    return {
        "id": f"step-{index:02d}",
        "name": step.name,
        "stepType": step.type,
        "provider": step.inputs.get("Provider", DEFAULT_PROVIDER_ALIAS) if step.requires_capabilities else None,
        "condition": condition,
        "inputs": step.inputs,
        "expectedState": step.status.value,
    }


def export_plan(
    plan: Plan,
    environment: Optional[str] = None,
    labels: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Build the export document for a plan.

    Args:
        plan: Plan to export
        environment: Optional environment name recorded in metadata
        labels: Optional labels recorded in metadata

    Returns:
        Redacted, JSON-compatible document
    """
    steps = [_export_step(i, s) for i, s in enumerate(plan.steps, start=1)]
    offset = len(steps)
    on_failure = [_export_step(offset + i, s) for i, s in enumerate(plan.on_failure_steps, start=1)]

    document = {
        "schemaVersion": PLAN_EXPORT_SCHEMA_VERSION,
        "engine": {"name": ENGINE_NAME},
        "request": {
            "type": plan.request.lifecycle_event,
            "correlationId": plan.correlation_id,
            "actor": plan.actor,
            "input": plan.request.desired_state,
        },
        "plan": {
            "id": plan.correlation_id,
            "workflowName": plan.workflow_name,
            "mode": "Plan",
            "steps": steps,
            "onFailureSteps": on_failure,
        },
        "metadata": {
            "generatedBy": "idle_engine",
            "environment": environment,
            "labels": sorted(labels or []),
        },
    }
    return redact(document)


def export_plan_json(
    plan: Plan,
    path: Optional[Union[str, Path]] = None,
    environment: Optional[str] = None,
    labels: Optional[List[str]] = None,
) -> str:
    """
    Serialize a plan export to JSON, optionally writing it to a file.

    Returns:
        The JSON text
    """
    text = json.dumps(export_plan(plan, environment, labels), indent=2, default=str)

    if path is not None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text + "\n")

    return text
