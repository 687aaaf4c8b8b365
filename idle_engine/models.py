"""
Core data models for the IdLE Engine.

This module defines the Pydantic models used throughout the system for
lifecycle requests, plans, execution events and results, and the
retry/execution options. Attributes are snake_case; the serialized surface
uses the PascalCase names workflow authors and callers see.
"""

import copy
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_pascal

from .config import (
    RETRY_INITIAL_DELAY_MS_LIMIT,
    RETRY_MAX_ATTEMPTS_LIMIT,
    RETRY_MAX_DELAY_MS_LIMIT,
    RETRY_MAX_JITTER_RATIO,
    RETRY_MIN_BACKOFF_FACTOR,
)
from .errors import ExecutionOptionsError


class PlanStepStatus(str, Enum):
    """Applicability decided once, at planning time."""
    PLANNED = "Planned"
    NOT_APPLICABLE = "NotApplicable"


class StepResultStatus(str, Enum):
    """Outcome of a single step at execution time."""
    COMPLETED = "Completed"
    FAILED = "Failed"
    NOT_APPLICABLE = "NotApplicable"


class RunStatus(str, Enum):
    """Outcome of a whole run."""
    COMPLETED = "Completed"
    FAILED = "Failed"
    WHAT_IF = "WhatIf"


class OnFailureStatus(str, Enum):
    """Aggregate outcome of the OnFailure section."""
    NOT_RUN = "NotRun"
    COMPLETED = "Completed"
    PARTIALLY_FAILED = "PartiallyFailed"
    FAILED = "Failed"


class EventType(str, Enum):
    """Event types emitted by the engine."""
    RUN_STARTED = "RunStarted"
    RUN_COMPLETED = "RunCompleted"
    RUN_FAILED = "RunFailed"
    STEP_STARTED = "StepStarted"
    STEP_COMPLETED = "StepCompleted"
    STEP_FAILED = "StepFailed"
    STEP_NOT_APPLICABLE = "StepNotApplicable"
    STEP_RETRYING = "StepRetrying"
    ON_FAILURE_STARTED = "OnFailureStarted"
    ON_FAILURE_STEP_STARTED = "OnFailureStepStarted"
    ON_FAILURE_STEP_COMPLETED = "OnFailureStepCompleted"
    ON_FAILURE_STEP_FAILED = "OnFailureStepFailed"
    ON_FAILURE_COMPLETED = "OnFailureCompleted"
    CAPABILITY_DEPRECATED = "CapabilityDeprecated"
    CUSTOM = "Custom"


class EngineModel(BaseModel):
    """Immutable model serialized with PascalCase keys."""
    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        frozen=True,
        arbitrary_types_allowed=True,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON-compatible PascalCase surface."""
        return self.model_dump(mode="json", by_alias=True)


class AuthSession:
    """
    Opaque session object handed out by an auth session broker.

    Sessions are credential-shaped: templates refuse to resolve them and
    redaction replaces them wherever they appear.
    """

    def __init__(self, name: str, **properties: Any):
        self.name = name
        self.properties = properties

    def __repr__(self) -> str:
        return f"AuthSession(name={self.name!r}, properties=[REDACTED])"


class LifecycleRequest(EngineModel):
    """A lifecycle event to plan for, e.g. a joiner or leaver request."""
    lifecycle_event: str = Field(..., description="Lifecycle event name (Joiner, Mover, Leaver, ...)")
    identity_keys: Dict[str, Any] = Field(default_factory=dict, description="Keys identifying the identity")
    desired_state: Dict[str, Any] = Field(default_factory=dict, description="Desired identity attributes")
    changes: Optional[Dict[str, Any]] = Field(None, description="Explicit change set, if supplied")
    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    actor: Optional[str] = Field(None, description="Who requested the change")

    @model_validator(mode="before")
    @classmethod
    def copy_inputs(cls, data: Any) -> Any:
        """Detach from caller-owned dictionaries."""
        if isinstance(data, dict):
            return copy.deepcopy(data)
        return data

    @field_validator("lifecycle_event")
    @classmethod
    def validate_lifecycle_event(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("LifecycleEvent must be a non-empty string")
        return v.strip()

    @field_validator("identity_keys", "desired_state", mode="before")
    @classmethod
    def default_empty_mapping(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("correlation_id", mode="before")
    @classmethod
    def default_correlation_id(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return str(uuid.uuid4())
        return str(v)

    @field_validator("actor", mode="before")
    @classmethod
    def normalize_actor(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class PlanStep(EngineModel):
    """A workflow step after planning: capabilities derived, templates resolved."""
    name: str
    type: str
    description: Optional[str] = None
    condition: Optional[Any] = None
    inputs: Dict[str, Any] = Field(default_factory=dict, alias="With")
    requires_capabilities: List[str] = Field(default_factory=list)
    status: PlanStepStatus = PlanStepStatus.PLANNED
    retry_profile: Optional[str] = None


class Plan(EngineModel):
    """Immutable, capability-validated representation of a workflow ready to run."""
    workflow_name: str
    lifecycle_event: str
    correlation_id: str
    actor: Optional[str] = None
    request: LifecycleRequest
    steps: Tuple[PlanStep, ...] = ()
    on_failure_steps: Tuple[PlanStep, ...] = Field((), alias="OnFailureSteps")
    providers: Dict[str, Any] = Field(default_factory=dict)
    actions: Tuple[Dict[str, Any], ...] = ()
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize without the provider objects, which are opaque."""
        return self.model_dump(mode="json", by_alias=True, exclude={"providers"})


class EngineEvent(EngineModel):
    """A single entry in the run's event stream."""
    timestamp_utc: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    type: str
    message: str
    correlation_id: str
    actor: Optional[str] = None
    step_name: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class StepResult(EngineModel):
    """Outcome of a single step."""
    name: str
    type: str
    status: StepResultStatus
    error: Optional[str] = None
    attempts: int = 0


class OnFailureResult(EngineModel):
    """Outcome of the OnFailure (compensation) section."""
    status: OnFailureStatus = OnFailureStatus.NOT_RUN
    steps: List[StepResult] = Field(default_factory=list)


class ExecutionResult(EngineModel):
    """Result of executing a plan."""
    status: RunStatus
    correlation_id: str
    steps: List[StepResult] = Field(default_factory=list)
    events: List[EngineEvent] = Field(default_factory=list)
    on_failure: OnFailureResult = Field(default_factory=OnFailureResult)


class RetryProfile(EngineModel):
    """Retry parameters, validated against the engine's hard limits."""
    max_attempts: int = Field(3, ge=0, le=RETRY_MAX_ATTEMPTS_LIMIT)
    initial_delay_milliseconds: int = Field(250, ge=0, le=RETRY_INITIAL_DELAY_MS_LIMIT)
    backoff_factor: float = Field(2.0, ge=RETRY_MIN_BACKOFF_FACTOR)
    max_delay_milliseconds: int = Field(5000, ge=0, le=RETRY_MAX_DELAY_MS_LIMIT)
    jitter_ratio: float = Field(0.2, ge=0.0, le=RETRY_MAX_JITTER_RATIO)

    @model_validator(mode="after")
    def validate_delay_bounds(self) -> "RetryProfile":
        if self.max_delay_milliseconds < self.initial_delay_milliseconds:
            raise ValueError(
                f"MaxDelayMilliseconds ({self.max_delay_milliseconds}) must be >= "
                f"InitialDelayMilliseconds ({self.initial_delay_milliseconds})"
            )
        return self


class ExecutionOptions(EngineModel):
    """Host-supplied execution options."""
    retry_profiles: Dict[str, RetryProfile] = Field(default_factory=dict)
    default_retry_profile: Optional[str] = None
    retry_seed: Optional[str] = Field(None, description="Deterministic jitter seed override")

    @model_validator(mode="after")
    def validate_default_profile(self) -> "ExecutionOptions":
        if self.default_retry_profile and self.default_retry_profile not in self.retry_profiles:
            raise ValueError(
                f"DefaultRetryProfile '{self.default_retry_profile}' is not defined in RetryProfiles"
            )
        return self

    def get_retry_profile(self, name: Optional[str] = None) -> RetryProfile:
        """
        Resolve the retry profile for a step.

        Args:
            name: Profile named by the step, or None for the engine default

        Returns:
            The named profile, the default profile, or the built-in defaults
        """
        if name:
            if name not in self.retry_profiles:
                raise ExecutionOptionsError(f"Unknown retry profile: '{name}'")
            return self.retry_profiles[name]

        if self.default_retry_profile:
            return self.retry_profiles[self.default_retry_profile]

        return RetryProfile()
