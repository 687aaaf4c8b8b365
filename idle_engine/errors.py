"""
Error taxonomy for the IdLE Engine.

Planning raises validation, capability and security errors before any
step runs. Execution distinguishes transient errors (explicitly marked,
eligible for retry) from everything else.
"""

from typing import Iterable, List, Optional, Sequence


class IdleEngineError(Exception):
    """Base class for all engine errors."""


class WorkflowValidationError(IdleEngineError):
    """Workflow data failed shape validation. Carries every violation found."""

    def __init__(self, errors: Sequence[str], workflow_name: Optional[str] = None):
        self.errors: List[str] = list(errors)
        self.workflow_name = workflow_name
        prefix = f"Workflow '{workflow_name}'" if workflow_name else "Workflow"
        details = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"{prefix} failed validation with {len(self.errors)} error(s):\n{details}")


class ConditionSchemaError(IdleEngineError):
    """A condition tree does not match the condition grammar."""

    def __init__(self, errors: Sequence[str]):
        self.errors: List[str] = list(errors)
        details = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"Condition failed schema validation:\n{details}")


class SecurityViolationError(IdleEngineError):
    """Data crossed the data/code trust boundary. Never retried."""


class TemplateError(IdleEngineError):
    """Base class for template resolution failures."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class TemplateSyntaxError(TemplateError):
    """Malformed placeholder or unbalanced braces."""


class TemplateResolutionError(TemplateError):
    """A placeholder resolved to nothing usable (missing, null, non-scalar)."""


class TemplateSecurityError(SecurityViolationError, TemplateError):
    """Placeholder path outside the allowlist, or resolving to a secret."""

    def __init__(self, message: str, path: Optional[str] = None):
        TemplateError.__init__(self, message, path)


class CapabilityValidationError(IdleEngineError):
    """A capability identifier is malformed."""


class CapabilityError(IdleEngineError):
    """Providers do not advertise every capability the plan requires."""

    def __init__(
        self,
        missing_capabilities: Iterable[str],
        affected_steps: Iterable[str],
        available_capabilities: Iterable[str],
    ):
        self.missing_capabilities: List[str] = sorted(set(missing_capabilities))
        self.affected_steps: List[str] = sorted(set(affected_steps))
        self.available_capabilities: List[str] = sorted(set(available_capabilities))
        super().__init__(
            "Plan cannot be built: required capabilities are not available. "
            f"Missing: {', '.join(self.missing_capabilities)}. "
            f"Affected steps: {', '.join(self.affected_steps)}. "
            f"Available: {', '.join(self.available_capabilities) or '(none)'}."
        )


class StepMetadataError(IdleEngineError):
    """Step types without an entry in the metadata catalog."""

    def __init__(self, step_types: Iterable[str]):
        self.step_types: List[str] = sorted(set(step_types))
        super().__init__(
            f"No step metadata registered for step type(s): {', '.join(self.step_types)}"
        )


class RegistryValidationError(IdleEngineError):
    """Host step metadata or handler entries are malformed. Carries every violation found."""

    def __init__(self, errors: Sequence[str]):
        self.errors: List[str] = list(errors)
        details = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"Step registry configuration is invalid:\n{details}")


class StepHandlerError(IdleEngineError):
    """A step type has no resolvable handler."""


class ExecutionOptionsError(IdleEngineError):
    """Execution options are invalid or reference unknown retry profiles."""


class StepExecutionError(IdleEngineError):
    """A step handler could not complete its operation."""

    def __init__(self, message: str, step_name: Optional[str] = None, transient: bool = False):
        self.step_name = step_name
        super().__init__(message)
        if transient:
            mark_transient(self)


class TransientStepError(StepExecutionError):
    """Convenience error that carries the transient marker."""

    def __init__(self, message: str, step_name: Optional[str] = None):
        super().__init__(message, step_name=step_name, transient=True)


def mark_transient(error: BaseException) -> BaseException:
    """Flag an error as eligible for retry and return it."""
    error.is_transient = True
    return error


def is_transient(error: BaseException) -> bool:
    """True only when the error carries the explicit transient marker."""
    return getattr(error, "is_transient", False) is True
