"""
Step Helper Functions for the IdLE Engine.

Shared plumbing for the built-in step handlers: reading inputs, picking the
provider, acquiring auth sessions and turning provider results into step
results or errors.
"""

import logging
from typing import Any, Optional

from ..errors import StepExecutionError
from ..models import PlanStep, StepResult, StepResultStatus
from ..providers import ProviderResult, invoke_provider_method

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_ALIAS = "Identity"


def get_input(step: PlanStep, key: str, default: Any = None, required: bool = False) -> Any:
    """
    Read a resolved input from the step's With block.

    Args:
        step: The plan step
        key: Input name
        default: Value used when the input is absent
        required: Raise if the input is absent or empty

    Returns:
        The input value
    """
    value = step.inputs.get(key, default)
    if required and (value is None or (isinstance(value, str) and not value.strip())):
        raise StepExecutionError(f"Step '{step.name}' requires input '{key}'", step_name=step.name)
    return value


def get_provider(context: Any, step: PlanStep) -> Any:
    """Provider named by the step's Provider input (default 'Identity')."""
    alias = get_input(step, "Provider", DEFAULT_PROVIDER_ALIAS)
    provider = context.providers.get(alias)
    if provider is None:
        raise StepExecutionError(
            f"Step '{step.name}': provider '{alias}' is not configured", step_name=step.name
        )
    return provider


def acquire_session(context: Any, step: PlanStep) -> Optional[Any]:
    """Acquire the auth session named by AuthSessionName, if any."""
    name = get_input(step, "AuthSessionName")
    if not name:
        return None
    options = get_input(step, "AuthSessionOptions") or {}
    logger.debug(f"Step '{step.name}' acquiring auth session '{name}'")
    return context.acquire_auth_session(name, options)


def call_provider(context: Any, step: PlanStep, method_name: str, *args: Any, **kwargs: Any) -> ProviderResult:
    """
    Call a provider operation for a step and check its result.

    Raises:
        StepExecutionError: When the provider reports failure; marked
                            transient if the provider said so
    """
    provider = get_provider(context, step)
    session = acquire_session(context, step)
    result = invoke_provider_method(provider, method_name, *args, auth_session=session, **kwargs)

    if isinstance(result, ProviderResult) and not result.success:
        raise StepExecutionError(
            f"{method_name} failed: {result.error or result.message or 'unknown error'}",
            step_name=step.name,
            transient=result.transient,
        )

    logger.debug(f"Step '{step.name}': {method_name} -> {result}")
    return result


def completed(step: PlanStep) -> StepResult:
    """Successful result for a step."""
    return StepResult(name=step.name, type=step.type, status=StepResultStatus.COMPLETED)
