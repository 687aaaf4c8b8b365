"""
Retry policy for step execution.

Only errors carrying the explicit transient marker are retried. Delays
follow exponential backoff capped at MaxDelayMilliseconds, with a
deterministic jitter derived from a SHA-256 hash of the seed string, so
identical inputs always produce identical delay sequences.
"""

import hashlib
import logging
import time
from typing import Any, Callable, List, Optional

from ..errors import is_transient
from ..models import RetryProfile

logger = logging.getLogger(__name__)


def build_jitter_seed(operation: str, step_name: str, attempt: int, seed: Optional[str] = None) -> str:
    """Seed string hashed for the jitter of one attempt."""
    if seed:
        return f"{seed}|{attempt}"
    return f"{operation}|{step_name}|{attempt}"


def jitter_unit(seed: str) -> float:
    """Map a seed string to a value in [-1.0, 1.0)."""
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    value = int.from_bytes(digest[:8], "big")
    return (value / 2 ** 64) * 2.0 - 1.0


def compute_retry_delay(
    profile: RetryProfile,
    attempt: int,
    operation: str = "",
    step_name: str = "",
    seed: Optional[str] = None,
) -> int:
    """
    Delay in milliseconds to wait after a failed attempt.

    Args:
        profile: Retry parameters
        attempt: Number of the attempt that failed (starts at 1)
        operation: Operation name used in the default jitter seed
        step_name: Step name used in the default jitter seed
        seed: Caller-supplied deterministic seed replacing operation/step

    Returns:
        Delay in milliseconds, never negative
    """
    base = min(
        profile.max_delay_milliseconds,
        round(profile.initial_delay_milliseconds * profile.backoff_factor ** (attempt - 1)),
    )

    if profile.jitter_ratio == 0 or base == 0:
        return int(base)

    unit = jitter_unit(build_jitter_seed(operation, step_name, attempt, seed))
    delay = round(base + base * profile.jitter_ratio * unit)
    return max(0, int(delay))


def compute_retry_delays(
    profile: RetryProfile,
    operation: str = "",
    step_name: str = "",
    seed: Optional[str] = None,
) -> List[int]:
    """Delays between every pair of attempts the profile allows."""
    return [
        compute_retry_delay(profile, attempt, operation, step_name, seed)
        for attempt in range(1, profile.max_attempts)
    ]


def invoke_with_retry(
    operation: Callable[[], Any],
    profile: RetryProfile,
    operation_name: str = "",
    step_name: str = "",
    seed: Optional[str] = None,
    on_retry: Optional[Callable[[int, int, BaseException], None]] = None,
) -> Any:
    """
    Run an operation under the retry policy.

    Args:
        operation: Zero-argument callable performing one attempt
        profile: Retry parameters
        operation_name: Name used for logging and jitter
        step_name: Step name used for logging and jitter
        seed: Deterministic jitter seed override
        on_retry: Notified with (attempt, delay_ms, error) before each wait

    Returns:
        The operation's result

    Raises:
        The last error, unchanged, once it is non-transient or attempts run out.
    """
    if profile.max_attempts == 0:
        return operation()

    attempt = 1
    while True:
        try:
            return operation()
        except Exception as e:
            if not is_transient(e):
                raise
            if attempt >= profile.max_attempts:
                logger.warning(
                    f"{operation_name} '{step_name}' exhausted {profile.max_attempts} attempt(s): {e}"
                )
                raise

            delay = compute_retry_delay(profile, attempt, operation_name, step_name, seed)
            logger.info(
                f"{operation_name} '{step_name}' attempt {attempt} failed with transient error; "
                f"retrying in {delay}ms"
            )
            if on_retry is not None:
                on_retry(attempt, delay, e)
            if delay > 0:
                time.sleep(delay / 1000.0)
            attempt += 1
