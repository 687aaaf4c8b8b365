"""
Event recording for the IdLE Engine.

Every event is redacted once, appended to the run's buffer and only then
forwarded to the host's event sink. External sinks and auth session
brokers must be objects exposing a named method; bare functions, lambdas
and bound methods are refused.
"""

import functools
import inspect
import logging
from enum import Enum
from typing import Any, List, Mapping, Optional, Union

from ..errors import SecurityViolationError
from ..models import EngineEvent
from .redaction import redact

logger = logging.getLogger(__name__)


def _is_bare_executable(value: Any) -> bool:
    return (
        inspect.isfunction(value)
        or inspect.ismethod(value)
        or inspect.isbuiltin(value)
        or isinstance(value, functools.partial)
    )


def validate_event_sink(sink: Any) -> None:
    """Ensure the sink is an object exposing write_event(event)."""
    if sink is None:
        return
    if _is_bare_executable(sink):
        raise SecurityViolationError(
            "Event sink must be an object exposing write_event(event), not a function or closure"
        )
    if not callable(getattr(sink, "write_event", None)):
        raise TypeError(f"Event sink {type(sink).__name__} does not expose write_event(event)")


def validate_auth_session_broker(broker: Any) -> None:
    """Ensure the broker is an object exposing acquire_auth_session(name, options)."""
    if broker is None:
        return
    if _is_bare_executable(broker):
        raise SecurityViolationError(
            "Auth session broker must be an object exposing acquire_auth_session(name, options), "
            "not a function or closure"
        )
    if not callable(getattr(broker, "acquire_auth_session", None)):
        raise TypeError(
            f"Auth session broker {type(broker).__name__} does not expose acquire_auth_session(name, options)"
        )


class EventRecorder:
    """
    Append-only, redacting event buffer for one run.

    Step handlers receive this object as context.event_sink and call
    write_event(type, message, step_name, data).
    """

    def __init__(self, correlation_id: str, actor: Optional[str] = None, sink: Optional[Any] = None):
        validate_event_sink(sink)
        self.correlation_id = correlation_id
        self.actor = actor
        self.sink = sink
        self.events: List[EngineEvent] = []

    def write_event(
        self,
        event_type: Union[str, Enum],
        message: str,
        step_name: Optional[str] = None,
        data: Optional[Any] = None,
    ) -> EngineEvent:
        """
        Record an event and forward it to the external sink.

        Args:
            event_type: Event type name
            message: Human-readable message
            step_name: Step the event belongs to, if any
            data: Additional data; redacted before it is stored

        Returns:
            The recorded (redacted) event
        """
        if isinstance(event_type, Enum):
            event_type = event_type.value

        if data is None:
            data = {}
        elif not isinstance(data, Mapping):
            data = {"Value": data}

        event = EngineEvent(
            type=str(event_type),
            message=str(message),
            correlation_id=self.correlation_id,
            actor=self.actor,
            step_name=step_name,
            data=redact(data),
        )
        self.events.append(event)

        if self.sink is not None:
            self.sink.write_event(event)

        logger.debug(f"[{self.correlation_id}] {event.type}: {event.message}")
        return event
