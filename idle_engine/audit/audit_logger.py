"""
Audit Logging Module.

This module provides a file-backed event sink that persists every engine
event as a JSON line, giving hosts an append-only audit trail of runs.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from ..engine.redaction import redact
from ..models import EngineEvent

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Event sink writing to daily JSONL files.

    Implements the engine's event sink contract (write_event(event)).
    Events arrive already redacted; they are redacted again before
    writing so events from other sources get the same treatment.
    """

    def __init__(self, audit_dir: Union[str, Path] = "audit_logs"):
        """
        Initialize the audit logger.

        Args:
            audit_dir: Directory to store audit logs
        """
        self.audit_dir = Path(audit_dir)
        self.audit_dir.mkdir(parents=True, exist_ok=True)

    def write_event(self, event: EngineEvent) -> None:
        """
        Append an event to today's log file.

        Args:
            event: The event to persist
        """
        try:
            date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")
            log_file = self.audit_dir / f"events_{date_str}.jsonl"

            data = redact(event.model_dump(mode="json", by_alias=True))
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(data) + "\n")

        except Exception as e:
            logger.error(f"Failed to write audit event: {e}")
            raise

    def get_events(
        self,
        correlation_id: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[EngineEvent]:
        """
        Retrieve events, most recent first.

        Args:
            correlation_id: Filter by run correlation ID
            event_type: Filter by event type
            limit: Maximum number of events to return

        Returns:
            List of matching events
        """
        results: List[EngineEvent] = []

        for log_file in sorted(self.audit_dir.glob("events_*.jsonl"), reverse=True):
            if len(results) >= limit:
                break

            with open(log_file, encoding="utf-8") as f:
                lines = f.readlines()

            for line in reversed(lines):
                if len(results) >= limit:
                    break
                if not line.strip():
                    continue

                try:
                    event = EngineEvent.model_validate(json.loads(line))
                except ValueError as e:
                    logger.warning(f"Skipping unreadable audit line in {log_file}: {e}")
                    continue

                if correlation_id and event.correlation_id != correlation_id:
                    continue
                if event_type and event.type != event_type:
                    continue

                results.append(event)

        return results
