"""
Audit Package.

Exports AuditLogger, the JSONL event sink.
"""

from .audit_logger import AuditLogger

__all__ = ["AuditLogger"]
