"""Security utilities for the coinflip escrow."""
from .audit import AuditEventType, AuditSeverity, AuditLogger

__all__ = ["AuditEventType", "AuditSeverity", "AuditLogger"]
