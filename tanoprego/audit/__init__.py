"""Audit logging package."""

from tanoprego.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
