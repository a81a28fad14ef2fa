"""Validation package."""

from tanoprego.validation.validator import ParsedTransactionValidator

__all__ = ["ParsedTransactionValidator"]
