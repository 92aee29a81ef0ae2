#!/usr/bin/env python3
# CUI // SP-CTI
"""Configuration schema validation."""

from shinobi.schemas.validator import (
    SchemaValidator,
    ValidationIssue,
    ValidationPolicy,
    ValidationResult,
)

__all__ = [
    "SchemaValidator",
    "ValidationIssue",
    "ValidationPolicy",
    "ValidationResult",
]
