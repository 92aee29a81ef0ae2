#!/usr/bin/env python3
# CUI // SP-CTI
"""Shinobi core package — domain models, error hierarchy, run correlation."""

from shinobi.core.errors import (  # noqa: F401
    AmbiguousBinderError,
    BindingOptionsError,
    BindingSkippedError,
    CapabilityNotFoundError,
    ComplianceViolationError,
    ConfigurationError,
    DuplicateCapabilityError,
    ManifestError,
    NoBinderFoundError,
    SchemaValidationError,
    ShinobiError,
    UnsupportedAccessLevelError,
)
from shinobi.core.models import (  # noqa: F401
    BindingDirective,
    BindingResult,
    ComplianceAction,
    ComplianceFramework,
    ComponentContext,
    ComponentSpec,
    NetworkRule,
    PermissionStatement,
)
