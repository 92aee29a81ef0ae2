#!/usr/bin/env python3
# CUI // SP-CTI
"""Shinobi — Structured Exception Hierarchy.

Every failure the core can report during a synthesis run is a subclass of
ShinobiError. Component-scoped errors fail one component, binding-scoped
errors fail one binding; the planner collects both into a single report.

Usage:
    from shinobi.core.errors import ConfigurationError, ComplianceViolationError

    raise ConfigurationError("Unknown compliance framework 'gov'", config_key="complianceFramework")
"""

from typing import Any, Dict, List, Optional


class ShinobiError(Exception):
    """Base exception for all Shinobi errors.

    Attributes:
        scope: What the error fails: "component", "binding" or "run".
        name: Component name or binding label the error belongs to.
        details: Extra structured context for reports.
    """

    scope = "run"

    def __init__(self, message: str, name: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.name = name
        self.details = details or {}

    @property
    def error_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        data = {
            "error_type": self.error_type,
            "scope": self.scope,
            "name": self.name,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data


# ---------------------------------------------------------------------------
# Component-scoped
# ---------------------------------------------------------------------------

class ConfigurationError(ShinobiError):
    """A configuration layer could not be retrieved or merged."""

    scope = "component"

    def __init__(self, message: str, config_key: str = "", name: str = "",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, name=name, details=details)
        self.config_key = config_key
        if config_key:
            self.details.setdefault("config_key", config_key)


class SchemaValidationError(ShinobiError):
    """Merged configuration violates the component type's schema.

    Attributes:
        issues: List of ValidationIssue (path, rule, message).
    """

    scope = "component"

    def __init__(self, message: str, issues: Optional[List[Any]] = None, name: str = ""):
        super().__init__(message, name=name)
        self.issues = list(issues or [])
        self.details["issues"] = [
            issue.to_dict() if hasattr(issue, "to_dict") else issue
            for issue in self.issues
        ]


class ManifestError(ShinobiError):
    """The service manifest is structurally unusable."""

    scope = "run"


# ---------------------------------------------------------------------------
# Binding-scoped
# ---------------------------------------------------------------------------

class CapabilityNotFoundError(ShinobiError):
    """A binding references a capability its target never published."""

    scope = "binding"

    def __init__(self, component: str, capability: str,
                 available: Optional[List[str]] = None, name: str = ""):
        available = sorted(available or [])
        published = ", ".join(available) if available else "none"
        super().__init__(
            f"Component '{component}' does not publish capability '{capability}' "
            f"(published: {published})",
            name=name,
            details={"component": component, "capability": capability,
                     "available": available},
        )
        self.component = component
        self.capability = capability


class UnsupportedAccessLevelError(ShinobiError):
    """The matched strategy does not recognise the requested access level."""

    scope = "binding"

    def __init__(self, access: str, strategy: str, supported: Optional[List[str]] = None,
                 name: str = ""):
        supported = list(supported or [])
        super().__init__(
            f"Unsupported access level '{access}' for {strategy}. "
            f"Valid values: {', '.join(supported)}",
            name=name,
            details={"access": access, "strategy": strategy, "supported": supported},
        )
        self.access = access
        self.strategy = strategy


class NoBinderFoundError(ShinobiError):
    """No registered strategy handles the (source type, capability) pair."""

    scope = "binding"

    def __init__(self, source_type: str, capability: str, name: str = ""):
        super().__init__(
            f"No binder strategy handles '{source_type}' -> '{capability}'",
            name=name,
            details={"source_type": source_type, "capability": capability},
        )
        self.source_type = source_type
        self.capability = capability


class ComplianceViolationError(ShinobiError):
    """A binding would violate a blocking compliance rule.

    Never downgraded to an advisory action by the resolver.
    """

    scope = "binding"

    def __init__(self, message: str, rule_id: str, framework: str, name: str = "",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, name=name, details=details)
        self.rule_id = rule_id
        self.framework = framework
        self.details.update({"rule_id": rule_id, "framework": framework})


class BindingOptionsError(ShinobiError):
    """Strategy options on a directive are missing or malformed."""

    scope = "binding"


class BindingSkippedError(ShinobiError):
    """A binding was not attempted because its source or target failed."""

    scope = "binding"

    def __init__(self, label: str, component: str, reason: str):
        super().__init__(
            f"Binding {label} skipped: component '{component}' {reason}",
            name=label,
            details={"component": component, "reason": reason},
        )
        self.component = component


# ---------------------------------------------------------------------------
# Programmer errors (raised at registration time, never collected)
# ---------------------------------------------------------------------------

class DuplicateCapabilityError(ShinobiError):
    """The same (component, capability) pair was registered twice."""

    def __init__(self, component: str, capability: str):
        super().__init__(
            f"Capability '{capability}' already registered for component '{component}'",
            name=component,
            details={"component": component, "capability": capability},
        )


class AmbiguousBinderError(ShinobiError):
    """Two strategies claim the same (source type, capability) pair."""

    def __init__(self, strategy: str, existing: str, pairs: List[tuple]):
        rendered = ", ".join(f"{s} -> {c}" for s, c in pairs)
        super().__init__(
            f"Binder strategy '{strategy}' overlaps '{existing}' on: {rendered}",
            details={"strategy": strategy, "existing": existing,
                     "pairs": [list(p) for p in pairs]},
        )
