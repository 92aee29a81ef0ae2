#!/usr/bin/env python3
# CUI // SP-CTI
"""Schema validation for resolved component configuration.

Checks a merged configuration against the component type's declared schema:
a tree of JSON-schema-like descriptors (type, enum, pattern, length and
numeric bounds, nested properties, required, additionalProperties, items).

Validation never mutates its input. Strict by default: any issue rejects the
configuration. The one sanctioned leniency, replacing an invalid enum value
with the schema default, must be requested with
``ValidationPolicy(lenient_enums=True)`` and is reported as a warning.

Usage:
    from shinobi.schemas.validator import SchemaValidator

    result = SchemaValidator().validate(schema, config)
    if not result.valid:
        for issue in result.errors:
            print(issue.path, issue.rule, issue.message)
"""

import logging
import re
from copy import deepcopy
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from shinobi.core.errors import SchemaValidationError

logger = logging.getLogger("shinobi.schemas.validator")

_TYPE_NAMES = ("object", "array", "string", "number", "integer", "boolean", "null")


@dataclass
class ValidationIssue:
    """One schema violation (or leniency warning) at a field path."""

    path: str
    rule: str
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ValidationPolicy:
    lenient_enums: bool = False


@dataclass
class ValidationResult:
    valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    value: Any = None

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _display(path: str) -> str:
    return path or "(root)"


def _matches_type(value: Any, type_name: str) -> bool:
    if type_name == "null":
        return value is None
    if type_name == "boolean":
        return isinstance(value, bool)
    if type_name == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if type_name == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if type_name == "string":
        return isinstance(value, str)
    if type_name == "array":
        return isinstance(value, (list, tuple))
    if type_name == "object":
        return isinstance(value, Mapping)
    return False


def _enum_contains(allowed: List[Any], value: Any) -> bool:
    # True == 1 in Python; keep booleans and numbers apart.
    for candidate in allowed:
        if candidate == value and isinstance(candidate, bool) == isinstance(value, bool):
            return True
    return False


class SchemaValidator:
    """Validates configuration objects against type-descriptor trees."""

    def __init__(self, policy: Optional[ValidationPolicy] = None):
        self.policy = policy or ValidationPolicy()
        self._pattern_cache: Dict[str, "re.Pattern"] = {}

    def validate(self, schema: Mapping[str, Any], data: Any) -> ValidationResult:
        """Validate ``data`` against ``schema``.

        Returns a ValidationResult whose ``value`` is a deep copy of ``data``
        (with lenient enum substitutions applied, when enabled).
        """
        value = deepcopy(data)
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []
        value = self._check(schema, value, "", errors, warnings)
        return ValidationResult(valid=not errors, errors=errors, warnings=warnings, value=value)

    def assert_valid(self, schema: Mapping[str, Any], data: Any, name: str = "") -> ValidationResult:
        """Validate and raise SchemaValidationError carrying every issue on failure."""
        result = self.validate(schema, data)
        if not result.valid:
            summary = "; ".join(f"{_display(i.path)}: {i.message}" for i in result.errors[:5])
            if len(result.errors) > 5:
                summary += f"; ... ({len(result.errors) - 5} more)"
            raise SchemaValidationError(
                f"Configuration for '{name or 'component'}' failed validation: {summary}",
                issues=result.errors,
                name=name,
            )
        for warning in result.warnings:
            logger.warning("Lenient validation for %s at %s: %s",
                           name or "component", _display(warning.path), warning.message)
        return result

    # ------------------------------------------------------------------
    # Recursive checks
    # ------------------------------------------------------------------

    def _check(self, schema: Mapping[str, Any], value: Any, path: str,
               errors: List[ValidationIssue], warnings: List[ValidationIssue]) -> Any:
        declared = schema.get("type")
        if declared is not None:
            types = declared if isinstance(declared, (list, tuple)) else [declared]
            unknown = [t for t in types if t not in _TYPE_NAMES]
            if unknown:
                errors.append(ValidationIssue(path, "schema",
                                              f"unknown schema type(s): {', '.join(unknown)}"))
                return value
            if not any(_matches_type(value, t) for t in types):
                errors.append(ValidationIssue(
                    path, "type",
                    f"expected {' or '.join(types)}, got {type(value).__name__}"))
                return value

        if "enum" in schema and not _enum_contains(list(schema["enum"]), value):
            allowed = ", ".join(repr(v) for v in schema["enum"])
            if self.policy.lenient_enums and "default" in schema:
                warnings.append(ValidationIssue(
                    path, "enum",
                    f"{value!r} is not one of [{allowed}]; using default {schema['default']!r}"))
                return deepcopy(schema["default"])
            errors.append(ValidationIssue(path, "enum", f"{value!r} is not one of [{allowed}]"))
            return value

        if isinstance(value, str):
            self._check_string(schema, value, path, errors)
        elif _matches_type(value, "number"):
            self._check_number(schema, value, path, errors)
        elif isinstance(value, (list, tuple)):
            value = self._check_array(schema, list(value), path, errors, warnings)
        elif isinstance(value, Mapping):
            value = self._check_object(schema, dict(value), path, errors, warnings)
        return value

    def _check_string(self, schema, value, path, errors):
        if "minLength" in schema and len(value) < schema["minLength"]:
            errors.append(ValidationIssue(path, "minLength",
                                          f"length {len(value)} is below minimum {schema['minLength']}"))
        if "maxLength" in schema and len(value) > schema["maxLength"]:
            errors.append(ValidationIssue(path, "maxLength",
                                          f"length {len(value)} exceeds maximum {schema['maxLength']}"))
        pattern = schema.get("pattern")
        if pattern:
            compiled = self._pattern_cache.get(pattern)
            if compiled is None:
                compiled = self._pattern_cache[pattern] = re.compile(pattern)
            if not compiled.search(value):
                errors.append(ValidationIssue(path, "pattern",
                                              f"{value!r} does not match pattern {pattern!r}"))

    def _check_number(self, schema, value, path, errors):
        if "minimum" in schema and value < schema["minimum"]:
            errors.append(ValidationIssue(path, "minimum",
                                          f"{value} is below minimum {schema['minimum']}"))
        if "maximum" in schema and value > schema["maximum"]:
            errors.append(ValidationIssue(path, "maximum",
                                          f"{value} exceeds maximum {schema['maximum']}"))

    def _check_array(self, schema, value, path, errors, warnings):
        if "minItems" in schema and len(value) < schema["minItems"]:
            errors.append(ValidationIssue(path, "minItems",
                                          f"{len(value)} items, minimum is {schema['minItems']}"))
        if "maxItems" in schema and len(value) > schema["maxItems"]:
            errors.append(ValidationIssue(path, "maxItems",
                                          f"{len(value)} items, maximum is {schema['maxItems']}"))
        item_schema = schema.get("items")
        if isinstance(item_schema, Mapping):
            value = [
                self._check(item_schema, item, f"{path}[{index}]", errors, warnings)
                for index, item in enumerate(value)
            ]
        return value

    def _check_object(self, schema, value, path, errors, warnings):
        properties = schema.get("properties", {})

        for key in schema.get("required", []):
            if value.get(key) is None:
                errors.append(ValidationIssue(_join(path, key), "required",
                                              "required field is missing or null"))

        for key in sorted(value, key=str):
            child_path = _join(path, key)
            child = value[key]
            if key in properties:
                # An explicit null means "unset"; only `required` cares about it.
                if child is None and not _allows_null(properties[key]):
                    continue
                value[key] = self._check(properties[key], child, child_path, errors, warnings)
                continue

            extra = schema.get("additionalProperties", True)
            if extra is False:
                errors.append(ValidationIssue(child_path, "additionalProperties",
                                              f"unexpected field '{key}'"))
            elif isinstance(extra, Mapping):
                value[key] = self._check(extra, child, child_path, errors, warnings)
        return value


def _allows_null(schema: Mapping[str, Any]) -> bool:
    declared = schema.get("type")
    if declared is None:
        return True
    types = declared if isinstance(declared, (list, tuple)) else [declared]
    return "null" in types
