#!/usr/bin/env python3
# CUI // SP-CTI
"""Parse and validate service.yml manifests.

Reads service.yml from a service directory (or an explicit path), checks its
structure, applies ``SHINOBI_*`` environment overrides, and returns the
ComponentContext, ComponentSpecs and BindingDirectives a synthesis run needs.
Structural problems are reported in ``errors`` rather than raised.

Usage:
    python -m shinobi.project.manifest_loader --dir /path/to/service --json
    python -m shinobi.project.manifest_loader --file /path/to/service.yml --validate
"""

import argparse
import json
import os
import re
import sys
from copy import deepcopy
from pathlib import Path

import yaml

from shinobi.core.models import (
    BindingDirective,
    ComplianceFramework,
    ComponentContext,
    ComponentSpec,
)

MANIFEST_FILENAME = "service.yml"
MANIFEST_VERSION = 1

DEFAULT_ENVIRONMENT = "dev"
DEFAULT_REGION = "us-east-1"
DEFAULT_ACCOUNT_ID = "000000000000"

NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,62}$")
ACCOUNT_PATTERN = re.compile(r"^\d{12}$")

# ── Env-var override mapping ─────────────────────────────────────────────

_ENV_MAP = {
    "SHINOBI_ENVIRONMENT": "environment",
    "SHINOBI_COMPLIANCE_FRAMEWORK": "complianceFramework",
    "SHINOBI_REGION": "region",
    "SHINOBI_ACCOUNT_ID": "accountId",
}


# ── Core functions ───────────────────────────────────────────────────────

def load_manifest(directory: str = None, file_path: str = None) -> dict:
    """Load and parse service.yml from a directory or explicit path.

    Args:
        directory: Directory containing service.yml (defaults to cwd).
        file_path: Explicit path to a manifest file (overrides directory).

    Returns:
        dict with keys:
            raw (dict): Original yaml content.
            normalized (dict): Manifest with defaults and env overrides applied.
            context (ComponentContext | None): None when the header is invalid.
            components (list[ComponentSpec]): Declared components.
            bindings (list[BindingDirective]): Declared binds, in manifest order.
            file_path (str): Resolved file path.
            valid (bool): True if no errors.
            errors (list[str]): Validation errors.
            warnings (list[str]): Validation warnings.
    """
    if file_path:
        manifest_path = Path(file_path)
    else:
        base = Path(directory) if directory else Path.cwd()
        manifest_path = base / MANIFEST_FILENAME

    result = _empty_result(str(manifest_path))

    if not manifest_path.exists():
        result["errors"].append(f"Manifest not found: {manifest_path}")
        return result

    try:
        raw = yaml.safe_load(manifest_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        result["errors"].append(f"YAML parse error: {exc}")
        return result

    return parse_manifest(raw, source=str(manifest_path))


def parse_manifest(raw, source: str = "<inline>", apply_env: bool = True) -> dict:
    """Validate an already-parsed manifest mapping. Same result shape as load_manifest."""
    result = _empty_result(source)
    if not isinstance(raw, dict):
        result["errors"].append("Manifest root must be a mapping")
        return result
    result["raw"] = raw

    version = raw.get("version")
    if version is not None and version != MANIFEST_VERSION:
        result["warnings"].append(
            f"Manifest version {version} differs from expected {MANIFEST_VERSION}"
        )

    normalized = _apply_defaults(deepcopy(raw), result["warnings"])
    if apply_env:
        normalized = _apply_env_overrides(normalized)
    result["normalized"] = normalized

    errors, warnings = validate_manifest(normalized)
    result["errors"] += errors
    result["warnings"] += warnings
    result["valid"] = not result["errors"]

    if not any(e.startswith("header:") for e in errors):
        result["context"] = _build_context(normalized)
    result["components"], result["bindings"] = _build_graph(normalized)
    return result


def _empty_result(file_path: str) -> dict:
    return {
        "raw": {},
        "normalized": {},
        "context": None,
        "components": [],
        "bindings": [],
        "file_path": file_path,
        "valid": False,
        "errors": [],
        "warnings": [],
    }


def _apply_defaults(config: dict, warnings: list) -> dict:
    if not config.get("environment"):
        warnings.append(f"No environment set, defaulting to '{DEFAULT_ENVIRONMENT}'")
        config["environment"] = DEFAULT_ENVIRONMENT
    if not config.get("region"):
        config["region"] = DEFAULT_REGION
    if config.get("accountId") in (None, ""):
        config["accountId"] = DEFAULT_ACCOUNT_ID
    if isinstance(config["accountId"], int) and not isinstance(config["accountId"], bool):
        # Unquoted YAML account ids lose their leading zeros.
        config["accountId"] = str(config["accountId"]).zfill(12)
        warnings.append("accountId should be quoted in YAML")
    if config.get("labels") is None:
        config["labels"] = {}
    config.setdefault("components", [])
    return config


def _apply_env_overrides(config: dict) -> dict:
    """Apply SHINOBI_* environment variable overrides."""
    for env_var, key in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val is not None:
            config[key] = val
    return config


def validate_manifest(config: dict) -> tuple:
    """Validate structure and cross-references.

    Header problems are prefixed ``header:`` because they prevent building a
    ComponentContext.

    Returns:
        (errors: list[str], warnings: list[str])
    """
    errors = []
    warnings = []

    # Header
    for key in ("service", "owner"):
        if not isinstance(config.get(key), str) or not config.get(key):
            errors.append(f"header: {key} is required")
    if isinstance(config.get("service"), str) and config["service"] \
            and not NAME_PATTERN.match(config["service"]):
        errors.append(f"header: service '{config['service']}' must match {NAME_PATTERN.pattern}")

    framework = config.get("complianceFramework")
    if not framework:
        errors.append(
            f"header: complianceFramework is required "
            f"(valid: {', '.join(ComplianceFramework.values())})"
        )
    elif ComplianceFramework.parse(framework) is None:
        errors.append(
            f"header: unknown complianceFramework '{framework}' "
            f"(valid: {', '.join(ComplianceFramework.values())})"
        )

    if not ACCOUNT_PATTERN.match(str(config.get("accountId", ""))):
        errors.append(f"header: accountId '{config.get('accountId')}' must be 12 digits")
    if not isinstance(config.get("labels"), dict):
        errors.append("header: labels must be a mapping")

    # Components
    components = config.get("components")
    if not isinstance(components, list):
        errors.append("components must be a list")
        return errors, warnings
    if not components:
        warnings.append("Manifest declares no components")

    names = []
    for index, component in enumerate(components):
        where = f"components[{index}]"
        if not isinstance(component, dict):
            errors.append(f"{where} must be a mapping")
            continue
        name = component.get("name")
        if not isinstance(name, str) or not NAME_PATTERN.match(name):
            errors.append(f"{where}.name '{name}' must match {NAME_PATTERN.pattern}")
        elif name in names:
            errors.append(f"Duplicate component name '{name}'")
        else:
            names.append(name)
        if not isinstance(component.get("type"), str) or not component.get("type"):
            errors.append(f"{where}.type is required")
        if not isinstance(component.get("config", {}), dict):
            errors.append(f"{where}.config must be a mapping")
        if not isinstance(component.get("binds", []), list):
            errors.append(f"{where}.binds must be a list")

    # Binds
    for component in components:
        if not isinstance(component, dict) or not isinstance(component.get("binds", []), list):
            continue
        source = component.get("name")
        for index, bind in enumerate(component.get("binds", [])):
            where = f"{source}.binds[{index}]"
            if not isinstance(bind, dict):
                errors.append(f"{where} must be a mapping")
                continue
            for key in ("to", "capability", "access"):
                if not isinstance(bind.get(key), str) or not bind.get(key):
                    errors.append(f"{where}.{key} is required")
            target = bind.get("to")
            if isinstance(target, str) and target:
                if target == source:
                    errors.append(f"{where} binds '{source}' to itself")
                elif target not in names:
                    errors.append(f"{where} targets undeclared component '{target}'")
            for key in ("env", "options"):
                if not isinstance(bind.get(key, {}), dict):
                    errors.append(f"{where}.{key} must be a mapping")
            env = bind.get("env", {})
            if isinstance(env, dict):
                for field_name, var in env.items():
                    if not isinstance(var, str) or not re.match(r"^[A-Z_][A-Z0-9_]*$", var):
                        errors.append(f"{where}.env.{field_name} '{var}' is not a valid variable name")

    return errors, warnings


def _build_context(config: dict) -> ComponentContext:
    return ComponentContext(
        service_name=config["service"],
        owner=config["owner"],
        environment=str(config["environment"]),
        compliance_framework=config["complianceFramework"],
        region=str(config["region"]),
        account_id=str(config["accountId"]),
        tags={str(k): str(v) for k, v in (config.get("labels") or {}).items()},
    )


def _build_graph(config: dict) -> tuple:
    """ComponentSpecs and BindingDirectives for every well-formed entry."""
    components, bindings = [], []
    entries = config.get("components")
    if not isinstance(entries, list):
        return components, bindings
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("name") or not entry.get("type"):
            continue
        config_values = entry.get("config") or {}
        if not isinstance(config_values, dict):
            continue
        components.append(ComponentSpec(name=entry["name"], type=entry["type"], config=config_values))
        binds = entry.get("binds") or []
        if not isinstance(binds, list):
            continue
        for bind in binds:
            if not isinstance(bind, dict) or not all(bind.get(k) for k in ("to", "capability", "access")):
                continue
            env = bind.get("env") or {}
            options = bind.get("options") or {}
            bindings.append(BindingDirective(
                source=entry["name"],
                target=bind["to"],
                capability=bind["capability"],
                access=bind["access"],
                env=env if isinstance(env, dict) else {},
                options=options if isinstance(options, dict) else {},
            ))
    return components, bindings


# ── CLI ──────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Parse and validate service.yml manifests")
    parser.add_argument("--dir", help="Service directory containing service.yml")
    parser.add_argument("--file", help="Explicit path to service.yml")
    parser.add_argument("--validate", action="store_true",
                        help="Validate only, print errors/warnings")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    args = parser.parse_args()

    result = load_manifest(directory=args.dir, file_path=args.file)

    if args.json:
        output = dict(result)
        output["context"] = result["context"].to_dict() if result["context"] else None
        output["components"] = [c.to_dict() for c in result["components"]]
        output["bindings"] = [b.to_dict() for b in result["bindings"]]
        print(json.dumps(output, indent=2, default=str))
        return 0 if result["valid"] else 1

    for err in result["errors"]:
        print(f"ERROR: {err}")
    for warn in result["warnings"]:
        print(f"WARNING: {warn}")
    if result["valid"]:
        if args.validate:
            print("Manifest is valid.")
        else:
            print(json.dumps(result["normalized"], indent=2, default=str))
    return 0 if result["valid"] else 1


if __name__ == "__main__":
    sys.exit(main())
