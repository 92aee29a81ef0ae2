#!/usr/bin/env python3
# CUI // SP-CTI
"""Configuration layers and their sources.

The five layers, lowest precedence first:

    1. hardcoded fallback   compiled into the component type
    2. platform defaults    args/platform_defaults.yaml   framework -> type -> values
    3. environment defaults args/environment_defaults.yaml environment -> type -> values
    4. component override   the manifest component's ``config``
    5. policy override      args/policy_overrides.yaml    framework -> type -> values

Layer tables are held by an explicit LayerSources value handed to each
ConfigBuilder; nothing is read from module state. Within a table the ``"*"``
entry applies to every component type and sits under the type's own entry.
String values support ``${VAR:-default}`` expansion at load time.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from shinobi.config.merge import deep_merge
from shinobi.core.errors import ConfigurationError
from shinobi.core.models import ComplianceFramework

logger = logging.getLogger("shinobi.config.layers")

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DEFAULT_ARGS_DIR = BASE_DIR / "args"

PLATFORM_DEFAULTS_FILE = "platform_defaults.yaml"
ENVIRONMENT_DEFAULTS_FILE = "environment_defaults.yaml"
POLICY_OVERRIDES_FILE = "policy_overrides.yaml"

ALL_TYPES = "*"


class LayerName(str, Enum):
    """Layer names in ascending precedence order."""

    HARDCODED_FALLBACK = "hardcoded-fallback"
    PLATFORM_DEFAULTS = "platform-defaults"
    ENVIRONMENT_DEFAULTS = "environment-defaults"
    COMPONENT_OVERRIDE = "component-override"
    POLICY_OVERRIDE = "policy-override"

    @property
    def precedence(self) -> int:
        return list(LayerName).index(self) + 1


@dataclass
class ConfigurationLayer:
    """One named, partial configuration contribution."""

    name: LayerName
    values: Dict[str, Any] = field(default_factory=dict)

    @property
    def precedence(self) -> int:
        return self.name.precedence

    def to_dict(self) -> dict:
        return {"name": self.name.value, "precedence": self.precedence, "values": self.values}


def _expand_env(value):
    """Expand ${VAR:-default} patterns in string values, recursively."""
    if isinstance(value, Mapping):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    if not isinstance(value, str):
        return value
    pattern = r'\$\{([^}]+)\}'

    def replacer(match):
        expr = match.group(1)
        if ":-" in expr:
            var, default = expr.split(":-", 1)
            return os.environ.get(var, default)
        return os.environ.get(expr, match.group(0))
    return re.sub(pattern, replacer, value)


def _require_framework(framework: str, component_name: str = "") -> ComplianceFramework:
    parsed = ComplianceFramework.parse(framework)
    if parsed is None:
        raise ConfigurationError(
            f"Unknown compliance framework '{framework}' "
            f"(valid: {', '.join(ComplianceFramework.values())})",
            config_key="complianceFramework",
            name=component_name,
        )
    return parsed


def _check_table(table: Any, label: str) -> Dict[str, Dict[str, Any]]:
    if table is None:
        return {}
    if not isinstance(table, Mapping):
        raise ConfigurationError(f"{label} must be a mapping, got {type(table).__name__}",
                                 config_key=label)
    for outer, per_type in table.items():
        if per_type is None:
            continue
        if not isinstance(per_type, Mapping):
            raise ConfigurationError(f"{label}.{outer} must be a mapping", config_key=label)
        for type_name, values in per_type.items():
            if values is not None and not isinstance(values, Mapping):
                raise ConfigurationError(f"{label}.{outer}.{type_name} must be a mapping",
                                         config_key=label)
    return {str(k): dict(v or {}) for k, v in table.items()}


class LayerSources:
    """The three externally supplied layer tables (2, 3 and 5)."""

    def __init__(self,
                 platform_defaults: Optional[Mapping[str, Any]] = None,
                 environment_defaults: Optional[Mapping[str, Any]] = None,
                 policy_overrides: Optional[Mapping[str, Any]] = None):
        self.platform_defaults = _check_table(platform_defaults, "platform_defaults")
        self.environment_defaults = _check_table(environment_defaults, "environment_defaults")
        self.policy_overrides = _check_table(policy_overrides, "policy_overrides")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_directory(cls, directory: Optional[Union[str, Path]] = None) -> "LayerSources":
        """Load the layer tables from YAML files in ``directory`` (default: args/)."""
        base = Path(directory) if directory else DEFAULT_ARGS_DIR
        return cls(
            platform_defaults=_load_yaml(base / PLATFORM_DEFAULTS_FILE),
            environment_defaults=_load_yaml(base / ENVIRONMENT_DEFAULTS_FILE),
            policy_overrides=_load_yaml(base / POLICY_OVERRIDES_FILE),
        )

    # ------------------------------------------------------------------
    # Layer lookups
    # ------------------------------------------------------------------

    def platform_layer(self, framework: str, component_type: str,
                       component_name: str = "") -> ConfigurationLayer:
        parsed = _require_framework(framework, component_name)
        values = self._select(self.platform_defaults, parsed.value, component_type)
        return ConfigurationLayer(LayerName.PLATFORM_DEFAULTS, values)

    def environment_layer(self, environment: str, component_type: str) -> ConfigurationLayer:
        if environment not in self.environment_defaults:
            logger.debug("No environment defaults for '%s'", environment)
        values = self._select(self.environment_defaults, environment, component_type)
        return ConfigurationLayer(LayerName.ENVIRONMENT_DEFAULTS, values)

    def policy_layer(self, framework: str, component_type: str,
                     component_name: str = "") -> ConfigurationLayer:
        parsed = _require_framework(framework, component_name)
        values = self._select(self.policy_overrides, parsed.value, component_type)
        return ConfigurationLayer(LayerName.POLICY_OVERRIDE, values)

    @staticmethod
    def _select(table: Mapping[str, Any], key: str, component_type: str) -> Dict[str, Any]:
        per_type = table.get(key) or {}
        return deep_merge(per_type.get(ALL_TYPES) or {}, per_type.get(component_type) or {})

    def to_dict(self) -> dict:
        return {
            "platform_defaults": self.platform_defaults,
            "environment_defaults": self.environment_defaults,
            "policy_overrides": self.policy_overrides,
        }


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load one layer table; a missing file is an empty table."""
    if not path.exists():
        logger.warning("Layer file not found at %s, treating as empty", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse {path.name}: {exc}", config_key=path.name)
    logger.debug("Loaded layer table %s (%d entries)", path.name, len(data))
    return _expand_env(data)
