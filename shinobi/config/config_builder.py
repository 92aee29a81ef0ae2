#!/usr/bin/env python3
# CUI // SP-CTI
"""ConfigBuilder: five-layer precedence merge plus schema validation.

Usage:
    from shinobi.config import ConfigBuilder, LayerSources

    builder = ConfigBuilder(context, spec, LayerSources.from_directory())
    resolved = builder.build()
    print(resolved.values["memorySize"])
    print(builder.explain()["conflicts"])

Layers are always merged in the fixed order hardcoded-fallback,
platform-defaults, environment-defaults, component-override,
policy-override. The compliance framework must be known before anything is
fetched; there is no implicit framework.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from shinobi.config.component_types import ComponentTypeRegistry, default_component_types
from shinobi.config.layers import ConfigurationLayer, LayerName, LayerSources, _require_framework
from shinobi.config.merge import conflicts, merge_layers, precedence_trace
from shinobi.core.errors import ConfigurationError
from shinobi.core.models import ComponentContext, ComponentSpec
from shinobi.schemas.validator import SchemaValidator, ValidationIssue

logger = logging.getLogger("shinobi.config.builder")


@dataclass
class ResolvedConfig:
    """Validated configuration of one component, with its provenance."""

    component_name: str
    component_type: str
    compliance_framework: str
    environment: str
    values: Dict[str, Any]
    layers: List[ConfigurationLayer] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    def trace(self) -> Dict[str, Dict[str, Any]]:
        return precedence_trace([(layer.name.value, layer.values) for layer in self.layers])

    def fingerprint(self) -> str:
        canonical = json.dumps(self.values, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]

    def to_dict(self, include_layers: bool = False) -> dict:
        data = {
            "component": self.component_name,
            "type": self.component_type,
            "compliance_framework": self.compliance_framework,
            "environment": self.environment,
            "values": self.values,
            "fingerprint": self.fingerprint(),
            "warnings": [w.to_dict() for w in self.warnings],
        }
        if include_layers:
            data["layers"] = [layer.to_dict() for layer in self.layers]
        return data


class ConfigBuilder:
    """Builds the final configuration for a single component."""

    def __init__(self, context: ComponentContext, spec: ComponentSpec,
                 sources: Optional[LayerSources] = None,
                 component_types: Optional[ComponentTypeRegistry] = None,
                 validator: Optional[SchemaValidator] = None):
        self.context = context
        self.spec = spec
        self.sources = sources or LayerSources()
        self.component_types = component_types or default_component_types()
        self.validator = validator or SchemaValidator()

    def layers(self) -> List[ConfigurationLayer]:
        """Fetch all five layers in ascending precedence order."""
        if not self.context.compliance_framework:
            raise ConfigurationError("Compliance framework is required before building configuration",
                                     config_key="complianceFramework", name=self.spec.name)
        framework = _require_framework(self.context.compliance_framework, self.spec.name).value
        component_type = self.component_types.get(self.spec.type, self.spec.name)

        return [
            ConfigurationLayer(LayerName.HARDCODED_FALLBACK, component_type.hardcoded_fallbacks()),
            self.sources.platform_layer(framework, self.spec.type, self.spec.name),
            self.sources.environment_layer(self.context.environment, self.spec.type),
            ConfigurationLayer(LayerName.COMPONENT_OVERRIDE, self.spec.config_dict()),
            self.sources.policy_layer(framework, self.spec.type, self.spec.name),
        ]

    def build(self) -> ResolvedConfig:
        """Merge the layers and validate the result.

        Raises:
            ConfigurationError: unknown framework or component type, or a
                layer that is not a mapping.
            SchemaValidationError: the merged configuration violates the
                component type's schema.
        """
        layers = self.layers()
        for layer in layers:
            if not isinstance(layer.values, dict):
                raise ConfigurationError(f"Layer {layer.name.value} is not a mapping",
                                         config_key=layer.name.value, name=self.spec.name)

        merged = merge_layers(layer.values for layer in layers)
        schema = self.component_types.get(self.spec.type, self.spec.name).schema
        result = self.validator.assert_valid(schema, merged, name=self.spec.name)

        logger.debug("Resolved %s (%s) under %s/%s", self.spec.name, self.spec.type,
                     self.context.compliance_framework, self.context.environment)
        return ResolvedConfig(
            component_name=self.spec.name,
            component_type=self.spec.type,
            compliance_framework=self.context.compliance_framework,
            environment=self.context.environment,
            values=result.value,
            layers=layers,
            warnings=list(result.warnings),
        )

    def explain(self) -> Dict[str, Any]:
        """Per-key precedence trace and the keys more than one layer set.

        Does not validate; a configuration that fails validation can still be
        explained.
        """
        layers = self.layers()
        trace = precedence_trace([(layer.name.value, layer.values) for layer in layers])
        return {
            "component": self.spec.name,
            "type": self.spec.type,
            "layers": [layer.to_dict() for layer in layers],
            "trace": trace,
            "conflicts": conflicts(trace),
            "merged": merge_layers(layer.values for layer in layers),
        }
