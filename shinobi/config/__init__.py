#!/usr/bin/env python3
# CUI // SP-CTI
"""Configuration resolution: layer sources, deep merge, component types, ConfigBuilder."""

from shinobi.config.component_types import (  # noqa: F401
    ComponentType,
    ComponentTypeRegistry,
    default_component_types,
)
from shinobi.config.config_builder import ConfigBuilder, ResolvedConfig  # noqa: F401
from shinobi.config.layers import ConfigurationLayer, LayerName, LayerSources  # noqa: F401
from shinobi.config.merge import deep_merge, merge_layers, precedence_trace  # noqa: F401
