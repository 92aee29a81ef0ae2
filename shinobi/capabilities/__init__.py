#!/usr/bin/env python3
# CUI // SP-CTI
"""Published component capabilities."""

from shinobi.capabilities.registry import Capability, CapabilityRegistry, is_capability_key  # noqa: F401
