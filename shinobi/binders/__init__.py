#!/usr/bin/env python3
# CUI // SP-CTI
"""Binder strategies, their registry, the compliance policy and the resolver."""

from shinobi.binders.base import BinderStrategy, BindingContext, ComplianceFinding  # noqa: F401
from shinobi.binders.compliance import CompliancePolicy  # noqa: F401
from shinobi.binders.registry import BinderRegistry, default_registry  # noqa: F401
from shinobi.binders.resolver import BinderResolver  # noqa: F401
