#!/usr/bin/env python3
# CUI // SP-CTI
"""Binder resolver: BindingDirective -> BindingResult.

Looks up the capability the target published, selects the one strategy
that handles (source type, capability), and executes it. Resolution is
synchronous and returns a descriptor; applying it is the caller's job.
"""

import logging
from typing import List, Optional

from shinobi.binders.base import BindingContext
from shinobi.binders.compliance import CompliancePolicy
from shinobi.binders.registry import BinderRegistry, default_registry
from shinobi.capabilities.registry import CapabilityRegistry
from shinobi.core.models import BindingDirective, BindingResult, ComponentContext

logger = logging.getLogger("shinobi.binders.resolver")


class BinderResolver:
    """Resolves binding directives against one run's capability registry."""

    def __init__(self, capabilities: CapabilityRegistry,
                 registry: Optional[BinderRegistry] = None,
                 policy: Optional[CompliancePolicy] = None):
        self.capabilities = capabilities
        self.registry = registry or default_registry()
        self.policy = policy or CompliancePolicy()

    def resolve(self, directive: BindingDirective, source_type: str, context: ComponentContext,
                source_security_groups: Optional[List[str]] = None) -> BindingResult:
        """Resolve one directive.

        Raises:
            CapabilityNotFoundError: the target never published the capability.
            NoBinderFoundError: no strategy handles (source type, capability).
            UnsupportedAccessLevelError: the strategy does not know the access level.
            ComplianceViolationError: a blocking compliance rule was hit.
            BindingOptionsError: directive env/options are malformed.
        """
        capability = self.capabilities.lookup(directive.target, directive.capability,
                                              name=directive.label)
        strategy = self.registry.find(source_type, directive.capability, name=directive.label)
        ctx = BindingContext(
            directive=directive,
            source_type=source_type,
            target_type=capability.component_type,
            capability_data=capability.data,
            context=context,
            source_security_groups=list(source_security_groups or []),
            policy=self.policy,
        )
        logger.debug("Resolving %s with %s", directive.label, strategy.name)
        return strategy.bind(ctx)
