#!/usr/bin/env python3
# CUI // SP-CTI
"""Binder strategy base class.

A strategy declares an explicit compatibility matrix of
(source component type, capability) pairs and turns one BindingDirective
into a BindingResult in four steps:

    1. environment variables  directive ``env`` overrides, else default names
    2. permissions            access level -> fixed action list
    3. network rules          only for network-bound capabilities
    4. compliance             fedramp-moderate / fedramp-high restrictions

Strategies are stateless; ``bind`` has no side effects.
"""

import ipaddress
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from shinobi.binders.compliance import (
    AUDIT_LOGGING,
    SECURE_TRANSPORT,
    UNRESTRICTED_NETWORK,
    CompliancePolicy,
)
from shinobi.core.errors import BindingOptionsError, UnsupportedAccessLevelError
from shinobi.core.models import (
    BindingDirective,
    BindingResult,
    ComplianceAction,
    ComplianceFramework,
    ComponentContext,
    NetworkRule,
    PermissionStatement,
)

logger = logging.getLogger("shinobi.binders")

COMPUTE_SOURCE_TYPES = ("lambda-api", "lambda-worker")


def env_prefix(component_name: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", component_name).strip("_").upper()


@dataclass
class ComplianceFinding:
    """A detected deviation; the policy decides whether it blocks."""

    rule_id: str
    message: str
    remediation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BindingContext:
    """Everything a strategy may read while binding one directive."""

    directive: BindingDirective
    source_type: str
    target_type: str
    capability_data: Dict[str, Any]
    context: ComponentContext
    source_security_groups: List[str] = field(default_factory=list)
    policy: CompliancePolicy = field(default_factory=CompliancePolicy)

    @property
    def capability(self) -> str:
        return self.directive.capability

    @property
    def access(self) -> str:
        return self.directive.access

    @property
    def framework(self) -> Optional[ComplianceFramework]:
        return self.context.framework

    @property
    def prefix(self) -> str:
        return env_prefix(self.directive.target)

    def resource(self, key: str = "arn", default: Any = None) -> Any:
        return (self.capability_data.get("resources") or {}).get(key, default)


class BinderStrategy(ABC):
    """Base class for binder strategies."""

    name = ""
    capabilities: Tuple[str, ...] = ()
    source_types: Tuple[str, ...] = COMPUTE_SOURCE_TYPES
    # capability -> access level -> actions
    access_actions: Dict[str, Dict[str, List[str]]] = {}

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def compatibility(self) -> List[Tuple[str, str]]:
        return [(source, capability) for source in self.source_types for capability in self.capabilities]

    def can_handle(self, source_type: str, capability: str) -> bool:
        return (source_type, capability) in self.compatibility()

    def supported_access(self, capability: str) -> List[str]:
        return list(self.access_actions.get(capability, {}))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def bind(self, ctx: BindingContext) -> BindingResult:
        result = BindingResult(directive=ctx.directive, strategy=self.name)
        result.environment_variables = self.environment_variables(ctx)
        result.permissions = self.permissions(ctx)
        result.network_rules = self.network_rules(ctx)
        self.apply_compliance_restrictions(ctx, result)
        result.metadata.update(self.metadata(ctx))
        logger.debug("%s bound %s (%s): %d env, %d statements, %d rules, %d actions",
                     self.name, ctx.directive.label, ctx.access, len(result.environment_variables),
                     len(result.permissions), len(result.network_rules),
                     len(result.compliance_actions))
        return result

    @abstractmethod
    def default_environment(self, ctx: BindingContext) -> Dict[str, Tuple[str, Any]]:
        """Env field -> (default variable name, value). None values are skipped."""

    def environment_variables(self, ctx: BindingContext) -> Dict[str, str]:
        defaults = self.default_environment(ctx)
        overrides = dict(ctx.directive.env)
        unknown = sorted(set(overrides) - set(defaults))
        if unknown:
            raise BindingOptionsError(
                f"Unknown env field(s) {', '.join(unknown)} for {self.name}; "
                f"valid: {', '.join(sorted(defaults))}",
                name=ctx.directive.label,
            )
        env: Dict[str, str] = {}
        for env_field, (default_name, value) in defaults.items():
            if value is None:
                continue
            env[overrides.get(env_field, default_name)] = str(value)
        return env

    def actions_for(self, ctx: BindingContext) -> List[str]:
        table = self.access_actions.get(ctx.capability, {})
        if ctx.access not in table:
            raise UnsupportedAccessLevelError(ctx.access, f"{self.name} ({ctx.capability})",
                                              supported=list(table), name=ctx.directive.label)
        return list(table[ctx.access])

    def conditions(self, ctx: BindingContext) -> Dict[str, Dict[str, Any]]:
        conditions: Dict[str, Dict[str, Any]] = {
            "StringEquals": {"aws:RequestedRegion": ctx.context.region},
        }
        if ctx.framework is not None and ctx.framework.is_fedramp:
            conditions["Bool"] = {"aws:SecureTransport": "true"}
        return conditions

    def resources(self, ctx: BindingContext) -> List[str]:
        arn = ctx.resource("arn")
        return [arn] if arn else []

    def permissions(self, ctx: BindingContext) -> List[PermissionStatement]:
        return [PermissionStatement(
            actions=self.actions_for(ctx),
            resources=self.resources(ctx),
            conditions=self.conditions(ctx),
            description=f"{ctx.access} access from {ctx.directive.source} to {ctx.directive.target}",
            compliance_requirement=f"{self.name}_{ctx.access}",
        )]

    def network_rules(self, ctx: BindingContext) -> List[NetworkRule]:
        return []

    def metadata(self, ctx: BindingContext) -> Dict[str, Any]:
        return {}

    # ------------------------------------------------------------------
    # Network helpers
    # ------------------------------------------------------------------

    def allowed_cidrs(self, ctx: BindingContext) -> List[str]:
        cidrs = ctx.directive.option("allowedCidrs", [])
        if not isinstance(cidrs, list) or not all(isinstance(c, str) for c in cidrs):
            raise BindingOptionsError("options.allowedCidrs must be a list of CIDR strings",
                                      name=ctx.directive.label)
        normalised = []
        for cidr in cidrs:
            try:
                normalised.append(str(ipaddress.ip_network(cidr, strict=False)))
            except ValueError:
                raise BindingOptionsError(f"Invalid CIDR '{cidr}' in options.allowedCidrs",
                                          name=ctx.directive.label) from None
        return normalised

    def connection_rules(self, ctx: BindingContext, port: int) -> List[NetworkRule]:
        """Ingress on the target's groups and egress on the source's groups."""
        source, target = ctx.directive.source, ctx.directive.target
        target_groups = list(ctx.capability_data.get("securityGroups") or [])
        source_groups = list(ctx.source_security_groups)
        cidrs = self.allowed_cidrs(ctx)
        if not target_groups:
            raise BindingOptionsError(f"Target '{target}' publishes no security groups",
                                      name=ctx.directive.label)
        if not source_groups and not cidrs:
            raise BindingOptionsError(
                f"Source '{source}' has no network identity; enable vpc on it "
                f"or set options.allowedCidrs",
                name=ctx.directive.label,
            )

        rules: List[NetworkRule] = []
        for target_group in target_groups:
            for source_group in source_groups:
                rules.append(NetworkRule(
                    direction="ingress",
                    peer={"kind": "security-group", "id": source_group},
                    port=port,
                    description=f"Allow {source} to reach {target}",
                    security_group=target_group,
                ))
            for cidr in cidrs:
                rules.append(NetworkRule(
                    direction="ingress",
                    peer={"kind": "cidr", "cidr": cidr},
                    port=port,
                    description=f"Allow {cidr} to reach {target}",
                    security_group=target_group,
                ))
        for source_group in source_groups:
            rules.append(NetworkRule(
                direction="egress",
                peer={"kind": "security-group", "id": target_groups[0]},
                port=port,
                description=f"Allow outbound from {source} to {target}",
                security_group=source_group,
            ))
        return rules

    # ------------------------------------------------------------------
    # Compliance
    # ------------------------------------------------------------------

    def compliance_findings(self, ctx: BindingContext, result: BindingResult) -> List[ComplianceFinding]:
        return []

    def apply_compliance_restrictions(self, ctx: BindingContext, result: BindingResult) -> None:
        """Append mandatory actions and run findings through the policy.

        Raises:
            ComplianceViolationError: a finding whose rule blocks under the
                context's framework.
        """
        framework = ctx.framework
        if framework is None or not framework.is_fedramp:
            return

        result.compliance_actions.append(ComplianceAction(
            rule_id=SECURE_TRANSPORT,
            severity="info",
            message="Permissions require aws:SecureTransport",
            framework=framework.value,
        ))
        if framework is ComplianceFramework.FEDRAMP_HIGH:
            result.compliance_actions.append(ComplianceAction(
                rule_id=AUDIT_LOGGING,
                severity="info",
                message=f"Access from {ctx.directive.source} to {ctx.directive.target} "
                        f"must be captured in audit logs",
                framework=framework.value,
            ))

        findings = [
            ComplianceFinding(
                rule_id=UNRESTRICTED_NETWORK,
                message=f"{rule.direction.capitalize()} rule on {rule.security_group or ctx.directive.target} "
                        f"allows unrestricted access from {rule.peer.get('cidr')} "
                        f"under {framework.value}",
                remediation="Restrict the rule to the source component's security group",
                metadata={"rule": rule.to_dict()},
            )
            for rule in result.network_rules if rule.is_unrestricted
        ]
        findings.extend(self.compliance_findings(ctx, result))

        for finding in findings:
            action = ctx.policy.evaluate(framework.value, finding.rule_id, finding.message,
                                         name=ctx.directive.label, remediation=finding.remediation,
                                         metadata=finding.metadata)
            if action is not None:
                result.compliance_actions.append(action)
