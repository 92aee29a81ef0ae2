#!/usr/bin/env python3
# CUI // SP-CTI
"""Synthesis planner: one manifest in, one report out.

Runs the three phases of a synthesis run in order:

    1. resolve every component's configuration (ConfigBuilder)
    2. publish each resolved component's capabilities
    3. resolve every binding directive (BinderResolver)

Component failures do not stop sibling components and binding failures do
not stop sibling bindings. Every failure is collected into the report; the
run succeeds only when there are none. The planner returns descriptors and
never touches real infrastructure.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from shinobi.audit.audit_logger import AuditTrail
from shinobi.binders.compliance import COMPLIANCE_POLICY_FILE, CompliancePolicy
from shinobi.binders.registry import BinderRegistry, default_registry
from shinobi.binders.resolver import BinderResolver
from shinobi.capabilities.registry import CapabilityRegistry
from shinobi.config.component_types import ComponentTypeRegistry, default_component_types
from shinobi.config.config_builder import ConfigBuilder, ResolvedConfig
from shinobi.config.layers import DEFAULT_ARGS_DIR, LayerSources
from shinobi.core.correlation import (
    clear_correlation_id,
    deterministic_run_id,
    get_correlation_id,
    set_correlation_id,
)
from shinobi.core.errors import BindingSkippedError, ConfigurationError, ManifestError, ShinobiError
from shinobi.core.models import BindingDirective, BindingResult, ComponentContext, ComponentSpec
from shinobi.schemas.validator import SchemaValidator, ValidationPolicy

logger = logging.getLogger("shinobi.synthesis.planner")

ACTOR = "shinobi-planner"


@dataclass
class SynthesisReport:
    """Everything one synthesis run produced, including every failure."""

    run_id: str
    context: ComponentContext
    resolved: Dict[str, ResolvedConfig] = field(default_factory=dict)
    capabilities: CapabilityRegistry = field(default_factory=CapabilityRegistry)
    bindings: List[BindingResult] = field(default_factory=list)
    errors: List[ShinobiError] = field(default_factory=list)
    audit_events: List[dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def errors_for(self, name: str) -> List[ShinobiError]:
        return [e for e in self.errors if e.name == name]

    def summary(self) -> dict:
        return {
            "components_resolved": len(self.resolved),
            "components_failed": sum(1 for e in self.errors if e.scope == "component"),
            "bindings_applied": len(self.bindings),
            "bindings_failed": sum(1 for e in self.errors if e.scope == "binding"),
            "errors": len(self.errors),
            "compliance_actions": sum(len(b.compliance_actions) for b in self.bindings),
        }

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "success": self.success,
            "context": self.context.to_dict(),
            "summary": self.summary(),
            "components": {name: rc.to_dict() for name, rc in self.resolved.items()},
            "capabilities": self.capabilities.to_dict(),
            "bindings": [b.to_dict() for b in self.bindings],
            "errors": [e.to_dict() for e in self.errors],
            "audit": list(self.audit_events),
        }


class SynthesisPlanner:
    """Drives config resolution and binding for one manifest at a time.

    The planner holds only configuration. Each ``plan()`` call builds its own
    capability registry and audit trail; ``audit_db`` is the SQLite file every
    run appends to, if any.
    """

    def __init__(self, sources: Optional[LayerSources] = None,
                 binder_registry: Optional[BinderRegistry] = None,
                 audit_db: Optional[Path] = None,
                 policy: Optional[CompliancePolicy] = None,
                 component_types: Optional[ComponentTypeRegistry] = None,
                 validator: Optional[SchemaValidator] = None):
        self.sources = sources or LayerSources()
        self.binder_registry = binder_registry or default_registry()
        self.audit_db = Path(audit_db) if audit_db else None
        self.policy = policy or CompliancePolicy()
        self.component_types = component_types or default_component_types()
        self.validator = validator or SchemaValidator()

    @classmethod
    def from_directory(cls, args_dir: Optional[Path] = None, audit_db: Optional[Path] = None,
                       lenient_enums: bool = False) -> "SynthesisPlanner":
        """Planner wired to the layer and compliance YAML files in ``args_dir`` (default: args/)."""
        base = Path(args_dir) if args_dir else DEFAULT_ARGS_DIR
        return cls(
            sources=LayerSources.from_directory(base),
            audit_db=audit_db,
            policy=CompliancePolicy.from_file(base / COMPLIANCE_POLICY_FILE),
            validator=SchemaValidator(ValidationPolicy(lenient_enums=lenient_enums)),
        )

    def builder(self, context: ComponentContext, spec: ComponentSpec) -> ConfigBuilder:
        return ConfigBuilder(context, spec, self.sources,
                             component_types=self.component_types, validator=self.validator)

    def plan(self, context: ComponentContext, components: Iterable[ComponentSpec],
             bindings: Iterable[BindingDirective],
             audit: Optional[AuditTrail] = None) -> SynthesisReport:
        components = list(components)
        bindings = list(bindings)
        run_id = self.run_id(context, components, bindings)
        audit = audit if audit is not None else AuditTrail(db_path=self.audit_db)
        owns_correlation = get_correlation_id() is None
        if owns_correlation:
            set_correlation_id(run_id)
        first_event = len(audit.events)
        report = SynthesisReport(run_id=run_id, context=context)
        try:
            specs = self._resolve_components(context, components, report, audit)
            self._resolve_bindings(context, specs, bindings, report, audit)
            audit.record(
                "synthesis_completed", ACTOR,
                f"Synthesis of {context.service_name} {'succeeded' if report.success else 'failed'}",
                framework=context.compliance_framework,
                details=report.summary(),
                run_id=run_id,
            )
        finally:
            if owns_correlation:
                clear_correlation_id()
        report.audit_events = [e.to_dict() for e in audit.events[first_event:]]
        logger.info("Run %s for %s: %d components, %d bindings, %d errors", run_id,
                    context.service_name, len(report.resolved), len(report.bindings),
                    len(report.errors))
        return report

    @staticmethod
    def run_id(context: ComponentContext, components: List[ComponentSpec],
               bindings: List[BindingDirective]) -> str:
        payload = json.dumps({
            "context": context.to_dict(),
            "components": [c.to_dict() for c in components],
            "bindings": [b.to_dict() for b in bindings],
        }, sort_keys=True, default=str)
        return deterministic_run_id(context.service_name, context.environment, payload)

    # ------------------------------------------------------------------
    # Phase 1 + 2
    # ------------------------------------------------------------------

    def _resolve_components(self, context, components, report, audit) -> Dict[str, ComponentSpec]:
        specs: Dict[str, ComponentSpec] = {}
        for spec in components:
            if spec.name in specs:
                report.errors.append(ManifestError(f"Duplicate component name '{spec.name}'",
                                                   name=spec.name))
                continue
            specs[spec.name] = spec
            try:
                resolved = self.builder(context, spec).build()
                published = self._publish(context, spec, resolved, report)
            except ShinobiError as exc:
                report.errors.append(exc)
                audit.record(
                    "config_rejected", ACTOR, f"Configuration rejected for {spec.name}: {exc.message}",
                    component=spec.name, framework=context.compliance_framework,
                    details={"error_type": exc.error_type, "type": spec.type},
                    run_id=report.run_id,
                )
                continue

            report.resolved[spec.name] = resolved
            audit.record(
                "config_resolved", ACTOR, f"Configuration resolved for {spec.name}",
                component=spec.name, framework=context.compliance_framework,
                details={"type": spec.type, "fingerprint": resolved.fingerprint(),
                         "capabilities": sorted(published)},
                run_id=report.run_id,
            )
        return specs

    def _publish(self, context, spec, resolved, report) -> Dict[str, dict]:
        """Publish and register one component's capabilities.

        Nothing is registered unless every capability is valid.
        """
        component_type = self.component_types.get(spec.type, spec.name)
        try:
            published = component_type.publish_capabilities(context, spec, resolved.values)
            staged = CapabilityRegistry()
            staged.register_all(spec.name, published, component_type=spec.type)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"Could not publish capabilities for '{spec.name}': {exc}",
                name=spec.name, details={"type": spec.type},
            ) from exc
        report.capabilities.register_all(spec.name, published, component_type=spec.type)
        return published

    # ------------------------------------------------------------------
    # Phase 3
    # ------------------------------------------------------------------

    def _resolve_bindings(self, context, specs, bindings, report, audit) -> None:
        resolver = BinderResolver(report.capabilities, registry=self.binder_registry,
                                  policy=self.policy)
        for directive in bindings:
            try:
                source = self._usable(directive, directive.source, specs, report)
                self._usable(directive, directive.target, specs, report)
                component_type = self.component_types.get(source.type, source.name)
                security_groups = component_type.network_identity(
                    context, source, report.resolved[source.name].values)
                result = resolver.resolve(directive, source.type, context,
                                          source_security_groups=security_groups)
            except ShinobiError as exc:
                report.errors.append(exc)
                audit.record(
                    "binding_rejected", ACTOR, f"Binding {directive.label} rejected: {exc.message}",
                    component=directive.source, capability=directive.capability,
                    access=directive.access, framework=context.compliance_framework,
                    details={"error_type": exc.error_type, "target": directive.target},
                    run_id=report.run_id,
                )
                continue

            report.bindings.append(result)
            audit.record(
                "binding_applied", ACTOR, f"Binding {directive.label} applied",
                component=directive.source, capability=directive.capability,
                access=directive.access, framework=context.compliance_framework,
                details={
                    "target": directive.target,
                    "strategy": result.strategy,
                    "environment_variables": sorted(result.environment_variables),
                    "compliance_actions": [a.rule_id for a in result.compliance_actions],
                },
                run_id=report.run_id,
            )

    @staticmethod
    def _usable(directive, name, specs, report) -> ComponentSpec:
        if name not in specs:
            raise BindingSkippedError(directive.label, name, "is not declared")
        if name not in report.resolved:
            raise BindingSkippedError(directive.label, name, "failed configuration")
        return specs[name]

    def explain(self, context: ComponentContext, spec: ComponentSpec) -> dict:
        return self.builder(context, spec).explain()
