#!/usr/bin/env python3
# CUI // SP-CTI
"""Core domain models.

ComponentContext, ComponentSpec, BindingDirective and the BindingResult
family. Shared by the config builder, the binder resolver, the planner, the
CLI and the plan API.
"""

from copy import deepcopy
from dataclasses import asdict, dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional


class ComplianceFramework(str, Enum):
    COMMERCIAL = "commercial"
    FEDRAMP_MODERATE = "fedramp-moderate"
    FEDRAMP_HIGH = "fedramp-high"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]

    @classmethod
    def parse(cls, value: str) -> Optional["ComplianceFramework"]:
        """Return the member for ``value`` or None when it is not a known framework."""
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_fedramp(self) -> bool:
        return self is not ComplianceFramework.COMMERCIAL


# Access levels understood by at least one built-in strategy.
READ = "read"
WRITE = "write"
READWRITE = "readwrite"
ADMIN = "admin"
AUTHENTICATE = "authenticate"
MANAGE = "manage"

STANDARD_ACCESS_LEVELS = (READ, WRITE, READWRITE, ADMIN)


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(deepcopy(dict(mapping or {})))


@dataclass(frozen=True)
class ComponentContext:
    """Deployment target for one synthesis run. Never mutated."""

    service_name: str
    owner: str
    environment: str
    compliance_framework: str
    region: str = "us-east-1"
    account_id: str = "000000000000"
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "tags", _freeze(self.tags))

    @property
    def framework(self) -> Optional[ComplianceFramework]:
        return ComplianceFramework.parse(self.compliance_framework)

    def to_dict(self) -> dict:
        return {
            "service_name": self.service_name,
            "owner": self.owner,
            "environment": self.environment,
            "compliance_framework": self.compliance_framework,
            "region": self.region,
            "account_id": self.account_id,
            "tags": dict(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ComponentContext":
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class ComponentSpec:
    """A named, typed component declaration from the manifest."""

    name: str
    type: str
    config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "config", _freeze(self.config))

    def config_dict(self) -> dict:
        """Mutable deep copy of the manifest configuration."""
        return deepcopy(dict(self.config))

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type, "config": self.config_dict()}


@dataclass(frozen=True)
class BindingDirective:
    """A manifest-declared edge from one component to another's capability."""

    source: str
    target: str
    capability: str
    access: str
    env: Mapping[str, str] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "env", _freeze(self.env))
        object.__setattr__(self, "options", _freeze(self.options))

    @property
    def label(self) -> str:
        return f"{self.source}->{self.target}:{self.capability}"

    def option(self, key: str, default: Any = None) -> Any:
        return deepcopy(self.options.get(key, default))

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "target": self.target,
            "capability": self.capability,
            "access": self.access,
            "env": dict(self.env),
            "options": deepcopy(dict(self.options)),
        }


# ---------------------------------------------------------------------------
# Binding results
# ---------------------------------------------------------------------------

@dataclass
class PermissionStatement:
    """One IAM-style statement attached to the source component's role."""

    actions: List[str]
    resources: List[str]
    effect: str = "Allow"
    conditions: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    description: str = ""
    compliance_requirement: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class NetworkRule:
    """Ingress/egress descriptor between two components' network identities.

    ``security_group`` is the group the rule is attached to; ``peer`` is
    either ``{"kind": "security-group", "id": ...}`` or
    ``{"kind": "cidr", "cidr": ...}``.
    """

    direction: str  # ingress, egress
    peer: Dict[str, str]
    port: int
    protocol: str = "tcp"
    description: str = ""
    security_group: str = ""

    @property
    def is_unrestricted(self) -> bool:
        return self.peer.get("kind") == "cidr" and self.peer.get("cidr") in ("0.0.0.0/0", "::/0")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ComplianceAction:
    """A restriction or monitoring obligation recorded for audit."""

    rule_id: str
    severity: str  # info, warning, error
    message: str
    framework: str
    remediation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class BindingResult:
    """Output of resolving one BindingDirective. Applied by the caller."""

    directive: BindingDirective
    strategy: str
    environment_variables: Dict[str, str] = field(default_factory=dict)
    permissions: List[PermissionStatement] = field(default_factory=list)
    network_rules: List[NetworkRule] = field(default_factory=list)
    compliance_actions: List[ComplianceAction] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "directive": self.directive.to_dict(),
            "strategy": self.strategy,
            "environment_variables": dict(self.environment_variables),
            "permissions": [p.to_dict() for p in self.permissions],
            "network_rules": [r.to_dict() for r in self.network_rules],
            "compliance_actions": [a.to_dict() for a in self.compliance_actions],
            "metadata": deepcopy(self.metadata),
        }
