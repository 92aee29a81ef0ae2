#!/usr/bin/env python3
# CUI // SP-CTI
"""Compliance policy for binding restrictions.

Every compliance finding a binder strategy raises has a rule id. The policy
decides, per framework, whether the finding blocks the binding (raises
ComplianceViolationError) or is recorded as an advisory ComplianceAction.

Policy file (args/compliance_policy.yaml):

    fedramp-high:
      dead-letter-queue-required: block
      encryption-in-transit-required: advisory

Unrestricted network access under fedramp-high is always blocking; a policy
file that tries to make it advisory is rejected. The commercial framework
has no restrictions and is never evaluated.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from shinobi.config.layers import DEFAULT_ARGS_DIR
from shinobi.core.errors import ComplianceViolationError, ConfigurationError
from shinobi.core.models import ComplianceAction, ComplianceFramework

logger = logging.getLogger("shinobi.binders.compliance")

COMPLIANCE_POLICY_FILE = "compliance_policy.yaml"

BLOCK = "block"
ADVISORY = "advisory"
MODES = (BLOCK, ADVISORY)

# Rule ids
UNRESTRICTED_NETWORK = "unrestricted-network"
DEAD_LETTER_QUEUE_REQUIRED = "dead-letter-queue-required"
ENCRYPTION_IN_TRANSIT_REQUIRED = "encryption-in-transit-required"
ENCRYPTION_AT_REST_REQUIRED = "encryption-at-rest-required"
CACHE_AUTH_REQUIRED = "cache-auth-required"
DATABASE_IAM_AUTH_REQUIRED = "database-iam-auth-required"
MFA_REQUIRED = "mfa-required"
SECURE_TRANSPORT = "secure-transport-enforced"
AUDIT_LOGGING = "audit-logging-required"

RULE_DESCRIPTIONS = {
    UNRESTRICTED_NETWORK: "Network rule allows traffic from or to any address",
    DEAD_LETTER_QUEUE_REQUIRED: "Queue consumers need a dead-letter queue",
    ENCRYPTION_IN_TRANSIT_REQUIRED: "Connections must be encrypted in transit",
    ENCRYPTION_AT_REST_REQUIRED: "Data stores must use customer-managed KMS keys",
    CACHE_AUTH_REQUIRED: "Cache clients must authenticate",
    DATABASE_IAM_AUTH_REQUIRED: "Database clients should use IAM authentication",
    MFA_REQUIRED: "User pools must require MFA",
}

DEFAULT_RULES: Dict[str, Dict[str, str]] = {
    ComplianceFramework.FEDRAMP_MODERATE.value: {
        UNRESTRICTED_NETWORK: ADVISORY,
        DEAD_LETTER_QUEUE_REQUIRED: ADVISORY,
        ENCRYPTION_IN_TRANSIT_REQUIRED: ADVISORY,
        ENCRYPTION_AT_REST_REQUIRED: ADVISORY,
        CACHE_AUTH_REQUIRED: ADVISORY,
        DATABASE_IAM_AUTH_REQUIRED: ADVISORY,
        MFA_REQUIRED: ADVISORY,
    },
    ComplianceFramework.FEDRAMP_HIGH.value: {
        UNRESTRICTED_NETWORK: BLOCK,
        DEAD_LETTER_QUEUE_REQUIRED: ADVISORY,
        ENCRYPTION_IN_TRANSIT_REQUIRED: ADVISORY,
        ENCRYPTION_AT_REST_REQUIRED: ADVISORY,
        CACHE_AUTH_REQUIRED: ADVISORY,
        DATABASE_IAM_AUTH_REQUIRED: ADVISORY,
        MFA_REQUIRED: ADVISORY,
    },
}

LOCKED_RULES = {(ComplianceFramework.FEDRAMP_HIGH.value, UNRESTRICTED_NETWORK)}


class CompliancePolicy:
    """Framework -> rule id -> block|advisory."""

    def __init__(self, rules: Optional[Mapping[str, Mapping[str, str]]] = None):
        self.rules: Dict[str, Dict[str, str]] = {fw: dict(r) for fw, r in DEFAULT_RULES.items()}
        for framework, overrides in (rules or {}).items():
            self._apply(framework, overrides or {})

    def _apply(self, framework: str, overrides: Mapping[str, Any]) -> None:
        parsed = ComplianceFramework.parse(framework)
        if parsed is None:
            raise ConfigurationError(f"Unknown compliance framework '{framework}' in compliance policy",
                                     config_key=COMPLIANCE_POLICY_FILE)
        if not parsed.is_fedramp:
            if overrides:
                logger.warning("Ignoring compliance rules for '%s'; it has no restrictions", framework)
            return
        if not isinstance(overrides, Mapping):
            raise ConfigurationError(f"Compliance rules for '{framework}' must be a mapping",
                                     config_key=COMPLIANCE_POLICY_FILE)
        for rule_id, mode in overrides.items():
            if mode not in MODES:
                raise ConfigurationError(
                    f"Invalid mode '{mode}' for {framework}/{rule_id} (valid: {', '.join(MODES)})",
                    config_key=COMPLIANCE_POLICY_FILE)
            if (framework, rule_id) in LOCKED_RULES and mode != BLOCK:
                raise ConfigurationError(f"Rule {rule_id} cannot be downgraded under {framework}",
                                         config_key=COMPLIANCE_POLICY_FILE)
            self.rules[framework][rule_id] = mode

    @classmethod
    def from_file(cls, path: Optional[Union[str, Path]] = None) -> "CompliancePolicy":
        path = Path(path) if path else DEFAULT_ARGS_DIR / COMPLIANCE_POLICY_FILE
        if not path.exists():
            logger.info("No compliance policy at %s, using defaults", path)
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Failed to parse {path.name}: {exc}",
                                     config_key=COMPLIANCE_POLICY_FILE)
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"{path.name} must be a mapping", config_key=COMPLIANCE_POLICY_FILE)
        return cls(data)

    def mode(self, framework: str, rule_id: str) -> Optional[str]:
        """block, advisory, or None when the framework has no restrictions."""
        parsed = ComplianceFramework.parse(framework)
        if parsed is None or not parsed.is_fedramp:
            return None
        return self.rules.get(parsed.value, {}).get(rule_id, ADVISORY)

    def evaluate(self, framework: str, rule_id: str, message: str, name: str = "",
                 remediation: Optional[str] = None,
                 metadata: Optional[Dict[str, Any]] = None) -> Optional[ComplianceAction]:
        """Apply the policy to one finding.

        Returns the advisory ComplianceAction to record, None for frameworks
        without restrictions, or raises ComplianceViolationError when the
        rule blocks.
        """
        mode = self.mode(framework, rule_id)
        if mode is None:
            return None
        metadata = dict(metadata or {})
        if rule_id in RULE_DESCRIPTIONS:
            metadata.setdefault("description", RULE_DESCRIPTIONS[rule_id])
        if mode == BLOCK:
            logger.warning("Blocking %s under %s: %s", rule_id, framework, message)
            raise ComplianceViolationError(message, rule_id=rule_id, framework=framework,
                                           name=name, details=metadata)
        return ComplianceAction(
            rule_id=rule_id,
            severity="warning",
            message=message,
            framework=framework,
            remediation=remediation,
            metadata=metadata,
        )

    def to_dict(self) -> dict:
        return {fw: dict(sorted(rules.items())) for fw, rules in sorted(self.rules.items())}
