#!/usr/bin/env python3
# CUI // SP-CTI
"""Shared pytest fixtures for the Shinobi test suite.

Contexts, layer tables, component specs and a planner wired entirely from
in-memory tables, so no test depends on the args/ files.
"""

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path
BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from shinobi.binders.compliance import CompliancePolicy  # noqa: E402
from shinobi.config.layers import LayerSources  # noqa: E402
from shinobi.core.correlation import _thread_local  # noqa: E402
from shinobi.core.models import ComponentContext, ComponentSpec  # noqa: E402
from shinobi.synthesis.planner import SynthesisPlanner  # noqa: E402


# ---------------------------------------------------------------------------
# Contexts
# ---------------------------------------------------------------------------
def make_context(framework="commercial", environment="dev", **kwargs):
    values = {
        "service_name": "orders",
        "owner": "platform-team",
        "environment": environment,
        "compliance_framework": framework,
        "region": "us-east-1",
        "account_id": "123456789012",
    }
    values.update(kwargs)
    return ComponentContext(**values)


@pytest.fixture
def context_factory():
    return make_context


@pytest.fixture
def commercial_context():
    return make_context("commercial")


@pytest.fixture
def moderate_context():
    return make_context("fedramp-moderate")


@pytest.fixture
def high_context():
    return make_context("fedramp-high")


# ---------------------------------------------------------------------------
# Layer tables
# ---------------------------------------------------------------------------
PLATFORM_DEFAULTS = {
    "commercial": {
        "*": {"monitoring": {"enabled": False}},
        "lambda-api": {"logging": {"retentionDays": 14}},
    },
    "fedramp-moderate": {
        "*": {"monitoring": {"enabled": True}},
        "lambda-api": {"tracing": True, "vpc": {"enabled": True}},
        "lambda-worker": {"tracing": True, "vpc": {"enabled": True}},
    },
    "fedramp-high": {
        "*": {"monitoring": {"enabled": True, "detailedMetrics": True}},
        "lambda-api": {"tracing": True, "vpc": {"enabled": True}},
        "lambda-worker": {"tracing": True, "vpc": {"enabled": True}},
        "sqs-queue": {"encryption": {"type": "kms"}},
    },
}

ENVIRONMENT_DEFAULTS = {
    "dev": {"lambda-api": {"logging": {"level": "DEBUG"}}},
    "prod": {"lambda-api": {"memorySize": 1024}},
}

POLICY_OVERRIDES = {
    "fedramp-high": {"s3-bucket": {"blockPublicAccess": True}},
}


@pytest.fixture
def layer_sources():
    return LayerSources(
        platform_defaults=PLATFORM_DEFAULTS,
        environment_defaults=ENVIRONMENT_DEFAULTS,
        policy_overrides=POLICY_OVERRIDES,
    )


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------
@pytest.fixture
def api_spec():
    return ComponentSpec(name="api", type="lambda-api", config={"memorySize": 1024})


@pytest.fixture
def queue_spec():
    return ComponentSpec(name="orders-queue", type="sqs-queue", config={})


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------
@pytest.fixture
def planner(layer_sources):
    return SynthesisPlanner(sources=layer_sources, policy=CompliancePolicy())


@pytest.fixture(autouse=True)
def _clear_correlation():
    """Ensure thread-local correlation state is clean around each test."""
    _thread_local.correlation_id = None
    yield
    _thread_local.correlation_id = None
