# CUI // SP-CTI
"""Tests for shinobi.config.config_builder and shinobi.config.layers."""

import os
from unittest.mock import patch

import pytest

from shinobi.config.component_types import default_component_types
from shinobi.config.config_builder import ConfigBuilder
from shinobi.config.layers import (
    ENVIRONMENT_DEFAULTS_FILE,
    PLATFORM_DEFAULTS_FILE,
    POLICY_OVERRIDES_FILE,
    LayerName,
    LayerSources,
)
from shinobi.core.errors import ConfigurationError, SchemaValidationError
from shinobi.core.models import ComponentSpec
from shinobi.schemas.validator import SchemaValidator, ValidationPolicy


# ---------------------------------------------------------------------------
# Layer order
# ---------------------------------------------------------------------------
class TestLayerOrder:
    def test_precedence_values(self):
        assert [n.precedence for n in LayerName] == [1, 2, 3, 4, 5]
        assert LayerName.POLICY_OVERRIDE.precedence > LayerName.COMPONENT_OVERRIDE.precedence

    def test_layers_fetched_in_fixed_order(self, commercial_context, api_spec, layer_sources):
        layers = ConfigBuilder(commercial_context, api_spec, layer_sources).layers()
        assert [layer.name for layer in layers] == list(LayerName)


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------
class TestBuild:
    def test_component_override_beats_platform_default(self, commercial_context, layer_sources):
        """Platform default monitoring.enabled=false, component sets true -> true."""
        spec = ComponentSpec(name="api", type="lambda-api",
                             config={"monitoring": {"enabled": True}})
        resolved = ConfigBuilder(commercial_context, spec, layer_sources).build()
        assert resolved.values["monitoring"]["enabled"] is True
        trace = resolved.trace()
        assert trace["monitoring.enabled"]["winner"] == LayerName.COMPONENT_OVERRIDE.value

    def test_hardcoded_fallbacks_fill_gaps(self, commercial_context, layer_sources):
        spec = ComponentSpec(name="api", type="lambda-api")
        resolved = ConfigBuilder(commercial_context, spec, layer_sources).build()
        assert resolved.values["timeout"] == 30
        assert resolved.values["memorySize"] == 512
        assert resolved.values["logging"] == {"retentionDays": 14, "level": "DEBUG"}

    def test_environment_defaults_apply(self, context_factory, layer_sources):
        spec = ComponentSpec(name="api", type="lambda-api")
        resolved = ConfigBuilder(context_factory("commercial", "prod"), spec, layer_sources).build()
        assert resolved.values["memorySize"] == 1024

    def test_policy_override_beats_component(self, high_context, layer_sources):
        spec = ComponentSpec(name="assets", type="s3-bucket", config={"blockPublicAccess": False})
        resolved = ConfigBuilder(high_context, spec, layer_sources).build()
        assert resolved.values["blockPublicAccess"] is True
        assert resolved.trace()["blockPublicAccess"]["winner"] == "policy-override"

    def test_wildcard_type_entry_sits_under_type_entry(self, moderate_context):
        sources = LayerSources(platform_defaults={"fedramp-moderate": {
            "*": {"monitoring": {"enabled": True, "detailedMetrics": True}},
            "sqs-queue": {"monitoring": {"detailedMetrics": False}},
        }})
        spec = ComponentSpec(name="q", type="sqs-queue")
        values = ConfigBuilder(moderate_context, spec, sources).build().values
        assert values["monitoring"] == {"enabled": True, "detailedMetrics": False}

    def test_spec_config_is_not_mutated(self, commercial_context, layer_sources):
        spec = ComponentSpec(name="api", type="lambda-api", config={"vpc": {"enabled": True}})
        resolved = ConfigBuilder(commercial_context, spec, layer_sources).build()
        resolved.values["vpc"]["enabled"] = False
        assert spec.config["vpc"]["enabled"] is True

    def test_build_is_deterministic(self, moderate_context, api_spec, layer_sources):
        first = ConfigBuilder(moderate_context, api_spec, layer_sources).build()
        second = ConfigBuilder(moderate_context, api_spec, layer_sources).build()
        assert first.values == second.values
        assert first.fingerprint() == second.fingerprint()

    def test_to_dict_includes_layers_on_request(self, commercial_context, api_spec, layer_sources):
        resolved = ConfigBuilder(commercial_context, api_spec, layer_sources).build()
        assert "layers" not in resolved.to_dict()
        assert len(resolved.to_dict(include_layers=True)["layers"]) == 5


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------
class TestBuildFailures:
    def test_missing_framework_rejected(self, context_factory, api_spec, layer_sources):
        with pytest.raises(ConfigurationError) as exc:
            ConfigBuilder(context_factory(""), api_spec, layer_sources).build()
        assert exc.value.config_key == "complianceFramework"
        assert exc.value.name == "api"

    def test_unknown_framework_rejected(self, context_factory, api_spec, layer_sources):
        with pytest.raises(ConfigurationError, match="Unknown compliance framework 'gov'"):
            ConfigBuilder(context_factory("gov"), api_spec, layer_sources).build()

    def test_unknown_component_type(self, commercial_context, layer_sources):
        spec = ComponentSpec(name="x", type="mainframe")
        with pytest.raises(ConfigurationError) as exc:
            ConfigBuilder(commercial_context, spec, layer_sources).build()
        assert exc.value.config_key == "type"

    def test_schema_violation_lists_every_issue(self, commercial_context, layer_sources):
        spec = ComponentSpec(name="api", type="lambda-api",
                             config={"memorySize": 64, "timeout": 5000, "bogus": 1})
        with pytest.raises(SchemaValidationError) as exc:
            ConfigBuilder(commercial_context, spec, layer_sources).build()
        rules = {(i.path, i.rule) for i in exc.value.issues}
        assert ("memorySize", "minimum") in rules
        assert ("timeout", "maximum") in rules
        assert ("bogus", "additionalProperties") in rules

    def test_invalid_enum_strict_by_default(self, commercial_context, layer_sources):
        spec = ComponentSpec(name="api", type="lambda-api", config={"runtime": "cobol"})
        with pytest.raises(SchemaValidationError):
            ConfigBuilder(commercial_context, spec, layer_sources).build()

    def test_invalid_enum_lenient_uses_default(self, commercial_context, layer_sources):
        spec = ComponentSpec(name="api", type="lambda-api", config={"runtime": "cobol"})
        validator = SchemaValidator(ValidationPolicy(lenient_enums=True))
        resolved = ConfigBuilder(commercial_context, spec, layer_sources, validator=validator).build()
        assert resolved.values["runtime"] == "python3.11"
        assert [w.path for w in resolved.warnings] == ["runtime"]


# ---------------------------------------------------------------------------
# Null vs absent
# ---------------------------------------------------------------------------
class TestNullBoundary:
    def test_component_null_beats_lower_layers(self, commercial_context, layer_sources):
        spec = ComponentSpec(name="api", type="lambda-api", config={"api": None, "monitoring": None})
        resolved = ConfigBuilder(commercial_context, spec, layer_sources).build()
        assert resolved.values["api"] is None
        assert resolved.values["monitoring"] is None
        trace = resolved.trace()
        assert trace["api"]["winner"] == "component-override"
        assert trace["api.authorizer"]["winner"] is None

    def test_absent_key_keeps_lower_layer_value(self, commercial_context, layer_sources):
        spec = ComponentSpec(name="api", type="lambda-api", config={"memorySize": 1024})
        values = ConfigBuilder(commercial_context, spec, layer_sources).build().values
        assert values["api"]["authorizer"] == "none"
        assert values["monitoring"]["enabled"] is False

    def test_resolved_values_revalidate(self, moderate_context, layer_sources):
        types = default_component_types()
        validator = SchemaValidator()
        for type_name in types.type_names():
            spec = ComponentSpec(name="component", type=type_name)
            resolved = ConfigBuilder(moderate_context, spec, layer_sources).build()
            assert validator.validate(types.get(type_name).schema, resolved.values).valid, type_name


# ---------------------------------------------------------------------------
# Explain
# ---------------------------------------------------------------------------
class TestExplain:
    def test_explain_reports_conflicts(self, commercial_context, api_spec, layer_sources):
        explanation = ConfigBuilder(commercial_context, api_spec, layer_sources).explain()
        keys = {c["key"]: c["winner"] for c in explanation["conflicts"]}
        assert keys["memorySize"] == "component-override"
        assert keys["logging.retentionDays"] == "platform-defaults"
        assert explanation["merged"]["memorySize"] == 1024

    def test_explain_does_not_validate(self, commercial_context, layer_sources):
        spec = ComponentSpec(name="api", type="lambda-api", config={"memorySize": 1})
        explanation = ConfigBuilder(commercial_context, spec, layer_sources).explain()
        assert explanation["merged"]["memorySize"] == 1


# ---------------------------------------------------------------------------
# LayerSources loading
# ---------------------------------------------------------------------------
class TestLayerSources:
    def test_from_directory(self, tmp_path):
        (tmp_path / PLATFORM_DEFAULTS_FILE).write_text(
            "commercial:\n  lambda-api:\n    memorySize: 256\n", encoding="utf-8")
        (tmp_path / ENVIRONMENT_DEFAULTS_FILE).write_text("dev: {}\n", encoding="utf-8")
        sources = LayerSources.from_directory(tmp_path)
        layer = sources.platform_layer("commercial", "lambda-api")
        assert layer.values == {"memorySize": 256}
        assert sources.policy_overrides == {}

    def test_env_expansion(self, tmp_path):
        (tmp_path / PLATFORM_DEFAULTS_FILE).write_text(
            "commercial:\n  lambda-api:\n    handler: ${SHINOBI_TEST_HANDLER:-main.handler}\n",
            encoding="utf-8")
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("SHINOBI_TEST_HANDLER", None)
            sources = LayerSources.from_directory(tmp_path)
        assert sources.platform_layer("commercial", "lambda-api").values["handler"] == "main.handler"

    def test_malformed_yaml(self, tmp_path):
        (tmp_path / POLICY_OVERRIDES_FILE).write_text("fedramp-high: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Failed to parse"):
            LayerSources.from_directory(tmp_path)

    def test_non_mapping_values_rejected(self):
        with pytest.raises(ConfigurationError):
            LayerSources(platform_defaults={"commercial": {"lambda-api": [1, 2]}})

    def test_shipped_tables_load(self):
        sources = LayerSources.from_directory()
        assert "fedramp-high" in sources.platform_defaults
        assert "prod" in sources.environment_defaults
