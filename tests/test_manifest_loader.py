# CUI // SP-CTI
"""Tests for shinobi.project.manifest_loader."""

import os
from unittest.mock import patch

import pytest
import yaml

from shinobi.project.manifest_loader import load_manifest, parse_manifest


def _manifest(**overrides):
    data = {
        "version": 1,
        "service": "orders",
        "owner": "platform-team",
        "complianceFramework": "fedramp-moderate",
        "environment": "dev",
        "accountId": "123456789012",
        "components": [
            {"name": "api", "type": "lambda-api",
             "binds": [{"to": "jobs", "capability": "queue:sqs", "access": "write",
                        "env": {"queueUrl": "JOBS_URL"}}]},
            {"name": "jobs", "type": "sqs-queue", "config": {"visibilityTimeout": 60}},
        ],
    }
    data.update(overrides)
    return data


class TestParseManifest:
    def test_valid_manifest(self):
        result = parse_manifest(_manifest(), apply_env=False)
        assert result["valid"], result["errors"]
        assert result["context"].service_name == "orders"
        assert result["context"].compliance_framework == "fedramp-moderate"
        assert [c.name for c in result["components"]] == ["api", "jobs"]
        directive = result["bindings"][0]
        assert directive.label == "api->jobs:queue:sqs"
        assert dict(directive.env) == {"queueUrl": "JOBS_URL"}

    def test_root_must_be_mapping(self):
        result = parse_manifest(["not", "a", "mapping"])
        assert not result["valid"]
        assert result["context"] is None

    def test_environment_defaults_with_warning(self):
        data = _manifest()
        del data["environment"]
        result = parse_manifest(data, apply_env=False)
        assert result["context"].environment == "dev"
        assert any("defaulting" in w for w in result["warnings"])

    def test_null_header_fields_take_defaults(self):
        result = parse_manifest(_manifest(region=None, accountId=None, labels=None), apply_env=False)
        assert result["valid"], result["errors"]
        assert result["context"].region == "us-east-1"
        assert result["context"].account_id == "000000000000"
        assert dict(result["context"].tags) == {}

    def test_integer_account_id_padded(self):
        result = parse_manifest(_manifest(accountId=12345678901), apply_env=False)
        assert result["context"].account_id == "012345678901"
        assert any("quoted" in w for w in result["warnings"])

    @pytest.mark.parametrize("framework", [None, "", "gov-cloud"])
    def test_bad_framework_is_header_error(self, framework):
        result = parse_manifest(_manifest(complianceFramework=framework), apply_env=False)
        assert not result["valid"]
        assert any(e.startswith("header:") and "complianceFramework" in e for e in result["errors"])
        assert result["context"] is None

    def test_duplicate_component(self):
        data = _manifest()
        data["components"].append({"name": "jobs", "type": "sqs-queue"})
        result = parse_manifest(data, apply_env=False)
        assert "Duplicate component name 'jobs'" in result["errors"]

    def test_self_binding(self):
        data = _manifest()
        data["components"][1]["binds"] = [{"to": "jobs", "capability": "queue:sqs", "access": "read"}]
        result = parse_manifest(data, apply_env=False)
        assert any("to itself" in e for e in result["errors"])

    def test_undeclared_target(self):
        data = _manifest()
        data["components"][0]["binds"][0]["to"] = "ghost"
        result = parse_manifest(data, apply_env=False)
        assert any("undeclared component 'ghost'" in e for e in result["errors"])

    def test_invalid_env_var_name(self):
        data = _manifest()
        data["components"][0]["binds"][0]["env"] = {"queueUrl": "jobs-url"}
        result = parse_manifest(data, apply_env=False)
        assert any("not a valid variable name" in e for e in result["errors"])

    def test_missing_bind_fields(self):
        data = _manifest()
        data["components"][0]["binds"] = [{"to": "jobs"}]
        result = parse_manifest(data, apply_env=False)
        assert "api.binds[0].capability is required" in result["errors"]
        assert result["bindings"] == []

    def test_env_overrides(self):
        with patch.dict(os.environ, {"SHINOBI_ENVIRONMENT": "prod",
                                     "SHINOBI_COMPLIANCE_FRAMEWORK": "fedramp-high"}):
            result = parse_manifest(_manifest())
        assert result["context"].environment == "prod"
        assert result["context"].compliance_framework == "fedramp-high"

    def test_env_overrides_skipped_when_disabled(self):
        with patch.dict(os.environ, {"SHINOBI_ENVIRONMENT": "prod"}):
            result = parse_manifest(_manifest(), apply_env=False)
        assert result["context"].environment == "dev"


class TestLoadManifest:
    def test_load_from_directory(self, tmp_path):
        (tmp_path / "service.yml").write_text(yaml.safe_dump(_manifest()), encoding="utf-8")
        with patch.dict(os.environ, {}, clear=False):
            for var in ("SHINOBI_ENVIRONMENT", "SHINOBI_COMPLIANCE_FRAMEWORK",
                        "SHINOBI_REGION", "SHINOBI_ACCOUNT_ID"):
                os.environ.pop(var, None)
            result = load_manifest(directory=str(tmp_path))
        assert result["valid"], result["errors"]
        assert result["file_path"].endswith("service.yml")

    def test_missing_file(self, tmp_path):
        result = load_manifest(directory=str(tmp_path))
        assert not result["valid"]
        assert result["errors"][0].startswith("Manifest not found")

    def test_yaml_error(self, tmp_path):
        path = tmp_path / "broken.yml"
        path.write_text("service: [oops\n", encoding="utf-8")
        result = load_manifest(file_path=str(path))
        assert result["errors"][0].startswith("YAML parse error")

    def test_example_manifest_is_valid(self):
        from shinobi.config.layers import BASE_DIR
        result = load_manifest(directory=str(BASE_DIR / "examples" / "orders"))
        assert result["valid"], result["errors"]
        assert len(result["bindings"]) == 5
