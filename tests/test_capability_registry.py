# CUI // SP-CTI
"""Tests for shinobi.capabilities.registry."""

import pytest

from shinobi.capabilities.registry import CapabilityRegistry, is_capability_key
from shinobi.core.errors import CapabilityNotFoundError, DuplicateCapabilityError


@pytest.fixture
def registry():
    registry = CapabilityRegistry()
    registry.register("orders-queue", "queue:sqs", {"resources": {"arn": "arn:aws:sqs:x"}},
                      component_type="sqs-queue")
    return registry


class TestCapabilityKeys:
    @pytest.mark.parametrize("key", ["queue:sqs", "db:postgres", "auth:user-pool", "cache:redis"])
    def test_valid(self, key):
        assert is_capability_key(key)

    @pytest.mark.parametrize("key", ["", "queue", "Queue:sqs", "queue:", ":sqs", "a:b:c", None])
    def test_invalid(self, key):
        assert not is_capability_key(key)

    def test_register_rejects_bad_key(self):
        with pytest.raises(ValueError):
            CapabilityRegistry().register("x", "not-a-key", {})


class TestRegisterAndLookup:
    def test_lookup(self, registry):
        capability = registry.lookup("orders-queue", "queue:sqs")
        assert capability.component_type == "sqs-queue"
        assert capability.domain == "queue"
        assert capability.resource == "sqs"
        assert capability.data["resources"]["arn"] == "arn:aws:sqs:x"

    def test_duplicate_pair_rejected(self, registry):
        with pytest.raises(DuplicateCapabilityError):
            registry.register("orders-queue", "queue:sqs", {})

    def test_same_key_on_other_component_allowed(self, registry):
        registry.register("audit-queue", "queue:sqs", {})
        assert len(registry) == 2
        assert registry.capabilities_for("audit-queue") == ["queue:sqs"]

    def test_missing_capability_lists_published(self, registry):
        with pytest.raises(CapabilityNotFoundError) as exc:
            registry.lookup("orders-queue", "topic:sns", name="api->orders-queue:topic:sns")
        assert exc.value.details["available"] == ["queue:sqs"]
        assert exc.value.name == "api->orders-queue:topic:sns"
        assert "published: queue:sqs" in exc.value.message

    def test_missing_component(self, registry):
        with pytest.raises(CapabilityNotFoundError, match="published: none"):
            registry.lookup("ghost", "queue:sqs")

    def test_registered_data_is_a_copy(self):
        registry = CapabilityRegistry()
        data = {"resources": {"arn": "a"}}
        registry.register("q", "queue:sqs", data)
        data["resources"]["arn"] = "b"
        assert registry.get("q", "queue:sqs").data["resources"]["arn"] == "a"

    def test_register_all_and_to_dict(self):
        registry = CapabilityRegistry()
        registry.register_all("api", {"compute:lambda": {"a": 1}, "api:http": {"b": 2}}, "lambda-api")
        assert registry.capabilities_for("api") == ["api:http", "compute:lambda"]
        assert registry.to_dict() == {"api": {"api:http": {"b": 2}, "compute:lambda": {"a": 1}}}
        assert registry.has("api", "api:http")
        assert registry.get("api", "db:postgres") is None
