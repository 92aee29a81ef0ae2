# CUI // SP-CTI
"""Tests for shinobi.binders.registry."""

import pytest

from shinobi.binders.base import BinderStrategy
from shinobi.binders.registry import BinderRegistry, default_registry
from shinobi.binders.strategies import BUILTIN_STRATEGIES
from shinobi.binders.strategies.queue import QueueBinderStrategy
from shinobi.core.errors import AmbiguousBinderError, NoBinderFoundError


class _TopicOnly(BinderStrategy):
    name = "topic-only"
    capabilities = ("topic:sns",)
    access_actions = {"topic:sns": {"write": ["sns:Publish"]}}

    def default_environment(self, ctx):
        return {}


class _Webhook(BinderStrategy):
    name = "webhook"
    source_types = ("lambda-api",)
    capabilities = ("api:http",)
    access_actions = {"api:http": {"invoke": ["execute-api:Invoke"]}}

    def default_environment(self, ctx):
        return {"url": (f"{ctx.prefix}_URL", "https://example")}


class TestDefaultRegistry:
    def test_builtins_in_order(self):
        registry = default_registry()
        assert [s.name for s in registry.strategies()] == [cls.name for cls in BUILTIN_STRATEGIES]

    @pytest.mark.parametrize("source_type,capability,expected", [
        ("lambda-api", "queue:sqs", "queue"),
        ("lambda-worker", "topic:sns", "queue"),
        ("lambda-api", "cache:redis", "cache"),
        ("lambda-worker", "cache:memcached", "cache"),
        ("lambda-api", "db:postgres", "database"),
        ("lambda-api", "bucket:s3", "bucket"),
        ("lambda-api", "auth:user-pool", "auth"),
        ("lambda-worker", "stream:kinesis", "stream"),
    ])
    def test_find(self, source_type, capability, expected):
        assert default_registry().find(source_type, capability).name == expected

    def test_no_binder(self):
        with pytest.raises(NoBinderFoundError) as exc:
            default_registry().find("s3-bucket", "queue:sqs", name="assets->q:queue:sqs")
        assert exc.value.source_type == "s3-bucket"
        assert exc.value.name == "assets->q:queue:sqs"

    def test_every_pair_has_exactly_one_strategy(self):
        registry = default_registry()
        pairs = [(row["source_type"], row["capability"]) for row in registry.supported_bindings()]
        assert len(pairs) == len(set(pairs))

    def test_supported_bindings_lists_access(self):
        rows = default_registry().supported_bindings()
        auth = next(r for r in rows if r["capability"] == "auth:user-pool")
        assert auth["access"] == ["authenticate", "read", "manage", "admin"]


class TestRegistration:
    def test_overlap_rejected(self):
        registry = BinderRegistry([QueueBinderStrategy()])
        with pytest.raises(AmbiguousBinderError) as exc:
            registry.register(_TopicOnly())
        assert exc.value.details["existing"] == "queue"
        assert ["lambda-api", "topic:sns"] in exc.value.details["pairs"]

    def test_duplicate_name_rejected(self):
        registry = BinderRegistry([QueueBinderStrategy()])
        with pytest.raises(ValueError):
            registry.register(QueueBinderStrategy())

    def test_nameless_strategy_rejected(self):
        class Nameless(_Webhook):
            name = ""
        with pytest.raises(ValueError):
            BinderRegistry().register(Nameless())

    def test_custom_strategy_extends_matrix(self):
        registry = default_registry()
        registry.register(_Webhook())
        assert registry.find("lambda-api", "api:http").name == "webhook"
        with pytest.raises(NoBinderFoundError):
            registry.find("lambda-worker", "api:http")
        assert len(registry) == len(BUILTIN_STRATEGIES) + 1
