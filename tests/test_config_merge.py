# CUI // SP-CTI
"""Tests for shinobi.config.merge."""

from shinobi.config.merge import (
    MISSING,
    collect_keys,
    conflicts,
    deep_merge,
    get_path,
    merge_layers,
    precedence_trace,
    set_path,
)


# ---------------------------------------------------------------------------
# deep_merge
# ---------------------------------------------------------------------------
class TestDeepMerge:
    """Merge rule: mappings recurse, everything else replaces."""

    def test_nested_mappings_merge(self):
        base = {"logging": {"level": "INFO", "retentionDays": 30}}
        override = {"logging": {"level": "DEBUG"}}
        assert deep_merge(base, override) == {"logging": {"level": "DEBUG", "retentionDays": 30}}

    def test_lists_replace_wholesale(self):
        base = {"subnetIds": ["a", "b", "c"]}
        assert deep_merge(base, {"subnetIds": ["z"]}) == {"subnetIds": ["z"]}

    def test_absent_key_does_not_override(self):
        assert deep_merge({"timeout": 30}, {}) == {"timeout": 30}

    def test_explicit_none_overrides(self):
        assert deep_merge({"kmsKeyArn": "arn:aws:kms:x"}, {"kmsKeyArn": None}) == {"kmsKeyArn": None}

    def test_scalar_replaces_mapping(self):
        assert deep_merge({"vpc": {"enabled": True}}, {"vpc": False}) == {"vpc": False}

    def test_mapping_replaces_scalar(self):
        assert deep_merge({"vpc": False}, {"vpc": {"enabled": True}}) == {"vpc": {"enabled": True}}

    def test_inputs_not_mutated(self):
        base = {"a": {"b": [1, 2]}}
        override = {"a": {"c": 3}}
        merged = deep_merge(base, override)
        merged["a"]["b"].append(99)
        assert base == {"a": {"b": [1, 2]}}
        assert override == {"a": {"c": 3}}

    def test_result_shares_no_structure_with_override(self):
        override = {"tags": {"team": "x"}}
        merged = deep_merge({}, override)
        merged["tags"]["team"] = "y"
        assert override["tags"]["team"] == "x"


class TestMergeLayers:
    def test_later_layers_win(self):
        layers = [{"memorySize": 128}, {"memorySize": 256}, {"memorySize": 512}]
        assert merge_layers(layers) == {"memorySize": 512}

    def test_empty_layers(self):
        assert merge_layers([]) == {}
        assert merge_layers([{}, {}]) == {}

    def test_disjoint_keys_accumulate(self):
        assert merge_layers([{"a": 1}, {"b": 2}, {"c": 3}]) == {"a": 1, "b": 2, "c": 3}

    def test_split_fold_matches_whole_fold(self):
        """Merging [1,2] first and continuing with [3,4,5] gives the same result."""
        layers = [
            {"monitoring": {"enabled": False}, "logging": {"level": "INFO"}},
            {"monitoring": {"enabled": True}, "subnetIds": ["a"]},
            {"monitoring": "off", "logging": None},
            {"monitoring": {"detailedMetrics": True}, "subnetIds": ["z"]},
            {"memorySize": 1024},
        ]
        head = merge_layers(layers[:2])
        assert merge_layers([head] + layers[2:]) == merge_layers(layers)

    def test_grouped_merge_is_associative(self):
        layers = [
            {"memorySize": 512, "logging": {"level": "INFO", "retentionDays": 30},
             "vpc": {"enabled": False}},
            {"monitoring": {"enabled": True}, "subnetIds": ["a", "b"]},
            {"logging": {"level": "DEBUG"}, "vpc": None},
            {"memorySize": 1024, "subnetIds": ["z"]},
            {"monitoring": {"detailedMetrics": True}, "logging": {"retentionDays": 90}},
        ]
        whole = merge_layers(layers)
        assert whole == deep_merge(merge_layers(layers[:2]), merge_layers(layers[2:]))
        assert whole == {
            "memorySize": 1024,
            "logging": {"level": "DEBUG", "retentionDays": 90},
            "vpc": None,
            "monitoring": {"enabled": True, "detailedMetrics": True},
            "subnetIds": ["z"],
        }


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
class TestPaths:
    def test_get_path(self):
        data = {"vpc": {"enabled": True}}
        assert get_path(data, "vpc.enabled") is True
        assert get_path(data, "vpc.subnetIds") is MISSING
        assert get_path(data, "vpc.enabled.deeper") is MISSING

    def test_get_path_distinguishes_none(self):
        assert get_path({"kmsKeyArn": None}, "kmsKeyArn") is None

    def test_set_path_creates_intermediates(self):
        data = {}
        set_path(data, "logging.level", "WARN")
        assert data == {"logging": {"level": "WARN"}}

    def test_collect_keys(self):
        keys = collect_keys({"a": 1, "b": {"c": 2, "d": {"e": 3}}})
        assert keys == {"a", "b", "b.c", "b.d", "b.d.e"}


# ---------------------------------------------------------------------------
# Precedence trace
# ---------------------------------------------------------------------------
class TestPrecedenceTrace:
    def test_winner_is_highest_layer_that_set_key(self):
        trace = precedence_trace([
            ("hardcoded-fallback", {"monitoring": {"enabled": False}, "timeout": 30}),
            ("platform-defaults", {"monitoring": {"enabled": False}}),
            ("component-override", {"monitoring": {"enabled": True}}),
        ])
        assert trace["monitoring.enabled"]["winner"] == "component-override"
        assert [v["layer"] for v in trace["monitoring.enabled"]["values"]] == [
            "hardcoded-fallback", "platform-defaults", "component-override",
        ]
        assert trace["timeout"]["winner"] == "hardcoded-fallback"

    def test_only_leaf_keys_are_traced(self):
        trace = precedence_trace([("a", {"vpc": {"enabled": True}})])
        assert "vpc" not in trace
        assert "vpc.enabled" in trace

    def test_ancestor_replaced_by_scalar_has_no_winner(self):
        trace = precedence_trace([
            ("hardcoded-fallback", {"vpc": {"enabled": True}}),
            ("component-override", {"vpc": None}),
        ])
        assert trace["vpc.enabled"]["winner"] is None
        assert trace["vpc"]["winner"] == "component-override"

    def test_conflicts_lists_only_multiply_set_keys(self):
        trace = precedence_trace([
            ("hardcoded-fallback", {"memorySize": 512, "timeout": 30}),
            ("component-override", {"memorySize": 1024}),
        ])
        found = conflicts(trace)
        assert len(found) == 1
        assert found[0]["key"] == "memorySize"
        assert found[0]["winner"] == "component-override"
        assert found[0]["values"][-1]["value"] == 1024
