#!/usr/bin/env python3
# CUI // SP-CTI
"""Deep merge for configuration layers.

Pure functions, no module state. Merge rule, applied per key:

* mapping over mapping merges recursively;
* anything else (list, scalar, None) replaces the lower value wholesale;
* a key absent from the higher layer leaves the lower value alone;
* an explicit None in the higher layer overwrites ("set to nothing").

Inputs are never mutated; results never share structure with inputs.
"""

from copy import deepcopy
from typing import Any, Dict, Iterable, List, Mapping, Set, Tuple


class _Missing:
    def __repr__(self):
        return "<missing>"


MISSING = _Missing()


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Return ``base`` with ``override`` merged on top."""
    result = {key: deepcopy(value) for key, value in base.items()}
    for key, value in override.items():
        current = result.get(key, MISSING)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = deepcopy(value)
    return result


def merge_layers(layers: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Fold layers in ascending precedence order (last wins)."""
    merged: Dict[str, Any] = {}
    for layer in layers:
        merged = deep_merge(merged, layer)
    return merged


def get_path(mapping: Mapping[str, Any], dotted: str) -> Any:
    """Value at a dotted key path, or MISSING."""
    current: Any = mapping
    for part in dotted.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


def set_path(mapping: Dict[str, Any], dotted: str, value: Any) -> None:
    """Set a dotted key path, creating intermediate dicts."""
    parts = dotted.split(".")
    for part in parts[:-1]:
        mapping = mapping.setdefault(part, {})
    mapping[parts[-1]] = value


def collect_keys(mapping: Mapping[str, Any], prefix: str = "") -> Set[str]:
    """All dotted key paths in ``mapping`` (intermediate mappings included)."""
    keys: Set[str] = set()
    for key, value in mapping.items():
        full = f"{prefix}.{key}" if prefix else str(key)
        keys.add(full)
        if isinstance(value, Mapping):
            keys |= collect_keys(value, full)
    return keys


def _ancestor_replaced(layer: Mapping[str, Any], dotted: str) -> bool:
    parts = dotted.split(".")
    for depth in range(1, len(parts)):
        value = get_path(layer, ".".join(parts[:depth]))
        if value is not MISSING and not isinstance(value, Mapping):
            return True
    return False


def precedence_trace(named_layers: List[Tuple[str, Mapping[str, Any]]]) -> Dict[str, Dict[str, Any]]:
    """Explain which layer won each leaf key.

    Args:
        named_layers: (layer name, values) pairs in ascending precedence.

    Returns:
        {dotted_key: {"values": [{"layer", "value"}], "winner": layer name or None}}
        for every leaf key set by more than zero layers. ``winner`` is None
        when a later layer replaced an ancestor with a non-mapping value.
    """
    leaves: Set[str] = set()
    for _, values in named_layers:
        for key in collect_keys(values):
            if not isinstance(get_path(values, key), Mapping):
                leaves.add(key)

    trace: Dict[str, Dict[str, Any]] = {}
    for key in sorted(leaves):
        contributions = []
        winner = None
        for name, values in named_layers:
            value = get_path(values, key)
            if value is not MISSING and not isinstance(value, Mapping):
                contributions.append({"layer": name, "value": deepcopy(value)})
                winner = name
            elif _ancestor_replaced(values, key):
                winner = None
        trace[key] = {"values": contributions, "winner": winner}
    return trace


def conflicts(trace: Mapping[str, Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Keys set by more than one layer, with every contribution and the winner."""
    return [
        {"key": key, "values": entry["values"], "winner": entry["winner"]}
        for key, entry in trace.items()
        if len(entry["values"]) > 1
    ]
