#!/usr/bin/env python3
# CUI // SP-CTI
"""Capability registry.

Maps (component name, capability key) to the capability data the component
published after its configuration was resolved. Capability keys have the
form ``domain:resource`` (e.g. ``queue:sqs``, ``db:postgres``).

Registering the same pair twice is a programming error and raises
DuplicateCapabilityError. Looking up an unpublished pair raises
CapabilityNotFoundError listing what the component does publish.
"""

import logging
import re
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from shinobi.core.errors import CapabilityNotFoundError, DuplicateCapabilityError

logger = logging.getLogger("shinobi.capabilities.registry")

CAPABILITY_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9-]*:[a-z][a-z0-9-]*$")


def is_capability_key(key: str) -> bool:
    return bool(CAPABILITY_KEY_PATTERN.match(key or ""))


@dataclass
class Capability:
    """Data one component publishes for one capability key."""

    component: str
    key: str
    component_type: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def domain(self) -> str:
        return self.key.split(":", 1)[0]

    @property
    def resource(self) -> str:
        return self.key.split(":", 1)[1]

    def to_dict(self) -> dict:
        return {
            "component": self.component,
            "key": self.key,
            "component_type": self.component_type,
            "data": deepcopy(self.data),
        }


class CapabilityRegistry:
    """Per-run store of published capabilities."""

    def __init__(self):
        self._entries: Dict[Tuple[str, str], Capability] = {}

    def register(self, component: str, key: str, data: Mapping[str, Any],
                 component_type: str = "") -> Capability:
        if not is_capability_key(key):
            raise ValueError(f"Invalid capability key '{key}' (expected 'domain:resource')")
        if (component, key) in self._entries:
            raise DuplicateCapabilityError(component, key)
        capability = Capability(component=component, key=key,
                                component_type=component_type, data=deepcopy(dict(data)))
        self._entries[(component, key)] = capability
        logger.debug("Registered capability %s on %s", key, component)
        return capability

    def register_all(self, component: str, published: Mapping[str, Mapping[str, Any]],
                     component_type: str = "") -> List[Capability]:
        return [self.register(component, key, data, component_type)
                for key, data in sorted(published.items())]

    def lookup(self, component: str, key: str, name: str = "") -> Capability:
        try:
            return self._entries[(component, key)]
        except KeyError:
            raise CapabilityNotFoundError(component, key,
                                          available=self.capabilities_for(component),
                                          name=name) from None

    def get(self, component: str, key: str) -> Optional[Capability]:
        return self._entries.get((component, key))

    def has(self, component: str, key: str) -> bool:
        return (component, key) in self._entries

    def capabilities_for(self, component: str) -> List[str]:
        return sorted(key for (owner, key) in self._entries if owner == component)

    def __len__(self) -> int:
        return len(self._entries)

    def to_dict(self) -> dict:
        result: Dict[str, Dict[str, Any]] = {}
        for (component, key), capability in sorted(self._entries.items()):
            result.setdefault(component, {})[key] = deepcopy(capability.data)
        return result
