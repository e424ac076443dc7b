#!/usr/bin/env python3
"""Discovered feature store.

Features of a node come in three shapes, each keyed by "<domain>.<feature>":
- flags: a set of present key names
- attributes: a mapping of key to value
- instances: a list of attribute mappings, one per occurrence (e.g. per device)

The same name may appear in more than one shape ("multi-type" feature).

Example:
    >>> features = Features()
    >>> features.flags["cpu.cpuid"] = {"AVX", "AVX2"}
    >>> features.attributes["kernel.version"] = {"major": "6"}
    >>> features.exists("cpu.cpuid")
    'flags'
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set

FlagFeatures = Dict[str, Set[str]]
AttributeFeatures = Dict[str, Dict[str, str]]
InstanceFeatures = Dict[str, List[Dict[str, str]]]


@dataclass
class Features:
    """Flags, attributes and instances discovered on a node."""

    flags: FlagFeatures = field(default_factory=dict)
    attributes: AttributeFeatures = field(default_factory=dict)
    instances: InstanceFeatures = field(default_factory=dict)

    def exists(self, name: str) -> Optional[str]:
        """Return the shape holding ``name``, or None.

        Flags are reported before attributes and attributes before instances
        when a multi-type feature is present in several shapes.
        """
        if name in self.flags:
            return "flags"
        if name in self.attributes:
            return "attributes"
        if name in self.instances:
            return "instances"
        return None

    def insert_attribute_features(
        self, domain: str, feature: str, values: Optional[Mapping[str, str]]
    ) -> None:
        """Merge ``values`` into the "<domain>.<feature>" attribute feature.

        Args:
            domain: Feature domain, e.g. "rule"
            feature: Feature name within the domain
            values: Key/value pairs to add; existing keys are overwritten
        """
        if not values:
            return
        key = f"{domain}.{feature}"
        self.attributes.setdefault(key, {}).update(values)

    def merge_into(self, other: "Features") -> None:
        """Merge this store into ``other``.

        Flags are unioned, attributes updated and instances appended.
        """
        for name, keys in self.flags.items():
            other.flags.setdefault(name, set()).update(keys)
        for name, values in self.attributes.items():
            other.attributes.setdefault(name, {}).update(values)
        for name, instances in self.instances.items():
            other.instances.setdefault(name, []).extend(dict(i) for i in instances)

    def copy(self) -> "Features":
        """Return a deep copy."""
        return copy.deepcopy(self)
