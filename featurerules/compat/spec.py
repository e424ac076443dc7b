#!/usr/bin/env python3
"""Image compatibility specification.

An image declares one or more compatibility sets, each a list of group rules
that a node must satisfy for the image to run there.

Example document::

    version: v1alpha1
    compatibilities:
      - description: "My image requirements"
        tag: prod
        weight: 10
        rules:
          - name: kernel features
            matchFeatures:
              - feature: kernel.loadedmodule
                matchExpressions:
                  vfio-pci: {op: Exists}
"""

from dataclasses import dataclass, field
from typing import Any, List

from featurerules.api.decode import DecodeError, decode_group_rule, optional_str
from featurerules.api.types import GroupRule
from featurerules.core.constants import FEATURERULES_API_VERSION


@dataclass
class Compatibility:
    """One compatibility set."""

    rules: List[GroupRule] = field(default_factory=list)
    weight: int = 0
    tag: str = ""
    description: str = ""


@dataclass
class CompatibilitySpec:
    """Compatibility metadata of an image."""

    version: str = FEATURERULES_API_VERSION
    compatibilities: List[Compatibility] = field(default_factory=list)


def decode_compatibility_spec(doc: Any) -> CompatibilitySpec:
    """Decode a compatibility specification document.

    Raises:
        DecodeError: If the document is malformed
    """
    if not isinstance(doc, dict):
        raise DecodeError("expected a mapping")

    compatibilities = doc.get("compatibilities") or []
    if not isinstance(compatibilities, list):
        raise DecodeError("expected a list", "compatibilities")

    spec = CompatibilitySpec(version=optional_str(doc.get("version")) or FEATURERULES_API_VERSION)
    for i, item in enumerate(compatibilities):
        path = f"compatibilities[{i}]"
        if not isinstance(item, dict):
            raise DecodeError("expected a mapping", path)
        rules = item.get("rules") or []
        if not isinstance(rules, list):
            raise DecodeError("expected a list", f"{path}.rules")
        try:
            weight = int(item.get("weight") or 0)
        except (TypeError, ValueError):
            raise DecodeError("weight must be an integer", f"{path}.weight")
        spec.compatibilities.append(
            Compatibility(
                rules=[decode_group_rule(r, f"{path}.rules[{j}]") for j, r in enumerate(rules)],
                weight=weight,
                tag=optional_str(item.get("tag")),
                description=optional_str(item.get("description")),
            )
        )
    return spec
