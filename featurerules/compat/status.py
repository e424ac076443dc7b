#!/usr/bin/env python3
"""Compatibility status model.

Describes, per compatibility set and rule, which expressions succeeded on a
node. Every type serializes to the JSON shape consumed by the image
compatibility tooling via ``to_dict()``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from featurerules.api.types import MatchExpression


class MatcherType(str, Enum):
    """Kind of matcher an expression came from."""

    MATCH_EXPRESSION = "matchExpression"
    MATCH_NAME = "matchName"


@dataclass
class MatchedExpression:
    """One expression of a rule and whether it succeeded on the node."""

    feature: str
    name: str
    expression: Optional[MatchExpression]
    matcher_type: MatcherType
    is_match: bool

    def sort_key(self) -> tuple:
        return (self.feature, self.name, str(self.expression))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature": self.feature,
            "name": self.name,
            "expression": self.expression.to_dict() if self.expression else None,
            "matcherType": self.matcher_type.value,
            "isMatch": self.is_match,
        }


@dataclass
class MatchAnyStatus:
    """Expressions of one MatchAny branch."""

    matched_expressions: List[MatchedExpression] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"matchedExpressions": [e.to_dict() for e in self.matched_expressions]}


@dataclass
class ProcessedRuleStatus:
    """Match result of one rule."""

    name: str
    is_match: bool
    matched_expressions: List[MatchedExpression] = field(default_factory=list)
    matched_any: List[MatchAnyStatus] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "isMatch": self.is_match}
        if self.matched_expressions:
            out["matchedExpressions"] = [e.to_dict() for e in self.matched_expressions]
        if self.matched_any:
            out["matchedAny"] = [m.to_dict() for m in self.matched_any]
        return out


@dataclass
class CompatibilityStatus:
    """Match result of one compatibility set."""

    rules: List[ProcessedRuleStatus] = field(default_factory=list)
    description: str = ""
    weight: int = 0
    tag: str = ""

    @property
    def is_match(self) -> bool:
        return all(r.is_match for r in self.rules)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"rules": [r.to_dict() for r in self.rules]}
        if self.description:
            out["description"] = self.description
        if self.weight:
            out["weight"] = self.weight
        if self.tag:
            out["tag"] = self.tag
        return out
