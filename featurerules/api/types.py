#!/usr/bin/env python3
"""Rule data model.

This module defines the declarative units evaluated by the rule engine:
- MatchOp and ValueType enums for match expressions
- MatchExpression, one operator plus its operands
- FeatureMatcherTerm, FeatureMatcher and MatchAnyElem combinators
- Rule and GroupRule, the top-level units producing labels and vars

Every type is decoded once (see ``featurerules.api.decode``) and then treated
as immutable by the engine.

Example:
    >>> expr = MatchExpression(MatchOp.IN, ("GenuineIntel",))
    >>> term = FeatureMatcherTerm("cpu.model", {"vendor_id": expr})
    >>> rule = Rule(name="intel", labels={"vendor": "intel"}, match_features=[term])
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from featurerules.core.constants import TaintEffect


class MatchOp(str, Enum):
    """Operator of a match expression."""

    ANY = ""  # Always matches
    IN = "In"  # Value equals one of the operands
    NOT_IN = "NotIn"  # Value equals none of the operands
    IN_REGEXP = "InRegexp"  # Value matches one of the regexps
    EXISTS = "Exists"  # Element is present
    DOES_NOT_EXIST = "DoesNotExist"  # Element is absent
    GT = "Gt"  # Value > operand
    GE = "Ge"  # Value >= operand
    LT = "Lt"  # Value < operand
    LE = "Le"  # Value <= operand
    GT_LT = "GtLt"  # operand[0] < value < operand[1]
    GE_LE = "GeLe"  # operand[0] <= value <= operand[1]
    IS_TRUE = "IsTrue"  # Value is "true"
    IS_FALSE = "IsFalse"  # Value is "false"

    @classmethod
    def parse(cls, name: str) -> "MatchOp":
        """Look up an operator by its serialized name.

        ``"Any"`` is accepted as an alias of the empty operator.

        Raises:
            ValueError: If the operator is unknown
        """
        if name == "Any":
            return cls.ANY
        return cls(name)


class ValueType(str, Enum):
    """Interpretation of the operands of comparison operators."""

    NONE = ""  # Integers
    VERSION = "version"  # "<version>[-<flavor>]" strings


# Operators that must not carry any operands
NO_VALUE_OPS = frozenset(
    {MatchOp.ANY, MatchOp.EXISTS, MatchOp.DOES_NOT_EXIST, MatchOp.IS_TRUE, MatchOp.IS_FALSE}
)
COMPARISON_OPS = frozenset({MatchOp.GT, MatchOp.GE, MatchOp.LT, MatchOp.LE})
INTERVAL_OPS = frozenset({MatchOp.GT_LT, MatchOp.GE_LE})


@dataclass(frozen=True)
class MatchExpression:
    """A single predicate: an operator with its operand list."""

    op: MatchOp
    value: Tuple[str, ...] = ()
    type: ValueType = ValueType.NONE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON/YAML form."""
        out: Dict[str, Any] = {"op": self.op.value}
        if self.value:
            out["value"] = list(self.value)
        if self.type != ValueType.NONE:
            out["type"] = self.type.value
        return out

    def __str__(self) -> str:
        text = f"{{op: {self.op.value}, value: [{', '.join(self.value)}]"
        if self.type != ValueType.NONE:
            text += f", type: {self.type.value}"
        return text + "}"


MatchExpressionSet = Dict[str, MatchExpression]

# One matched flag, attribute or instance, as handed to templates
MatchedElement = Dict[str, str]


@dataclass
class FeatureMatcherTerm:
    """Match terms of one "<domain>.<feature>"."""

    feature: str
    match_expressions: Optional[MatchExpressionSet] = None
    match_name: Optional[MatchExpression] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"feature": self.feature}
        if self.match_expressions is not None:
            out["matchExpressions"] = {
                name: expr.to_dict() for name, expr in sorted(self.match_expressions.items())
            }
        if self.match_name is not None:
            out["matchName"] = self.match_name.to_dict()
        return out


# Logical AND over the terms
FeatureMatcher = List[FeatureMatcherTerm]


@dataclass
class MatchAnyElem:
    """One branch of a logical OR."""

    match_features: FeatureMatcher = field(default_factory=list)


@dataclass(frozen=True)
class Taint:
    """A node taint produced by a rule."""

    key: str
    value: str = ""
    effect: str = TaintEffect.NO_SCHEDULE.value

    def __str__(self) -> str:
        return f"{self.key}={self.value}:{self.effect}"


@dataclass
class Rule:
    """A node feature rule.

    When the matchers succeed the rule outputs its static labels, vars,
    annotations, extended resources and taints, plus the labels and vars
    produced by its templates.
    """

    name: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    labels_template: str = ""
    annotations: Dict[str, str] = field(default_factory=dict)
    vars: Dict[str, str] = field(default_factory=dict)
    vars_template: str = ""
    extended_resources: Dict[str, str] = field(default_factory=dict)
    taints: List[Taint] = field(default_factory=list)
    match_features: FeatureMatcher = field(default_factory=list)
    match_any: List[MatchAnyElem] = field(default_factory=list)


@dataclass
class GroupRule:
    """Reduced rule producing only vars, used for grouping and compatibility."""

    name: str = ""
    vars: Dict[str, str] = field(default_factory=dict)
    vars_template: str = ""
    match_features: FeatureMatcher = field(default_factory=list)
    match_any: List[MatchAnyElem] = field(default_factory=list)
