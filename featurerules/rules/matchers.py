#!/usr/bin/env python3
"""Feature shape matchers.

This module applies match expressions to the three shapes of feature data:
- keys: flag features, a set of present names
- values: attribute features, a name to value mapping
- instances: a list of attribute mappings, each matched independently

and to "multi-type" features present in several shapes at once, where keys
and values are matched as a union and instances as an independent facet.

Every matcher returns a MatchResult carrying the matched elements (fed to
templates) and the expressions that succeeded (fed to diagnostics). Matched
keys and values are sorted by name; instances keep their document order.

Example:
    >>> mset = {"AVX": MatchExpression(MatchOp.EXISTS)}
    >>> match_keys(mset, {"AVX", "SSE4"}).elements
    [{'Name': 'AVX'}]
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from featurerules.api.types import (
    MatchedElement,
    MatchExpression,
    MatchExpressionSet,
    MatchOp,
)
from featurerules.core.constants import MATCHED_KEY_NAME, MATCHED_KEY_VALUE
from featurerules.infrastructure.logger import Logger, get_logger
from featurerules.rules.expression import evaluate

Keys = Optional[Set[str]]
Values = Optional[Mapping[str, str]]
Instances = Optional[List[Dict[str, str]]]


@dataclass
class MatchResult:
    """Outcome of matching an expression (set) against feature data."""

    is_match: bool
    elements: List[MatchedElement] = field(default_factory=list)
    expressions: MatchExpressionSet = field(default_factory=dict)


def _by_name(elements: List[MatchedElement]) -> List[MatchedElement]:
    return sorted(elements, key=lambda e: e[MATCHED_KEY_NAME])


def _sorted_items(mset: MatchExpressionSet) -> Iterable[Tuple[str, MatchExpression]]:
    return sorted(mset.items())


def evaluate_key(expr: MatchExpression, name: str, keys: Set[str], logger: Logger) -> bool:
    """Evaluate an expression against the presence of ``name`` in ``keys``."""
    matched = evaluate(expr, name in keys)
    logger.debug("matched keys", result=matched, key=name, op=expr.op.value)
    return matched


def evaluate_value(
    expr: MatchExpression, name: str, values: Mapping[str, str], logger: Logger
) -> bool:
    """Evaluate an expression against ``values[name]``."""
    matched = evaluate(expr, name in values, values.get(name))
    logger.debug(
        "matched values", result=matched, key=name, op=expr.op.value, value=list(expr.value)
    )
    return matched


def match_keys(
    mset: MatchExpressionSet, keys: Keys, logger: Optional[Logger] = None
) -> MatchResult:
    """Match an expression set against a set of keys.

    An empty set matches with no elements. The first failing name makes the
    whole set fail and no partial elements are returned.

    Raises:
        ExpressionError: If an expression is invalid
    """
    logger = logger or get_logger()
    keys = keys or set()
    elements: List[MatchedElement] = []
    expressions: MatchExpressionSet = {}

    for name, expr in _sorted_items(mset):
        if not evaluate_key(expr, name, keys, logger):
            return MatchResult(False)
        elements.append({MATCHED_KEY_NAME: name})
        expressions[name] = expr

    return MatchResult(True, elements, expressions)


def match_values(
    mset: MatchExpressionSet,
    values: Values,
    fail_fast: bool = True,
    logger: Optional[Logger] = None,
) -> MatchResult:
    """Match an expression set against a name to value mapping.

    In fail-fast mode the first failing name aborts with no elements.
    Otherwise every name is evaluated and the matched ones are collected,
    while the overall result is still False if any name failed.

    Raises:
        ExpressionError: If an expression is invalid
    """
    logger = logger or get_logger()
    values = values or {}
    elements: List[MatchedElement] = []
    expressions: MatchExpressionSet = {}
    is_match = True

    for name, expr in _sorted_items(mset):
        if evaluate_value(expr, name, values, logger):
            elements.append({MATCHED_KEY_NAME: name, MATCHED_KEY_VALUE: values.get(name, "")})
            expressions[name] = expr
        elif fail_fast:
            return MatchResult(False)
        else:
            is_match = False

    return MatchResult(is_match, elements, expressions)


def match_instances(
    mset: MatchExpressionSet,
    instances: Instances,
    fail_fast: bool = True,
    logger: Optional[Logger] = None,
) -> MatchResult:
    """Match an expression set against every instance separately.

    The result matches if at least one instance matched the whole set, so an
    empty instance list never matches. Elements are copies of the matched
    instances' attributes.

    Raises:
        ExpressionError: If an expression is invalid
    """
    logger = logger or get_logger()
    elements: List[MatchedElement] = []
    expressions: MatchExpressionSet = {}

    for attributes in instances or []:
        result = match_values(mset, attributes, fail_fast, logger)
        if result.is_match:
            elements.append(dict(attributes))
        expressions.update(result.expressions)

    return MatchResult(len(elements) > 0, elements, expressions)


def match_multi(
    mset: MatchExpressionSet,
    keys: Keys,
    values: Values,
    instances: Instances,
    fail_fast: bool = True,
    logger: Optional[Logger] = None,
) -> MatchResult:
    """Match an expression set against a (possibly multi-type) feature.

    Keys and values are handled as a union: a name is satisfied if it
    matches in either of them. DoesNotExist is the exception, it requires
    the name to be absent from both. A None ``keys`` or ``values`` means the
    feature has no such shape. Instances are matched separately with
    match_instances and their result is OR-ed in.

    Args:
        mset: Expressions to match
        keys: Flag elements of the feature, or None
        values: Attribute elements of the feature, or None
        instances: Instance elements of the feature, or None
        fail_fast: Stop at the first unsatisfied name
        logger: Logger for match details

    Returns:
        Combined MatchResult; key/value elements sorted by name followed by
        the matched instances

    Raises:
        ExpressionError: If an expression is invalid
    """
    logger = logger or get_logger()
    elements: List[MatchedElement] = []
    expressions: MatchExpressionSet = {}
    # An empty expression set matches any present keys/values
    is_match = keys is not None or values is not None

    for name, expr in _sorted_items(mset):
        match_k = match_v = False
        failed_absence = False

        if keys is not None:
            match_k = evaluate_key(expr, name, keys, logger)
            if match_k:
                elements.append({MATCHED_KEY_NAME: name})
                expressions[name] = expr
            elif expr.op == MatchOp.DOES_NOT_EXIST:
                failed_absence = True

        if values is not None and not failed_absence:
            match_v = evaluate_value(expr, name, values, logger)
            if match_v:
                elements.append({MATCHED_KEY_NAME: name, MATCHED_KEY_VALUE: values.get(name, "")})
                expressions[name] = expr
            elif expr.op == MatchOp.DOES_NOT_EXIST:
                failed_absence = True

        if failed_absence or (not match_k and not match_v):
            is_match = False
            if fail_fast:
                elements = []
                expressions = {}
                break

    elements = _by_name(elements)

    instance_result = match_instances(mset, instances, fail_fast, logger)
    elements.extend(instance_result.elements)
    expressions.update(instance_result.expressions)

    return MatchResult(is_match or instance_result.is_match, elements, expressions)


def match_key_names(expr: MatchExpression, keys: Keys) -> MatchResult:
    """Match an expression against the names of flag elements."""
    elements = [{MATCHED_KEY_NAME: k} for k in keys or () if evaluate(expr, True, k)]
    return MatchResult(len(elements) > 0, _by_name(elements))


def match_value_names(expr: MatchExpression, values: Values) -> MatchResult:
    """Match an expression against the names of attribute elements."""
    elements = [
        {MATCHED_KEY_NAME: k, MATCHED_KEY_VALUE: v}
        for k, v in (values or {}).items()
        if evaluate(expr, True, k)
    ]
    return MatchResult(len(elements) > 0, _by_name(elements))


def match_instance_attribute_names(expr: MatchExpression, instances: Instances) -> MatchResult:
    """Match an expression against the attribute names of each instance.

    Instances with at least one matching attribute name are returned whole.
    """
    elements = [
        dict(attributes)
        for attributes in instances or []
        if match_value_names(expr, attributes).is_match
    ]
    return MatchResult(len(elements) > 0, elements)


def match_names_multi(
    expr: MatchExpression,
    keys: Keys,
    values: Values,
    instances: Instances,
    logger: Optional[Logger] = None,
) -> MatchResult:
    """Match an expression against every name of a (multi-type) feature.

    The result is the union of matching key names, value names and the
    instances having a matching attribute name.

    Raises:
        ExpressionError: If the expression is invalid
    """
    logger = logger or get_logger()
    elements = match_key_names(expr, keys).elements + match_value_names(expr, values).elements
    elements = _by_name(elements)
    elements.extend(match_instance_attribute_names(expr, instances).elements)

    logger.debug(
        "matched names",
        result=", ".join(e.get(MATCHED_KEY_NAME, "") for e in elements),
        op=expr.op.value,
        value=list(expr.value),
    )
    return MatchResult(len(elements) > 0, elements, {})
