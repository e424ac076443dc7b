#!/usr/bin/env python3
"""Match expression evaluation.

This module evaluates a single MatchExpression against one input:
- Presence operators (Any, Exists, DoesNotExist)
- Set membership (In, NotIn) and regexps (InRegexp)
- Integer comparison and intervals (Gt, Ge, Lt, Le, GtLt, GeLe)
- Version comparison for ``type: version``, including kernel-style
  "<version>-<flavor>" inputs
- Boolean literals (IsTrue, IsFalse)

Example:
    >>> expr = MatchExpression(MatchOp.GT, ("2",))
    >>> evaluate(expr, True, "3")
    True
    >>> evaluate(expr, False)
    False
"""

import re
from functools import lru_cache
from typing import Any, Optional, Pattern, Tuple

from packaging.version import InvalidVersion, Version

from featurerules.api.types import (
    COMPARISON_OPS,
    INTERVAL_OPS,
    NO_VALUE_OPS,
    MatchExpression,
    MatchOp,
    ValueType,
)
from featurerules.core.constants import ErrorCode, Limits
from featurerules.core.errors import FeatureRulesError

# Same syntax as Go's strconv.Atoi: optional sign, decimal digits only
_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")


class ExpressionError(FeatureRulesError):
    """Invalid expression or operand that cannot be compared."""


@lru_cache(maxsize=Limits.REGEX_CACHE_SIZE)
def compile_regexp(pattern: str) -> Pattern[str]:
    """Compile (and cache) a regular expression.

    Raises:
        ExpressionError: If the pattern does not compile
    """
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ExpressionError(f"invalid regexp {pattern!r}: {e}")


def parse_int(value: str, expr: Optional[MatchExpression] = None) -> int:
    """Parse a decimal integer operand.

    Raises:
        ExpressionError: If ``value`` is not an integer
    """
    if not _INTEGER_RE.match(value):
        if expr is None:
            raise ExpressionError(f"not a number {value!r}")
        raise ExpressionError(f"not a number {value!r} in {expr}")
    return int(value)


def split_flavor(raw: str) -> Tuple[str, str]:
    """Split "<version>-<flavor>" on the first dash."""
    version, _, flavor = raw.partition("-")
    return version, flavor


def parse_version(value: str) -> Version:
    """Parse a version string.

    Raises:
        ExpressionError: If ``value`` is not a valid version
    """
    try:
        return Version(value)
    except InvalidVersion:
        raise ExpressionError(f"not a version {value!r}", ErrorCode.PARSE_ERROR)


def _check_arity(expr: MatchExpression) -> None:
    op = expr.op
    if op in NO_VALUE_OPS:
        if expr.value:
            raise ExpressionError(
                f"invalid expression, 'value' field must be empty for Op {op.value!r} "
                f"(have {list(expr.value)})"
            )
    elif op in COMPARISON_OPS:
        if len(expr.value) != 1:
            raise ExpressionError(
                f"invalid expression, 'value' field must contain exactly one element "
                f"for Op {op.value!r} (have {list(expr.value)})"
            )
    elif op in INTERVAL_OPS:
        if len(expr.value) != 2:
            raise ExpressionError(
                f"invalid expression, 'value' field must contain exactly two elements "
                f"for Op {op.value!r} (have {list(expr.value)})"
            )
    elif not expr.value:
        raise ExpressionError(
            f"invalid expression, 'value' field must be non-empty for Op {op.value!r}"
        )


def validate(expr: MatchExpression) -> None:
    """Check that an expression is well formed.

    Args:
        expr: Expression to check

    Raises:
        ExpressionError: On wrong operand count, unparseable numeric or version
            operands, unordered interval bounds or invalid regexps
    """
    _check_arity(expr)

    if expr.op == MatchOp.IN_REGEXP:
        for pattern in expr.value:
            compile_regexp(pattern)
    elif expr.op in COMPARISON_OPS:
        if expr.type == ValueType.VERSION:
            parse_version(split_flavor(expr.value[0])[0])
        else:
            parse_int(expr.value[0], expr)
    elif expr.op in INTERVAL_OPS:
        if expr.type == ValueType.VERSION:
            (low, low_flavor), (high, high_flavor) = (split_flavor(v) for v in expr.value)
            if low_flavor != high_flavor:
                raise ExpressionError(
                    f"flavor must be the same in both bounds of the interval, have {list(expr.value)}"
                )
            bounds = (parse_version(low), parse_version(high))
        else:
            bounds = (parse_int(expr.value[0], expr), parse_int(expr.value[1], expr))
        if bounds[0] >= bounds[1]:
            raise ExpressionError(
                f"invalid expression, value[0] must be less than value[1] for Op "
                f"{expr.op.value!r} (have {list(expr.value)})"
            )


def _compare(op: MatchOp, left: Any, right: Any) -> bool:
    if op == MatchOp.LT:
        return left < right
    if op == MatchOp.LE:
        return left <= right
    if op == MatchOp.GT:
        return left > right
    return left >= right


def _in_interval(op: MatchOp, value: Any, low: Any, high: Any) -> bool:
    if low >= high:
        raise ExpressionError(
            f"invalid expression, value[0] must be less than value[1] for Op {op.value!r}"
        )
    if op == MatchOp.GT_LT:
        return low < value < high
    return low <= value <= high


def _evaluate_version(expr: MatchExpression, value: str) -> bool:
    version, flavor = split_flavor(value)
    input_version = parse_version(version)

    if expr.op in COMPARISON_OPS:
        bound, bound_flavor = split_flavor(expr.value[0])
        if not compile_regexp(bound_flavor).search(flavor):
            return False
        return _compare(expr.op, input_version, parse_version(bound))

    (low, low_flavor), (high, high_flavor) = (split_flavor(v) for v in expr.value)
    if low_flavor != high_flavor:
        raise ExpressionError(
            f"flavor must be the same in both bounds of the interval, have {list(expr.value)}"
        )
    if not compile_regexp(low_flavor).search(flavor):
        return False
    return _in_interval(expr.op, input_version, parse_version(low), parse_version(high))


def evaluate(expr: MatchExpression, valid: bool, value: Optional[Any] = None) -> bool:
    """Evaluate an expression against one input.

    Args:
        expr: Expression to evaluate
        valid: Whether the feature element is present at all
        value: Element value; None for value-less elements (flags)

    Returns:
        True if the expression matches

    Raises:
        ExpressionError: If the expression is malformed or a comparison
            operand is not a number (or version)
    """
    op = expr.op

    if op in (MatchOp.ANY, MatchOp.EXISTS, MatchOp.DOES_NOT_EXIST):
        _check_arity(expr)
        if op == MatchOp.ANY:
            return True
        if op == MatchOp.EXISTS:
            return valid
        return not valid

    if not valid or value is None:
        return False

    _check_arity(expr)
    text = value if isinstance(value, str) else str(value)

    if op == MatchOp.IN:
        return text in expr.value
    if op == MatchOp.NOT_IN:
        return text not in expr.value
    if op == MatchOp.IN_REGEXP:
        patterns = [compile_regexp(v) for v in expr.value]
        return any(p.search(text) for p in patterns)
    if op in COMPARISON_OPS or op in INTERVAL_OPS:
        if expr.type == ValueType.VERSION:
            return _evaluate_version(expr, text)
        number = parse_int(text)
        if op in COMPARISON_OPS:
            return _compare(op, number, parse_int(expr.value[0], expr))
        return _in_interval(
            op, number, parse_int(expr.value[0], expr), parse_int(expr.value[1], expr)
        )
    if op == MatchOp.IS_TRUE:
        return text == "true"
    if op == MatchOp.IS_FALSE:
        return text == "false"

    raise ExpressionError(f"unsupported Op {op.value!r}", ErrorCode.INTERNAL_ERROR)
