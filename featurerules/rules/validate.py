#!/usr/bin/env python3
"""Static validation of rule definitions.

Checks everything about a Rule that can be known without features: its
name, output keys and values, template syntax, feature names and match
expressions. Dynamic values ("@domain.feature.element") are validated with a
placeholder since their real value is only known at execution time.

Example:
    >>> errors = validate_rule(rule)
    >>> for message in errors:
    ...     print(message)
"""

from typing import Iterable, List

from featurerules.api.types import FeatureMatcher, MatchAnyElem, Rule
from featurerules.core.validators import (
    validate_annotations,
    validate_extended_resources,
    validate_feature_names,
    validate_labels,
    validate_taints,
    with_placeholder_values,
)
from featurerules.rules.expression import ExpressionError, validate
from featurerules.templating.expander import TemplateError, check_template


def validate_template(source: str) -> List[str]:
    """Return the parse error of a template source, if any."""
    if not source:
        return []
    try:
        check_template(source)
    except TemplateError as e:
        return [str(e)]
    return []


def validate_match_features(matcher: FeatureMatcher) -> List[str]:
    """Validate the feature names and expressions of a FeatureMatcher."""
    errors = validate_feature_names(term.feature for term in matcher)
    for term in matcher:
        for name, expr in sorted((term.match_expressions or {}).items()):
            try:
                validate(expr)
            except ExpressionError as e:
                errors.append(f"invalid expression {name!r} of feature {term.feature}: {e}")
        if term.match_name is not None:
            try:
                validate(term.match_name)
            except ExpressionError as e:
                errors.append(f"invalid matchName of feature {term.feature}: {e}")
    return errors


def validate_match_any(match_any: Iterable[MatchAnyElem]) -> List[str]:
    """Validate every branch of a MatchAny."""
    errors: List[str] = []
    for elem in match_any:
        errors.extend(validate_match_features(elem.match_features))
    return errors


def validate_rule(rule: Rule) -> List[str]:
    """Validate a rule, returning every problem found.

    Args:
        rule: Rule to validate

    Returns:
        List of error messages, empty if the rule is valid
    """
    errors: List[str] = []
    if not rule.name:
        errors.append("rule name cannot be empty")

    errors.extend(validate_annotations(rule.annotations))
    errors.extend(validate_labels(with_placeholder_values(rule.labels)))
    errors.extend(validate_taints(rule.taints))
    errors.extend(validate_extended_resources(with_placeholder_values(rule.extended_resources)))
    errors.extend(validate_template(rule.labels_template))
    errors.extend(validate_template(rule.vars_template))
    errors.extend(validate_match_features(rule.match_features))
    errors.extend(validate_match_any(rule.match_any))
    return errors
