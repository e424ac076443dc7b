#!/usr/bin/env python3
"""Node validation against image compatibility specifications.

Executes the rules of every compatibility set against the features of a node
in exhaustive mode and reports, expression by expression, what succeeded.
Vars produced by a rule are made available to later rules through the
"rule.matched" attribute feature.

Example:
    >>> validator = NodeValidator(spec, features, tags=["prod"])
    >>> for status in validator.execute():
    ...     print(status.tag, status.is_match)
"""

from typing import Iterable, List, Optional

from featurerules.api.features import Features
from featurerules.api.types import FeatureMatcher, FeatureMatcherTerm, GroupRule
from featurerules.compat.spec import CompatibilitySpec
from featurerules.compat.status import (
    CompatibilityStatus,
    MatchAnyStatus,
    MatchedExpression,
    MatcherType,
    ProcessedRuleStatus,
)
from featurerules.core.constants import RULE_BACKREF_DOMAIN, RULE_BACKREF_FEATURE
from featurerules.infrastructure.logger import Logger, get_logger
from featurerules.rules.engine import MatchStatus, execute_group_rule


class NodeValidator:
    """Evaluates a compatibility specification against node features."""

    def __init__(
        self,
        spec: CompatibilitySpec,
        features: Features,
        tags: Optional[Iterable[str]] = None,
        logger: Optional[Logger] = None,
    ):
        """Initialize the validator.

        Args:
            spec: Compatibility specification of the image
            features: Features discovered on the node; not modified
            tags: Only evaluate compatibility sets with one of these tags
            logger: Logger for progress and match details
        """
        self.spec = spec
        self.features = features
        self.tags = list(tags or [])
        self.logger = logger or get_logger()

    def execute(self) -> List[CompatibilityStatus]:
        """Evaluate every selected compatibility set.

        Returns:
            One CompatibilityStatus per selected set, in document order

        Raises:
            ExpressionError: If a rule expression is invalid
            TemplateError: If a rule template fails
        """
        features = self.features.copy()
        statuses = []

        for compat in self.spec.compatibilities:
            if self.tags and compat.tag not in self.tags:
                continue
            status = CompatibilityStatus(
                description=compat.description, weight=compat.weight, tag=compat.tag
            )
            with self.logger.add_context(tag=compat.tag):
                for rule in compat.rules:
                    out = execute_group_rule(rule, features, fail_fast=False, logger=self.logger)
                    status.rules.append(self.evaluate_rule_status(rule, out.match_status))
                    features.insert_attribute_features(
                        RULE_BACKREF_DOMAIN, RULE_BACKREF_FEATURE, out.vars
                    )
            statuses.append(status)

        return statuses

    def evaluate_rule_status(self, rule: GroupRule, match_status: MatchStatus) -> ProcessedRuleStatus:
        """Pair every expression of a rule with its match result."""
        out = ProcessedRuleStatus(name=rule.name, is_match=match_status.is_match)

        matched_terms: FeatureMatcher = []
        if match_status.match_feature_status is not None:
            matched_terms = match_status.match_feature_status.matched_feature_terms
        out.matched_expressions = match_feature_expressions(rule.match_features, matched_terms)

        for i, elem in enumerate(rule.match_any):
            branch_terms: FeatureMatcher = []
            if i < len(match_status.match_any):
                branch_terms = match_status.match_any[i].matched_feature_terms
            out.matched_any.append(
                MatchAnyStatus(match_feature_expressions(elem.match_features, branch_terms))
            )

        return out


def _same_expression(a, b) -> bool:
    return a is not None and b is not None and a.op == b.op and a.value == b.value


def match_feature_expressions(
    matcher: FeatureMatcher, matched_terms: FeatureMatcher
) -> List[MatchedExpression]:
    """List every expression of ``matcher`` with whether it succeeded.

    Args:
        matcher: Terms of the rule
        matched_terms: Terms recorded as succeeded during evaluation

    Returns:
        Expressions sorted by feature, name and expression
    """
    out: List[MatchedExpression] = []

    for term in matcher:
        if term.match_expressions is not None:
            out.extend(_match_expressions(term, matched_terms))
        if term.match_name is not None:
            out.append(_match_name(term, matched_terms))

    out.sort(key=MatchedExpression.sort_key)
    return out


def _processed(term: FeatureMatcherTerm, matched_terms: FeatureMatcher) -> List[FeatureMatcherTerm]:
    feature = term.feature.lower()
    return [t for t in matched_terms if t.feature.lower() == feature]


def _match_expressions(
    term: FeatureMatcherTerm, matched_terms: FeatureMatcher
) -> List[MatchedExpression]:
    processed = _processed(term, matched_terms)
    out = []
    for name, expr in (term.match_expressions or {}).items():
        is_match = any(
            _same_expression(expr, (p.match_expressions or {}).get(name)) for p in processed
        )
        out.append(
            MatchedExpression(
                feature=term.feature,
                name=name,
                expression=expr,
                matcher_type=MatcherType.MATCH_EXPRESSION,
                is_match=is_match,
            )
        )
    return out


def _match_name(term: FeatureMatcherTerm, matched_terms: FeatureMatcher) -> MatchedExpression:
    is_match = any(
        _same_expression(term.match_name, p.match_name) for p in _processed(term, matched_terms)
    )
    return MatchedExpression(
        feature=term.feature,
        name="",
        expression=term.match_name,
        matcher_type=MatcherType.MATCH_NAME,
        is_match=is_match,
    )
