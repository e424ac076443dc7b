#!/usr/bin/env python3
"""Rule engine: evaluates rules against discovered features.

This module executes Rule and GroupRule objects:
- FeatureMatcher terms combined with logical AND, in document order
- MatchAny branches combined with logical OR
- Case-insensitive feature lookup across flags, attributes and instances
- LabelsTemplate / VarsTemplate expansion over the matched elements
- Static labels and vars applied on top of the template output
- Match diagnostics recording which expressions succeeded

Two evaluation modes are supported. Fail-fast mode (production labeling)
stops as soon as the result is known; exhaustive mode (validation tooling)
evaluates every term so the diagnostics are complete. Errors abort the
evaluation in both modes.

Example:
    >>> rule = Rule(
    ...     name="avx",
    ...     labels={"feature.node.kubernetes.io/avx": "true"},
    ...     match_features=[FeatureMatcherTerm("cpu.cpuid", {"AVX": exists})],
    ... )
    >>> execute(rule, features).labels
    {'feature.node.kubernetes.io/avx': 'true'}
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from featurerules.api.features import Features
from featurerules.api.types import (
    FeatureMatcher,
    FeatureMatcherTerm,
    GroupRule,
    MatchAnyElem,
    MatchedElement,
    Rule,
    Taint,
)
from featurerules.infrastructure.logger import Logger, get_logger
from featurerules.rules.matchers import match_multi, match_names_multi
from featurerules.templating.expander import TemplateError, TemplateHelper

# domain -> feature -> matched elements
MatchedFeatures = Dict[str, Dict[str, List[MatchedElement]]]


@dataclass
class MatchFeatureStatus:
    """Matched elements and succeeded terms of one FeatureMatcher."""

    matched_features: MatchedFeatures = field(default_factory=dict)
    matched_feature_terms: FeatureMatcher = field(default_factory=list)


@dataclass
class MatchStatus:
    """Diagnostics of a rule evaluation."""

    match_feature_status: Optional[MatchFeatureStatus] = None
    is_match: bool = False
    # One entry per evaluated MatchAny branch
    match_any: List[MatchFeatureStatus] = field(default_factory=list)


@dataclass
class RuleOutput:
    """Output of a rule. Every map is None when the rule did not match."""

    labels: Optional[Dict[str, str]] = None
    vars: Optional[Dict[str, str]] = None
    annotations: Optional[Dict[str, str]] = None
    extended_resources: Optional[Dict[str, str]] = None
    taints: Optional[List[Taint]] = None
    match_status: MatchStatus = field(default_factory=MatchStatus)


@dataclass
class GroupRuleOutput:
    """Output of a group rule. ``vars`` is None when the rule did not match."""

    vars: Optional[Dict[str, str]] = None
    match_status: MatchStatus = field(default_factory=MatchStatus)

    @property
    def is_match(self) -> bool:
        return self.match_status.is_match


def split_feature_name(name: str, logger: Logger) -> Tuple[str, str]:
    """Split "<domain>.<feature>" into the keys used for templating.

    A name without a dot cannot be referenced from templates; it is logged
    and filed under its lowercased full name.
    """
    domain, sep, feature = name.partition(".")
    if not sep:
        logger.warning(
            "invalid feature name (not <domain>.<feature>), cannot be used for templating",
            feature=name,
        )
        return name.lower(), ""
    return domain, feature


def evaluate_feature_matcher(
    matcher: FeatureMatcher,
    features: Features,
    fail_fast: bool = True,
    logger: Optional[Logger] = None,
) -> Tuple[bool, MatchFeatureStatus]:
    """Evaluate a FeatureMatcher (logical AND over its terms).

    A term whose feature is missing from the store fails; it is not an error.

    Args:
        matcher: Terms to evaluate
        features: Discovered features
        fail_fast: Return on the first failing term
        logger: Logger for match details

    Returns:
        Tuple of (is_match, status with matched elements and terms)

    Raises:
        ExpressionError: If an expression is invalid
    """
    logger = logger or get_logger()
    status = MatchFeatureStatus()
    is_match = True

    for term in matcher:
        feature_name = term.feature.lower()
        domain, name = split_feature_name(term.feature, logger)
        domain_features = status.matched_features.setdefault(domain, {})

        keys = features.flags.get(feature_name)
        values = features.attributes.get(feature_name)
        instances = features.instances.get(feature_name)

        if keys is None and values is None and instances is None:
            logger.debug("feature not available", feature=feature_name)
            domain_features.setdefault(name, [])
            if fail_fast:
                return False, status
            is_match = False
            continue

        term_match = True
        elements: List[MatchedElement] = []
        matched_term = FeatureMatcherTerm(feature=feature_name)

        if term.match_expressions is not None:
            result = match_multi(term.match_expressions, keys, values, instances, fail_fast, logger)
            term_match = result.is_match
            elements.extend(result.elements)
            matched_term.match_expressions = result.expressions

        if term.match_name is not None and (term_match or not fail_fast):
            result = match_names_multi(term.match_name, keys, values, instances, logger)
            elements.extend(result.elements)
            if result.is_match:
                matched_term.match_name = term.match_name
            term_match = term_match and result.is_match

        domain_features.setdefault(name, []).extend(elements)
        if matched_term.match_name is not None or matched_term.match_expressions:
            status.matched_feature_terms.append(matched_term)

        logger.debug("term evaluated", feature=feature_name, matched=term_match)

        if not term_match:
            if fail_fast:
                return False, status
            is_match = False

    return is_match, status


def _expand_template(source: str, field_name: str, data: MatchedFeatures, out: Dict[str, str]) -> None:
    if not source:
        return
    try:
        helper = TemplateHelper(source)
    except TemplateError as e:
        raise TemplateError(f"failed to parse {field_name}: {e}", e.error_code) from e
    try:
        out.update(helper.expand_map(data))
    except TemplateError as e:
        raise TemplateError(f"failed to expand {field_name}: {e}", e.error_code) from e


def _execute(
    rule: Union[Rule, GroupRule],
    features: Features,
    fail_fast: bool,
    logger: Logger,
    labels_template: str = "",
    static_labels: Optional[Dict[str, str]] = None,
) -> Tuple[MatchStatus, Optional[Dict[str, str]], Optional[Dict[str, str]]]:
    """Shared MatchAny / MatchFeatures evaluation of Rule and GroupRule.

    GroupRule has no labels, so only execute() passes labels_template and
    static_labels.

    Returns:
        Tuple of (status, labels, vars); labels and vars are None if the
        rule did not match
    """
    status = MatchStatus()
    labels: Dict[str, str] = {}
    variables: Dict[str, str] = {}
    has_templates = bool(labels_template or rule.vars_template)

    if rule.match_any:
        any_match = False
        for branch in rule.match_any:
            matched, branch_status = evaluate_match_any_elem(branch, features, fail_fast, logger)
            status.match_any.append(branch_status)
            if not matched:
                continue
            any_match = True
            logger.debug("matchAny matched", matched_features=branch_status.matched_features)
            if fail_fast and not has_templates:
                # The remaining branches cannot change the output
                break
            _expand_template(labels_template, "LabelsTemplate", branch_status.matched_features, labels)
            _expand_template(rule.vars_template, "VarsTemplate", branch_status.matched_features, variables)

        if not any_match:
            logger.info("rule did not match")
            return status, None, None

    if rule.match_features:
        matched, status.match_feature_status = evaluate_feature_matcher(
            rule.match_features, features, fail_fast, logger
        )
        if not matched:
            logger.info("rule did not match")
            return status, None, None
        matched_features = status.match_feature_status.matched_features
        logger.debug("matchFeatures matched", matched_features=matched_features)
        _expand_template(labels_template, "LabelsTemplate", matched_features, labels)
        _expand_template(rule.vars_template, "VarsTemplate", matched_features, variables)

    labels.update(static_labels or {})
    variables.update(rule.vars)
    status.is_match = True
    return status, labels, variables


def evaluate_match_any_elem(
    elem: MatchAnyElem,
    features: Features,
    fail_fast: bool = True,
    logger: Optional[Logger] = None,
) -> Tuple[bool, MatchFeatureStatus]:
    """Evaluate one MatchAny branch."""
    return evaluate_feature_matcher(elem.match_features, features, fail_fast, logger)


def execute(
    rule: Rule,
    features: Features,
    fail_fast: bool = True,
    logger: Optional[Logger] = None,
) -> RuleOutput:
    """Execute a rule against a set of features.

    A rule without matchers matches unconditionally. When it does not match
    the returned output has no labels, vars, annotations, extended resources
    or taints, only the match status.

    Args:
        rule: Rule to execute
        features: Discovered features
        fail_fast: Stop evaluation as soon as the result is known
        logger: Logger for match details (defaults to the global logger)

    Returns:
        RuleOutput of the rule

    Raises:
        ExpressionError: If an expression of the rule is invalid
        TemplateError: If a template fails to parse or expand
    """
    logger = logger or get_logger()
    with logger.add_context(rule=rule.name):
        status, labels, variables = _execute(
            rule, features, fail_fast, logger, rule.labels_template, rule.labels
        )
        if not status.is_match:
            return RuleOutput(match_status=status)

        output = RuleOutput(
            labels=labels,
            vars=variables,
            annotations=dict(rule.annotations),
            extended_resources=dict(rule.extended_resources),
            taints=list(rule.taints),
            match_status=status,
        )
        logger.info("rule matched", labels=len(output.labels), vars=len(output.vars))
        return output


def execute_group_rule(
    rule: GroupRule,
    features: Features,
    fail_fast: bool = True,
    logger: Optional[Logger] = None,
) -> GroupRuleOutput:
    """Execute a group rule against a set of features.

    Evaluation is identical to execute() but only vars are produced.

    Raises:
        ExpressionError: If an expression of the rule is invalid
        TemplateError: If the vars template fails to parse or expand
    """
    logger = logger or get_logger()
    with logger.add_context(rule=rule.name):
        status, _, variables = _execute(rule, features, fail_fast, logger)
        if status.is_match:
            logger.info("rule matched", vars=len(variables or {}))
        return GroupRuleOutput(vars=variables, match_status=status)
