"""featurerules Rules Engine.

This module evaluates rules against node features:
- expression: single MatchExpression evaluation
- matchers: key, value, instance and multi-type feature matchers
- engine: FeatureMatcher / MatchAny combinators, Rule and GroupRule execution
- validate: static validation of rule definitions
"""

from .engine import (
    GroupRuleOutput,
    MatchFeatureStatus,
    MatchStatus,
    RuleOutput,
    evaluate_feature_matcher,
    execute,
    execute_group_rule,
)
from .expression import ExpressionError, evaluate
from .matchers import (
    MatchResult,
    match_instances,
    match_keys,
    match_multi,
    match_names_multi,
    match_values,
)
from .validate import validate_rule

__all__ = [
    # Expressions
    "ExpressionError",
    "evaluate",
    # Matchers
    "MatchResult",
    "match_keys",
    "match_values",
    "match_instances",
    "match_multi",
    "match_names_multi",
    # Engine
    "MatchFeatureStatus",
    "MatchStatus",
    "RuleOutput",
    "GroupRuleOutput",
    "evaluate_feature_matcher",
    "execute",
    "execute_group_rule",
    # Validation
    "validate_rule",
]
