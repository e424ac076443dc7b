"""featurerules API - rule and feature data model.

- Features: flag, attribute and instance features of a node
- MatchExpression, FeatureMatcherTerm, Rule, GroupRule: declarative rules
- decode_*: YAML/JSON documents to the typed model
"""

from .decode import (
    DecodeError,
    RuleFormat,
    decode_features,
    decode_group_rule,
    decode_match_expression,
    decode_match_expression_set,
    decode_node_feature_rule,
    decode_rule,
    load_features,
    load_rules,
    load_yaml_documents,
)
from .features import Features
from .types import (
    FeatureMatcher,
    FeatureMatcherTerm,
    GroupRule,
    MatchAnyElem,
    MatchedElement,
    MatchExpression,
    MatchExpressionSet,
    MatchOp,
    Rule,
    Taint,
    ValueType,
)

__all__ = [
    # Data model
    "Features",
    "FeatureMatcher",
    "FeatureMatcherTerm",
    "GroupRule",
    "MatchAnyElem",
    "MatchedElement",
    "MatchExpression",
    "MatchExpressionSet",
    "MatchOp",
    "Rule",
    "Taint",
    "ValueType",
    # Decoding
    "DecodeError",
    "RuleFormat",
    "decode_features",
    "decode_group_rule",
    "decode_match_expression",
    "decode_match_expression_set",
    "decode_node_feature_rule",
    "decode_rule",
    "load_features",
    "load_rules",
    "load_yaml_documents",
]
