"""featurerules Image Compatibility.

Validates a node against the compatibility specification of an image and
reports which rule expressions succeeded.
"""

from .node_validator import NodeValidator, match_feature_expressions
from .spec import Compatibility, CompatibilitySpec, decode_compatibility_spec
from .status import (
    CompatibilityStatus,
    MatchAnyStatus,
    MatchedExpression,
    MatcherType,
    ProcessedRuleStatus,
)

__all__ = [
    "Compatibility",
    "CompatibilitySpec",
    "decode_compatibility_spec",
    "NodeValidator",
    "match_feature_expressions",
    "CompatibilityStatus",
    "MatchAnyStatus",
    "MatchedExpression",
    "MatcherType",
    "ProcessedRuleStatus",
]
