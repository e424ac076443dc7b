"""
featurerules core: Constants and Type Definitions

This module provides system-wide constants, error codes, well-known
namespaces and default configuration for the rule engine.
"""
from enum import Enum, IntEnum
from typing import Any, Dict, TypeAlias

# Version information
FEATURERULES_VERSION = "0.1.0"
FEATURERULES_API_VERSION = "v1alpha1"


class ErrorCode(IntEnum):
    """Standardized error codes for featurerules operations."""

    SUCCESS = 0  # Operation completed successfully
    INVALID_INPUT = 1  # Bad expression, bad rule or config value
    NOT_FOUND = 2  # File, feature or element doesn't exist
    PARSE_ERROR = 3  # YAML, template or version parsing failed
    VALIDATION_ERROR = 4  # Output key/value rejected by a validator
    INTERNAL_ERROR = 6  # Bug in featurerules


# Type aliases for clarity
FeatureName: TypeAlias = str  # "<domain>.<feature>"
ElementName: TypeAlias = str


# Keys of a matched element handed to templates
MATCHED_KEY_NAME = "Name"
MATCHED_KEY_VALUE = "Value"

# Back-reference feature holding the output of previously executed rules
RULE_BACKREF_DOMAIN = "rule"
RULE_BACKREF_FEATURE = "matched"


class Namespace:
    """Well-known Kubernetes namespaces for generated node objects."""

    KUBERNETES = "kubernetes.io"
    KUBERNETES_SUFFIX = ".kubernetes.io"

    FEATURE_LABEL = "feature.node.kubernetes.io"
    FEATURE_LABEL_SUB_SUFFIX = ".feature.node.kubernetes.io"
    PROFILE_LABEL = "profile.node.kubernetes.io"
    PROFILE_LABEL_SUB_SUFFIX = ".profile.node.kubernetes.io"

    FEATURE_ANNOTATION = "feature.node.kubernetes.io"
    FEATURE_ANNOTATION_SUB_SUFFIX = ".feature.node.kubernetes.io"

    TAINT = "feature.node.kubernetes.io"
    TAINT_SUB_SUFFIX = ".feature.node.kubernetes.io"

    EXTENDED_RESOURCE = "feature.node.kubernetes.io"
    EXTENDED_RESOURCE_SUB_SUFFIX = ".feature.node.kubernetes.io"


class TaintEffect(str, Enum):
    """Taint effects accepted by the kubelet."""

    NO_SCHEDULE = "NoSchedule"
    PREFER_NO_SCHEDULE = "PreferNoSchedule"
    NO_EXECUTE = "NoExecute"


class Limits:
    """Size limits of generated node objects."""

    # Qualified names
    MAX_NAME_LENGTH = 63
    MAX_PREFIX_LENGTH = 253

    # Label values
    MAX_LABEL_VALUE_LENGTH = 63

    # Annotation values
    MAX_ANNOTATION_VALUE_LENGTH = 1 << 10

    # Compiled template cache
    TEMPLATE_CACHE_SIZE = 256
    REGEX_CACHE_SIZE = 1024


class ConfigKey:
    """Dotted configuration keys understood by the ConfigManager."""

    FAIL_FAST = "engine.fail_fast"
    LOG_LEVEL = "logging.level"
    LOG_FILE = "logging.file"
    COMPAT_TAGS = "compat.tags"


DEFAULT_CONFIG: Dict[str, Any] = {
    "engine": {
        "fail_fast": True,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
    "compat": {
        "tags": [],
    },
}
