"""
featurerules core: Output Validators.

This module validates what rules produce before it is applied to a node:
label, annotation, taint and extended resource keys and values, feature
names of match terms, and template sources.

Single-item validators raise ValidationError; the plural helpers collect
one message per invalid item so tooling can report everything at once.
"""
import re
from typing import Dict, Iterable, List, Mapping, Tuple

from featurerules.core.constants import ErrorCode, Limits, Namespace, TaintEffect
from featurerules.core.errors import FeatureRulesError

# Kubernetes qualified name: optional DNS-1123 subdomain prefix and a name
_NAME_RE = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$")
_DNS1123_SUBDOMAIN_RE = re.compile(
    r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"
)
_LABEL_VALUE_RE = re.compile(r"^(([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?$")
# Kubernetes resource.Quantity: number with binary, decimal or exponent suffix
_QUANTITY_RE = re.compile(
    r"^[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)(Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE]|[eE][+-]?[0-9]+)?$"
)

ERR_NS_NOT_ALLOWED = "namespace is not allowed"
ERR_UNPREFIXED_KEYS_NOT_ALLOWED = "unprefixed keys are not allowed"
ERR_INVALID_TAINT_EFFECT = "invalid taint effect"
ERR_EMPTY_TAINT_EFFECT = "empty taint effect"

# Value substituted for "@domain.feature.element" dynamic values
DYNAMIC_VALUE_PLACEHOLDER = "0"


class ValidationError(FeatureRulesError):
    """Rule output or rule definition failed validation."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.VALIDATION_ERROR):
        super().__init__(message, error_code)


def split_namespace(fullname: str) -> Tuple[str, str]:
    """Split "<namespace>/<name>"; the namespace is "" when there is none."""
    namespace, sep, name = fullname.partition("/")
    if not sep:
        return "", fullname
    return namespace, name


def qualified_name_errors(key: str) -> List[str]:
    """Return the reasons ``key`` is not a Kubernetes qualified name."""
    errors = []
    parts = key.split("/")
    if len(parts) == 1:
        name = parts[0]
    elif len(parts) == 2:
        prefix, name = parts
        if not prefix:
            errors.append("prefix part must be non-empty")
        elif len(prefix) > Limits.MAX_PREFIX_LENGTH:
            errors.append(f"prefix part must be no more than {Limits.MAX_PREFIX_LENGTH} characters")
        elif not _DNS1123_SUBDOMAIN_RE.match(prefix):
            errors.append(
                "prefix part must consist of lower case alphanumeric characters, '-' or '.', "
                "and must start and end with an alphanumeric character"
            )
    else:
        return [
            "a qualified name must consist of alphanumeric characters, '-', '_' or '.', "
            "with an optional DNS subdomain prefix and '/'"
        ]

    if not name:
        errors.append("name part must be non-empty")
    elif len(name) > Limits.MAX_NAME_LENGTH:
        errors.append(f"name part must be no more than {Limits.MAX_NAME_LENGTH} characters")
    elif not _NAME_RE.match(name):
        errors.append(
            "name part must consist of alphanumeric characters, '-', '_' or '.', "
            "and must start and end with an alphanumeric character"
        )
    return errors


def is_quantity(value: str) -> bool:
    """Check whether ``value`` parses as a Kubernetes resource quantity."""
    return bool(_QUANTITY_RE.match(value))


def _check_namespace(key: str, allowed: str, allowed_suffix: str, *extra: Tuple[str, str]) -> None:
    namespace, _ = split_namespace(key)
    if not namespace:
        raise ValidationError(ERR_UNPREFIXED_KEYS_NOT_ALLOWED)
    if namespace == Namespace.KUBERNETES or namespace.endswith(Namespace.KUBERNETES_SUFFIX):
        for ns, suffix in ((allowed, allowed_suffix),) + extra:
            if namespace == ns or namespace.endswith(suffix):
                return
        raise ValidationError(ERR_NS_NOT_ALLOWED)


def validate_label(key: str, value: str) -> None:
    """Validate a label key and value.

    Raises:
        ValidationError: If the key is not a prefixed qualified name in an
            allowed namespace, or the value is not a valid label value
    """
    errors = qualified_name_errors(key)
    if errors:
        raise ValidationError(f"invalid label key {key!r}: {'; '.join(errors)}")
    _check_namespace(
        key,
        Namespace.FEATURE_LABEL,
        Namespace.FEATURE_LABEL_SUB_SUFFIX,
        (Namespace.PROFILE_LABEL, Namespace.PROFILE_LABEL_SUB_SUFFIX),
    )
    if len(value) > Limits.MAX_LABEL_VALUE_LENGTH:
        raise ValidationError(
            f"invalid value {value!r}: must be no more than {Limits.MAX_LABEL_VALUE_LENGTH} characters"
        )
    if not _LABEL_VALUE_RE.match(value):
        raise ValidationError(
            f"invalid value {value!r}: a valid label must be an empty string or consist of "
            "alphanumeric characters, '-', '_' or '.', and must start and end with an "
            "alphanumeric character"
        )


def validate_annotation(key: str, value: str) -> None:
    """Validate an annotation key and value.

    Raises:
        ValidationError: If the key is invalid or the value too long
    """
    errors = qualified_name_errors(key)
    if errors:
        raise ValidationError(f"invalid annotation key {key!r}: {'; '.join(errors)}")
    _check_namespace(key, Namespace.FEATURE_ANNOTATION, Namespace.FEATURE_ANNOTATION_SUB_SUFFIX)
    if len(value) > Limits.MAX_ANNOTATION_VALUE_LENGTH:
        raise ValidationError(
            "invalid value: too long: feature annotations must not be longer than "
            f"{Limits.MAX_ANNOTATION_VALUE_LENGTH} characters"
        )


def validate_taint(key: str, value: str, effect: str) -> None:
    """Validate a taint.

    Raises:
        ValidationError: If the key namespace is not allowed or the effect is
            empty or unknown
    """
    _check_namespace(key, Namespace.TAINT, Namespace.TAINT_SUB_SUFFIX)
    if not effect:
        raise ValidationError(ERR_EMPTY_TAINT_EFFECT)
    if effect not in {e.value for e in TaintEffect}:
        raise ValidationError(ERR_INVALID_TAINT_EFFECT)


def validate_extended_resource(key: str, value: str) -> None:
    """Validate an extended resource name and quantity.

    Raises:
        ValidationError: If the name is invalid or the value is not a quantity
    """
    errors = qualified_name_errors(key)
    if errors:
        raise ValidationError(f"invalid name {key!r}: {'; '.join(errors)}")
    _check_namespace(key, Namespace.EXTENDED_RESOURCE, Namespace.EXTENDED_RESOURCE_SUB_SUFFIX)
    if not is_quantity(value):
        raise ValidationError(f"invalid value {value!r}: quantities must match the regular expression")


def validate_labels(labels: Mapping[str, str]) -> List[str]:
    """Validate labels, returning one message per invalid label."""
    errors = []
    for key, value in sorted(labels.items()):
        try:
            validate_label(key, value)
        except ValidationError as e:
            errors.append(f"invalid label {key!r}:{value!r} {e}")
    return errors


def validate_annotations(annotations: Mapping[str, str]) -> List[str]:
    """Validate annotations, returning one message per invalid annotation."""
    errors = []
    for key, value in sorted(annotations.items()):
        try:
            validate_annotation(key, value)
        except ValidationError as e:
            errors.append(f"invalid annotation {key!r}:{value!r} {e}")
    return errors


def validate_taints(taints: Iterable) -> List[str]:
    """Validate taints (objects with key, value and effect)."""
    errors = []
    for taint in taints:
        try:
            validate_taint(taint.key, taint.value, taint.effect)
        except ValidationError as e:
            errors.append(f"invalid taint {taint.key}={taint.value}:{taint.effect}: {e}")
    return errors


def validate_extended_resources(resources: Mapping[str, str]) -> List[str]:
    """Validate extended resources, returning one message per invalid entry."""
    errors = []
    for key, value in sorted(resources.items()):
        try:
            validate_extended_resource(key, value)
        except ValidationError as e:
            errors.append(f"invalid extended resource {key!r}:{value!r} {e}")
    return errors


def validate_feature_names(features: Iterable[str]) -> List[str]:
    """Check that every feature name has the "<domain>.<feature>" form."""
    return [
        f"invalid feature name {name} (not <domain>.<feature>), cannot be used for templating"
        for name in features
        if len(name.split(".")) != 2
    ]


def with_placeholder_values(values: Mapping[str, str]) -> Dict[str, str]:
    """Replace "@domain.feature.element" dynamic values with a placeholder."""
    return {
        k: DYNAMIC_VALUE_PLACEHOLDER if v.startswith("@") else v for k, v in values.items()
    }
