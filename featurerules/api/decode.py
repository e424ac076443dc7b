#!/usr/bin/env python3
"""Decoding of rule, feature and expression documents.

This module turns YAML/JSON data (already loaded into Python objects) into the
typed rule model:
- MatchExpression from scalar, list or {op, value, type} mappings
- MatchExpressionSet from its list shorthand or its mapping form
- Rule / GroupRule / NodeFeatureRule documents
- Features from NodeFeature objects or bare feature mappings

The rule shape (modern or legacy ``matchOn``) is discriminated once, when the
rule mapping is decoded.

Example:
    >>> decode_match_expression_set(["foo", "bar=baz"])
    {'bar': MatchExpression(op=<MatchOp.IN: 'In'>, ...), 'foo': ...}
"""

from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from featurerules.api.features import Features
from featurerules.api.types import (
    FeatureMatcher,
    FeatureMatcherTerm,
    GroupRule,
    MatchAnyElem,
    MatchExpression,
    MatchExpressionSet,
    MatchOp,
    Rule,
    Taint,
    ValueType,
)
from featurerules.core.constants import ErrorCode
from featurerules.core.errors import FeatureRulesError


class DecodeError(FeatureRulesError):
    """Document could not be decoded into the rule model."""

    def __init__(self, message: str, path: str = "", error_code: ErrorCode = ErrorCode.PARSE_ERROR):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message, error_code)


class RuleFormat(Enum):
    """Shape of a rule mapping."""

    MODERN = "modern"  # matchFeatures / matchAny
    LEGACY = "legacy"  # matchOn, no longer supported


def detect_rule_format(data: Mapping[str, Any]) -> RuleFormat:
    """Return the shape of a rule mapping."""
    if "matchOn" in data:
        return RuleFormat.LEGACY
    return RuleFormat.MODERN


def format_scalar(value: Any) -> str:
    """Stringify a YAML scalar the way operands are compared.

    Booleans become "true"/"false". Floats are written in positional
    notation with the shortest digits that round-trip, so 1e-07 becomes
    "0.0000001" and 2.0 becomes "2".
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return format(Decimal(repr(value)), "f")
    if isinstance(value, (int, str)):
        return str(value)
    raise TypeError(f"unsupported scalar type {type(value).__name__}")


def _decode_values(data: Any, path: str) -> tuple:
    if data is None:
        return ()
    if isinstance(data, (list, tuple)):
        items = data
    else:
        items = [data]
    try:
        return tuple(format_scalar(v) for v in items)
    except TypeError as e:
        raise DecodeError(str(e), path)


def _expect_mapping(data: Any, path: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise DecodeError(f"expected a mapping, got {type(data).__name__}", path)
    return data


def _expect_list(data: Any, path: str) -> list:
    if data is None:
        return []
    if not isinstance(data, list):
        raise DecodeError(f"expected a list, got {type(data).__name__}", path)
    return data


def _string_map(data: Any, path: str) -> Dict[str, str]:
    mapping = _expect_mapping(data, path)
    try:
        return {str(k): "" if v is None else format_scalar(v) for k, v in mapping.items()}
    except TypeError as e:
        raise DecodeError(str(e), path)


def decode_match_expression(data: Any, path: str = "matchExpression") -> MatchExpression:
    """Decode a single MatchExpression.

    Args:
        data: Mapping with ``op``/``value``/``type``, a scalar or a list.
            Scalars and lists are shorthand for the ``In`` operator.
        path: Location of ``data`` for error messages

    Returns:
        Decoded expression

    Raises:
        DecodeError: If the operator or value type is unknown
    """
    if not isinstance(data, Mapping):
        return MatchExpression(MatchOp.IN, _decode_values(data, path))

    unknown = set(data) - {"op", "value", "type"}
    if unknown:
        raise DecodeError(f"unknown fields {sorted(unknown)}", path)

    op_name = data.get("op", "")
    try:
        op = MatchOp.parse("" if op_name is None else str(op_name))
    except ValueError:
        raise DecodeError(f"invalid Op {op_name!r}", f"{path}.op")

    type_name = data.get("type") or ""
    try:
        value_type = ValueType(str(type_name))
    except ValueError:
        raise DecodeError(f"invalid type {type_name!r}", f"{path}.type")

    return MatchExpression(op, _decode_values(data.get("value"), f"{path}.value"), value_type)


def decode_match_expression_set(data: Any, path: str = "matchExpressions") -> MatchExpressionSet:
    """Decode a MatchExpressionSet.

    Two encodings are accepted:

    - a list of strings, where ``name`` means Exists and ``name=value``
      means In[value]
    - a mapping of name to expression, where a null expression means Exists

    Raises:
        DecodeError: If the data has neither shape
    """
    result: MatchExpressionSet = {}
    if data is None:
        return result

    if isinstance(data, list):
        for i, item in enumerate(data):
            if not isinstance(item, str):
                raise DecodeError("expected a string", f"{path}[{i}]")
            name, sep, value = item.partition("=")
            if sep:
                result[name] = MatchExpression(MatchOp.IN, (value,))
            else:
                result[name] = MatchExpression(MatchOp.EXISTS)
        return result

    for name, expr in _expect_mapping(data, path).items():
        if expr is None:
            result[str(name)] = MatchExpression(MatchOp.EXISTS)
        else:
            result[str(name)] = decode_match_expression(expr, f"{path}.{name}")
    return result


def decode_feature_matcher(data: Any, path: str = "matchFeatures") -> FeatureMatcher:
    """Decode a list of FeatureMatcherTerms."""
    terms: FeatureMatcher = []
    for i, item in enumerate(_expect_list(data, path)):
        item_path = f"{path}[{i}]"
        term = _expect_mapping(item, item_path)
        feature = term.get("feature")
        if not isinstance(feature, str) or not feature:
            raise DecodeError("feature name is required", f"{item_path}.feature")

        match_expressions = None
        if "matchExpressions" in term:
            match_expressions = decode_match_expression_set(
                term["matchExpressions"], f"{item_path}.matchExpressions"
            )
        match_name = None
        if term.get("matchName") is not None:
            match_name = decode_match_expression(term["matchName"], f"{item_path}.matchName")

        terms.append(FeatureMatcherTerm(feature, match_expressions, match_name))
    return terms


def decode_match_any(data: Any, path: str = "matchAny") -> List[MatchAnyElem]:
    """Decode the list of MatchAny branches."""
    return [
        MatchAnyElem(
            decode_feature_matcher(
                _expect_mapping(item, f"{path}[{i}]").get("matchFeatures"),
                f"{path}[{i}].matchFeatures",
            )
        )
        for i, item in enumerate(_expect_list(data, path))
    ]


def _decode_taints(data: Any, path: str) -> List[Taint]:
    taints = []
    for i, item in enumerate(_expect_list(data, path)):
        taint = _expect_mapping(item, f"{path}[{i}]")
        taints.append(
            Taint(
                key=str(taint.get("key", "")),
                value=optional_str(taint.get("value")),
                effect=str(taint.get("effect", "")),
            )
        )
    return taints


def _check_rule_format(data: Mapping[str, Any], path: str) -> None:
    if detect_rule_format(data) is RuleFormat.LEGACY:
        raise DecodeError(
            "legacy 'matchOn' rules are not supported, use matchFeatures/matchAny", path
        )


def decode_rule(data: Any, path: str = "rule") -> Rule:
    """Decode a Rule mapping.

    Raises:
        DecodeError: If the rule is malformed or uses the legacy shape
    """
    rule = _expect_mapping(data, path)
    _check_rule_format(rule, path)
    return Rule(
        name=str(rule.get("name") or ""),
        labels=_string_map(rule.get("labels"), f"{path}.labels"),
        labels_template=str(rule.get("labelsTemplate") or ""),
        annotations=_string_map(rule.get("annotations"), f"{path}.annotations"),
        vars=_string_map(rule.get("vars"), f"{path}.vars"),
        vars_template=str(rule.get("varsTemplate") or ""),
        extended_resources=_string_map(rule.get("extendedResources"), f"{path}.extendedResources"),
        taints=_decode_taints(rule.get("taints"), f"{path}.taints"),
        match_features=decode_feature_matcher(rule.get("matchFeatures"), f"{path}.matchFeatures"),
        match_any=decode_match_any(rule.get("matchAny"), f"{path}.matchAny"),
    )


def decode_group_rule(data: Any, path: str = "rule") -> GroupRule:
    """Decode a GroupRule mapping."""
    rule = _expect_mapping(data, path)
    _check_rule_format(rule, path)
    return GroupRule(
        name=str(rule.get("name") or ""),
        vars=_string_map(rule.get("vars"), f"{path}.vars"),
        vars_template=str(rule.get("varsTemplate") or ""),
        match_features=decode_feature_matcher(rule.get("matchFeatures"), f"{path}.matchFeatures"),
        match_any=decode_match_any(rule.get("matchAny"), f"{path}.matchAny"),
    )


def decode_node_feature_rule(doc: Any) -> List[Rule]:
    """Decode the rules of a NodeFeatureRule object.

    Accepts the full object (``spec.rules``) or a bare ``{rules: [...]}``.
    """
    root = _expect_mapping(doc, "")
    if "spec" in root:
        root = _expect_mapping(root["spec"], "spec")
        prefix = "spec.rules"
    else:
        prefix = "rules"
    return [
        decode_rule(item, f"{prefix}[{i}]")
        for i, item in enumerate(_expect_list(root.get("rules"), prefix))
    ]


def decode_features(doc: Any) -> Features:
    """Decode a feature store.

    Accepts a NodeFeature object (``spec.features``) or a bare mapping with
    ``flags``, ``attributes`` and ``instances`` sections.
    """
    root = _expect_mapping(doc, "")
    path = ""
    if "spec" in root:
        root = _expect_mapping(root["spec"], "spec")
        path = "spec"
    if "features" in root:
        root = _expect_mapping(root["features"], "features")
        path = f"{path}.features" if path else "features"

    def sub(name: str) -> str:
        return f"{path}.{name}" if path else name

    features = Features()
    for name, flag in _expect_mapping(root.get("flags"), sub("flags")).items():
        flag_path = sub(f"flags.{name}")
        elements = _expect_mapping(
            _expect_mapping(flag, flag_path).get("elements"), f"{flag_path}.elements"
        )
        features.flags[str(name)] = {str(k) for k in elements}
    for name, attr in _expect_mapping(root.get("attributes"), sub("attributes")).items():
        attr_path = sub(f"attributes.{name}")
        features.attributes[str(name)] = _string_map(
            _expect_mapping(attr, attr_path).get("elements"), f"{attr_path}.elements"
        )
    for name, inst in _expect_mapping(root.get("instances"), sub("instances")).items():
        inst_path = sub(f"instances.{name}")
        elements = _expect_list(
            _expect_mapping(inst, inst_path).get("elements"), f"{inst_path}.elements"
        )
        features.instances[str(name)] = [
            _string_map(
                _expect_mapping(e, f"{inst_path}.elements[{i}]").get("attributes"),
                f"{inst_path}.elements[{i}].attributes",
            )
            for i, e in enumerate(elements)
        ]
    return features


def load_yaml_documents(path: Union[str, Path]) -> List[Any]:
    """Load every document of a YAML (or JSON) file.

    Raises:
        DecodeError: If the file cannot be read or parsed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return [doc for doc in yaml.safe_load_all(f) if doc is not None]
    except OSError as e:
        raise DecodeError(f"error reading file {path}: {e}", error_code=ErrorCode.NOT_FOUND)
    except yaml.YAMLError as e:
        raise DecodeError(f"error parsing file {path}: {e}")


def load_rules(path: Union[str, Path]) -> List[Rule]:
    """Load the rules of every NodeFeatureRule document in a file."""
    rules: List[Rule] = []
    for doc in load_yaml_documents(path):
        rules.extend(decode_node_feature_rule(doc))
    return rules


def load_features(paths: Union[str, Path, List[Union[str, Path]]]) -> Features:
    """Load and merge the feature documents of one or more files."""
    if isinstance(paths, (str, Path)):
        paths = [paths]
    merged = Features()
    for path in paths:
        for doc in load_yaml_documents(path):
            decode_features(doc).merge_into(merged)
    return merged


def optional_str(data: Optional[Any]) -> str:
    """Stringify an optional scalar field, mapping None to ""."""
    return "" if data is None else format_scalar(data)
