#!/usr/bin/env python3
"""Tests for the rule data model and feature store."""

import pytest

from featurerules.api.features import Features
from featurerules.api.types import (
    FeatureMatcherTerm,
    MatchExpression,
    MatchOp,
    Taint,
    ValueType,
)


class TestMatchExpression:
    """Tests for MatchExpression."""

    def test_parse_op(self):
        assert MatchOp.parse("InRegexp") == MatchOp.IN_REGEXP
        assert MatchOp.parse("Any") == MatchOp.ANY
        assert MatchOp.parse("") == MatchOp.ANY
        with pytest.raises(ValueError):
            MatchOp.parse("in")

    def test_to_dict(self):
        assert MatchExpression(MatchOp.EXISTS).to_dict() == {"op": "Exists"}
        expr = MatchExpression(MatchOp.GT, ("5.4",), ValueType.VERSION)
        assert expr.to_dict() == {"op": "Gt", "value": ["5.4"], "type": "version"}

    def test_str(self):
        assert str(MatchExpression(MatchOp.IN, ("a", "b"))) == "{op: In, value: [a, b]}"
        expr = MatchExpression(MatchOp.LT, ("6",), ValueType.VERSION)
        assert str(expr) == "{op: Lt, value: [6], type: version}"

    def test_hashable(self):
        assert len({MatchExpression(MatchOp.EXISTS), MatchExpression(MatchOp.EXISTS)}) == 1

    def test_term_to_dict(self):
        term = FeatureMatcherTerm(
            "cpu.cpuid",
            {"b": MatchExpression(MatchOp.EXISTS), "a": MatchExpression(MatchOp.IN, ("x",))},
            MatchExpression(MatchOp.IN_REGEXP, ("^A",)),
        )
        assert term.to_dict() == {
            "feature": "cpu.cpuid",
            "matchExpressions": {
                "a": {"op": "In", "value": ["x"]},
                "b": {"op": "Exists"},
            },
            "matchName": {"op": "InRegexp", "value": ["^A"]},
        }

    def test_taint_str(self):
        assert str(Taint("feature.node.kubernetes.io/a", "b")) == "feature.node.kubernetes.io/a=b:NoSchedule"


class TestFeatures:
    """Tests for the feature store."""

    def test_exists(self, features):
        assert features.exists("domain.mf") == "flags"
        assert features.exists("domain_1.vf_1") == "attributes"
        assert features.exists("domain_1.if_1") == "instances"
        assert features.exists("nope.nope") is None

    def test_insert_attribute_features(self):
        features = Features()
        features.insert_attribute_features("rule", "matched", None)
        features.insert_attribute_features("rule", "matched", {})
        assert features.attributes == {}
        features.insert_attribute_features("rule", "matched", {"a": "1"})
        features.insert_attribute_features("rule", "matched", {"a": "2", "b": "3"})
        assert features.attributes["rule.matched"] == {"a": "2", "b": "3"}

    def test_merge_into(self, features):
        other = Features(flags={"domain.mf": {"key-z"}}, instances={"domain_1.if_1": [{"x": "y"}]})
        features.merge_into(other)
        assert other.flags["domain.mf"] == {"key-a", "key-b", "key-c", "key-z"}
        assert other.instances["domain_1.if_1"][0] == {"x": "y"}
        assert len(other.instances["domain_1.if_1"]) == 5

    def test_copy_is_deep(self, features):
        clone = features.copy()
        clone.flags["domain.mf"].add("new")
        assert "new" not in features.flags["domain.mf"]
