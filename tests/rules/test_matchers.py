#!/usr/bin/env python3
"""Tests for the feature shape matchers."""

import pytest

from featurerules.api.types import MatchExpression, MatchOp
from featurerules.rules.expression import ExpressionError
from featurerules.rules.matchers import (
    match_instances,
    match_keys,
    match_multi,
    match_names_multi,
    match_values,
)

EXISTS = MatchExpression(MatchOp.EXISTS)
ABSENT = MatchExpression(MatchOp.DOES_NOT_EXIST)


def in_(*values: str) -> MatchExpression:
    return MatchExpression(MatchOp.IN, tuple(values))


class TestMatchKeys:
    """Tests for flag matching."""

    def test_empty_set_matches(self, logger):
        """An empty expression set matches with no elements."""
        result = match_keys({}, {"a"}, logger)
        assert result.is_match is True
        assert result.elements == []

    def test_missing_keys_treated_as_empty(self, logger):
        """None keys behave like an empty set."""
        assert match_keys({"a": ABSENT}, None, logger).is_match is True
        assert match_keys({"a": EXISTS}, None, logger).is_match is False

    def test_elements_sorted_by_name(self, logger):
        """Elements come out sorted by name."""
        result = match_keys({"b": EXISTS, "a": EXISTS, "c": ABSENT}, {"a", "b"}, logger)
        assert result.is_match is True
        assert result.elements == [{"Name": "a"}, {"Name": "b"}, {"Name": "c"}]
        assert set(result.expressions) == {"a", "b", "c"}

    def test_failure_returns_no_elements(self, logger):
        """A failing name discards partial elements."""
        result = match_keys({"a": EXISTS, "z": EXISTS}, {"a"}, logger)
        assert result.is_match is False
        assert result.elements == []

    def test_value_operator_on_flags_fails(self, logger):
        """Flags have no values, so In never matches them."""
        assert match_keys({"a": in_("x")}, {"a"}, logger).is_match is False

    def test_invalid_expression_raises(self, logger):
        """Invalid expressions abort matching."""
        with pytest.raises(ExpressionError):
            match_keys({"a": MatchExpression(MatchOp.EXISTS, ("x",))}, {"a"}, logger)


class TestMatchValues:
    """Tests for attribute matching."""

    def test_match(self, logger):
        """Matched values carry Name and Value."""
        values = {"key-1": "val-1", "key-2": "val-2"}
        result = match_values({"key-1": in_("val-1")}, values, logger=logger)
        assert result.is_match is True
        assert result.elements == [{"Name": "key-1", "Value": "val-1"}]

    def test_absent_value_element_is_empty(self, logger):
        """DoesNotExist yields an element with an empty value."""
        result = match_values({"key-5": ABSENT}, {"key-1": "val-1"}, logger=logger)
        assert result.elements == [{"Name": "key-5", "Value": ""}]

    def test_fail_fast_discards_elements(self, logger):
        """Fail-fast mode aborts on the first failure."""
        values = {"a": "1", "b": "2"}
        result = match_values({"a": in_("1"), "b": in_("x")}, values, True, logger)
        assert result.is_match is False
        assert result.elements == []

    def test_exhaustive_keeps_partial_elements(self, logger):
        """Exhaustive mode collects the matched names but still fails."""
        values = {"a": "1", "b": "2"}
        result = match_values({"a": in_("1"), "b": in_("x")}, values, False, logger)
        assert result.is_match is False
        assert result.elements == [{"Name": "a", "Value": "1"}]
        assert list(result.expressions) == ["a"]


class TestMatchInstances:
    """Tests for instance matching."""

    def test_empty_instances_never_match(self, logger):
        """No instance means no match, even for an empty set."""
        assert match_instances({}, [], logger=logger).is_match is False
        assert match_instances({}, None, logger=logger).is_match is False

    def test_empty_set_matches_every_instance(self, logger):
        """An empty set matches each instance."""
        instances = [{"a": "1"}, {"a": "2"}]
        result = match_instances({}, instances, logger=logger)
        assert result.is_match is True
        assert result.elements == instances

    def test_instances_keep_order(self, logger):
        """Matched instances keep their document order and are copies."""
        instances = [{"a": "3"}, {"a": "1"}, {"a": "2"}]
        result = match_instances({"a": in_("2", "3")}, instances, logger=logger)
        assert result.elements == [{"a": "3"}, {"a": "2"}]
        assert result.elements[0] is not instances[0]


class TestMatchMulti:
    """Tests for multi-type feature matching."""

    def test_union_of_keys_and_values(self, logger):
        """A name may be satisfied by either the keys or the values."""
        result = match_multi(
            {"key-a": EXISTS, "key-d": EXISTS},
            {"key-a", "key-b"},
            {"key-d": "val-d"},
            None,
            logger=logger,
        )
        assert result.is_match is True
        assert result.elements == [{"Name": "key-a"}, {"Name": "key-d", "Value": "val-d"}]

    def test_does_not_exist_requires_joint_absence(self, logger):
        """DoesNotExist fails if the name is in either shape."""
        keys = {"key-a"}
        values = {"key-d": "val-d"}
        assert match_multi({"key-a": ABSENT}, keys, values, None, logger=logger).is_match is False
        assert match_multi({"key-d": ABSENT}, keys, values, None, logger=logger).is_match is False
        result = match_multi({"key-x": ABSENT}, keys, values, None, logger=logger)
        assert result.is_match is True
        assert result.elements == [{"Name": "key-x"}, {"Name": "key-x", "Value": ""}]

    def test_empty_set_needs_present_shape(self, logger):
        """An empty set matches when keys or values exist, even empty ones."""
        assert match_multi({}, set(), None, None, logger=logger).is_match is True
        assert match_multi({}, None, None, [], logger=logger).is_match is False
        assert match_multi({}, None, None, [{"a": "1"}], logger=logger).is_match is True

    def test_instances_appended_after_sorted_elements(self, logger):
        """Instance elements follow key and value elements."""
        result = match_multi(
            {"a": EXISTS},
            {"a"},
            None,
            [{"a": "1"}, {"b": "2"}],
            logger=logger,
        )
        assert result.elements == [{"Name": "a"}, {"a": "1"}]

    def test_instances_rescue_failed_keys(self, logger):
        """A matching instance makes the whole feature match."""
        result = match_multi({"a": in_("1")}, {"b"}, None, [{"a": "1"}], logger=logger)
        assert result.is_match is True
        assert result.elements == [{"a": "1"}]

    def test_exhaustive_keeps_partial_elements(self, logger):
        """Without fail-fast every name is evaluated."""
        result = match_multi(
            {"a": EXISTS, "b": EXISTS, "c": EXISTS},
            {"a", "c"},
            None,
            None,
            fail_fast=False,
            logger=logger,
        )
        assert result.is_match is False
        assert result.elements == [{"Name": "a"}, {"Name": "c"}]

    def test_fail_fast_drops_elements(self, logger):
        """With fail-fast a failing name clears the key/value elements."""
        result = match_multi(
            {"a": EXISTS, "b": EXISTS},
            {"a"},
            None,
            None,
            fail_fast=True,
            logger=logger,
        )
        assert result.is_match is False
        assert result.elements == []

    def test_debug_logging(self, logger, log_handler):
        """Evaluations are logged at debug level."""
        match_multi({"a": EXISTS}, {"a"}, None, None, logger=logger)
        assert any("matched keys" in r.getMessage() for r in log_handler.records)


class TestMatchNames:
    """Tests for name matching."""

    def test_union_of_shapes(self, logger):
        """Key names and value names are sorted together; instances follow."""
        expr = MatchExpression(MatchOp.IN_REGEXP, ("^key-[ad]",))
        result = match_names_multi(
            expr,
            {"key-d", "key-b"},
            {"key-a": "1", "other": "2"},
            [{"key-a": "x"}, {"nope": "y"}],
            logger,
        )
        assert result.is_match is True
        assert result.elements == [
            {"Name": "key-a", "Value": "1"},
            {"Name": "key-d"},
            {"key-a": "x"},
        ]

    def test_no_names_match(self, logger):
        """No matching name means no match."""
        result = match_names_multi(in_("zz"), {"a"}, {"b": "1"}, None, logger)
        assert result.is_match is False
        assert result.elements == []
