"""Tests for output validators."""
import pytest

from featurerules.api.types import Taint
from featurerules.core.constants import ErrorCode
from featurerules.core.validators import (
    ERR_EMPTY_TAINT_EFFECT,
    ERR_INVALID_TAINT_EFFECT,
    ERR_NS_NOT_ALLOWED,
    ERR_UNPREFIXED_KEYS_NOT_ALLOWED,
    ValidationError,
    is_quantity,
    qualified_name_errors,
    split_namespace,
    validate_annotation,
    validate_extended_resource,
    validate_feature_names,
    validate_label,
    validate_labels,
    validate_taint,
    validate_taints,
    with_placeholder_values,
)


class TestQualifiedNames:
    """Tests for Kubernetes qualified name checks."""

    @pytest.mark.parametrize(
        "key",
        ["feature.node.kubernetes.io/cpu-AVX", "example.com/a_b.c", "plain", "a"],
    )
    def test_valid(self, key):
        assert qualified_name_errors(key) == []

    @pytest.mark.parametrize(
        "key",
        ["", "/name", "Example.com/x", "a/b/c", "ex.com/-bad", "ex.com/" + "x" * 64],
    )
    def test_invalid(self, key):
        assert qualified_name_errors(key)

    def test_split_namespace(self):
        assert split_namespace("example.com/foo") == ("example.com", "foo")
        assert split_namespace("foo") == ("", "foo")


class TestValidateLabel:
    """Tests for label validation."""

    def test_allowed_namespaces(self):
        """Feature, profile and third-party namespaces are accepted."""
        validate_label("feature.node.kubernetes.io/cpu", "true")
        validate_label("sub.feature.node.kubernetes.io/cpu", "true")
        validate_label("profile.node.kubernetes.io/gpu", "")
        validate_label("vendor.example.com/cpu", "v1.2")

    def test_unprefixed(self):
        with pytest.raises(ValidationError, match=ERR_UNPREFIXED_KEYS_NOT_ALLOWED):
            validate_label("cpu", "true")

    def test_denied_kubernetes_namespace(self):
        with pytest.raises(ValidationError, match=ERR_NS_NOT_ALLOWED):
            validate_label("node.kubernetes.io/foo", "true")
        with pytest.raises(ValidationError, match=ERR_NS_NOT_ALLOWED):
            validate_label("kubernetes.io/foo", "true")

    def test_invalid_value(self):
        with pytest.raises(ValidationError):
            validate_label("feature.node.kubernetes.io/cpu", "not valid")
        with pytest.raises(ValidationError, match="no more than 63"):
            validate_label("feature.node.kubernetes.io/cpu", "x" * 64)

    def test_error_code(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_label("cpu", "")
        assert exc_info.value.error_code == ErrorCode.VALIDATION_ERROR

    def test_plural_collects_messages(self):
        errors = validate_labels({"cpu": "x", "feature.node.kubernetes.io/ok": "1", "b": "y"})
        assert len(errors) == 2
        assert errors[0].startswith("invalid label 'b':'y'")


class TestValidateOthers:
    """Tests for annotation, taint and extended resource validation."""

    def test_annotation(self):
        validate_annotation("feature.node.kubernetes.io/info", "any value at all")
        with pytest.raises(ValidationError, match="too long"):
            validate_annotation("feature.node.kubernetes.io/info", "x" * 1025)
        with pytest.raises(ValidationError, match=ERR_NS_NOT_ALLOWED):
            validate_annotation("kubernetes.io/info", "x")

    def test_taint(self):
        validate_taint("feature.node.kubernetes.io/gpu", "true", "NoSchedule")
        with pytest.raises(ValidationError, match=ERR_EMPTY_TAINT_EFFECT):
            validate_taint("feature.node.kubernetes.io/gpu", "", "")
        with pytest.raises(ValidationError, match=ERR_INVALID_TAINT_EFFECT):
            validate_taint("feature.node.kubernetes.io/gpu", "", "Sometimes")
        with pytest.raises(ValidationError, match=ERR_NS_NOT_ALLOWED):
            validate_taint("node.kubernetes.io/gpu", "", "NoExecute")

    def test_taints(self):
        errors = validate_taints(
            [Taint("feature.node.kubernetes.io/a"), Taint("feature.node.kubernetes.io/b", "v", "")]
        )
        assert errors == [f"invalid taint feature.node.kubernetes.io/b=v:: {ERR_EMPTY_TAINT_EFFECT}"]

    def test_extended_resource(self):
        validate_extended_resource("feature.node.kubernetes.io/dev", "4")
        validate_extended_resource("feature.node.kubernetes.io/mem", "1.5Gi")
        with pytest.raises(ValidationError, match="quantities"):
            validate_extended_resource("feature.node.kubernetes.io/dev", "four")

    @pytest.mark.parametrize("value", ["1", "+2", "-3", "1.5", ".5", "10Ki", "3M", "1e3", "500m"])
    def test_quantities(self, value):
        assert is_quantity(value)

    @pytest.mark.parametrize("value", ["", "abc", "1.2.3", "5 Mi", "1Kb"])
    def test_not_quantities(self, value):
        assert not is_quantity(value)


class TestFeatureNames:
    """Tests for feature name and placeholder helpers."""

    def test_feature_names(self):
        errors = validate_feature_names(["cpu.cpuid", "nodot", "a.b.c"])
        assert len(errors) == 2
        assert "nodot" in errors[0]

    def test_placeholder_values(self):
        assert with_placeholder_values({"a": "@cpu.model.family", "b": "x"}) == {"a": "0", "b": "x"}
