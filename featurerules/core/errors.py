"""Base exception shared by all featurerules errors."""

from featurerules.core.constants import ErrorCode


class FeatureRulesError(Exception):
    """Base class for errors raised by the rule engine and its tooling."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        self.message = message
        self.error_code = error_code
        super().__init__(message)
