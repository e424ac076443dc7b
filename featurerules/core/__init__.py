"""featurerules Core - constants, errors and output validators.

Import specific modules:
    from featurerules.core import constants
    from featurerules.core.errors import FeatureRulesError
    from featurerules.core import validators
"""
