"""featurerules - node feature rule matching and templating.

Evaluates declarative node feature rules against discovered features and
produces labels, annotations, taints, extended resources and vars.
"""

from featurerules.core.constants import FEATURERULES_VERSION as __version__

__all__ = ["__version__"]
