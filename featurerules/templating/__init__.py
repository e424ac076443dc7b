"""featurerules Templating - Go template expansion of matched feature data."""

from .expander import TemplateError, TemplateHelper, check_template
from .gotemplate import translate

__all__ = ["TemplateError", "TemplateHelper", "check_template", "translate"]
