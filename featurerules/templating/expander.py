#!/usr/bin/env python3
"""Template expansion of matched feature data.

This module renders LabelsTemplate / VarsTemplate sources:
- Go template sources translated to Jinja2 (see gotemplate)
- Sandboxed Jinja2 rendering with strict undefined handling, so a typo in a
  ``.domain.feature`` reference is an error instead of an empty string
- Parsing of the rendered output into ``key=value`` pairs
- Compiled templates cached by source

Example:
    >>> helper = TemplateHelper("{{range .cpu.cpuid}}cpuid-{{.Name}}=true\\n{{end}}")
    >>> helper.expand_map({"cpu": {"cpuid": [{"Name": "AVX"}]}})
    {'cpuid-AVX': 'true'}
"""

from functools import lru_cache
from typing import Any, Dict, Mapping

import jinja2
from jinja2.sandbox import SandboxedEnvironment

from featurerules.core.constants import ErrorCode, Limits
from featurerules.core.errors import FeatureRulesError
from featurerules.templating.gotemplate import ROOT, format_value, range_items, translate


class TemplateError(FeatureRulesError):
    """Template could not be parsed, rendered or split into key=value pairs."""


class _FeatureEnvironment(SandboxedEnvironment):
    """Sandbox where subscripts never fall back to attributes.

    A missing map key is undefined, so feature and element names such as
    ``values`` or ``items`` never resolve to dict methods.
    """

    def getitem(self, obj: Any, argument: Any) -> Any:
        try:
            return obj[argument]
        except (TypeError, LookupError):
            return self.undefined(obj=obj, name=argument)


_environment = _FeatureEnvironment(
    undefined=jinja2.StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
    finalize=format_value,
)
_environment.filters["range_items"] = range_items


@lru_cache(maxsize=Limits.TEMPLATE_CACHE_SIZE)
def _compile(source: str) -> jinja2.Template:
    try:
        return _environment.from_string(translate(source))
    except jinja2.TemplateSyntaxError as e:
        raise TemplateError(f"invalid template: line {e.lineno}: {e.message}", ErrorCode.PARSE_ERROR)


class TemplateHelper:
    """Compiled template producing a key/value map."""

    def __init__(self, source: str):
        """Compile a template.

        Args:
            source: Go template source

        Raises:
            TemplateError: If the template does not parse
        """
        self.source = source
        self._template = _compile(source)

    def execute(self, data: Mapping[str, Any]) -> str:
        """Render the template.

        Args:
            data: Template data, the dot at the top level

        Returns:
            Rendered text

        Raises:
            TemplateError: If rendering fails, e.g. on an undefined reference
        """
        try:
            return self._template.render({ROOT: data})
        except jinja2.TemplateError as e:
            raise TemplateError(f"template execution failed: {e}")
        except (TypeError, ValueError, LookupError) as e:
            raise TemplateError(f"template execution failed: {e}")

    def expand_map(self, data: Mapping[str, Any]) -> Dict[str, str]:
        """Render the template and parse the ``key=value`` lines of the output.

        Surrounding whitespace is stripped and blank lines are skipped. The
        value is everything after the first ``=``.

        Raises:
            TemplateError: If rendering fails or a line has no ``=``
        """
        out: Dict[str, str] = {}
        for line in self.execute(data).split("\n"):
            item = line.strip()
            if not item:
                continue
            key, sep, value = item.partition("=")
            if not sep:
                raise TemplateError(
                    f"missing value in expanded template line {item!r}, "
                    "(format must be '<key>=<value>')"
                )
            out[key] = value
        return out


def check_template(source: str) -> None:
    """Check that a template parses.

    Raises:
        TemplateError: If the template does not parse
    """
    _compile(source)
