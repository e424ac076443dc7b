#!/usr/bin/env python3
"""Go text/template support for rule templates.

Rule templates are written in the Go template language of existing
NodeFeatureRule objects. This module translates the subset those rules use
into Jinja2 source for the sandboxed environment of the expander:
- Text and ``{{.Field}}`` / ``{{index . "attr"}}`` output
- ``{{range}}``, ``{{if}}``, ``{{else}}``, ``{{else if}}`` and ``{{end}}``
- Range and declared variables (``{{range $i, $e := .dom.feat}}``), ``$`` for the root
- The ``and``, ``or``, ``not``, ``len``, ``index``, ``eq``, ``ne``, ``lt``,
  ``le``, ``gt`` and ``ge`` functions, with parenthesized arguments
- ``{{-`` / ``-}}`` whitespace trimming and ``{{/* comments */}}``

Inside ``range`` the dot is the current element; at the top level it is the
data passed to the template.

Example:
    >>> translate("{{range .cpu.cpuid}}{{.Name}} {{end}}")
    '{% for key1, dot1 in (root["cpu"]["cpuid"])|range_items %}{{ dot1["Name"] }} {% endfor %}'
"""

import ast
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Optional, Set, Tuple

from jinja2 import TemplateSyntaxError

# Jinja2 variable holding the data passed to a template
ROOT = "root"

_ACTION_START = "{{"
_ACTION_END = "}}"
_TRIM_SPACE = " \t\r\n"

# Body of an action up to its closing delimiter, skipping string literals and comments
_ACTION_BODY_RE = re.compile(
    r'(?:"(?:[^"\\\n]|\\.)*"|`[^`]*`|/\*.*?\*/|[^"`/}]|/(?!\*)|\}(?!\}))*', re.DOTALL
)

_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
    |(?P<string>"(?:[^"\\\n]|\\.)*")
    |(?P<raw>`[^`]*`)
    |(?P<declare>:=)
    |(?P<punct>[(),|])
    |(?P<field>(?:\.[A-Za-z_][A-Za-z0-9_]*)+)
    |(?P<number>[-+]?[0-9]+(?:\.[0-9]+)?(?:[eE][-+]?[0-9]+)?)
    |(?P<dot>\.)
    |(?P<variable>\$[A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
    |(?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)

_DECLARED_RE = re.compile(r"^\$[A-Za-z_][A-Za-z0-9_]*$")

_KEYWORDS = {"block", "break", "continue", "define", "else", "end", "if", "range", "template", "with"}
_COMPARISONS = {"ne": "!=", "lt": "<", "le": "<=", "gt": ">", "ge": ">="}
_FUNCTIONS = {"and", "or", "not", "len", "index", "eq"} | set(_COMPARISONS)
_CONSTANTS = {"true": "true", "false": "false", "nil": "none"}


@dataclass
class Token:
    """A lexical item of an action."""

    kind: str
    value: str


@dataclass
class _Block:
    """An open range or if block."""

    kind: str  # "range" or "if"
    dot: str  # Jinja2 expression of "." inside the block
    outer_dot: str
    has_else: bool = False
    variables: Set[str] = field(default_factory=set)


def range_items(value: Any) -> List[Tuple[Any, Any]]:
    """Pairs visited by ``{{range}}``.

    A list yields (index, element) pairs and a map yields (key, value) pairs
    in key order.

    Raises:
        TypeError: If the value cannot be ranged over
    """
    if isinstance(value, Mapping):
        return sorted(value.items())
    if isinstance(value, (str, bytes)):
        raise TypeError(f"range can't iterate over {value}")
    return list(enumerate(value))


def format_value(value: Any) -> Any:
    """Print booleans and nil the way Go templates do."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<no value>"
    return value


def quote(value: str) -> str:
    """Return a Jinja2 string literal for ``value``."""
    escaped = (
        value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\r", "\\r")
    )
    return f'"{escaped}"'


def _subscripts(chain: str) -> str:
    return "".join(f'["{name}"]' for name in chain.split(".") if name)


def _variable_name(name: str) -> str:
    return f"var_{name}"


def tokenize(body: str, lineno: int = 1) -> List[Token]:
    """Split the body of an action into tokens.

    Raises:
        TemplateSyntaxError: On a character no token starts with
    """
    tokens = []
    pos = 0
    while pos < len(body):
        match = _TOKEN_RE.match(body, pos)
        if match is None:
            raise TemplateSyntaxError(f"unexpected {body[pos]!r} in action", lineno)
        if match.lastgroup != "space":
            tokens.append(Token(match.lastgroup, match.group()))
        pos = match.end()
    return tokens


def _lex(source: str) -> Iterator[Tuple[str, str, int]]:
    """Yield ("text", text, line) and ("action", body, line) items.

    Trim markers are applied to the neighbouring text and comments dropped.
    """
    pos = 0
    trim_next = False
    while True:
        start = source.find(_ACTION_START, pos)
        text = source[pos:] if start < 0 else source[pos:start]
        if trim_next:
            text = text.lstrip(_TRIM_SPACE)
        if start < 0:
            if text:
                yield "text", text, 0
            return

        lineno = source.count("\n", 0, start) + 1
        body_start = start + len(_ACTION_START)
        end = _ACTION_BODY_RE.match(source, body_start).end()
        if not source.startswith(_ACTION_END, end):
            raise TemplateSyntaxError("unclosed action", lineno)
        body = source[body_start:end]
        pos = end + len(_ACTION_END)

        if len(body) > 1 and body[0] == "-" and body[1] in _TRIM_SPACE:
            text = text.rstrip(_TRIM_SPACE)
            body = body[1:]
        trim_next = len(body) > 1 and body[-1] == "-" and body[-2] in _TRIM_SPACE
        if trim_next:
            body = body[:-1]

        if text:
            yield "text", text, lineno
        body = body.strip()
        if body.startswith("/*"):
            if not body.endswith("*/"):
                raise TemplateSyntaxError("unclosed comment", lineno)
            continue
        yield "action", body, lineno


class _ActionParser:
    """Turns the tokens of one action into a Jinja2 expression."""

    def __init__(self, tokens: List[Token], dot: str, variables: Set[str], lineno: int):
        self.tokens = tokens
        self.dot = dot
        self.variables = variables
        self.lineno = lineno
        self.pos = 0

    def pipeline(self) -> str:
        expr = self._command()
        if self._check("punct", "|"):
            raise self._error("pipelines are not supported")
        if not self._at_end():
            raise self._error(f"unexpected {self.tokens[self.pos].value!r} in command")
        return expr

    def _command(self) -> str:
        token = self._peek()
        if token is not None and token.kind == "ident" and token.value in _FUNCTIONS:
            self.pos += 1
            args = []
            while not self._at_end() and not self._check("punct", ")"):
                if self._check("punct", "|"):
                    raise self._error("pipelines are not supported")
                args.append(self._operand())
            return self._call(token.value, args)
        return self._operand()

    def _operand(self) -> str:
        token = self._peek()
        if token is None:
            raise self._error("missing value for command")
        self.pos += 1

        if token.kind == "punct" and token.value == "(":
            expr = self._command()
            if not self._check("punct", ")"):
                raise self._error("unclosed left paren")
            self.pos += 1
            # Commands translate to atoms, so no extra parentheses are needed
            return expr
        if token.kind == "dot":
            return self.dot
        if token.kind == "field":
            return self.dot + _subscripts(token.value)
        if token.kind == "variable":
            return self._variable(token.value)
        if token.kind == "string":
            try:
                return quote(ast.literal_eval(token.value))
            except (SyntaxError, ValueError):
                raise self._error(f"invalid string literal {token.value}")
        if token.kind == "raw":
            return quote(token.value[1:-1])
        if token.kind == "number":
            return token.value.lower()
        if token.kind == "ident" and token.value in _CONSTANTS:
            return _CONSTANTS[token.value]
        if token.kind == "ident":
            raise self._error(f'function "{token.value}" not defined')
        raise self._error(f"unexpected {token.value!r} in operand")

    def _variable(self, value: str) -> str:
        name, _, chain = value[1:].partition(".")
        if not name:
            base = ROOT
        elif name in self.variables:
            base = _variable_name(name)
        else:
            raise self._error(f'undefined variable "${name}"')
        return base + _subscripts(chain)

    def _call(self, name: str, args: List[str]) -> str:
        if name in ("and", "or"):
            self._want_args(name, args, 1, exact=False)
            return "(" + f" {name} ".join(args) + ")"
        if name == "not":
            self._want_args(name, args, 1)
            return f"(not {args[0]})"
        if name == "len":
            self._want_args(name, args, 1)
            return f"({args[0]}|length)"
        if name == "index":
            self._want_args(name, args, 1, exact=False)
            return args[0] + "".join(f"[{arg}]" for arg in args[1:])
        if name == "eq":
            self._want_args(name, args, 2, exact=False)
            return "(" + " or ".join(f"{args[0]} == {arg}" for arg in args[1:]) + ")"
        self._want_args(name, args, 2)
        return f"({args[0]} {_COMPARISONS[name]} {args[1]})"

    def _want_args(self, name: str, args: List[str], want: int, exact: bool = True) -> None:
        if len(args) < want or (exact and len(args) != want):
            raise self._error(f"wrong number of args for {name}: want {want} got {len(args)}")

    def _peek(self) -> Optional[Token]:
        return None if self._at_end() else self.tokens[self.pos]

    def _check(self, kind: str, value: str) -> bool:
        token = self._peek()
        return token is not None and token.kind == kind and token.value == value

    def _at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def _error(self, message: str) -> TemplateSyntaxError:
        return TemplateSyntaxError(message, self.lineno)


class _Translator:
    """Walks the text and actions of a Go template, emitting Jinja2 source."""

    def __init__(self, source: str):
        self.source = source
        self.out: List[str] = []
        self.blocks: List[_Block] = []
        self.variables: Set[str] = set()
        self.lineno = 1

    @property
    def dot(self) -> str:
        return self.blocks[-1].dot if self.blocks else ROOT

    def translate(self) -> str:
        for kind, value, lineno in _lex(self.source):
            self.lineno = lineno
            if kind == "text":
                # Text holding braces could be read as Jinja2 delimiters
                self.out.append(f"{{{{ {quote(value)} }}}}" if "{" in value else value)
            else:
                self._action(value)
        if self.blocks:
            raise self._error("unexpected EOF")
        return "".join(self.out)

    def _action(self, body: str) -> None:
        tokens = tokenize(body, self.lineno)
        if not tokens:
            raise self._error("missing value for command")

        head = tokens[0]
        if head.kind == "ident" and head.value in _KEYWORDS:
            handler = {
                "range": self._range,
                "if": self._if,
                "else": self._else,
                "end": self._end,
            }.get(head.value)
            if handler is None:
                raise self._error(f"unsupported action {head.value!r}")
            handler(tokens[1:])
            return

        if len(tokens) > 1 and tokens[1].kind == "declare":
            name = self._declared_name(tokens[0])
            expr = self._parser(tokens[2:]).pipeline()
            (self.blocks[-1].variables if self.blocks else self.variables).add(name)
            self.out.append(f"{{% set {_variable_name(name)} = {expr} %}}")
            return

        self.out.append(f"{{{{ {self._parser(tokens).pipeline()} }}}}")

    def _range(self, tokens: List[Token]) -> None:
        declared: List[Token] = []
        if len(tokens) > 1 and tokens[1].kind == "declare":
            declared, tokens = tokens[:1], tokens[2:]
        elif len(tokens) > 3 and tokens[1].value == "," and tokens[3].kind == "declare":
            declared, tokens = [tokens[0], tokens[2]], tokens[4:]
        names = [self._declared_name(token) for token in declared]

        expr = self._parser(tokens).pipeline()
        depth = len(self.blocks) + 1
        block = _Block("range", dot=f"dot{depth}", outer_dot=self.dot, variables=set(names))
        self.out.append(f"{{% for key{depth}, dot{depth} in ({expr})|range_items %}}")
        if len(names) == 2:
            self.out.append(f"{{% set {_variable_name(names[0])} = key{depth} %}}")
        if names:
            self.out.append(f"{{% set {_variable_name(names[-1])} = dot{depth} %}}")
        self.blocks.append(block)

    def _if(self, tokens: List[Token]) -> None:
        expr = self._parser(tokens).pipeline()
        self.blocks.append(_Block("if", dot=self.dot, outer_dot=self.dot))
        self.out.append(f"{{% if {expr} %}}")

    def _else(self, tokens: List[Token]) -> None:
        if not self.blocks:
            raise self._error("unexpected {{else}}")
        block = self.blocks[-1]
        if block.has_else:
            raise self._error("expected end; found {{else}}")

        if tokens:
            if block.kind != "if" or tokens[0].value != "if":
                raise self._error(f"unexpected {tokens[0].value!r} in else")
            expr = self._parser(tokens[1:]).pipeline()
            self.out.append(f"{{% elif {expr} %}}")
            return

        block.has_else = True
        block.dot = block.outer_dot
        block.variables = set()
        self.out.append("{% else %}")

    def _end(self, tokens: List[Token]) -> None:
        if tokens:
            raise self._error(f"unexpected {tokens[0].value!r} in end")
        if not self.blocks:
            raise self._error("unexpected {{end}}")
        block = self.blocks.pop()
        self.out.append("{% endfor %}" if block.kind == "range" else "{% endif %}")

    def _declared_name(self, token: Token) -> str:
        if token.kind != "variable" or not _DECLARED_RE.match(token.value):
            raise self._error(f"invalid variable declaration {token.value!r}")
        return token.value[1:]

    def _parser(self, tokens: List[Token]) -> _ActionParser:
        visible = set(self.variables)
        for block in self.blocks:
            visible |= block.variables
        return _ActionParser(tokens, self.dot, visible, self.lineno)

    def _error(self, message: str) -> TemplateSyntaxError:
        return TemplateSyntaxError(message, self.lineno)


def translate(source: str) -> str:
    """Translate a Go template into Jinja2 source.

    Args:
        source: Go template source

    Returns:
        Jinja2 source rendering the same output when given the template data
        as the ``root`` variable

    Raises:
        TemplateSyntaxError: If the template is malformed or uses an
            unsupported action or function
    """
    return _Translator(source).translate()
