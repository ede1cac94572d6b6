"""
Tiny Mustache-like renderer over JSON-like data.

Supported:
- Variables: {{name}} (HTML-escaped), {{&name}} and {{{name}}} (unescaped)
- Sections: {{#items}} ... {{/items}} (arrays iterate, objects/true render once)
- Inverted sections: {{^items}} ... {{/items}}
- Comments: {{! comment }} (copied to the output as written)
- Implicit iterator: {{.}} (current element inside an array section)
- Custom delimiters via RenderOptions (e.g. "<%" / "%>")

Not supported: partials, dotted names, set-delimiter tags, standalone line trimming, lambdas.

The template is never tokenized up front. Rendering scans it for the next tag, dispatches on the
tag kind, and recurses into section bodies using plain (begin, end) offsets. A section ends at the
first literal occurrence of its closing tag, so a same-named section nested inside another one
closes the outer section early.
"""
from __future__ import annotations

import enum
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, List, Optional

__all__ = [
    "DEFAULT_OPTIONS",
    "MISSING",
    "MalformedTagError",
    "RenderError",
    "RenderOptions",
    "Renderer",
    "TagKind",
    "TagSpan",
    "UnterminatedSectionError",
    "ValueKind",
    "find_next_tag",
    "format_value",
    "html_escape",
    "is_truthy",
    "render",
    "resolve",
    "resolve_member",
    "should_escape",
    "tag_kind",
    "tag_name",
    "value_kind",
]

logger = logging.getLogger(__name__)

# -----------------------------
# Options
# -----------------------------
@dataclass(frozen=True)
class RenderOptions:
    open_delimiter: str = "{{"
    close_delimiter: str = "}}"

    def __post_init__(self) -> None:
        if not self.open_delimiter or not self.close_delimiter:
            raise ValueError("Delimiters must be non-empty strings")

    @property
    def is_default(self) -> bool:
        # Triple mustaches are only recognised with the stock delimiters.
        return self.open_delimiter == "{{" and self.close_delimiter == "}}"

    @classmethod
    def from_delimiters(cls, spec: str) -> "RenderOptions":
        """Build options from a "<open> <close>" pair, e.g. "<% %>"."""
        parts = spec.split()
        if len(parts) != 2:
            raise ValueError(f"Expected '<open> <close>' delimiter pair, got {spec!r}")
        return cls(open_delimiter=parts[0], close_delimiter=parts[1])


DEFAULT_OPTIONS = RenderOptions()

# -----------------------------
# Errors
# -----------------------------
class RenderError(Exception):
    """Base class for template rendering errors."""
    pass


@dataclass
class UnterminatedSectionError(RenderError):
    """A section was opened but its closing tag never appears in the enclosing range."""
    closing_tag: str

    def __str__(self) -> str:
        return f"Could not find closing tag '{self.closing_tag}'"


@dataclass
class MalformedTagError(RenderError):
    """A tag that cannot be dispatched: stray closing tag, invalid tag or unclosed delimiter."""
    tag: str
    reason: str = "Unknown tag"

    def __str__(self) -> str:
        return f"{self.reason}: '{self.tag}'"

# -----------------------------
# Escaping
# -----------------------------
_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
    "/": "&#x2F;",
}


def html_escape(s: str) -> str:
    return "".join(_HTML_ESCAPES.get(ch, ch) for ch in s)

# -----------------------------
# Context values
# -----------------------------
class ValueKind(enum.Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    UNSIGNED = "unsigned"
    FLOAT = "float"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    DISCARDED = "discarded"


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# Result of a named lookup that found nothing; renders as no output.
MISSING = _Missing()


def value_kind(value: Any) -> ValueKind:
    # bool is a subclass of int, so it has to be checked first.
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.UNSIGNED if value >= 0 else ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, Mapping):
        return ValueKind.OBJECT
    if isinstance(value, (list, tuple)):
        return ValueKind.ARRAY
    return ValueKind.DISCARDED


def _json_default(value: Any) -> Any:
    # Non-dict mappings serialize as objects; discarded values nested in a composite become null.
    if isinstance(value, Mapping):
        return dict(value)
    return None


def format_value(value: Any) -> str:
    """Textual form of a context value as it appears in the output (before escaping)."""
    kind = value_kind(value)
    if kind in (ValueKind.OBJECT, ValueKind.ARRAY):
        return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False,
                          default=_json_default)
    if kind is ValueKind.NULL:
        return "null"
    if kind is ValueKind.BOOLEAN:
        return "true" if value else "false"
    if kind in (ValueKind.INTEGER, ValueKind.UNSIGNED):
        return str(int(value))
    if kind is ValueKind.FLOAT:
        return f"{value:.6f}"
    if kind is ValueKind.STRING:
        return value
    return ""


def is_truthy(value: Any) -> bool:
    kind = value_kind(value)
    if kind in (ValueKind.ARRAY, ValueKind.OBJECT):
        return True
    if kind is ValueKind.BOOLEAN:
        return value
    return False


def resolve(context: Any, name: str) -> Any:
    """
    Look up a variable tag's name in the current context.

    An existing object member wins. The implicit iterator ("" or ".") falls back to the context
    itself; any other miss returns MISSING so the tag renders nothing.
    """
    if value_kind(context) is ValueKind.OBJECT and name in context:
        return context[name]
    if name in ("", "."):
        return context
    return MISSING


def resolve_member(context: Any, name: str) -> Any:
    """Section lookup: the object member, or None when absent or the context is not an object."""
    if value_kind(context) is ValueKind.OBJECT:
        return context.get(name)
    return None

# -----------------------------
# Tags
# -----------------------------
class TagKind(enum.Enum):
    VARIABLE = ""
    # "&": interpolated without HTML escaping.
    ESCAPED = "&"
    SECTION = "#"
    INVERTED_SECTION = "^"
    END_SECTION = "/"
    COMMENT = "!"
    INVALID = "\x0f"


_SIGILS = "&#^/!"
_NAME_NOISE = frozenset(_SIGILS + "{}")


@dataclass(frozen=True)
class TagSpan:
    """A located tag: template[begin:end] == raw, delimiters included."""
    begin: int
    end: int
    raw: str


def find_next_tag(template: str, begin: int, end: int,
                  options: RenderOptions = DEFAULT_OPTIONS) -> Optional[TagSpan]:
    """Find the first complete tag in template[begin:end], or None."""
    open_delim = options.open_delimiter
    close_delim = options.close_delimiter

    tag_begin = template.find(open_delim, begin, end)
    if tag_begin == -1:
        return None

    after_open = tag_begin + len(open_delim)
    if options.is_default and template.startswith("{", after_open, end):
        close_delim = "}}}"

    close_begin = template.find(close_delim, after_open, end)
    if close_begin == -1:
        return None

    tag_end = close_begin + len(close_delim)
    return TagSpan(tag_begin, tag_end, template[tag_begin:tag_end])


def _interior(span: TagSpan, options: RenderOptions) -> str:
    return span.raw[len(options.open_delimiter):len(span.raw) - len(options.close_delimiter)]


def tag_kind(span: TagSpan, options: RenderOptions = DEFAULT_OPTIONS) -> TagKind:
    for ch in _interior(span, options):
        if ch in _SIGILS:
            return TagKind(ch)
    return TagKind.VARIABLE


def tag_name(span: TagSpan, options: RenderOptions = DEFAULT_OPTIONS) -> str:
    # Whitespace is kept: {{ name }} looks up " name ".
    return "".join(ch for ch in _interior(span, options) if ch not in _NAME_NOISE)


def should_escape(span: TagSpan, options: RenderOptions = DEFAULT_OPTIONS) -> bool:
    if tag_kind(span, options) is TagKind.ESCAPED:
        return False
    raw = span.raw
    if options.is_default and len(raw) >= 6 and raw.startswith("{{{") and raw.endswith("}}}"):
        return False
    return True

# -----------------------------
# Rendering
# -----------------------------
class Renderer:
    def __init__(self, options: Optional[RenderOptions] = None):
        self.options = options or DEFAULT_OPTIONS

    def render(self, template: str, data: Any) -> str:
        if not template:
            return ""
        logger.debug(f"Rendering template of length {len(template)} with delimiters "
                     f"{self.options.open_delimiter!r}/{self.options.close_delimiter!r}")
        return self._render_range(template, 0, len(template), data)

    def _render_range(self, template: str, begin: int, end: int, element: Any) -> str:
        # Arrays render the whole range once per element.
        if value_kind(element) is ValueKind.ARRAY:
            logger.debug(f"Iterating range [{begin}:{end}] over {len(element)} elements")
            return "".join(self._render_once(template, begin, end, item) for item in element)
        return self._render_once(template, begin, end, element)

    def _render_once(self, template: str, begin: int, end: int, context: Any) -> str:
        opts = self.options
        out: List[str] = []
        pos = begin

        while True:
            span = find_next_tag(template, pos, end, opts)
            if span is None:
                break
            out.append(template[pos:span.begin])

            kind = tag_kind(span, opts)
            name = tag_name(span, opts)

            if kind in (TagKind.VARIABLE, TagKind.ESCAPED):
                out.append(self._render_variable(span, context, name))
                pos = span.end
            elif kind in (TagKind.SECTION, TagKind.INVERTED_SECTION):
                closing_tag = opts.open_delimiter + "/" + name + opts.close_delimiter
                close_begin = template.find(closing_tag, span.end, end)
                if close_begin == -1:
                    raise UnterminatedSectionError(closing_tag)
                out.append(self._render_section(
                    template, span.end, close_begin, resolve_member(context, name),
                    name=name, inverted=kind is TagKind.INVERTED_SECTION,
                ))
                pos = close_begin + len(closing_tag)
            elif kind is TagKind.COMMENT:
                out.append(span.raw)
                pos = span.end
            else:
                raise MalformedTagError(span.raw)

        if template.find(opts.open_delimiter, pos, end) != -1:
            raise MalformedTagError(template[pos:end], reason="Unterminated tag")
        out.append(template[pos:end])
        return "".join(out)

    def _render_variable(self, span: TagSpan, context: Any, name: str) -> str:
        value = resolve(context, name)
        if value is MISSING:
            return ""
        text = format_value(value)
        return html_escape(text) if should_escape(span, self.options) else text

    def _render_section(self, template: str, begin: int, end: int, value: Any,
                        name: str, inverted: bool) -> str:
        render_interior = is_truthy(value)
        if inverted:
            render_interior = not render_interior
        logger.debug(f"Section {name!r} (inverted={inverted}): render={render_interior}")
        if not render_interior:
            return ""
        return self._render_range(template, begin, end, value)


def render(template: str, context: Any, options: Optional[RenderOptions] = None) -> str:
    """Render `template` against `context`; raises RenderError on malformed templates."""
    return Renderer(options).render(template, context)
