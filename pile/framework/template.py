"""Minimal template dialect for version strings.

Supported actions:

    {{.Field}}                   substitute a version field
    {{if .Field}}...{{end}}      include the body when the field is truthy

Whitespace inside the braces is ignored and conditionals may nest. Anything
else between `{{` and `}}` is a parse error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Union

from pile.foundation.errors import TemplateParseError, TemplateRenderError

if TYPE_CHECKING:
    from pile.framework.version import VersionRecord

DEFAULT_TEMPLATE = "{{if .Dirty}}dirty-{{.User}}-{{end}}{{.CommitDepth}}.{{.Revision}}"

# Template field -> VersionRecord attribute. `Commits` and `Hash` are the
# names older descriptors use.
FIELDS: dict[str, str] = {
    "Branch": "branch",
    "CommitDepth": "commit_depth",
    "Commits": "commit_depth",
    "Revision": "revision",
    "Hash": "revision",
    "Dirty": "dirty",
    "User": "user",
}

_OPEN = "{{"
_CLOSE = "}}"
_FIELD_RE = re.compile(r"^\.([A-Za-z_][A-Za-z0-9_]*)$")
_IF_RE = re.compile(r"^if\s+(\S+)$")


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Field:
    name: str


@dataclass(frozen=True)
class If:
    name: str
    body: tuple["Node", ...]


Node = Union[Text, Field, If]


def _field_name(expr: str, *, template: str, offset: int) -> str:
    match = _FIELD_RE.match(expr)
    if not match:
        raise TemplateParseError(f"Invalid field reference {expr!r} at offset {offset} in template {template!r}")
    return match.group(1)


@lru_cache(maxsize=128)
def parse_template(template: str) -> tuple[Node, ...]:
    """Parse `template` into a node tree. Pure and cached."""

    if not isinstance(template, str):
        raise TemplateParseError(f"Template must be a string, got {type(template).__name__}")

    # Stack of (node list being filled, field name of the open `if`, offset of the `if`).
    stack: list[tuple[list[Node], str | None, int]] = [([], None, 0)]
    pos = 0
    while pos < len(template):
        start = template.find(_OPEN, pos)
        if start < 0:
            stack[-1][0].append(Text(template[pos:]))
            break
        if start > pos:
            stack[-1][0].append(Text(template[pos:start]))

        end = template.find(_CLOSE, start + len(_OPEN))
        if end < 0:
            raise TemplateParseError(f"Unclosed action at offset {start} in template {template!r}")

        action = template[start + len(_OPEN) : end].strip()
        if not action:
            raise TemplateParseError(f"Empty action at offset {start} in template {template!r}")

        if action == "end":
            if len(stack) == 1:
                raise TemplateParseError(f"Unexpected {{{{end}}}} at offset {start} in template {template!r}")
            body, name, _ = stack.pop()
            assert name is not None
            stack[-1][0].append(If(name=name, body=tuple(body)))
        elif action.startswith("if"):
            match = _IF_RE.match(action)
            if not match:
                raise TemplateParseError(f"Invalid conditional {action!r} at offset {start} in template {template!r}")
            name = _field_name(match.group(1), template=template, offset=start)
            stack.append(([], name, start))
        else:
            stack[-1][0].append(Field(_field_name(action, template=template, offset=start)))

        pos = end + len(_CLOSE)

    if len(stack) > 1:
        _, name, offset = stack[-1]
        raise TemplateParseError(f"Missing {{{{end}}}} for {{{{if .{name}}}}} at offset {offset} in template {template!r}")
    return tuple(stack[0][0])


def _lookup(record: "VersionRecord", name: str) -> Any:
    attr = FIELDS.get(name)
    if attr is None:
        raise TemplateRenderError(
            f"Unknown version field {name!r} (available: {', '.join(sorted(FIELDS))})"
        )
    return getattr(record, attr)


def _render_nodes(nodes: tuple[Node, ...], record: "VersionRecord", out: list[str]) -> None:
    for node in nodes:
        if isinstance(node, Text):
            out.append(node.value)
        elif isinstance(node, Field):
            value = _lookup(record, node.name)
            out.append(str(value).lower() if isinstance(value, bool) else str(value))
        else:
            if _lookup(record, node.name):
                _render_nodes(node.body, record, out)


def render(record: "VersionRecord", template: str) -> str:
    """Render `record` through `template`.

    Raises TemplateParseError for a malformed template and TemplateRenderError
    when the template references a field the record does not have.
    """

    nodes = parse_template(template)
    out: list[str] = []
    _render_nodes(nodes, record, out)
    return "".join(out)


def render_default(record: "VersionRecord") -> str:
    return render(record, DEFAULT_TEMPLATE)
