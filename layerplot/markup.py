"""Rich-text labels: a small markdown and inline-HTML subset.

Supported markup:

* ``*italic*``, ``**bold**`` and ``***bold italic***``. A closing run matches the
  innermost open emphasis; a ``***`` opener may be closed in two parts.
  Runs flanked by whitespace on both sides are literal, and ``\\*`` escapes.
* ``<i>``, ``<b>`` and ``<span>`` with an optional ``style`` attribute holding
  ``color:#RRGGBB``, ``font-size:Npt`` (or ``px``) and ``font-family:NAME``.
* ``<br>`` and literal newlines produce a :class:`LineBreak`.
* HTML entities such as ``&lt;`` are unescaped in text.

Bold and italic accumulate from every enclosing marker. Color, size and family
come only from tags; the innermost tag setting a property wins.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import html
import re
from typing import NoReturn, Union

from layerplot.errors import MarkupParseError


@dataclass(frozen=True)
class TextStyle:
    bold: bool = False
    italic: bool = False
    color: str | None = None
    font_size_pt: float | None = None
    font_family: str | None = None


@dataclass(frozen=True)
class TextRun:
    text: str
    style: TextStyle = TextStyle()


@dataclass(frozen=True)
class LineBreak:
    pass


RichTextRun = Union[TextRun, LineBreak]
RichText = tuple[RichTextRun, ...]

_TAG = re.compile(r"<(/?)([A-Za-z][A-Za-z0-9]*)([^<>]*)>")
_ATTR = re.compile(r"\s*([A-Za-z-]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")
_FONT_SIZE = re.compile(r"^(\d+(?:\.\d+)?)\s*(pt|px)$")
_RGB_HEX = re.compile(r"^#[0-9A-Fa-f]{6}$")
_ESCAPABLE = "*<>\\"
_TAG_STYLES = {
    "b": TextStyle(bold=True),
    "i": TextStyle(italic=True),
    "span": TextStyle(),
}
_VOID_TAGS = frozenset({"br"})


@dataclass
class _Frame:
    kind: str
    start: int
    end: int
    length: int = 0
    name: str = ""
    style: TextStyle = TextStyle()


def resolve_markup(source: str) -> RichText:
    """Resolve a raw label into styled runs, raising MarkupParseError on malformed input."""
    return _MarkupParser(source).parse()


def plain_text(runs: RichText) -> str:
    return "".join(run.text if isinstance(run, TextRun) else "\n" for run in runs)


def escape_markup(text: str) -> str:
    """Quote plain text so resolve_markup reproduces it literally."""
    return (
        text.replace("\\", "\\\\")
        .replace("*", "\\*")
        .replace("<", "\\<")
        .replace("&", "&amp;")
    )


class _MarkupParser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.stack: list[_Frame] = []
        self.runs: list[RichTextRun] = []
        self.buf: list[str] = []

    def parse(self) -> RichText:
        s = self.source
        i = 0
        while i < len(s):
            ch = s[i]
            if ch == "\\" and i + 1 < len(s) and s[i + 1] in _ESCAPABLE:
                self.buf.append(s[i + 1])
                i += 2
            elif ch == "*":
                i = self._emphasis(i)
            elif ch == "<":
                i = self._tag(i)
            elif ch == "\n":
                self._flush()
                self.runs.append(LineBreak())
                i += 1
            else:
                self.buf.append(ch)
                i += 1
        if self.stack:
            frame = self.stack[-1]
            what = f"`{'*' * frame.length}` marker" if frame.kind == "md" else f"<{frame.name}> tag"
            self._fail(f"unterminated {what}", frame.start, frame.end)
        self._flush()
        return tuple(self.runs)

    def _emphasis(self, i: int) -> int:
        s = self.source
        j = i
        while j < len(s) and s[j] == "*":
            j += 1
        length = j - i
        if length > 3:
            self._fail("emphasis run longer than three asterisks", i, j)
        prev = s[i - 1] if i > 0 else ""
        nxt = s[j] if j < len(s) else ""
        can_open = nxt != "" and not nxt.isspace()
        can_close = prev != "" and not prev.isspace()

        if can_close and self._close_emphasis(length):
            return j
        if can_open:
            self._flush()
            self.stack.append(_Frame(kind="md", start=i, end=j, length=length))
            return j
        if can_close:
            self._fail("closing marker without a matching opener", i, j)
        self.buf.append("*" * length)
        return j

    def _close_emphasis(self, length: int) -> bool:
        if not self.stack or self.stack[-1].kind != "md":
            return False
        top = self.stack[-1]
        if top.length == length:
            self._flush()
            self.stack.pop()
            return True
        if top.length == 3:
            self._flush()
            top.length = 3 - length
            return True
        if length == 3 and len(self.stack) >= 2:
            below = self.stack[-2]
            if below.kind == "md" and below.length == 3 - top.length:
                self._flush()
                del self.stack[-2:]
                return True
        return False

    def _tag(self, i: int) -> int:
        s = self.source
        nxt = s[i + 1] if i + 1 < len(s) else ""
        if not (nxt.isalpha() or nxt == "/"):
            self.buf.append("<")
            return i + 1
        m = _TAG.match(s, i)
        if m is None:
            close = s.find(">", i)
            self._fail("unterminated tag", i, close + 1 if close != -1 else len(s))
        closing, name, attrs = m.group(1) == "/", m.group(2).lower(), m.group(3)
        end = m.end()
        self_closing = attrs.rstrip().endswith("/")
        if self_closing:
            attrs = attrs.rstrip()[:-1]

        if name in _VOID_TAGS:
            if closing or attrs.strip():
                self._fail(f"malformed <{name}> tag", i, end)
            self._flush()
            self.runs.append(LineBreak())
            return end
        if name not in _TAG_STYLES:
            self._fail(f"unknown tag <{name}>", i, end)
        if self_closing:
            self._fail(f"<{name}> cannot be self-closing", i, end)

        if closing:
            if attrs.strip():
                self._fail("closing tag cannot carry attributes", i, end)
            self._close_tag(name, i, end)
            return end

        style = _TAG_STYLES[name]
        for prop, value in self._attributes(attrs, i, end):
            style = self._apply_declaration(style, prop, value, i, end)
        self._flush()
        self.stack.append(_Frame(kind="tag", start=i, end=end, name=name, style=style))
        return end

    def _close_tag(self, name: str, start: int, end: int) -> None:
        if not self.stack:
            self._fail(f"closing </{name}> without an open tag", start, end)
        top = self.stack[-1]
        if top.kind == "md":
            self._fail(f"`{'*' * top.length}` marker is not closed before </{name}>", top.start, end)
        if top.name != name:
            self._fail(f"</{name}> does not match open <{top.name}>", top.start, end)
        self._flush()
        self.stack.pop()

    def _attributes(self, attrs: str, start: int, end: int) -> list[tuple[str, str]]:
        out: list[tuple[str, str]] = []
        pos = 0
        while pos < len(attrs):
            if attrs[pos:].strip() == "":
                break
            m = _ATTR.match(attrs, pos)
            if m is None:
                self._fail("malformed tag attribute", start, end)
            attr = m.group(1).lower()
            value = m.group(2) if m.group(2) is not None else m.group(3)
            if attr != "style":
                self._fail(f"unsupported attribute `{attr}`", start, end)
            for decl in value.split(";"):
                if not decl.strip():
                    continue
                if ":" not in decl:
                    self._fail(f"malformed style declaration `{decl.strip()}`", start, end)
                prop, _, val = decl.partition(":")
                out.append((prop.strip().lower(), val.strip()))
            pos = m.end()
        return out

    def _apply_declaration(self, style: TextStyle, prop: str, value: str, start: int, end: int) -> TextStyle:
        if prop == "color":
            if not _RGB_HEX.match(value):
                self._fail(f"color must be #RRGGBB, got `{value}`", start, end)
            return replace(style, color=value.upper())
        if prop == "font-size":
            m = _FONT_SIZE.match(value)
            if m is None or float(m.group(1)) <= 0:
                self._fail(f"font-size must look like `12pt`, got `{value}`", start, end)
            size = float(m.group(1))
            if m.group(2) == "px":
                size *= 0.75
            return replace(style, font_size_pt=size)
        if prop == "font-family":
            family = value.strip().strip("'\"").strip()
            if not family:
                self._fail("font-family must be non-empty", start, end)
            return replace(style, font_family=family)
        self._fail(f"unsupported style property `{prop}`", start, end)

    def _current_style(self) -> TextStyle:
        bold = False
        italic = False
        color: str | None = None
        size: float | None = None
        family: str | None = None
        for frame in self.stack:
            if frame.kind == "md":
                bold = bold or frame.length >= 2
                italic = italic or frame.length in (1, 3)
                continue
            bold = bold or frame.style.bold
            italic = italic or frame.style.italic
            color = frame.style.color or color
            size = frame.style.font_size_pt if frame.style.font_size_pt is not None else size
            family = frame.style.font_family or family
        return TextStyle(bold=bold, italic=italic, color=color, font_size_pt=size, font_family=family)

    def _flush(self) -> None:
        if not self.buf:
            return
        text = html.unescape("".join(self.buf))
        self.buf = []
        if not text:
            return
        style = self._current_style()
        last = self.runs[-1] if self.runs else None
        if isinstance(last, TextRun) and last.style == style:
            self.runs[-1] = TextRun(text=last.text + text, style=style)
        else:
            self.runs.append(TextRun(text=text, style=style))

    def _fail(self, message: str, start: int, end: int) -> NoReturn:
        raise MarkupParseError(message, source=self.source, start=start, end=end)
