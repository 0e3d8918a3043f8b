"""Line-oriented Markdown renderer for manual pages.

The dialect is block-only: headings (levels 1-3), unordered lists, ordered
lists and paragraphs. Inline markup is never interpreted; every piece of
literal text is HTML-escaped before it is embedded.
"""

import re

from markupsafe import Markup, escape

# Ordered list marker: "1. ", "12.\t", ... (ASCII whitespace only)
NUMBERED_PATTERN = re.compile(r"^[0-9]+\.[ \t\n\f\r]+")

# Non-greedy first level-1 heading
H1_PATTERN = re.compile(r"<h1>(.*?)</h1>")

HEADING_PREFIXES = (
    ("### ", "h3"),
    ("## ", "h2"),
    ("# ", "h1"),
)


class LineRenderer:
    """Accumulates HTML for one document.

    At most one list (``ul`` or ``ol``) is open at any time.
    """

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._open_list: str | None = None

    def _element(self, tag: str, text: str) -> None:
        self._parts.append(f"<{tag}>{escape(text)}</{tag}>")

    def close_list(self) -> None:
        if self._open_list is not None:
            self._parts.append(f"</{self._open_list}>")
            self._open_list = None

    def list_item(self, tag: str, text: str) -> None:
        """Emit a list item, switching list kind if needed."""
        if self._open_list != tag:
            self.close_list()
            self._parts.append(f"<{tag}>")
            self._open_list = tag
        self._element("li", text)

    def feed(self, raw: str) -> None:
        """Classify and emit a single input line."""
        line = raw.strip()

        for prefix, tag in HEADING_PREFIXES:
            if line.startswith(prefix):
                self.close_list()
                self._element(tag, line[len(prefix) :])
                return

        if line.startswith("- "):
            self.list_item("ul", line[2:])
            return

        numbered = NUMBERED_PATTERN.match(line)
        if numbered:
            self.list_item("ol", line[numbered.end() :])
            return

        self.close_list()
        if line:
            self._element("p", line)

    def finish(self) -> Markup:
        """Close any open list and return the rendered fragment."""
        self.close_list()
        return Markup("".join(self._parts))


def render_markdown(content: str) -> Markup:
    """Render manual Markdown to an HTML fragment.

    Args:
        content: Page source text.

    Returns:
        HTML fragment, safe to embed in a template as-is.
    """
    renderer = LineRenderer()
    for raw in content.split("\n"):
        renderer.feed(raw)
    return renderer.finish()


def extract_title(html: str) -> str:
    """Return the unescaped text of the first ``<h1>``, or ``""``."""
    match = H1_PATTERN.search(html)
    if match is None:
        return ""
    return Markup(match.group(1)).unescape()
