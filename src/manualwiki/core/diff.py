"""Line-level diff between two versions of a page."""

from difflib import SequenceMatcher

from markupsafe import Markup, escape

from manualwiki.core.models import DiffLine, DiffResult

# Longest run of blank equal lines that gets folded into surrounding edits
MAX_BLANK_EQUALITY = 2

LINE_CLASSES = {
    "insert": ("diff__line-add", "+ "),
    "delete": ("diff__line-del", "- "),
    "equal": ("diff__line-eq", "&nbsp; "),
}

Chunk = tuple[str, list[str]]


def _as_text(blob: str | bytes) -> str:
    if isinstance(blob, bytes):
        return blob.decode("utf-8", errors="replace")
    return blob


def split_lines(text: str) -> list[str]:
    """Split text into physical lines.

    A terminating newline does not produce a trailing empty line, and a
    carriage return left over from CRLF line endings is dropped.
    """
    lines = [line.removesuffix("\r") for line in text.split("\n")]
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _raw_chunks(base: list[str], compare: list[str]) -> list[Chunk]:
    matcher = SequenceMatcher(None, base, compare, autojunk=False)
    chunks: list[Chunk] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            chunks.append(("equal", base[i1:i2]))
        if tag in ("delete", "replace"):
            chunks.append(("delete", base[i1:i2]))
        if tag in ("insert", "replace"):
            chunks.append(("insert", compare[j1:j2]))
    return chunks


def _is_small_blank_equality(chunks: list[Chunk], index: int) -> bool:
    kind, lines = chunks[index]
    if kind != "equal" or index == 0 or index == len(chunks) - 1:
        return False
    if len(lines) > MAX_BLANK_EQUALITY:
        return False
    return all(not line.strip() for line in lines)


def cleanup_semantic(chunks: list[Chunk]) -> list[Chunk]:
    """Coalesce edits split apart by a few blank lines.

    Such an equality is rewritten as a delete plus an insert of the same
    lines. Each run of edits is then reordered so its deletions come before
    its insertions and adjacent chunks of the same kind are merged. Both
    sides of the diff still rebuild their original lines.
    """
    expanded: list[Chunk] = []
    for index, (kind, lines) in enumerate(chunks):
        if _is_small_blank_equality(chunks, index):
            expanded.append(("delete", lines))
            expanded.append(("insert", lines))
        else:
            expanded.append((kind, lines))

    result: list[Chunk] = []
    deleted: list[str] = []
    inserted: list[str] = []

    def flush() -> None:
        if deleted:
            result.append(("delete", list(deleted)))
        if inserted:
            result.append(("insert", list(inserted)))
        deleted.clear()
        inserted.clear()

    for kind, lines in expanded:
        if kind == "delete":
            deleted.extend(lines)
        elif kind == "insert":
            inserted.extend(lines)
        else:
            flush()
            if result and result[-1][0] == "equal":
                result[-1][1].extend(lines)
            else:
                result.append(("equal", list(lines)))
    flush()
    return result


def diff_texts(base: str | bytes, compare: str | bytes) -> DiffResult:
    """Compute the labelled line diff between two blobs.

    Args:
        base: Older version.
        compare: Newer version.

    Returns:
        DiffResult whose ``identical`` flag is set when no line was inserted
        or deleted.
    """
    if type(base) is type(compare) and base == compare:
        return DiffResult(lines=[], identical=True)

    chunks = cleanup_semantic(
        _raw_chunks(split_lines(_as_text(base)), split_lines(_as_text(compare)))
    )
    lines = [
        DiffLine(kind=kind, text=text) for kind, texts in chunks for text in texts
    ]
    identical = all(line.kind == "equal" for line in lines)
    return DiffResult(lines=lines, identical=identical)


def render_diff(result: DiffResult) -> Markup:
    """Render diff lines as HTML rows."""
    rows = []
    for line in result.lines:
        css_class, marker = LINE_CLASSES[line.kind]
        rows.append(
            f'<div class="diff__line {css_class}">{marker}{escape(line.text)}</div>'
        )
    return Markup("".join(rows))
