"""HTML → Markdown normalisation using text-pattern rewriting only.

:func:`normalize` turns raw page markup into a :class:`NormalizedDocument`
whose text is a readable, linear Markdown approximation of the page body.
No parse tree is built: the document goes through an ordered sequence of
regex passes, each of which rewrites the whole text.  The order matters
(e.g. headings and paragraphs are converted before the catch-all tag
stripper runs), so the sequence lives in one place, :data:`_PASSES`.

Malformed markup never raises; it simply degrades to lower-fidelity text.
"""

import html
import re
from typing import Callable, List, NamedTuple

UNTITLED = "Untitled"

_FLAGS = re.IGNORECASE | re.DOTALL


class NormalizedDocument(NamedTuple):
    markdown_text: str
    title: str


# ---------------------------------------------------------------------------
# Title / body
# ---------------------------------------------------------------------------

_TITLE_RE = re.compile(r"<title\b[^>]*>(.*?)</title\s*>", _FLAGS)
_BODY_RE = re.compile(r"<body\b[^>]*>(.*)</body\s*>", _FLAGS)
_UNCLOSED_BODY_RE = re.compile(r"<body\b[^>]*>(.*)", _FLAGS)
_HEAD_RE = re.compile(r"<head\b[^>]*>(?:(?!<head\b).)*?</head\s*>", _FLAGS)


def extract_title(markup: str) -> str:
    """Return the text of the first ``<title>`` element, or ``"Untitled"``."""
    match = _TITLE_RE.search(markup)
    if not match:
        return UNTITLED
    title = " ".join(decode_entities(match.group(1)).split())
    return title or UNTITLED


def extract_body(markup: str) -> str:
    """Return the contents of ``<body>``; the whole document (minus ``<head>``) if absent."""
    match = _BODY_RE.search(markup) or _UNCLOSED_BODY_RE.search(markup)
    if match:
        return match.group(1)
    return _HEAD_RE.sub("", markup)


# ---------------------------------------------------------------------------
# Pass 1: noise removal
# ---------------------------------------------------------------------------

_COMMENT_RE = re.compile(r"<!--(?:(?!<!--).)*?-->", re.DOTALL)
_NOISE_RE = re.compile(
    r"<(script|style|noscript|nav|footer|header|aside)\b[^>]*>(?:(?!<\1\b).)*?</\1\s*>", _FLAGS
)
# Void-style leftovers such as <script src="..."/> with no closing tag
_NOISE_SELF_CLOSING_RE = re.compile(r"<(?:script|style|noscript)\b[^>]*/>", re.IGNORECASE)


def remove_noise(text: str) -> str:
    text = _COMMENT_RE.sub("", text)
    text = _NOISE_SELF_CLOSING_RE.sub("", text)
    # Same-kind nesting (a <nav> inside a <nav>) is removed innermost-first.
    while True:
        text, count = _NOISE_RE.subn("", text)
        if not count:
            return text


# ---------------------------------------------------------------------------
# Pass 2: structural conversion
# ---------------------------------------------------------------------------

# Element bodies never run past the next opening tag of the same kind, so an
# unclosed element costs one scan up to its next sibling rather than to the
# end of the document.
_HEADING_RE = re.compile(r"<h([1-6])\b[^>]*>((?:(?!<h[1-6]\b).)*?)</h\1\s*>", _FLAGS)
_PARAGRAPH_RE = re.compile(r"<p\b[^>]*>((?:(?!<p\b).)*?)</p\s*>", _FLAGS)
_BR_RE = re.compile(r"<br\b[^>]*>", re.IGNORECASE)
_BOLD_RE = re.compile(r"<(strong|b)\b[^>]*>((?:(?!<\1\b).)*?)</\1\s*>", _FLAGS)
_ITALIC_RE = re.compile(r"<(em|i)\b[^>]*>((?:(?!<\1\b).)*?)</\1\s*>", _FLAGS)
_LINK_RE = re.compile(
    r"<a\b[^>]*?\shref\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s>]+))[^>]*>((?:(?!<a\b).)*?)</a\s*>",
    _FLAGS,
)
_IMG_ALT_RE = re.compile(
    r"<img\b[^>]*?\salt\s*=\s*(?:\"([^\"]*)\"|'([^']*)')[^>]*>", re.IGNORECASE
)
_IMG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
# Innermost list only: the body may not contain another list opening tag.
_LIST_RE = re.compile(r"<(ul|ol)\b[^>]*>((?:(?!<(?:ul|ol)\b).)*?)</\1\s*>", _FLAGS)
_LIST_ITEM_RE = re.compile(r"<li\b[^>]*>(.*?)(?:</li\s*>|(?=<li\b)|$)", _FLAGS)
_BLOCKQUOTE_RE = re.compile(
    r"<blockquote\b[^>]*>((?:(?!<blockquote\b).)*?)</blockquote\s*>", _FLAGS
)
_PRE_CODE_RE = re.compile(
    r"<pre\b[^>]*>\s*<code\b([^>]*)>((?:(?!<(?:pre|code)\b).)*?)</code\s*>\s*</pre\s*>", _FLAGS
)
_PRE_RE = re.compile(r"<pre\b[^>]*>((?:(?!<pre\b).)*?)</pre\s*>", _FLAGS)
_CODE_RE = re.compile(r"<code\b[^>]*>((?:(?!<code\b).)*?)</code\s*>", _FLAGS)
_LANGUAGE_CLASS_RE = re.compile(r"\b(?:language|lang)-([\w+#.-]+)", re.IGNORECASE)
_HR_RE = re.compile(r"<hr\b[^>]*>", re.IGNORECASE)
_CONTAINER_RE = re.compile(r"</?(?:div|span|section|article|main)\b[^>]*>", re.IGNORECASE)


def convert_headings(text: str) -> str:
    def _heading(match: re.Match) -> str:
        level = int(match.group(1))
        content = " ".join(match.group(2).split())
        return f"\n\n{'#' * level} {content}\n\n"

    return _HEADING_RE.sub(_heading, text)


def convert_paragraphs(text: str) -> str:
    return _PARAGRAPH_RE.sub(lambda m: f"\n\n{m.group(1).strip()}\n\n", text)


def convert_line_breaks(text: str) -> str:
    return _BR_RE.sub("\n", text)


def convert_emphasis(text: str) -> str:
    text = _BOLD_RE.sub(lambda m: f"**{m.group(2).strip()}**", text)
    return _ITALIC_RE.sub(lambda m: f"*{m.group(2).strip()}*", text)


def convert_links(text: str) -> str:
    def _link(match: re.Match) -> str:
        href = next(g for g in match.group(1, 2, 3) if g is not None)
        label = " ".join(match.group(4).split())
        return f"[{label}]({href.strip()})"

    return _LINK_RE.sub(_link, text)


def convert_images(text: str) -> str:
    def _image(match: re.Match) -> str:
        alt = (match.group(1) if match.group(1) is not None else match.group(2)).strip()
        return f"[Image: {alt}]" if alt else ""

    text = _IMG_ALT_RE.sub(_image, text)
    return _IMG_RE.sub("", text)


def convert_lists(text: str) -> str:
    """Convert ``<ul>``/``<ol>`` to ``- item`` / ``N. item`` lines.

    Lists are rewritten innermost-first so a nested ``<ol>`` keeps its own
    1-based counter and never swallows its parent's closing tag.
    """

    def _list(match: re.Match) -> str:
        ordered = match.group(1).lower() == "ol"
        items = [m.group(1).strip() for m in _LIST_ITEM_RE.finditer(match.group(2))]
        lines = []
        for number, item in enumerate(items, start=1):
            marker = f"{number}." if ordered else "-"
            lines.append(f"{marker} {item}")
        return "\n" + "\n".join(lines) + "\n"

    while True:
        text, count = _LIST_RE.subn(_list, text)
        if not count:
            return text


def convert_blockquotes(text: str) -> str:
    def _quote(match: re.Match) -> str:
        # Block containers inside the quote become line breaks so each line is prefixed.
        lines = collapse_containers(match.group(1)).strip().split("\n")
        return "\n\n" + "\n".join(f"> {line}" for line in lines) + "\n\n"

    while True:
        text, count = _BLOCKQUOTE_RE.subn(_quote, text)
        if not count:
            return text


def convert_code(text: str) -> str:
    def _fenced(body: str, info: str = "") -> str:
        body = body.strip("\n")
        return f"\n\n```{info}\n{body}\n```\n\n"

    def _pre_code(match: re.Match) -> str:
        language = _LANGUAGE_CLASS_RE.search(match.group(1))
        return _fenced(match.group(2), language.group(1) if language else "")

    text = _PRE_CODE_RE.sub(_pre_code, text)
    text = _PRE_RE.sub(lambda m: _fenced(m.group(1)), text)
    return _CODE_RE.sub(lambda m: f"`{m.group(1)}`", text)


def convert_rules(text: str) -> str:
    return _HR_RE.sub("\n\n---\n\n", text)


def collapse_containers(text: str) -> str:
    return _CONTAINER_RE.sub("\n", text)


# ---------------------------------------------------------------------------
# Pass 3: tag stripping, entity decoding, whitespace
# ---------------------------------------------------------------------------

_TAG_RE = re.compile(r"<[^>]*>")
# A tag cut off by the end of a truncated document
_UNTERMINATED_TAG_RE = re.compile(r"<[a-zA-Z/!?][^<>]*\Z")


def strip_tags(text: str) -> str:
    text = _TAG_RE.sub("", text)
    return _UNTERMINATED_TAG_RE.sub("", text)


def decode_entities(text: str) -> str:
    """Decode named and numeric character references; non-breaking spaces become spaces."""
    return html.unescape(text).replace("\xa0", " ")


_TRAILING_WS_RE = re.compile(r"[^\S\n]+$", re.MULTILINE)
_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def normalize_whitespace(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_WS_RE.sub(" ", text)
    text = _TRAILING_WS_RE.sub("", text)
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


_PASSES: List[Callable[[str], str]] = [
    remove_noise,
    convert_headings,
    convert_paragraphs,
    convert_line_breaks,
    convert_emphasis,
    convert_links,
    convert_images,
    convert_lists,
    convert_blockquotes,
    convert_code,
    convert_rules,
    collapse_containers,
    strip_tags,
    decode_entities,
    normalize_whitespace,
]


def html_to_markdown(markup: str) -> str:
    """Run every conversion pass over *markup* and return the Markdown text."""
    text = markup
    for convert in _PASSES:
        text = convert(text)
    return text


def normalize(raw_markup: str) -> NormalizedDocument:
    """Convert a full HTML document into a :class:`NormalizedDocument`."""
    title = extract_title(raw_markup)
    markdown_text = html_to_markdown(extract_body(raw_markup))
    return NormalizedDocument(markdown_text=markdown_text, title=title)
