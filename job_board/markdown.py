"""Restricted Markdown rendering for listing bodies.

Listing text is written by posters, so the renderer is deliberately small and
safe rather than complete:

- blocks: headings (`#`..`######`), `-`/`*` bullet lists, `1.` ordered lists,
  fenced code (```), and paragraphs whose lines are joined with `<br />`;
- inline: `code`, [label](url), **strong**, *em*.

All text is HTML-escaped before any markup is recognised, and links are only
emitted for `http://`, `https://` and `mailto:` targets. `strip_markdown`
produces the plain-text preview used on job cards and meta descriptions.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional


CODE_SPAN_RE = re.compile(r"`([^`]+)`")
LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
ITALIC_RE = re.compile(r"\*([^*]+)\*")
SAFE_LINK_RE = re.compile(r"^(?:https?://|mailto:)", re.IGNORECASE)

LIST_ITEM_RE = re.compile(r"^[-*]\s+")
ORDERED_ITEM_RE = re.compile(r"^\d+\.\s+")
HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")

HEADING_TAGS: Dict[int, str] = {1: "h1", 2: "h2", 3: "h3", 4: "h4", 5: "h5", 6: "h6"}

# Placeholder delimiters; stripped from input so user text can never forge one.
_TOKEN_OPEN = "\x02"
_TOKEN_CLOSE = "\x03"
_TOKEN_CHARS_RE = re.compile(f"[{_TOKEN_OPEN}{_TOKEN_CLOSE}]")


def escape_html(value: str) -> str:
    return (
        value.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )


def sanitize_link(url: str) -> Optional[str]:
    """Return the trimmed URL if its scheme is allowed, else None."""
    normalized = url.strip()
    return normalized if SAFE_LINK_RE.match(normalized) else None


def render_inline(value: str) -> str:
    """Render inline markup for one line (or joined paragraph) of text."""
    output = escape_html(_TOKEN_CHARS_RE.sub("", value))
    placeholders: List[str] = []

    def store(fragment: str) -> str:
        placeholders.append(fragment)
        return f"{_TOKEN_OPEN}{len(placeholders) - 1}{_TOKEN_CLOSE}"

    # Text is already escaped, so captured groups go into the HTML as-is.
    output = CODE_SPAN_RE.sub(lambda m: store(f"<code>{m.group(1)}</code>"), output)

    def link(match: re.Match) -> str:
        label, href = match.group(1), sanitize_link(match.group(2))
        if href is None:
            return label
        return store(f'<a href="{href}" target="_blank" rel="noopener noreferrer">{label}</a>')

    output = LINK_RE.sub(link, output)
    output = BOLD_RE.sub(r"<strong>\1</strong>", output)
    output = ITALIC_RE.sub(r"<em>\1</em>", output)

    # Later fragments may wrap earlier ones (a code span inside a link label).
    for index in range(len(placeholders) - 1, -1, -1):
        output = output.replace(f"{_TOKEN_OPEN}{index}{_TOKEN_CLOSE}", placeholders[index])
    return output


def _is_list_item(line: str) -> bool:
    return bool(LIST_ITEM_RE.match(line.strip()))


def _is_ordered_item(line: str) -> bool:
    return bool(ORDERED_ITEM_RE.match(line.strip()))


def _is_heading(line: str) -> bool:
    return bool(HEADING_RE.match(line.strip()))


def _is_code_fence(line: str) -> bool:
    return line.strip().startswith("```")


def _is_block_starter(line: str) -> bool:
    return _is_list_item(line) or _is_ordered_item(line) or _is_heading(line) or _is_code_fence(line)


def render_markdown_to_html(markdown: str) -> str:
    """Render the restricted Markdown dialect to an HTML fragment.

    Empty or whitespace-only input returns "". An unterminated code fence runs to
    the end of the input.
    """
    normalized = re.sub(r"\r\n?", "\n", markdown or "").strip()
    if not normalized:
        return ""

    lines = normalized.split("\n")
    blocks: List[str] = []
    index = 0

    while index < len(lines):
        line = lines[index]
        trimmed = line.strip()

        if not trimmed:
            index += 1
            continue

        if _is_code_fence(line):
            index += 1
            code_lines: List[str] = []
            while index < len(lines) and not _is_code_fence(lines[index]):
                code_lines.append(lines[index])
                index += 1
            index += 1  # closing fence, if any
            blocks.append(f"<pre><code>{escape_html(chr(10).join(code_lines))}</code></pre>")
            continue

        heading = HEADING_RE.match(trimmed)
        if heading:
            level = len(heading.group(1))
            tag = HEADING_TAGS.get(level, "h6")
            blocks.append(f"<{tag}>{render_inline(heading.group(2))}</{tag}>")
            index += 1
            continue

        if _is_list_item(line) or _is_ordered_item(line):
            ordered = _is_ordered_item(line)
            matcher, marker_re = (_is_ordered_item, ORDERED_ITEM_RE) if ordered else (_is_list_item, LIST_ITEM_RE)
            items: List[str] = []
            while index < len(lines) and matcher(lines[index]):
                items.append(marker_re.sub("", lines[index].strip(), count=1))
                index += 1
            tag = "ol" if ordered else "ul"
            body = "".join(f"<li>{render_inline(item)}</li>" for item in items)
            blocks.append(f"<{tag}>{body}</{tag}>")
            continue

        paragraph: List[str] = []
        while index < len(lines):
            candidate = lines[index]
            if not candidate.strip() or _is_block_starter(candidate):
                break
            paragraph.append(candidate.strip())
            index += 1
        blocks.append(f"<p>{'<br />'.join(render_inline(p) for p in paragraph)}</p>")

    return "".join(blocks)


def _strip_once(text: str) -> str:
    text = re.sub(r"```[\s\S]*?```", " ", text)
    text = CODE_SPAN_RE.sub(r"\1", text)
    text = LINK_RE.sub(r"\1", text)
    text = re.sub(r"^#{1,6}\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^\s*[-*]\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^\s*\d+\.\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"[*_~]", "", text)
    return re.sub(r"\s+", " ", text).strip()


def strip_markdown(markdown: str) -> str:
    """Plain-text preview of the dialect: no markup, single spaces.

    The rules are applied until the text stops changing, so unwrapping one
    construct can never expose another and the result is idempotent.
    """
    text = markdown or ""
    while True:
        stripped = _strip_once(text)
        if stripped == text:
            return stripped
        text = stripped
