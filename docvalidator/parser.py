"""Markdown parsing: front-matter, headings, links, code blocks and raw HTML."""

from __future__ import annotations

import datetime as _dt
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml
from markdown_it import MarkdownIt
from markdown_it.token import Token

from .models import CodeBlock, Document, Heading, HtmlFragment, Link

_FRONT_MATTER_OPEN = "---"
_FRONT_MATTER_CLOSE = {"---", "..."}
_SLUG_STRIP = re.compile(r"[^\w\- ]", re.UNICODE)


def _markdown() -> MarkdownIt:
    return MarkdownIt("commonmark").enable(["table", "strikethrough"])


def split_front_matter(text: str) -> Tuple[Dict[str, Any], str, int, Optional[str]]:
    """Split a leading YAML block from ``text``.

    Returns ``(front_matter, body, body_offset, error)`` where ``body_offset``
    is the number of file lines consumed by the block.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != _FRONT_MATTER_OPEN:
        return {}, text, 0, None

    for index in range(1, len(lines)):
        if lines[index].strip() in _FRONT_MATTER_CLOSE:
            break
    else:
        return {}, text, 0, None

    raw = "".join(lines[1:index])
    body = "".join(lines[index + 1 :])
    offset = index + 1
    try:
        loaded = yaml.safe_load(raw) if raw.strip() else {}
    except yaml.YAMLError as exc:
        return {}, body, offset, f"Invalid front-matter: {exc}"
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        return {}, body, offset, "Front-matter must be a mapping"
    return {str(key): value for key, value in loaded.items()}, body, offset, None


def slugify(text: str) -> str:
    """GitHub-style anchor for a heading title."""
    slug = text.strip().lower()
    slug = _SLUG_STRIP.sub("", slug)
    return slug.replace(" ", "-")


def coerce_datetime(value: Any) -> Optional[_dt.datetime]:
    """Interpret a front-matter date value as an aware UTC datetime."""
    if isinstance(value, _dt.datetime):
        moment = value
    elif isinstance(value, _dt.date):
        moment = _dt.datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        candidate = value.strip()
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            moment = _dt.datetime.fromisoformat(candidate)
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=_dt.UTC)
    return moment.astimezone(_dt.UTC)


def parse_document(path: Path, text: str) -> Document:
    """Parse ``text`` read from ``path`` into an immutable :class:`Document`."""
    front_matter, body, offset, error = split_front_matter(text)
    tokens = _markdown().parse(body)

    headings: List[Heading] = []
    links: List[Link] = []
    code_blocks: List[CodeBlock] = []
    fragments: List[HtmlFragment] = []
    code_ranges: List[Tuple[int, int]] = []
    seen_slugs: Dict[str, int] = {}

    for index, token in enumerate(tokens):
        start = _line_of(token, offset)
        if token.type == "heading_open":
            inline = tokens[index + 1] if index + 1 < len(tokens) else None
            title = _inline_text(inline.children or []) if inline is not None else ""
            headings.append(
                Heading(
                    level=int(token.tag[1:]),
                    text=title,
                    generated_id=_unique_slug(title, seen_slugs),
                    line_number=start,
                )
            )
        elif token.type in {"fence", "code_block"}:
            language = token.info.strip().split()[0].lower() if token.info.strip() else ""
            code_blocks.append(
                CodeBlock(
                    language=language,
                    body=token.content,
                    line_number=start,
                    fenced=token.type == "fence",
                )
            )
            if token.map:
                code_ranges.append((token.map[0] + 1 + offset, token.map[1] + offset))
        elif token.type == "html_block":
            fragments.append(HtmlFragment(html=token.content, line_number=start))
        elif token.type == "inline":
            _collect_inline(token, start, links, fragments)

    return Document(
        path=path,
        content=text,
        body=body,
        front_matter=front_matter,
        body_offset=offset,
        front_matter_error=error,
        headings=tuple(headings),
        links=tuple(links),
        code_blocks=tuple(code_blocks),
        html_fragments=tuple(fragments),
        code_line_ranges=tuple(code_ranges),
    )


def _line_of(token: Token, offset: int) -> int:
    if token.map:
        return token.map[0] + 1 + offset
    return 1 + offset


def _unique_slug(title: str, seen: Dict[str, int]) -> str:
    base = slugify(title)
    count = seen.get(base, 0)
    seen[base] = count + 1
    return base if count == 0 else f"{base}-{count}"


def _inline_text(children: Sequence[Token]) -> str:
    parts: List[str] = []
    for child in children:
        if child.type in {"text", "code_inline"}:
            parts.append(child.content)
        elif child.type in {"softbreak", "hardbreak"}:
            parts.append(" ")
        elif child.type == "image":
            parts.append(_inline_text(child.children or []))
    return "".join(parts).strip()


def _collect_inline(
    inline: Token,
    start: int,
    links: List[Link],
    fragments: List[HtmlFragment],
) -> None:
    line = start
    open_link: Optional[Tuple[str, int, List[Token]]] = None
    for child in inline.children or []:
        if child.type in {"softbreak", "hardbreak"}:
            line += 1
        if child.type == "link_open":
            open_link = (str(child.attrGet("href") or ""), line, [])
            continue
        if child.type == "link_close" and open_link is not None:
            href, link_line, inner = open_link
            links.append(Link(text=_inline_text(inner), href=href, line_number=link_line))
            open_link = None
            continue
        if open_link is not None:
            open_link[2].append(child)
        if child.type == "image":
            links.append(
                Link(
                    text=_inline_text(child.children or []),
                    href=str(child.attrGet("src") or ""),
                    line_number=line,
                )
            )
        elif child.type == "html_inline":
            fragments.append(HtmlFragment(html=child.content, line_number=line))


__all__ = ["coerce_datetime", "parse_document", "slugify", "split_front_matter"]
