from __future__ import annotations

from linkify_it import LinkifyIt
from markdown_it import MarkdownIt

# Bare text is only turned into links when it spells out http: or https:.
_DISABLED_LINKIFY_SCHEMAS = ("ftp:", "mailto:", "//")


def _build_markdown() -> MarkdownIt:
    md = MarkdownIt("commonmark", {"html": False, "linkify": True}).enable("linkify")
    linkify = LinkifyIt().set({"fuzzy_link": False, "fuzzy_email": False})
    for schema in _DISABLED_LINKIFY_SCHEMAS:
        linkify.add(schema, None)
    md.linkify = linkify
    return md


_MARKDOWN = _build_markdown()


def render_description(description: str | None) -> str | None:
    """Render a job description from markdown to HTML.

    Raw HTML in the source is escaped, and explicit links with unsafe schemes
    such as ``javascript:`` are left as text.
    """
    if not description:
        return None
    return _MARKDOWN.render(description)
