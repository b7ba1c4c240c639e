"""
Markdown to HTML rendering and heading navigation.
"""

import html
from typing import List, Tuple

from bs4 import BeautifulSoup
from markdown_it import MarkdownIt
from markdown_it.common.utils import escapeHtml

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
NAV_INDENT_PX = 16


def _diagram_fence_rule(fence_tag: str):
    """Fence rule emitting diagram blocks as ``<pre class="mermaid">``."""

    def render_fence(self, tokens, idx, options, env):
        token = tokens[idx]
        info = token.info.strip().split(maxsplit=1)
        if info and info[0] == fence_tag:
            return f'<pre class="mermaid">{escapeHtml(token.content)}</pre>\n'
        return self.fence(tokens, idx, options, env)

    return render_fence


class MarkdownRenderer:
    """CommonMark renderer with tables and strikethrough."""

    def __init__(self, fence_tag: str = "mermaid"):
        self.fence_tag = fence_tag
        self._md = MarkdownIt("commonmark").enable(["table", "strikethrough"])
        self._md.add_render_rule("fence", _diagram_fence_rule(fence_tag))

    def render(self, text: str) -> str:
        return self._md.render(text or "")


def build_table_of_contents(body_html: str) -> Tuple[str, str]:
    """
    Assign ids to headings and build a navigation list.

    Args:
        body_html: Rendered document body

    Returns:
        ``(body_html_with_ids, nav_html)``; headings get ``heading-<n>``
        ids in document order
    """
    soup = BeautifulSoup(body_html, "html.parser")

    nav_items: List[str] = []
    for index, heading in enumerate(soup.find_all(HEADING_TAGS)):
        level = int(heading.name[1])
        anchor = f"heading-{index}"
        heading["id"] = anchor
        indent = (level - 1) * NAV_INDENT_PX
        nav_items.append(
            f'<li class="nav-item nav-level-{level}" style="padding-left: {indent}px;">'
            f'<a href="#{anchor}">{html.escape(heading.get_text(strip=True))}</a></li>'
        )

    nav_html = '<ul class="nav-list">' + "".join(nav_items) + "</ul>"
    return str(soup), nav_html
