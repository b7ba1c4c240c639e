"""
HTML document templates for each output format.
"""

import html
from typing import Optional

from md_converter.core.models import ConversionOptions
from md_converter.core.themes import get_theme_css

_CONTENT_CSS = """
    code {
      padding: 2px 6px;
      border-radius: 4px;
      font-family: 'Courier New', Consolas, monospace;
      font-size: 0.9em;
    }
    pre {
      background-color: var(--code-background);
      padding: 16px;
      border-radius: 8px;
      overflow-x: auto;
      border: 1px solid var(--code-border);
    }
    pre code {
      border: none;
      padding: 0;
    }
    pre.mermaid {
      background: transparent;
      border: none;
      text-align: center;
    }
    img {
      max-width: 100%;
      height: auto;
    }
    table {
      border-collapse: collapse;
      width: 100%;
      margin: 1.5em 0;
    }
    table th, table td {
      border: 1px solid var(--border-color);
      padding: 12px 16px;
      text-align: left;
    }
    table th {
      background-color: var(--bg-secondary);
      font-weight: 600;
    }
    blockquote {
      border-left: 4px solid var(--border-color);
      padding-left: 20px;
      color: var(--text-secondary);
      margin: 1.5em 0;
    }
"""

_SIDEBAR_CSS = """
    :root { --sidebar-width: 280px; }
    body { display: flex; min-height: 100vh; margin: 0; line-height: 1.7; }
    .sidebar {
      position: fixed; top: 0; left: 0;
      width: var(--sidebar-width); height: 100vh;
      background: var(--bg-sidebar);
      border-right: 1px solid var(--border-color);
      overflow-y: auto; padding: 24px 16px; box-sizing: border-box;
    }
    .sidebar-header {
      font-size: 1.25rem; font-weight: 700; margin-bottom: 20px;
      padding-bottom: 12px; border-bottom: 2px solid var(--border-color);
    }
    .nav-list { list-style: none; margin: 0; padding: 0; }
    .nav-item { margin: 4px 0; }
    .nav-item a {
      display: block; padding: 6px 12px; border-radius: 6px;
      color: var(--text-secondary); text-decoration: none; font-size: 0.9rem;
    }
    .nav-item a:hover { color: var(--primary-color); }
    .nav-level-1 a { font-weight: 600; }
    .main-content {
      margin-left: var(--sidebar-width); flex: 1;
      padding: 40px 60px; max-width: 1200px;
    }
    h1, h2, h3, h4, h5, h6 { scroll-margin-top: 20px; }
    @media (max-width: 768px) {
      .sidebar { display: none; }
      .main-content { margin-left: 0; padding: 24px 20px; }
    }
"""

_PLAIN_BODY_CSS = """
    body {
      line-height: 1.6;
      max-width: 900px;
      margin: 0 auto;
      padding: 20px;
    }
"""


def _theme_css(options: ConversionOptions) -> str:
    return get_theme_css(options.output_theme, options.font_family, options.code_theme)


def _mermaid_script(script_url: str, theme: str) -> str:
    return (
        f'<script src="{html.escape(script_url)}"></script>\n'
        f"  <script>window.mermaid && mermaid.initialize({{ startOnLoad: true, theme: '{html.escape(theme)}' }});</script>"
    )


def render_html_page(
    title: str,
    body: str,
    options: ConversionOptions,
    nav_html: Optional[str] = None,
    mermaid_script_url: Optional[str] = None,
    mermaid_theme: str = "default",
) -> str:
    """Standalone HTML page, with a navigation sidebar when ``nav_html`` is given.

    When ``mermaid_script_url`` is set the page loads Mermaid and renders
    ``pre.mermaid`` blocks in the browser.
    """
    script = _mermaid_script(mermaid_script_url, mermaid_theme) if mermaid_script_url else ""

    if nav_html is not None:
        layout_css = _SIDEBAR_CSS
        content = f"""<aside class="sidebar">
    <div class="sidebar-header">Contents</div>
    {nav_html}
  </aside>
  <main class="main-content">
    {body}
  </main>"""
    else:
        layout_css = _PLAIN_BODY_CSS
        content = body

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{html.escape(title)}</title>
  {script}
  <style>
    {_theme_css(options)}
    {layout_css}
    {_CONTENT_CSS}
    {options.custom_css}
  </style>
</head>
<body>
  {content}
</body>
</html>
"""


def render_pdf_html(title: str, body: str, options: ConversionOptions) -> str:
    """Print-oriented page handed to the PDF renderer."""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>{html.escape(title)}</title>
  <style>
    {_theme_css(options)}
    {_PLAIN_BODY_CSS}
    {_CONTENT_CSS}
    img {{ display: block; margin: 20px auto; }}
    {options.custom_css}
  </style>
</head>
<body>
  {body}
</body>
</html>
"""


def render_docx_html(title: str, body: str) -> str:
    """Plain page handed to the DOCX converter (Word ignores most CSS)."""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>{html.escape(title)}</title>
</head>
<body>
  {body}
</body>
</html>
"""


def render_docx_header(title: str, options: ConversionOptions, date_text: str = "") -> str:
    """Header markup for DOCX output: header text or title, plus the date if requested."""
    text = html.escape(options.header_text or title)
    date = f' &nbsp; <span style="opacity:.85">{html.escape(date_text)}</span>' if options.include_date else ""
    return (
        f'<div style="font-size:10pt; color:#555; text-align:{options.header_align.value};">'
        f"{text}{date}</div>"
    )
