"""
Test Markdown rendering, navigation, page templates and page layouts.
"""

from md_converter.core.documents import DocxLayout, PdfLayout
from md_converter.core.markdown import MarkdownRenderer, build_table_of_contents
from md_converter.core.models import Alignment, ConversionOptions
from md_converter.core.templates import (
    render_docx_header, render_docx_html, render_html_page, render_pdf_html
)
from md_converter.core.themes import get_theme_css


class TestMarkdownRenderer:
    """Test Markdown to HTML conversion."""

    def setup_method(self):
        self.renderer = MarkdownRenderer()

    def test_diagram_fence_becomes_mermaid_block(self):
        html = self.renderer.render("```mermaid\ngraph TD; A-->B\n```\n")
        assert html == '<pre class="mermaid">graph TD; A--&gt;B\n</pre>\n'

    def test_other_fences_render_as_code(self):
        html = self.renderer.render("```python\nx = 1 < 2\n```\n")
        assert '<code class="language-python">' in html
        assert "x = 1 &lt; 2" in html

    def test_tables_enabled(self):
        html = self.renderer.render("| a | b |\n|---|---|\n| 1 | 2 |\n")
        assert "<table>" in html
        assert "<td>1</td>" in html

    def test_strikethrough_enabled(self):
        assert "<s>gone</s>" in self.renderer.render("~~gone~~")

    def test_custom_fence_tag(self):
        renderer = MarkdownRenderer(fence_tag="diagram")
        html = renderer.render("```diagram\nx\n```\n```mermaid\ny\n```\n")
        assert '<pre class="mermaid">x\n</pre>' in html
        assert '<code class="language-mermaid">' in html

    def test_empty_document(self):
        assert self.renderer.render("") == ""


class TestTableOfContents:
    """Test heading anchors and the navigation list."""

    def test_ids_and_nav_items(self):
        body = "<h1>Intro</h1><p>x</p><h2>Details &amp; more</h2><h3>Deep</h3>"

        html, nav = build_table_of_contents(body)

        assert '<h1 id="heading-0">Intro</h1>' in html
        assert '<h2 id="heading-1">' in html
        assert '<h3 id="heading-2">Deep</h3>' in html
        assert nav.startswith('<ul class="nav-list">')
        assert '<li class="nav-item nav-level-1" style="padding-left: 0px;"><a href="#heading-0">Intro</a></li>' in nav
        assert 'style="padding-left: 16px;"><a href="#heading-1">Details &amp; more</a>' in nav
        assert 'nav-level-3" style="padding-left: 32px;"' in nav

    def test_no_headings(self):
        html, nav = build_table_of_contents("<p>plain</p>")
        assert html == "<p>plain</p>"
        assert nav == '<ul class="nav-list"></ul>'


class TestTemplates:
    """Test page templates."""

    def setup_method(self):
        self.options = ConversionOptions(output_theme="dracula", custom_css=".x { color: red; }")

    def test_html_page_with_sidebar_and_script(self):
        page = render_html_page(
            "Guide <1>",
            "<p>body</p>",
            self.options,
            nav_html='<ul class="nav-list"></ul>',
            mermaid_script_url="https://example.test/mermaid.js",
            mermaid_theme="dark",
        )

        assert "<title>Guide &lt;1&gt;</title>" in page
        assert '<aside class="sidebar">' in page
        assert '<main class="main-content">' in page
        assert 'src="https://example.test/mermaid.js"' in page
        assert "theme: 'dark'" in page
        assert page.index("--bg-primary") < page.index(".x { color: red; }")

    def test_html_page_without_extras(self):
        page = render_html_page("T", "<p>body</p>", ConversionOptions())
        assert "<script" not in page
        assert '<aside class="sidebar">' not in page

    def test_custom_css_comes_last(self):
        page = render_pdf_html("T", "<p>b</p>", self.options)
        assert page.rindex(".x { color: red; }") > page.index("pre {")

    def test_docx_html_is_plain(self):
        page = render_docx_html("T", "<p>b</p>")
        assert "<style>" not in page
        assert "<p>b</p>" in page

    def test_docx_header(self):
        options = ConversionOptions(header_align="center", include_date=True)
        header = render_docx_header("Title", options, "2024-01-02")
        assert "Title" in header
        assert "2024-01-02" in header
        assert "text-align:center" in header

    def test_docx_header_without_date(self):
        header = render_docx_header("Title", ConversionOptions(header_text="Custom"), "2024-01-02")
        assert "Custom" in header
        assert "2024-01-02" not in header


class TestThemes:
    """Test theme CSS generation."""

    def test_known_theme(self):
        css = get_theme_css("nord", "serif", "monokai")
        assert ":root" in css
        assert "Georgia" in css
        assert "#272822" in css

    def test_unknown_names_fall_back(self):
        assert get_theme_css("nope", "nope", "nope") == get_theme_css("default", "system", "github")


class TestPdfLayout:
    """Test PDF page setup."""

    def test_defaults(self):
        layout = PdfLayout.from_options("doc", ConversionOptions())

        assert layout.page_size == "A4"
        assert layout.margins == {"top": "20mm", "right": "20mm", "bottom": "25mm", "left": "20mm"}
        assert layout.display_header_footer is True
        assert 'class="pageNumber"' in layout.footer_template
        assert "justify-content:center" in layout.footer_template

    def test_header_text_and_no_page_numbers(self):
        options = ConversionOptions(header_text="<Draft>", page_numbers=False, header_align="right")
        layout = PdfLayout.from_options("doc", options)

        assert layout.margins["top"] == "25mm"
        assert layout.margins["bottom"] == "20mm"
        assert "&lt;Draft&gt;" in layout.header_template
        assert "justify-content:flex-end" in layout.header_template
        assert layout.footer_template == "<div></div>"

    def test_nothing_to_show(self):
        layout = PdfLayout.from_options("doc", ConversionOptions(page_numbers=False))
        assert layout.display_header_footer is False

    def test_date_only_when_requested(self):
        without = PdfLayout.from_options("doc", ConversionOptions(), "2024-01-02")
        with_date = PdfLayout.from_options("doc", ConversionOptions(include_date=True), "2024-01-02")

        assert "2024-01-02" not in without.header_template
        assert "2024-01-02" in with_date.header_template


class TestDocxLayout:
    """Test DOCX header/footer flags."""

    def test_from_options(self):
        layout = DocxLayout.from_options(ConversionOptions(page_numbers=False, header_align="center"))

        assert layout.header is True
        assert layout.footer is False
        assert layout.page_number is False
        assert layout.header_align is Alignment.CENTER
