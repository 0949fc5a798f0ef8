"""Tests for HtmlRenderer: Markdown path, IR path and sanitization."""

import re

import pytest

from notepub.document import MarkdownReader, NodeType, RichTextSpan
from notepub.document import nodes as n
from notepub.render import HtmlRenderer
from notepub.render.sanitize import sanitize_html

SAMPLE = "## 見出し\n本文1\n本文2\n\n- A\n- B\n\n> 引用\n\n```\ncode\n```"

_ID_RE = re.compile(r' name="[^"]*" id="[^"]*"')


def strip_ids(html: str) -> str:
    return _ID_RE.sub("", html)


# =========================================================================
# Markdown path
# =========================================================================

class TestRenderMarkdown:
    def test_sample(self, renderer):
        html = strip_ids(renderer.render_markdown(SAMPLE))
        assert html == (
            "<h2>見出し</h2>"
            "<p>本文1<br>本文2</p>"
            "<ul><li>A</li><li>B</li></ul>"
            "<blockquote>引用</blockquote>"
            "<pre><code>code</code></pre>"
        )

    @pytest.mark.parametrize("md,expected", [
        ("# a", "<h2>a</h2>"),
        ("## b", "<h2>b</h2>"),
        ("### c", "<h3>c</h3>"),
        ("#### d", "<p><strong>d</strong></p>"),
        ("###### f", "<p><strong>f</strong></p>"),
    ])
    def test_heading_levels(self, renderer, md, expected):
        assert strip_ids(renderer.render_markdown(md)) == expected

    def test_every_block_has_identifier(self, renderer):
        html = renderer.render_markdown("## h\n\npara")
        assert '<h2 name="id0" id="id0">' in html
        assert '<p name="id1" id="id1">' in html

    def test_numbered_list_then_paragraph(self, renderer):
        html = strip_ids(renderer.render_markdown("1. a\n2. b\nafter"))
        assert html == "<ol><li>a</li><li>b</li></ol><p>after</p>"

    def test_rule(self, renderer):
        assert strip_ids(renderer.render_markdown("a\n\n---\n\nb")) == "<p>a</p><hr><p>b</p>"

    def test_code_body_is_escaped_not_parsed(self, renderer):
        html = renderer.render_markdown("```html\n<b>**x**</b>\n```")
        assert "&lt;b&gt;**x**&lt;/b&gt;" in html

    def test_inline_formatting(self, renderer):
        html = strip_ids(renderer.render_markdown("**b** [l](https://e.com)"))
        assert html == '<p><strong>b</strong> <a href="https://e.com">l</a></p>'


# =========================================================================
# Sanitization of hostile input
# =========================================================================

class TestHostileInput:
    @pytest.mark.parametrize("md", [
        "<script>alert(1)</script>",
        "text <script>alert(1)</script> more",
        "<iframe src=https://evil></iframe>",
        '<img src=x onerror="alert(1)">',
        "<scr<script></script>ipt>alert(1)</script>",
        "[x](javascript:alert(1))",
    ])
    def test_no_active_content(self, renderer, md):
        html = renderer.render_markdown(md).lower()
        assert "<script" not in html
        assert "<iframe" not in html
        assert not re.search(r"\son[a-z]+\s*=", html)
        assert 'href="javascript:' not in html

    def test_unsafe_link_rendered_as_text(self, renderer):
        html = renderer.render_markdown("[x](javascript:alert(1))")
        assert "<a " not in html


# =========================================================================
# IR path
# =========================================================================

class TestRenderNodes:
    def test_reader_output_matches_markdown_path(self, renderer):
        nodes = MarkdownReader().read(SAMPLE)
        html = strip_ids(renderer.render_nodes(nodes))
        assert html.startswith("<h2>見出し</h2><p>本文1<br>本文2</p>")
        assert "<pre><code>code</code></pre>" in html

    def test_image_with_caption(self, renderer):
        html = strip_ids(renderer.render_nodes([n.image("https://e.com/a.png", "図")]))
        assert html == (
            '<figure><img src="https://e.com/a.png" alt="図">'
            "<figcaption>図</figcaption></figure>"
        )

    def test_unsafe_image_src_dropped(self, renderer):
        html = renderer.render_nodes([n.image("javascript:alert(1)")])
        assert 'src=""' in html

    def test_table_header_row(self, renderer):
        def cell(text):
            return n.DocNode(NodeType.TABLE_CELL, rich_text=n.spans(text))

        table = n.DocNode(
            NodeType.TABLE,
            has_column_header=True,
            children=(
                n.DocNode(NodeType.TABLE_ROW, children=(cell("h"),)),
                n.DocNode(NodeType.TABLE_ROW, children=(cell("v"),)),
            ),
        )
        html = strip_ids(renderer.render_nodes([table]))
        assert html == "<table><tr><th>h</th></tr><tr><td>v</td></tr></table>"

    def test_todo_list(self, renderer):
        todo = n.DocNode(NodeType.TODO_LIST, children=(
            n.DocNode(NodeType.TODO_LIST, rich_text=n.spans("done"), checked=True),
            n.DocNode(NodeType.TODO_LIST, rich_text=n.spans("open"), checked=False),
        ))
        html = strip_ids(renderer.render_nodes([todo]))
        assert html == "<ul><li>[x] done</li><li>[ ] open</li></ul>"

    def test_callout_icon(self, renderer):
        callout = n.DocNode(NodeType.CALLOUT, rich_text=n.spans("note"), icon="💡")
        assert strip_ids(renderer.render_nodes([callout])) == "<blockquote>💡 note</blockquote>"

    def test_bookmark_link(self, renderer):
        node = n.DocNode(NodeType.BOOKMARK, content="https://e.com", caption="E")
        assert strip_ids(renderer.render_nodes([node])) == '<p><a href="https://e.com">E</a></p>'

    def test_unsupported_placeholder(self, renderer):
        html = strip_ids(renderer.render_nodes([n.unsupported("[Unsupported: pdf]")]))
        assert html == "<p>[Unsupported: pdf]</p>"

    def test_span_text_with_markup_is_escaped(self, renderer):
        node = n.paragraph((RichTextSpan("<b>x</b>"),))
        assert strip_ids(renderer.render_nodes([node])) == "<p>&lt;b&gt;x&lt;/b&gt;</p>"


# =========================================================================
# Idempotence
# =========================================================================

class TestIdempotence:
    def test_same_output_modulo_identifiers(self):
        first = HtmlRenderer().render_markdown(SAMPLE)
        second = HtmlRenderer().render_markdown(SAMPLE)
        assert first != second
        assert strip_ids(first) == strip_ids(second)

    def test_output_is_sanitizer_fixed_point(self, renderer):
        html = renderer.render_markdown(SAMPLE + "\n\n<script>x</script>")
        assert sanitize_html(html) == html
