"""
Unit tests for (X)HTML parsing and block extraction.
"""

from epub2zh.core.extraction.html_blocks import document_title, extract_blocks, extract_content, parse_document
from epub2zh.core.models import BlockKind

XHTML = b'''<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>The Title</title><style>p { color: red; }</style></head>
<body>
  <h1>Heading   One</h1>
  <p>First <em>emphasised</em> paragraph.</p>
  <ul><li>Item one</li><li>Item two</li></ul>
  <div class="wrapper"><p>Nested paragraph.</p></div>
  <blockquote>Quoted bare text.</blockquote>
  <script>var ignored = "script text";</script>
  <p>   </p>
</body>
</html>'''


class TestParseDocument:
    """Test XML-then-HTML parsing."""

    def test_parses_xhtml(self):
        root = parse_document(XHTML)
        assert root is not None
        assert root.xpath('.//*[local-name()="body"]')

    def test_falls_back_to_html_parser(self):
        # Two top-level elements: the XML parser keeps only the first
        root = parse_document(b"<p>One</p><p>Two</p>")
        blocks = extract_blocks(root, "loose.html")
        assert [b.text for b in blocks] == ["One", "Two"]

    def test_empty_content(self):
        assert parse_document(b"") is None
        assert parse_document(b"   \n") is None


class TestDocumentTitle:
    """Test document title lookup."""

    def test_prefers_title_element(self):
        assert document_title(parse_document(XHTML)) == "The Title"

    def test_falls_back_to_headings(self):
        root = parse_document(b"<html><body><h2>Second level</h2><p>Text</p></body></html>")
        assert document_title(root) == "Second level"

    def test_none_without_candidates(self):
        assert document_title(parse_document(b"<html><body><p>Text</p></body></html>")) is None
        assert document_title(None) is None


class TestExtractBlocks:
    """Test block emission in document order."""

    def test_blocks_in_order_with_kinds(self):
        blocks = extract_blocks(parse_document(XHTML), "OEBPS/ch1.xhtml")

        assert [(b.kind, b.text) for b in blocks] == [
            (BlockKind.HEADING, "Heading One"),
            (BlockKind.PARAGRAPH, "First emphasised paragraph."),
            (BlockKind.LIST_ITEM, "Item one"),
            (BlockKind.LIST_ITEM, "Item two"),
            (BlockKind.PARAGRAPH, "Nested paragraph."),
            (BlockKind.PARAGRAPH, "Quoted bare text."),
        ]

    def test_sequence_starts_at_offset(self):
        blocks = extract_blocks(parse_document(XHTML), "ch1.xhtml", start_sequence=10)
        assert [b.sequence for b in blocks] == list(range(10, 16))

    def test_source_refs_count_tags(self):
        blocks = extract_blocks(parse_document(XHTML), "ch1.xhtml")
        assert blocks[0].source_ref == "ch1.xhtml#h1[1]"
        assert blocks[2].source_ref == "ch1.xhtml#li[1]"
        assert blocks[3].source_ref == "ch1.xhtml#li[2]"
        assert blocks[4].source_ref == "ch1.xhtml#p[2]"

    def test_script_and_style_text_is_dropped(self):
        texts = " ".join(b.text for b in extract_blocks(parse_document(XHTML), "ch1.xhtml"))
        assert "script text" not in texts
        assert "color" not in texts
        assert "The Title" not in texts

    def test_tail_text_of_dropped_element_is_kept(self):
        root = parse_document(b"<html><body><p>Before<script>x()</script> after.</p></body></html>")
        assert [b.text for b in extract_blocks(root, "doc.html")] == ["Before after."]

    def test_bare_text_in_body_without_blocks(self):
        root = parse_document(b"<html><body><div>Just a div of text.</div></body></html>")
        blocks = extract_blocks(root, "doc.html")
        assert [(b.kind, b.text) for b in blocks] == [(BlockKind.PARAGRAPH, "Just a div of text.")]

    def test_none_root(self):
        assert extract_blocks(None, "doc.html") == []


class TestImageReferences:
    """Test where images sit between blocks."""

    def test_images_are_placed_after_preceding_block(self):
        root = parse_document(b'''<html xmlns="http://www.w3.org/1999/xhtml"
              xmlns:xlink="http://www.w3.org/1999/xlink"><body>
          <div><img src="images/cover.jpg"/></div>
          <h1>Title</h1>
          <p>Text with an inline <img src="../images/icon.png"/> picture.</p>
          <svg><image xlink:href="images/map.svg"/></svg>
          <p>After the map.</p>
        </body></html>''')

        blocks, images = extract_content(root, "ch1.xhtml", start_sequence=5)

        assert [b.sequence for b in blocks] == [5, 6, 7]
        assert images == [(4, "images/cover.jpg"), (6, "../images/icon.png"), (6, "images/map.svg")]

    def test_no_images(self):
        blocks, images = extract_content(parse_document(XHTML), "ch1.xhtml")
        assert blocks
        assert images == []
