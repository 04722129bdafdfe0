"""
Unit tests for the consolidated printable HTML.
"""

from lxml import etree

from epub2zh.core.backends import simulate
from epub2zh.core.models import BlockKind, ContentBlock, ExtractionResult, TocEntry
from epub2zh.core.rendering import build_consolidated_html, chapter_ranges, split_simulated


def block(sequence, kind, text):
    return ContentBlock(sequence=sequence, kind=kind, text=text, source_ref=f"doc#{sequence}")


def sample_extraction():
    blocks = [
        block(1, BlockKind.HEADING, "Chapter One"),
        block(2, BlockKind.PARAGRAPH, "The book."),
        block(3, BlockKind.LIST_ITEM, "First item"),
        block(4, BlockKind.LIST_ITEM, "Second item"),
        block(5, BlockKind.HEADING, "Chapter Two"),
        block(6, BlockKind.PARAGRAPH, "Plain text."),
    ]
    toc = [
        TocEntry(title="Chapter One", target_ref="a.xhtml", level=0, block_sequence=1),
        TocEntry(title="Chapter Two", target_ref="b.xhtml", level=1, block_sequence=5),
    ]
    return ExtractionResult(blocks=blocks, toc=toc, title="Sample Book", metadata={"author": "Jane Roe"})


def parse(html):
    return etree.fromstring(html, etree.HTMLParser())


class TestSplitSimulated:
    """Test separating simulator output."""

    def test_simulated_text(self):
        assert split_simulated(simulate("The book.")) == ("这个 书.", "The book.")

    def test_regular_text(self):
        assert split_simulated("普通文本") == ("普通文本", None)


class TestChapterRanges:
    """Test cutting blocks at TOC entries."""

    def test_leading_blocks_form_untitled_section(self):
        extraction = sample_extraction()
        toc = [TocEntry(title="Two", target_ref="b", block_sequence=5)]

        sections = chapter_ranges(extraction.blocks, toc)

        assert [(entry.title if entry else None, [b.sequence for b in blocks]) for entry, blocks in sections] == [
            (None, [1, 2, 3, 4]),
            ("Two", [5, 6]),
        ]

    def test_entries_on_same_block_collapse(self):
        extraction = sample_extraction()
        toc = [
            TocEntry(title="Part", target_ref="a", block_sequence=1),
            TocEntry(title="Chapter", target_ref="a", level=1, block_sequence=1),
            TocEntry(title="Unresolved", target_ref="x", block_sequence=None),
        ]

        sections = chapter_ranges(extraction.blocks, toc)

        assert len(sections) == 1
        assert sections[0][0].title == "Part"
        assert len(sections[0][1]) == 6

    def test_no_toc(self):
        sections = chapter_ranges(sample_extraction().blocks, [])
        assert len(sections) == 1
        assert sections[0][0] is None


class TestBuildConsolidatedHtml:
    """Test the printable document structure."""

    def setup_method(self):
        self.extraction = sample_extraction()
        self.translations = {1: "第一章", 2: simulate("The book."), 5: "第二章"}
        self.html = build_consolidated_html(self.extraction, self.translations, degraded={2})
        self.root = parse(self.html)

    def test_document_head(self):
        assert self.html.startswith("<!DOCTYPE html>")
        assert self.root.get("lang") == "zh-CN"
        assert self.root.xpath("//head/title")[0].text == "Sample Book"
        assert "NotoSansSC" in self.root.xpath("//head/style")[0].text

    def test_title_page(self):
        title_page = self.root.xpath('//div[@class="title-page"]')[0]
        assert title_page.xpath("./h1")[0].text == "Sample Book"
        assert title_page.xpath('./p[@class="author"]')[0].text == "Jane Roe"

    def test_toc_links_to_chapters(self):
        nav = self.root.xpath('//nav[@class="toc"]')[0]
        assert nav.xpath("./h2")[0].text == "目录"
        links = nav.xpath(".//a")
        assert [(a.get("href"), a.text) for a in links] == [("#chapter-0", "第一章"), ("#chapter-1", "第二章")]
        assert [li.get("class") for li in nav.xpath(".//li")] == ["level-0", "level-1"]

    def test_one_section_per_chapter(self):
        chapters = self.root.xpath('//div[@class="chapter"]')
        assert [c.get("id") for c in chapters] == ["chapter-0", "chapter-1"]
        assert chapters[0].xpath("./h2")[0].text == "第一章"

    def test_list_items_share_a_list(self):
        lists = self.root.xpath('//div[@id="chapter-0"]/ul')
        assert len(lists) == 1
        assert [li.text for li in lists[0].xpath("./li")] == ["First item", "Second item"]

    def test_degraded_block_shows_original(self):
        degraded = self.root.xpath('//p[@class="degraded"]')[0]
        assert degraded.text == "这个 书."
        assert degraded.xpath('./span[@class="original"]')[0].text == "The book."

    def test_untranslated_block_keeps_source_text(self):
        assert self.root.xpath('//div[@id="chapter-1"]/p')[0].text == "Plain text."

    def test_every_block_is_rendered_once(self):
        texts = "".join(self.root.xpath("//div[@class='chapter']//text()"))
        for expected in ("第一章", "这个 书.", "First item", "Second item", "第二章", "Plain text."):
            assert texts.count(expected) == 1

    def test_chapter_without_heading_gets_toc_title(self):
        extraction = ExtractionResult(
            blocks=[block(1, BlockKind.PARAGRAPH, "Body only.")],
            toc=[TocEntry(title="Untitled Start", target_ref="a", block_sequence=1)],
            title="Book",
        )
        root = parse(build_consolidated_html(extraction))
        assert root.xpath('//div[@id="chapter-0"]/h2')[0].text == "Untitled Start"

    def test_untranslated_conversion(self):
        root = parse(build_consolidated_html(self.extraction))
        assert root.xpath('//div[@id="chapter-0"]/h2')[0].text == "Chapter One"
        assert not root.xpath('//*[@class="degraded"]')


class TestBookAssets:
    """Test embedding the book's images and stylesheets."""

    PIXEL = "data:image/png;base64,iVBORw0KGgo="

    def test_images_follow_their_block(self):
        extraction = sample_extraction()
        extraction.images = {2: [self.PIXEL], 3: [self.PIXEL + "AA"]}

        root = parse(build_consolidated_html(extraction))

        chapter = root.xpath('//div[@id="chapter-0"]')[0]
        children = [child.tag if child.get('class') != 'figure' else 'figure' for child in chapter]
        assert children == ["h2", "p", "figure", "ul", "figure", "ul"]
        assert chapter.xpath('.//img/@src') == [self.PIXEL, self.PIXEL + "AA"]

    def test_leading_images_open_the_first_section(self):
        extraction = sample_extraction()
        extraction.images = {0: [self.PIXEL]}

        root = parse(build_consolidated_html(extraction))

        assert root.xpath('//div[@id="chapter-0"]/div[@class="figure"]/img/@src') == [self.PIXEL]
        assert not root.xpath('//div[@id="chapter-1"]//img')

    def test_book_stylesheets_precede_print_styles(self):
        extraction = sample_extraction()
        extraction.stylesheets = ["p { text-indent: 2em; }"]

        root = parse(build_consolidated_html(extraction))

        styles = root.xpath('//head/style')
        assert len(styles) == 2
        assert styles[0].text == "p { text-indent: 2em; }"
        assert "@page" in styles[1].text

    def test_no_assets(self):
        root = parse(build_consolidated_html(sample_extraction()))
        assert not root.xpath('//img')
        assert len(root.xpath('//head/style')) == 1
