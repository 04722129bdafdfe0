"""
Consolidated HTML document for PDF printing.

All blocks of a document (translated or not) end up in one HTML file: a
title page, a linked table of contents and one section per TOC chapter.
"""

from typing import Dict, List, Optional, Set, Tuple

from lxml import etree

from epub2zh.core.backends import ORIGINAL_MARKER
from epub2zh.core.models import BlockKind, ContentBlock, ExtractionResult, TocEntry

CJK_FONT_STACK = "'NotoSansSC', 'PingFang SC', 'Microsoft YaHei', 'Noto Serif SC', serif"

STYLESHEET = f"""
@page {{
  size: A4;
  margin: 20mm;
  @bottom-center {{
    content: counter(page) " / " counter(pages);
    font-size: 8pt;
  }}
}}
body {{
  font-family: {CJK_FONT_STACK};
  line-height: 1.6;
  max-width: 800px;
  margin: 0 auto;
}}
h1, h2, h3 {{
  page-break-after: avoid;
  page-break-inside: avoid;
}}
.title-page {{
  text-align: center;
  padding-top: 30%;
  page-break-after: always;
}}
.title-page .author {{
  font-size: 1.2em;
  color: #555;
}}
.toc {{
  page-break-after: always;
}}
.toc ul {{
  list-style: none;
  padding-left: 0;
}}
.toc li {{
  margin-bottom: 5px;
}}
.toc li.level-1 {{ padding-left: 1.5em; }}
.toc li.level-2 {{ padding-left: 3em; }}
a {{
  color: #0066cc;
  text-decoration: none;
}}
.chapter {{
  page-break-before: always;
}}
.chapter:first-of-type {{
  page-break-before: avoid;
}}
.original {{
  display: block;
  color: #888;
  font-size: 0.85em;
}}
.figure {{
  text-align: center;
  page-break-inside: avoid;
}}
.figure img {{
  max-width: 100%;
}}
"""


def split_simulated(text: str) -> Tuple[str, Optional[str]]:
    """Separate simulator output into (substituted text, original) parts."""
    if ORIGINAL_MARKER not in text:
        return text, None
    substituted, _, original = text.partition(ORIGINAL_MARKER)
    return substituted, original


def chapter_ranges(blocks: List[ContentBlock], toc: List[TocEntry]) -> List[Tuple[Optional[TocEntry], List[ContentBlock]]]:
    """
    Cut the block list at TOC entries.

    Blocks before the first entry form an untitled leading section. Entries
    pointing at the same block collapse into the first of them.
    """
    starts: List[TocEntry] = []
    for entry in toc:
        if entry.block_sequence is None:
            continue
        if starts and starts[-1].block_sequence == entry.block_sequence:
            continue
        starts.append(entry)

    sections: List[Tuple[Optional[TocEntry], List[ContentBlock]]] = []
    current_entry: Optional[TocEntry] = None
    current: List[ContentBlock] = []
    pending = list(starts)

    for block in blocks:
        while pending and block.sequence >= pending[0].block_sequence:
            if current or current_entry is not None:
                sections.append((current_entry, current))
            current_entry = pending.pop(0)
            current = []
        current.append(block)

    if current or current_entry is not None:
        sections.append((current_entry, current))

    return sections


def _append_text(element, text: str, simulated: bool):
    substituted, original = split_simulated(text) if simulated else (text, None)
    element.text = substituted
    if original is not None:
        element.set('class', 'degraded')
        span = etree.SubElement(element, 'span')
        span.set('class', 'original')
        span.text = original


def _append_images(section, uris: List[str]):
    for uri in uris:
        figure = etree.SubElement(section, 'div')
        figure.set('class', 'figure')
        etree.SubElement(figure, 'img', src=uri, alt='')


def build_consolidated_html(
    extraction: ExtractionResult,
    translations: Optional[Dict[int, str]] = None,
    degraded: Optional[Set[int]] = None,
    language: str = 'zh-CN'
) -> str:
    """
    Build the printable HTML document.

    Args:
        extraction: Blocks, TOC and metadata of the source
        translations: Block sequence -> translated text; missing blocks keep
            their original text
        degraded: Sequences whose text came from offline simulation; those
            render the original in a muted style below the substitution
        language: Value of the html lang attribute

    Returns:
        Serialized HTML
    """
    translations = translations or {}
    degraded = degraded or set()
    by_sequence = {block.sequence: block for block in extraction.blocks}

    def text_of(block: ContentBlock) -> str:
        return translations.get(block.sequence) or block.text

    html = etree.Element('html', lang=language)
    head = etree.SubElement(html, 'head')
    etree.SubElement(head, 'meta', charset='UTF-8')
    title = etree.SubElement(head, 'title')
    title.text = extraction.title
    # Book styles first so the print stylesheet wins on conflicts
    for css in extraction.stylesheets:
        book_style = etree.SubElement(head, 'style')
        book_style.text = css
    style = etree.SubElement(head, 'style')
    style.text = STYLESHEET

    body = etree.SubElement(html, 'body')

    title_page = etree.SubElement(body, 'div')
    title_page.set('class', 'title-page')
    heading = etree.SubElement(title_page, 'h1')
    heading.text = extraction.title
    if extraction.metadata.get('author'):
        author = etree.SubElement(title_page, 'p')
        author.set('class', 'author')
        author.text = extraction.metadata['author']

    sections = chapter_ranges(extraction.blocks, extraction.toc)
    anchors = {}
    for index, (entry, _) in enumerate(sections):
        if entry is not None:
            anchors[entry.block_sequence] = f"chapter-{index}"

    if anchors:
        nav = etree.SubElement(body, 'nav')
        nav.set('class', 'toc')
        nav_title = etree.SubElement(nav, 'h2')
        nav_title.text = '目录'
        listing = etree.SubElement(nav, 'ul')
        for entry in extraction.toc:
            anchor = anchors.get(entry.block_sequence)
            if anchor is None:
                continue
            item = etree.SubElement(listing, 'li')
            item.set('class', f"level-{min(entry.level, 2)}")
            link = etree.SubElement(item, 'a', href=f"#{anchor}")
            target = by_sequence.get(entry.block_sequence)
            if target is not None and target.kind == BlockKind.HEADING and target.sequence in translations:
                link.text = split_simulated(text_of(target))[0]
            else:
                link.text = entry.title

    first_sequence = extraction.blocks[0].sequence if extraction.blocks else 0
    leading_images: List[str] = []
    for after in sorted(extraction.images):
        if after < first_sequence:
            leading_images.extend(extraction.images[after])

    for index, (entry, blocks) in enumerate(sections):
        section = etree.SubElement(body, 'div', id=f"chapter-{index}")
        section.set('class', 'chapter')
        if entry is not None and (not blocks or blocks[0].kind != BlockKind.HEADING):
            chapter_title = etree.SubElement(section, 'h2')
            chapter_title.text = entry.title
        if index == 0:
            _append_images(section, leading_images)

        current_list = None
        for block in blocks:
            simulated = block.sequence in degraded
            if block.kind == BlockKind.LIST_ITEM:
                if current_list is None:
                    current_list = etree.SubElement(section, 'ul')
                element = etree.SubElement(current_list, 'li')
            else:
                current_list = None
                tag = 'h2' if block.kind == BlockKind.HEADING else 'p'
                element = etree.SubElement(section, tag)
            _append_text(element, text_of(block), simulated)
            if extraction.images.get(block.sequence):
                _append_images(section, extraction.images[block.sequence])
                current_list = None

    return etree.tostring(html, method='html', encoding='unicode', doctype='<!DOCTYPE html>')
