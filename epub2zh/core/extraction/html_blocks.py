"""
HTML/XHTML to ContentBlock conversion.

Documents are parsed as XML first (EPUB content is XHTML) and re-parsed as
HTML when that fails. Elements are matched by local name so namespaced and
plain documents are handled the same way.
"""

import logging
from typing import List, Optional, Tuple

from lxml import etree

from epub2zh.core.models import BlockKind, ContentBlock

logger = logging.getLogger(__name__)

NON_CONTENT_TAGS = ('script', 'style', 'head', 'link', 'meta', 'title')

BLOCK_TAGS = {
    'h1': BlockKind.HEADING,
    'h2': BlockKind.HEADING,
    'h3': BlockKind.HEADING,
    'h4': BlockKind.HEADING,
    'h5': BlockKind.HEADING,
    'h6': BlockKind.HEADING,
    'p': BlockKind.PARAGRAPH,
    'li': BlockKind.LIST_ITEM,
}

# Containers that count as a paragraph when they hold bare text
TEXT_CONTAINER_TAGS = ('div', 'blockquote', 'section')

XLINK_HREF = '{http://www.w3.org/1999/xlink}href'


def local_name(element) -> str:
    """Tag name without namespace, lowercased; '' for comments and PIs."""
    if not isinstance(element.tag, str):
        return ''
    return etree.QName(element).localname.lower()


def collapse_whitespace(text: str) -> str:
    return ' '.join(text.split())


def parse_document(content: bytes):
    """
    Parse an (X)HTML document.

    Returns:
        Root element, or None if nothing could be parsed
    """
    if not content or not content.strip():
        return None

    try:
        parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
        root = etree.fromstring(content, parser)
    except etree.XMLSyntaxError:
        root = None

    # recover=True returns a partial tree for broken XML; a document with no
    # body is usually HTML that the XML parser mangled
    if root is None or not root.xpath('.//*[local-name()="body"]'):
        try:
            root = etree.fromstring(content, etree.HTMLParser())
        except (etree.XMLSyntaxError, ValueError):
            return root

    return root


def document_title(root) -> Optional[str]:
    """The <title>, else the first h1, else the first h2."""
    if root is None:
        return None
    for name in ('title', 'h1', 'h2'):
        for element in root.xpath(f'.//*[local-name()="{name}"]'):
            text = collapse_whitespace(''.join(element.itertext()))
            if text:
                return text
    return None


def _drop_element(element):
    """Remove an element but keep its tail text in the tree."""
    parent = element.getparent()
    if parent is None:
        return
    tail = element.tail
    if tail:
        previous = element.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or '') + tail
        else:
            parent.text = (parent.text or '') + tail
    parent.remove(element)


def _has_direct_text(element) -> bool:
    if element.text and element.text.strip():
        return True
    return any(child.tail and child.tail.strip() for child in element)


def _has_block_descendant(element) -> bool:
    for descendant in element.iterdescendants():
        name = local_name(descendant)
        if name in BLOCK_TAGS or name in TEXT_CONTAINER_TAGS:
            return True
    return False


def image_reference(element) -> Optional[str]:
    """Source of an <img>, or the link of an SVG <image>."""
    name = local_name(element)
    if name == 'img':
        return element.get('src')
    if name == 'image':
        return element.get(XLINK_HREF) or element.get('href')
    return None


def extract_blocks(root, source_ref: str, start_sequence: int = 1) -> List[ContentBlock]:
    """Heading, paragraph and list item blocks of a document, in order."""
    return extract_content(root, source_ref, start_sequence)[0]


def extract_content(root, source_ref: str, start_sequence: int = 1) -> Tuple[List[ContentBlock], List[Tuple[int, str]]]:
    """
    Walk the document body in order and emit heading, paragraph and list
    item blocks, noting where images appear between them.

    Args:
        root: Parsed document (modified: non-content elements are removed)
        source_ref: Document locator used as the block source_ref prefix
        start_sequence: Sequence number of the first emitted block

    Returns:
        Blocks numbered consecutively from start_sequence, and
        (preceding block sequence, image reference) pairs; an image before
        the first block of the document gets start_sequence - 1
    """
    if root is None:
        return [], []

    conditions = ' or '.join(f'local-name()="{tag}"' for tag in NON_CONTENT_TAGS)
    for element in root.xpath(f'.//*[{conditions}]'):
        _drop_element(element)

    body = root.xpath('.//*[local-name()="body"]')
    text_root = body[0] if body else root

    blocks: List[ContentBlock] = []
    images: List[Tuple[int, str]] = []
    tag_counts = {}

    def note_images(element):
        for descendant in element.iter():
            reference = image_reference(descendant)
            if reference:
                images.append((start_sequence + len(blocks) - 1, reference))

    def emit(element, name: str, kind: BlockKind):
        text = collapse_whitespace(''.join(element.itertext()))
        if not text:
            return
        tag_counts[name] = tag_counts.get(name, 0) + 1
        blocks.append(ContentBlock(
            sequence=start_sequence + len(blocks),
            kind=kind,
            text=text,
            source_ref=f"{source_ref}#{name}[{tag_counts[name]}]"
        ))

    def walk(element):
        for child in element:
            name = local_name(child)
            if not name:
                continue
            if name in BLOCK_TAGS:
                emit(child, name, BLOCK_TAGS[name])
                note_images(child)
            elif name in TEXT_CONTAINER_TAGS and _has_direct_text(child) and not _has_block_descendant(child):
                emit(child, name, BlockKind.PARAGRAPH)
                note_images(child)
            elif image_reference(child) is not None:
                note_images(child)
            else:
                walk(child)

    walk(text_root)
    return blocks, images
