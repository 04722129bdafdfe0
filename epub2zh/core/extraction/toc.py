"""
Table of contents for EPUB sources: NCX, EPUB 3 nav document, or a
synthesized entry per content document.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from lxml import etree

from epub2zh.core.models import TocEntry
from .discovery import resolve_href, walk_files
from .html_blocks import collapse_whitespace, local_name, parse_document

logger = logging.getLogger(__name__)

EPUB_TYPE_ATTRIBUTE = '{http://www.idpf.org/2007/ops}type'


def find_ncx(opf_path: Optional[Path], declared: Optional[Path], root_dir: Path) -> Optional[Path]:
    """The spine-declared NCX, else toc.ncx beside the OPF, else any *.ncx."""
    if declared is not None and declared.is_file():
        return declared
    if opf_path is not None:
        beside = opf_path.parent / 'toc.ncx'
        if beside.is_file():
            return beside
    for path in walk_files(root_dir):
        if path.suffix.lower() == '.ncx':
            return path
    return None


def parse_ncx(ncx_path: Path) -> List[dict]:
    """
    Read navPoints recursively.

    Returns:
        Raw entries {title, path, href, level} in document order; path is
        None when the target file does not exist
    """
    try:
        tree = etree.parse(str(ncx_path), etree.XMLParser(recover=True, resolve_entities=False, no_network=True))
    except (etree.XMLSyntaxError, OSError) as e:
        logger.warning(f"Could not parse NCX {ncx_path}: {e}")
        return []

    root = tree.getroot()
    if root is None:
        return []

    entries = []
    base_dir = ncx_path.parent

    def visit(parent, level: int):
        for nav_point in parent.xpath('./*[local-name()="navPoint"]'):
            labels = nav_point.xpath('./*[local-name()="navLabel"]/*[local-name()="text"]')
            contents = nav_point.xpath('./*[local-name()="content"]')
            title = collapse_whitespace(''.join(labels[0].itertext())) if labels else ''
            src = contents[0].get('src') if contents else None
            if title and src:
                entries.append({
                    'title': title,
                    'href': src,
                    'path': resolve_href(base_dir, src),
                    'level': level,
                })
            visit(nav_point, level + 1)

    for nav_map in root.xpath('.//*[local-name()="navMap"]'):
        visit(nav_map, 0)

    return entries


def parse_nav_document(nav_path: Path) -> List[dict]:
    """Read nested ol/li/a entries of the EPUB 3 toc nav."""
    try:
        root = parse_document(nav_path.read_bytes())
    except OSError as e:
        logger.warning(f"Could not read nav document {nav_path}: {e}")
        return []
    if root is None:
        return []

    navs = [nav for nav in root.xpath('.//*[local-name()="nav"]')
            if nav.get(EPUB_TYPE_ATTRIBUTE) == 'toc' or nav.get('epub:type') == 'toc']
    if not navs:
        return []

    entries = []
    base_dir = nav_path.parent

    def visit(ordered_list, level: int):
        for item in ordered_list:
            if local_name(item) != 'li':
                continue
            for child in item:
                name = local_name(child)
                if name == 'a' and child.get('href'):
                    title = collapse_whitespace(''.join(child.itertext()))
                    if title:
                        entries.append({
                            'title': title,
                            'href': child.get('href'),
                            'path': resolve_href(base_dir, child.get('href')),
                            'level': level,
                        })
                elif name == 'ol':
                    visit(child, level + 1)

    for ordered_list in navs[0].xpath('./*[local-name()="ol"]'):
        visit(ordered_list, 0)

    return entries


def resolve_declared_toc(raw_entries: List[dict], first_sequence: Dict[Path, int], root_dir: Path) -> List[TocEntry]:
    """
    Attach block sequences to declared entries.

    Entries whose target produced no blocks are dropped; the rest are sorted
    stably by the first block of their target.
    """
    resolved = []
    for raw in raw_entries:
        path = raw['path']
        if path is None or path not in first_sequence:
            continue
        resolved.append(TocEntry(
            title=raw['title'],
            target_ref=_relative(path, root_dir),
            level=raw['level'],
            block_sequence=first_sequence[path]
        ))

    return sorted(resolved, key=lambda entry: entry.block_sequence)


def synthesize_toc(documents: List[Path], titles: Dict[Path, Optional[str]],
                   first_sequence: Dict[Path, int], root_dir: Path) -> List[TocEntry]:
    """One entry per document that produced blocks, titled positionally when it has no title."""
    entries = []
    for path in documents:
        if path not in first_sequence:
            continue
        title = titles.get(path) or f"Chapter {len(entries) + 1}"
        entries.append(TocEntry(
            title=title,
            target_ref=_relative(path, root_dir),
            level=0,
            block_sequence=first_sequence[path]
        ))
    return entries


def _relative(path: Path, root_dir: Path) -> str:
    try:
        return path.relative_to(root_dir).as_posix()
    except ValueError:
        return path.as_posix()
