"""
Content document discovery for unpacked EPUB archives.

The manifest (OPF) is authoritative when it exists and lists readable HTML.
Real-world files often break the packaging rules, so a series of heuristic
passes follows. Each pass is a plain function ``root_dir -> List[Path]``.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote

from lxml import etree

from .assets import IMAGE_EXTENSIONS

logger = logging.getLogger(__name__)

HTML_EXTENSIONS = ('.html', '.xhtml', '.htm')
CSS_EXTENSIONS = ('.css',)

DIRECT_OPF_CANDIDATES = ('content.opf', 'OEBPS/content.opf', 'OPS/content.opf')

COMMON_CONTENT_DIRS = (
    'OEBPS', 'OPS', 'content', 'Content', 'text', 'TEXT',
    'xhtml', 'XHTML', 'html', 'HTML', 'pages', 'chapters',
)

CONTENT_KEYWORDS = ('chapter', 'content', 'page', 'text', 'section')
NUMERIC_HTML_NAME = re.compile(r'^\d+\.(html|xhtml|htm)$')
XML_HREF_PATTERN = re.compile(r'href=["\']([^"\']+\.(?:html|xhtml|htm))["\']', re.IGNORECASE)

_XML_PARSER_OPTIONS = dict(recover=True, resolve_entities=False, no_network=True)


@dataclass
class PackageDocument:
    """What the OPF declares.

    Attributes:
        opf_path: Location of the package file
        metadata: title, author, language, identifier (when present)
        html_files: Content documents in reading order
        css_files: Stylesheets
        image_files: Images
        toc_path: NCX declared by the spine, if any
        nav_path: EPUB 3 navigation document, if any
    """
    opf_path: Path
    metadata: Dict[str, str] = field(default_factory=dict)
    html_files: List[Path] = field(default_factory=list)
    css_files: List[Path] = field(default_factory=list)
    image_files: List[Path] = field(default_factory=list)
    toc_path: Optional[Path] = None
    nav_path: Optional[Path] = None


def natural_sort_key(value: str) -> Tuple:
    """Sort key that compares digit runs as numbers ("ch2" < "ch10")."""
    return tuple(
        (0, int(part), '') if part.isdigit() else (1, 0, part.lower())
        for part in re.split(r'(\d+)', value)
        if part
    )


def _first_number_key(path: Path) -> Tuple:
    match = re.search(r'\d+', path.name)
    if match:
        return (0, int(match.group(0)), path.name)
    return (1, 0, path.name)


def walk_files(directory: Path) -> List[Path]:
    """All files below directory, in a stable order."""
    found = []
    for current, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            found.append(Path(current) / name)
    return found


def _is_html(path: Path) -> bool:
    return path.suffix.lower() in HTML_EXTENSIONS


def resolve_href(base_dir: Path, href: str) -> Optional[Path]:
    """Resolve a manifest href, retrying URL-decoded when the literal path is missing."""
    href = href.split('#', 1)[0]
    if not href:
        return None
    for candidate in (href, unquote(href)):
        path = Path(os.path.normpath(base_dir / candidate))
        if path.is_file():
            return path
    return None


# ----------------------------------------------------------------------
# Package (OPF) discovery
# ----------------------------------------------------------------------

def locate_opf(root_dir: Path) -> Optional[Path]:
    """
    Find the package document: well-known paths, then container.xml, then
    any *.opf file.
    """
    root_dir = Path(root_dir)

    for candidate in DIRECT_OPF_CANDIDATES:
        path = root_dir / candidate
        if path.is_file():
            return path

    container = root_dir / 'META-INF' / 'container.xml'
    if container.is_file():
        try:
            tree = etree.parse(str(container), etree.XMLParser(**_XML_PARSER_OPTIONS))
            for rootfile in tree.xpath('//*[local-name()="rootfile"]'):
                full_path = rootfile.get('full-path')
                if full_path and (root_dir / full_path).is_file():
                    return root_dir / full_path
        except (etree.XMLSyntaxError, OSError) as e:
            logger.warning(f"Could not parse container.xml: {e}")

    for path in walk_files(root_dir):
        if path.suffix.lower() == '.opf':
            return path

    return None


def parse_package(opf_path: Path) -> Optional[PackageDocument]:
    """
    Parse metadata, manifest and spine of an OPF file.

    Returns:
        PackageDocument, or None if the file cannot be parsed at all
    """
    opf_path = Path(opf_path)
    try:
        tree = etree.parse(str(opf_path), etree.XMLParser(**_XML_PARSER_OPTIONS))
    except (etree.XMLSyntaxError, OSError) as e:
        logger.warning(f"Could not parse package file {opf_path}: {e}")
        return None

    root = tree.getroot()
    if root is None:
        return None

    package = PackageDocument(opf_path=opf_path)
    opf_dir = opf_path.parent

    for key, tag in (('title', 'title'), ('author', 'creator'), ('language', 'language'), ('identifier', 'identifier')):
        elements = root.xpath(f'.//*[local-name()="metadata"]/*[local-name()="{tag}"]')
        if elements and elements[0].text and elements[0].text.strip():
            package.metadata[key] = elements[0].text.strip()

    manifest_html: Dict[str, Path] = {}
    manifest_order: List[Path] = []
    id_to_path: Dict[str, Path] = {}

    for item in root.xpath('.//*[local-name()="manifest"]/*[local-name()="item"]'):
        href = item.get('href')
        if not href:
            logger.debug("Skipping manifest item without href")
            continue

        path = resolve_href(opf_dir, href)
        if path is None:
            logger.warning(f"Manifest item not found in archive: {href}")
            continue

        item_id = item.get('id') or f"item_{len(id_to_path)}"
        id_to_path[item_id] = path
        media_type = (item.get('media-type') or '').lower()
        properties = (item.get('properties') or '').split()
        suffix = path.suffix.lower()

        if 'nav' in properties:
            package.nav_path = path

        if 'html' in media_type or suffix in HTML_EXTENSIONS:
            manifest_html[item_id] = path
            manifest_order.append(path)
        elif 'css' in media_type or suffix in CSS_EXTENSIONS:
            package.css_files.append(path)
        elif 'image' in media_type or suffix in IMAGE_EXTENSIONS:
            package.image_files.append(path)

    spine = root.xpath('.//*[local-name()="spine"]')
    spine_ids: List[str] = []
    if spine:
        spine_ids = [ref.get('idref') for ref in spine[0].xpath('./*[local-name()="itemref"]') if ref.get('idref')]
        toc_id = spine[0].get('toc')
        if toc_id and toc_id in id_to_path:
            package.toc_path = id_to_path[toc_id]

    # Reading order: spine first, then manifest documents the spine does not list
    ordered = [manifest_html[i] for i in dict.fromkeys(spine_ids) if i in manifest_html]
    for path in manifest_order:
        if path in ordered:
            continue
        if path == package.nav_path and spine_ids:
            continue
        ordered.append(path)
    package.html_files = ordered

    return package


# ----------------------------------------------------------------------
# Heuristic passes
# ----------------------------------------------------------------------

def common_directory_scan(root_dir: Path) -> List[Path]:
    """HTML files inside well-known content directories, by chapter number."""
    root_dir = Path(root_dir)
    found: List[Path] = []
    seen = set()

    for name in COMMON_CONTENT_DIRS:
        directory = root_dir / name
        if not directory.is_dir():
            continue
        files = [p for p in walk_files(directory) if _is_html(p)]
        for path in sorted(files, key=_first_number_key):
            key = os.path.normcase(str(path.resolve()))
            if key not in seen:
                seen.add(key)
                found.append(path)

    return found


def recursive_extension_scan(root_dir: Path) -> List[Path]:
    """Every HTML file in the archive, natural-sorted by relative path."""
    root_dir = Path(root_dir)
    files = [p for p in walk_files(root_dir) if _is_html(p)]
    return sorted(files, key=lambda p: natural_sort_key(p.relative_to(root_dir).as_posix()))


def keyword_scan(root_dir: Path) -> List[Path]:
    """HTML files whose names suggest chapter content, or are purely numeric."""
    root_dir = Path(root_dir)
    matches = []
    for path in walk_files(root_dir):
        lower = path.name.lower()
        if not _is_html(path):
            continue
        if any(keyword in lower for keyword in CONTENT_KEYWORDS) or NUMERIC_HTML_NAME.match(lower):
            matches.append(path)
    return sorted(matches, key=lambda p: natural_sort_key(p.relative_to(root_dir).as_posix()))


def xml_href_scan(root_dir: Path) -> List[Path]:
    """HTML files referenced by href attributes in any XML, OPF or NCX file."""
    root_dir = Path(root_dir)
    found: List[Path] = []

    for xml_file in walk_files(root_dir):
        if xml_file.suffix.lower() not in ('.xml', '.opf', '.ncx'):
            continue
        try:
            content = xml_file.read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            logger.warning(f"Could not read {xml_file}: {e}")
            continue

        for href in XML_HREF_PATTERN.findall(content):
            path = resolve_href(xml_file.parent, href)
            if path is not None and path not in found:
                found.append(path)

    return found


DISCOVERY_PASSES: List[Tuple[str, Callable[[Path], List[Path]]]] = [
    ('common_directory_scan', common_directory_scan),
    ('recursive_extension_scan', recursive_extension_scan),
    ('keyword_scan', keyword_scan),
    ('xml_href_scan', xml_href_scan),
]
