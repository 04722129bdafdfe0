"""
Content extraction: EPUB and PDF sources to ordered content blocks and a TOC.
"""
from .chapter_heuristic import ChapterHeuristic
from .discovery import DISCOVERY_PASSES, locate_opf, parse_package, natural_sort_key
from .epub_extractor import EpubExtractor
from .pdf_extractor import PdfExtractor, paragraphs_from_lines
from .extractor import ContentExtractor

__all__ = [
    'ChapterHeuristic',
    'DISCOVERY_PASSES',
    'locate_opf',
    'parse_package',
    'natural_sort_key',
    'EpubExtractor',
    'PdfExtractor',
    'paragraphs_from_lines',
    'ContentExtractor',
]
