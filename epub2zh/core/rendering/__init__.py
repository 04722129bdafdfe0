"""
Consolidated HTML building and PDF printing.
"""
from .html_builder import build_consolidated_html, chapter_ranges, split_simulated
from .pdf_renderer import ChromePdfRenderer, find_chrome

__all__ = [
    'build_consolidated_html',
    'chapter_ranges',
    'split_simulated',
    'ChromePdfRenderer',
    'find_chrome',
]
