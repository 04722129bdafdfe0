"""
Chunking module for text processing.

Splits long text into backend-safe pieces at sentence or word boundaries.
"""
from epub2zh.core.chunking.segmenter import split_text
from epub2zh.core.chunking.boundary_detector import BoundaryType, find_sentence_boundaries

__all__ = ['split_text', 'BoundaryType', 'find_sentence_boundaries']
