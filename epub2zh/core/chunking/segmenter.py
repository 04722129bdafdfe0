"""
Length-bounded text splitting.

split_text() cuts at the last sentence boundary inside each window, falls
back to the last word boundary, and as a last resort cuts at exactly
max_length. Separators stay attached to the piece they follow, so joining
the pieces with "" gives back the input unchanged.
"""

import logging
from typing import List

from .boundary_detector import BoundaryType, find_sentence_boundary, find_word_boundary

logger = logging.getLogger(__name__)


def split_text(text: str, max_length: int) -> List[str]:
    """
    Split text into pieces no longer than max_length.

    Args:
        text: Text to split
        max_length: Maximum characters per piece (must be > 0)

    Returns:
        Ordered pieces; "".join(pieces) == text

    Raises:
        ValueError: If max_length is not positive
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")

    if not text:
        return []

    pieces = []
    start = 0
    while len(text) - start > max_length:
        limit = start + max_length
        cut, boundary = _choose_cut(text, start, limit)
        if boundary == BoundaryType.FORCED_SIZE:
            logger.debug(f"No sentence or word boundary in window at {start}, forcing cut at {cut}")
        pieces.append(text[start:cut])
        start = cut

    pieces.append(text[start:])
    return pieces


def _choose_cut(text: str, start: int, limit: int):
    cut = find_sentence_boundary(text, start, limit)
    if cut != -1:
        return cut, BoundaryType.SENTENCE_END

    cut = find_word_boundary(text, start, limit)
    if cut != -1:
        return cut, BoundaryType.WORD_END

    return limit, BoundaryType.FORCED_SIZE
