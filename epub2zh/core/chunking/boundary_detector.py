"""
Sentence and word boundary detection for segmenting.

Boundaries are returned as cut positions: the index right after the
terminator and the whitespace that follows it, so text[:cut] keeps its
separator and "".join(pieces) rebuilds the input.
"""

import re
from enum import Enum
from typing import List


class BoundaryType(Enum):
    """Kind of cut made by the segmenter."""
    SENTENCE_END = "sentence_end"
    WORD_END = "word_end"
    FORCED_SIZE = "forced_size"


# Common abbreviations that shouldn't be treated as sentence endings
COMMON_ABBREVIATIONS = {
    'Dr.', 'Mr.', 'Mrs.', 'Ms.', 'Prof.', 'Sr.', 'Jr.', 'Inc.', 'Ltd.', 'Corp.',
    'etc.', 'vs.', 'i.e.', 'e.g.', 'cf.', 'Fig.', 'fig.', 'No.', 'Vol.', 'vol.',
    'p.', 'pp.', 'Ed.', 'ed.', 'Rev.', 'Gen.', 'Col.', 'Lt.', 'Capt.', 'Sgt.',
    'Ave.', 'Blvd.', 'St.', 'Rd.', 'Mt.', 'ft.', 'in.', 'oz.', 'lb.', 'kg.',
    'Jan.', 'Feb.', 'Mar.', 'Apr.', 'Jun.', 'Jul.', 'Aug.', 'Sep.', 'Oct.', 'Nov.', 'Dec.'
}

URL_PATTERN = re.compile(r'https?://[^\s]+|www\.[^\s]+')

# Western terminators need trailing whitespace; CJK terminators do not
SENTENCE_END_PATTERN = re.compile(
    r'(?P<latin>[.!?]+["\'”’)\]]*)\s+'
    r'|(?P<cjk>[。！？]+["\'”’」』)\]]*)\s*'
)


def find_sentence_boundaries(text: str, start: int = 0, limit: int = None) -> List[int]:
    """
    List every sentence cut position in text[start:limit].

    Args:
        text: Full text
        start: Window start
        limit: Window end (exclusive), defaults to len(text)

    Returns:
        Ascending cut positions, each > start and <= limit
    """
    if limit is None:
        limit = len(text)
    window = text[start:limit]
    cuts = []
    for match in SENTENCE_END_PATTERN.finditer(window):
        term_pos = start + match.start()
        if match.group('latin') and not _is_valid_sentence_end(text, term_pos, match.group('latin')):
            continue
        cut = start + match.end()
        if cut > start:
            cuts.append(cut)
    return cuts


def find_sentence_boundary(text: str, start: int, limit: int) -> int:
    """Last sentence cut position inside the window, or -1."""
    cuts = find_sentence_boundaries(text, start, limit)
    return cuts[-1] if cuts else -1


def find_word_boundary(text: str, start: int, limit: int) -> int:
    """Last position inside the window that directly follows whitespace, or -1."""
    for i in range(min(limit, len(text)), start, -1):
        if text[i - 1].isspace():
            return i
    return -1


def _is_valid_sentence_end(text: str, position: int, terminator: str) -> bool:
    """
    Check if the terminator at position is a valid sentence ending.

    Avoids false positives from abbreviations, initials and URLs.
    """
    if terminator.startswith('.'):
        word_start = position - 1
        while word_start >= 0 and (text[word_start].isalpha() or text[word_start] == '.'):
            word_start -= 1
        word_start += 1

        potential_abbrev = text[word_start:position + 1]
        if potential_abbrev in COMMON_ABBREVIATIONS:
            return False

        # Single letter initials (e.g., "J. R. R. Tolkien")
        if position - word_start == 1 and text[word_start].isupper():
            return False

    context_start = max(0, position - 100)
    context = text[context_start:position + len(terminator)]
    for match in URL_PATTERN.finditer(context):
        url_start = context_start + match.start()
        url_end = context_start + match.end()
        if url_start <= position < url_end - 1:
            return False

    return True
