"""
Best-effort chapter heading detection for plain text (PDF) sources.

Short all-caps or capitalized lines are treated as headings, so the detector
misfires on things like running headers or short sentences. Callers must
treat its answer as a hint.
"""

import re
from typing import List, Pattern

CHAPTER_PATTERNS: List[Pattern] = [
    re.compile(r'^chapter\s+\d+', re.IGNORECASE),        # "Chapter 3"
    re.compile(r'^\d+\.\s+.+'),                          # "1. Chapter Title"
    re.compile(r'^第\s*[一二三四五六七八九十百千]+\s*章'),   # "第一章"
    re.compile(r'^第\s*\d+\s*章'),                        # "第1章"
    re.compile(r'^[一二三四五六七八九十]+、'),              # "一、..."
    re.compile(r'^PART\s+\d+', re.IGNORECASE),           # "PART 2"
    re.compile(r'^Section\s+\d+', re.IGNORECASE),        # "Section 4"
    re.compile(r'^附录\s+'),                              # "附录 A"
    re.compile(r'^Appendix\s+', re.IGNORECASE),          # "Appendix B"
]

CAPITALIZED_LINE = re.compile(r'^[A-Z][\w\s]+$')

ALL_CAPS_MAX_LENGTH = 50
CAPITALIZED_MAX_LENGTH = 30


class ChapterHeuristic:
    """Decides whether a line of text looks like a chapter heading"""

    def __init__(self, patterns: List[Pattern] = None):
        self.patterns = patterns if patterns is not None else CHAPTER_PATTERNS

    def is_chapter_heading(self, line: str) -> bool:
        text = line.strip()
        if not text:
            return False

        if any(pattern.search(text) for pattern in self.patterns):
            return True

        if len(text) < ALL_CAPS_MAX_LENGTH and any(c.isupper() for c in text) and text.upper() == text:
            return True

        return len(text) < CAPITALIZED_MAX_LENGTH and bool(CAPITALIZED_LINE.match(text))
