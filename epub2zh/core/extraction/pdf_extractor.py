"""
PDF content extraction with PyMuPDF.

Text comes out of a PDF as positioned spans with no paragraph structure.
Spans sharing a baseline are joined into lines, and lines are grouped into
paragraphs by vertical spacing relative to the typical line pitch.
"""

import asyncio
import logging
import statistics
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import fitz  # PyMuPDF

from epub2zh.core.adapters import ExtractionError, ExtractionFailure
from epub2zh.core.models import BlockKind, ContentBlock, ExtractionResult, TocEntry
from .chapter_heuristic import ChapterHeuristic
from .html_blocks import collapse_whitespace

logger = logging.getLogger(__name__)

BASELINE_TOLERANCE = 2.0      # points
PARAGRAPH_GAP_RATIO = 1.5     # gap / median line pitch
LINE_CLUSTER_RATIO = 1.25     # gaps up to this times the smallest are line spacing


@dataclass
class TextRun:
    """A span of text at a position on the page."""
    text: str
    x: float
    baseline: float


@dataclass
class Line:
    """Runs on one baseline, joined left to right."""
    text: str
    baseline: float
    page: int


def assemble_lines(runs: List[TextRun], page: int, tolerance: float = BASELINE_TOLERANCE) -> List[Line]:
    """Group runs into lines by baseline, top to bottom."""
    ordered = sorted(runs, key=lambda run: (run.baseline, run.x))
    groups: List[List[TextRun]] = []

    for run in ordered:
        if groups and abs(run.baseline - groups[-1][0].baseline) <= tolerance:
            groups[-1].append(run)
        else:
            groups.append([run])

    lines = []
    for group in groups:
        text = ''.join(run.text for run in sorted(group, key=lambda run: run.x))
        if text.strip():
            lines.append(Line(text=text.strip(), baseline=group[0].baseline, page=page))
    return lines


def median_line_pitch(pages: List[List[Line]]) -> Optional[float]:
    """
    Typical baseline distance between lines of the same paragraph.

    Only gaps close to the smallest one count, so documents made mostly of
    one-line paragraphs still get the line spacing rather than the
    paragraph spacing.
    """
    gaps = []
    for lines in pages:
        for previous, current in zip(lines, lines[1:]):
            gap = current.baseline - previous.baseline
            if gap > 0:
                gaps.append(gap)
    if not gaps:
        return None
    smallest = min(gaps)
    return statistics.median([gap for gap in gaps if gap <= smallest * LINE_CLUSTER_RATIO])


def join_lines(lines: List[str]) -> str:
    """Join paragraph lines with spaces, undoing end-of-line hyphenation."""
    text = ''
    for line in lines:
        if not text:
            text = line
        elif text.endswith('-') and len(text) > 1 and text[-2].isalpha() and line[:1].islower():
            text = text[:-1] + line
        else:
            text = f"{text} {line}"
    return collapse_whitespace(text)


def paragraphs_from_lines(pages: List[List[Line]], gap_ratio: float = PARAGRAPH_GAP_RATIO) -> List[Tuple[int, str]]:
    """
    Split lines into paragraphs.

    A gap larger than gap_ratio times the median pitch breaks the paragraph,
    and so does the end of a page.

    Returns:
        (page number, paragraph text) in reading order
    """
    pitch = median_line_pitch(pages)
    threshold = pitch * gap_ratio if pitch else None
    paragraphs: List[Tuple[int, str]] = []

    for lines in pages:
        current: List[Line] = []
        for line in lines:
            if current and threshold is not None and line.baseline - current[-1].baseline > threshold:
                paragraphs.append((current[0].page, join_lines([l.text for l in current])))
                current = []
            current.append(line)
        if current:
            paragraphs.append((current[0].page, join_lines([l.text for l in current])))

    return [(page, text) for page, text in paragraphs if text]


def blocks_from_paragraphs(paragraphs: List[Tuple[int, str]], heuristic: ChapterHeuristic = None) -> List[ContentBlock]:
    heuristic = heuristic or ChapterHeuristic()
    blocks = []
    for page, text in paragraphs:
        kind = BlockKind.HEADING if heuristic.is_chapter_heading(text) else BlockKind.PARAGRAPH
        blocks.append(ContentBlock(
            sequence=len(blocks) + 1,
            kind=kind,
            text=text,
            source_ref=f"page-{page}"
        ))
    return blocks


def toc_from_outline(outline: List[list], blocks: List[ContentBlock]) -> List[TocEntry]:
    """
    Map outline entries [level, title, page] to the first block on or after
    their page. Entries past the last block are dropped.
    """
    pages = [(int(block.source_ref.split('-', 1)[1]), block.sequence) for block in blocks]
    entries = []
    for item in outline:
        if len(item) < 3:
            continue
        level, title, page = item[0], collapse_whitespace(str(item[1])), int(item[2])
        if not title:
            continue
        sequence = next((seq for block_page, seq in pages if block_page >= page), None)
        if sequence is None:
            continue
        entries.append(TocEntry(
            title=title,
            target_ref=f"page-{page}",
            level=max(int(level) - 1, 0),
            block_sequence=sequence
        ))
    return sorted(entries, key=lambda entry: entry.block_sequence)


def toc_from_headings(blocks: List[ContentBlock]) -> List[TocEntry]:
    return [
        TocEntry(title=block.text, target_ref=block.source_ref, level=0, block_sequence=block.sequence)
        for block in blocks
        if block.kind == BlockKind.HEADING
    ]


class PdfExtractor:
    """Extracts paragraph blocks and an outline-based TOC from a PDF"""

    def __init__(self, heuristic: ChapterHeuristic = None, log_callback=None):
        self.heuristic = heuristic or ChapterHeuristic()
        self.log_callback = log_callback

    async def extract(self, path) -> ExtractionResult:
        source = Path(path)
        if not source.is_file():
            raise ExtractionError(
                f"PDF file not found: {source}",
                reason=ExtractionFailure.IO_ERROR,
                context={'path': str(source)}
            )

        pages, outline, metadata = await asyncio.to_thread(self._read_pdf, source)

        paragraphs = paragraphs_from_lines(pages)
        blocks = blocks_from_paragraphs(paragraphs, self.heuristic)
        if not blocks:
            raise ExtractionError(
                "No readable text found in PDF",
                reason=ExtractionFailure.NO_CONTENT,
                context={'path': str(source)}
            )

        toc = toc_from_outline(outline, blocks) if outline else []
        if not toc:
            toc = toc_from_headings(blocks)

        title = metadata.get('title') or (toc[0].title if toc else None) or source.stem
        metadata.setdefault('title', title)

        if self.log_callback:
            self.log_callback("extraction_pdf", f"Extracted {len(blocks)} blocks from {len(pages)} pages")

        return ExtractionResult(
            blocks=blocks,
            toc=toc,
            title=title,
            metadata=metadata,
            source_format='pdf',
            method='pdf_text'
        )

    def _read_pdf(self, source: Path):
        """Blocking PyMuPDF work; runs in a worker thread."""
        try:
            doc = fitz.open(str(source))
        except (RuntimeError, ValueError) as e:
            raise ExtractionError(
                f"Could not open PDF {source.name}: {e}",
                reason=ExtractionFailure.CORRUPT_ARCHIVE,
                context={'path': str(source)}
            ) from e

        try:
            pages: List[List[Line]] = []
            for page_index in range(doc.page_count):
                data = doc[page_index].get_text("dict")
                runs = []
                for block in data.get("blocks", []):
                    if block.get("type") != 0:
                        continue
                    for line in block.get("lines", []):
                        for span in line.get("spans", []):
                            if not span.get("text"):
                                continue
                            x, baseline = span["origin"]
                            runs.append(TextRun(text=span["text"], x=x, baseline=baseline))
                pages.append(assemble_lines(runs, page=page_index + 1))

            outline = doc.get_toc() or []
            metadata = {}
            raw = doc.metadata or {}
            for key in ('title', 'author'):
                if raw.get(key) and raw[key].strip():
                    metadata[key] = raw[key].strip()
        except (RuntimeError, ValueError) as e:
            raise ExtractionError(
                f"Could not read PDF {source.name}: {e}",
                reason=ExtractionFailure.CORRUPT_ARCHIVE,
                context={'path': str(source)}
            ) from e
        finally:
            doc.close()

        return pages, outline, metadata
