"""
Data models shared by the extraction, translation and persistence stages.
"""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class BlockKind(Enum):
    """Granularity of an extracted content block."""
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST_ITEM = "listItem"


class JobStatus(Enum):
    """Lifecycle of a translation job."""
    PENDING = "pending"
    EXTRACTING = "extracting"
    TRANSLATING = "translating"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.CANCELLED)


@dataclass(frozen=True)
class ContentBlock:
    """One heading, paragraph or list item of extracted text.

    Attributes:
        sequence: Position in the document, unique and monotonic from 1
        kind: Block granularity
        text: Raw extracted text (pre-translation)
        source_ref: Locator for diagnostics (file and element, or page)
    """
    sequence: int
    kind: BlockKind
    text: str
    source_ref: str = ""


@dataclass
class TocEntry:
    """Table of contents entry.

    Attributes:
        title: Display title
        target_ref: Document (or page) the entry points at
        level: Nesting depth, 0 for top level
        block_sequence: Sequence of the first block of the target, once resolved
    """
    title: str
    target_ref: str
    level: int = 0
    block_sequence: Optional[int] = None


@dataclass
class ExtractionResult:
    """Everything the extractor learned about a document.

    images maps a block sequence to the data URIs of the images that follow
    that block in the source (0 for images before the first block).
    stylesheets holds the book's own CSS with its references inlined.
    """
    blocks: List[ContentBlock]
    toc: List[TocEntry]
    title: str = "Untitled"
    metadata: Dict[str, str] = field(default_factory=dict)
    source_format: str = "epub"
    method: str = ""
    images: Dict[int, List[str]] = field(default_factory=dict)
    stylesheets: List[str] = field(default_factory=list)


@dataclass
class Segment:
    """A group of whole blocks translated together.

    Attributes:
        segment_id: Monotonic from 1, stable for a given block list
        blocks: Ordered blocks of the segment
        char_count: Sum of block text lengths
    """
    segment_id: int
    blocks: List[ContentBlock]
    char_count: int

    @property
    def first_sequence(self) -> int:
        return self.blocks[0].sequence if self.blocks else 0


@dataclass
class TranslatedUnit:
    """On-disk checkpoint record for one completed segment."""
    segment_id: int
    title: str
    translated_text: str
    source_document_title: str
    block_translations: Dict[int, str] = field(default_factory=dict)
    degraded: bool = False
    degraded_blocks: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        # JSON object keys are strings
        data['block_translations'] = {str(k): v for k, v in self.block_translations.items()}
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslatedUnit":
        return cls(
            segment_id=int(data['segment_id']),
            title=data.get('title', ''),
            translated_text=data.get('translated_text', ''),
            source_document_title=data.get('source_document_title', ''),
            block_translations={int(k): v for k, v in data.get('block_translations', {}).items()},
            degraded=bool(data.get('degraded', False)),
            degraded_blocks=[int(seq) for seq in data.get('degraded_blocks', [])],
        )


@dataclass
class TranslationJob:
    """A conversion/translation request and its progress.

    last_completed_segment_id caches the highest persisted unit id; the
    progress store is the source of truth and always wins on reload.
    """
    job_id: str
    source_path: str
    status: JobStatus = JobStatus.PENDING
    progress_percent: int = 0
    last_completed_segment_id: int = 0
    total_segments: int = 0
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    message: str = ""
    error_detail: Optional[str] = None
    degraded: bool = False
    cancel_requested: bool = False
    options: Dict[str, Any] = field(default_factory=dict)
    output_path: Optional[str] = None
    text_output_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslationJob":
        known = {f for f in cls.__dataclass_fields__}
        values = {k: v for k, v in data.items() if k in known}
        values['status'] = JobStatus(values.get('status', JobStatus.PENDING.value))
        return cls(**values)


@dataclass
class ProgressEvent:
    """Progress report yielded by the orchestrator.

    Attributes:
        percent: 0..100
        message: Human-readable status line
        status: Machine-readable job status
        degraded: True when offline simulation replaced a real translation
        job_id: Job the event belongs to
        segment_id: Segment just completed, if any
    """
    percent: int
    message: str
    status: JobStatus
    degraded: bool = False
    job_id: str = ""
    segment_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'percent': self.percent,
            'message': self.message,
            'status': self.status.value,
            'degraded': self.degraded,
            'job_id': self.job_id,
            'segment_id': self.segment_id,
        }
