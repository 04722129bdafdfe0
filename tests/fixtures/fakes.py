"""
Fakes and builders shared by unit and integration tests.
"""

from typing import List, Optional

from epub2zh.core.adapters import BackendError, BackendErrorKind
from epub2zh.core.backends import TranslationBackend
from epub2zh.core.models import BlockKind, ContentBlock, ExtractionResult, TocEntry


async def no_sleep(_delay):
    """Awaitable stand-in for asyncio.sleep."""
    return None


class RecordingBackend(TranslationBackend):
    """
    Deterministic fake backend: prefixes every piece with "ZH:" and records
    the texts it was asked to translate. Pass errors to fail the first calls.
    """

    def __init__(self, name: str = "fake", errors: Optional[List[Exception]] = None,
                 transform=None, **kwargs):
        super().__init__(**kwargs)
        self.name = name
        self.calls: List[str] = []
        self.errors = list(errors or [])
        self.transform = transform or (lambda text: f"ZH:{text}")

    async def _translate_piece(self, text: str) -> str:
        self.calls.append(text)
        if self.errors:
            raise self.errors.pop(0)
        return self.transform(text)

    async def close(self):
        pass


class FakeExtractor:
    """Returns a fixed ExtractionResult and counts calls."""

    def __init__(self, extraction: ExtractionResult):
        self.extraction = extraction
        self.calls = 0

    async def extract(self, path):
        self.calls += 1
        return self.extraction


def backend_error(kind: BackendErrorKind, backend: str = "fake", retry_after=None) -> BackendError:
    return BackendError(f"{kind.value} failure", kind=kind, backend=backend, retry_after=retry_after)


def make_blocks(texts, kind: BlockKind = BlockKind.PARAGRAPH) -> List[ContentBlock]:
    """Blocks numbered from 1 with the given texts."""
    return [
        ContentBlock(sequence=i + 1, kind=kind, text=text, source_ref=f"doc.xhtml#p[{i + 1}]")
        for i, text in enumerate(texts)
    ]


def make_extraction(texts, title: str = "Test Book", toc=None) -> ExtractionResult:
    blocks = make_blocks(texts)
    if toc is None:
        toc = [TocEntry(title="Chapter 1", target_ref="doc.xhtml", level=0, block_sequence=1)]
    return ExtractionResult(blocks=blocks, toc=toc, title=title, metadata={'title': title})
