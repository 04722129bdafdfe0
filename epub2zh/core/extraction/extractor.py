"""
Format dispatch for content extraction.
"""

from pathlib import Path

from epub2zh.core.adapters import ExtractionError, ExtractionFailure
from epub2zh.core.models import ExtractionResult
from .epub_extractor import EpubExtractor
from .pdf_extractor import PdfExtractor


class ContentExtractor:
    """Picks the EPUB or PDF extractor from the source path"""

    def __init__(self, epub_extractor: EpubExtractor = None, pdf_extractor: PdfExtractor = None, log_callback=None):
        self.epub_extractor = epub_extractor or EpubExtractor(log_callback=log_callback)
        self.pdf_extractor = pdf_extractor or PdfExtractor(log_callback=log_callback)

    @staticmethod
    def supports(path) -> bool:
        source = Path(path)
        return source.is_dir() or source.suffix.lower() in ('.epub', '.pdf')

    async def extract(self, path) -> ExtractionResult:
        """
        Extract blocks and TOC from an EPUB, an unpacked EPUB directory or a PDF.

        Raises:
            ExtractionError: UNSUPPORTED_FORMAT for any other input
        """
        source = Path(path)
        if source.is_dir() or source.suffix.lower() == '.epub':
            return await self.epub_extractor.extract(source)
        if source.suffix.lower() == '.pdf':
            return await self.pdf_extractor.extract(source)

        raise ExtractionError(
            f"Unsupported file format: {source.suffix or source.name}",
            reason=ExtractionFailure.UNSUPPORTED_FORMAT,
            context={'path': str(source)}
        )
