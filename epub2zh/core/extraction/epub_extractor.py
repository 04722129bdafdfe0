"""
EPUB content extraction.

The archive is unpacked into a temporary directory. Content documents come
from the manifest when it lists readable HTML; otherwise the heuristic
discovery passes are tried in order until one yields text.
"""

import logging
import os
import tempfile
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import aiofiles

from epub2zh.core.adapters import ExtractionError, ExtractionFailure
from epub2zh.core.models import ContentBlock, ExtractionResult
from .assets import AssetResolver
from .discovery import DISCOVERY_PASSES, locate_opf, parse_package
from .html_blocks import document_title, extract_content, parse_document
from .toc import find_ncx, parse_nav_document, parse_ncx, resolve_declared_toc, synthesize_toc

logger = logging.getLogger(__name__)


class EpubExtractor:
    """Turns an EPUB archive (or an unpacked EPUB directory) into content blocks"""

    def __init__(self, log_callback=None):
        self.log_callback = log_callback

    def _log(self, log_type: str, message: str):
        logger.info(message)
        if self.log_callback:
            self.log_callback(log_type, message)

    async def extract(self, path) -> ExtractionResult:
        """
        Extract blocks and TOC from an EPUB file or directory.

        Raises:
            ExtractionError: CORRUPT_ARCHIVE, IO_ERROR or NO_CONTENT
        """
        source = Path(path)
        if source.is_dir():
            return await self.extract_directory(source, source.name)

        if not source.is_file():
            raise ExtractionError(
                f"EPUB file not found: {source}",
                reason=ExtractionFailure.IO_ERROR,
                context={'path': str(source)}
            )

        with tempfile.TemporaryDirectory(prefix='epub2zh_') as temp_dir:
            try:
                with zipfile.ZipFile(source, 'r') as zip_ref:
                    zip_ref.extractall(temp_dir)
            except zipfile.BadZipFile as e:
                raise ExtractionError(
                    f"Invalid EPUB file (not a valid ZIP): {source.name}",
                    reason=ExtractionFailure.CORRUPT_ARCHIVE,
                    context={'path': str(source)}
                ) from e
            except (RuntimeError, NotImplementedError) as e:
                # Encrypted members or compression methods zipfile cannot read
                raise ExtractionError(
                    f"Unreadable EPUB archive {source.name}: {e}",
                    reason=ExtractionFailure.CORRUPT_ARCHIVE,
                    context={'path': str(source)}
                ) from e
            except OSError as e:
                raise ExtractionError(
                    f"Could not read EPUB file {source.name}: {e}",
                    reason=ExtractionFailure.IO_ERROR,
                    context={'path': str(source)}
                ) from e

            return await self.extract_directory(Path(temp_dir), source.stem)

    async def extract_directory(self, root_dir: Path, fallback_title: str) -> ExtractionResult:
        """Extract from an already unpacked EPUB tree."""
        metadata: Dict[str, str] = {}
        declared_toc: List[dict] = []
        documents: List[Path] = []
        method = ''
        blocks: List[ContentBlock] = []
        titles: Dict[Path, Optional[str]] = {}
        images: Dict[int, List[str]] = {}
        first_sequence: Dict[Path, int] = {}

        opf_path = locate_opf(root_dir)
        package = parse_package(opf_path) if opf_path else None
        resolver = AssetResolver(root_dir, package.image_files if package and package.image_files else None)

        if package is not None:
            metadata = dict(package.metadata)
            if package.html_files:
                blocks, titles, first_sequence, images = await self._read_documents(
                    package.html_files, root_dir, resolver
                )
                if blocks:
                    documents = package.html_files
                    method = 'manifest'
                    self._log("extraction_manifest", f"Manifest lists {len(documents)} content documents")
            if not blocks:
                self._log("extraction_fallback", "Manifest yielded no readable content, scanning archive")
        else:
            self._log("extraction_fallback", "No package document found, scanning archive")

        if not blocks:
            for name, discovery_pass in DISCOVERY_PASSES:
                candidates = discovery_pass(root_dir)
                if not candidates:
                    continue
                blocks, titles, first_sequence, images = await self._read_documents(candidates, root_dir, resolver)
                if blocks:
                    documents = candidates
                    method = name
                    self._log("extraction_fallback", f"{name} found {len(candidates)} content documents")
                    break

        if not blocks:
            raise ExtractionError(
                "No readable content found in EPUB",
                reason=ExtractionFailure.NO_CONTENT,
                context={'source': fallback_title}
            )

        ncx_path = find_ncx(opf_path, package.toc_path if package else None, root_dir)
        if ncx_path is not None:
            declared_toc = parse_ncx(ncx_path)
        if not declared_toc and package is not None and package.nav_path is not None:
            declared_toc = parse_nav_document(package.nav_path)

        toc = resolve_declared_toc(declared_toc, first_sequence, root_dir) if declared_toc else []
        if not toc:
            toc = synthesize_toc(documents, titles, first_sequence, root_dir)

        title = metadata.get('title') or (toc[0].title if toc else None) or fallback_title
        metadata.setdefault('title', title)

        stylesheets = []
        for css_path in (package.css_files if package is not None else []):
            css = await resolver.inline_stylesheet(css_path)
            if css:
                stylesheets.append(css)

        return ExtractionResult(
            blocks=blocks,
            toc=toc,
            title=title,
            metadata=metadata,
            source_format='epub',
            method=method,
            images=images,
            stylesheets=stylesheets
        )

    async def _read_documents(
        self,
        paths: List[Path],
        root_dir: Path,
        resolver: AssetResolver
    ) -> Tuple[List[ContentBlock], Dict[Path, Optional[str]], Dict[Path, int], Dict[int, List[str]]]:
        """Parse documents in order, numbering blocks globally from 1, with their images inlined."""
        blocks: List[ContentBlock] = []
        images: Dict[int, List[str]] = {}
        titles: Dict[Path, Optional[str]] = {}
        first_sequence: Dict[Path, int] = {}

        for path in paths:
            try:
                async with aiofiles.open(path, 'rb') as f:
                    content = await f.read()
            except OSError as e:
                logger.warning(f"Could not read {path}: {e}")
                continue

            root = parse_document(content)
            if root is None:
                logger.warning(f"Could not parse {path}, skipping")
                continue

            titles[path] = document_title(root)
            source_ref = os.path.relpath(path, root_dir).replace(os.sep, '/')
            document_blocks, references = extract_content(root, source_ref, start_sequence=len(blocks) + 1)
            for after_sequence, reference in references:
                uri = await resolver.image_uri(reference, path.parent)
                if uri:
                    images.setdefault(after_sequence, []).append(uri)
            if document_blocks:
                first_sequence[path] = document_blocks[0].sequence
                blocks.extend(document_blocks)

        return blocks, titles, first_sequence, images
