"""
Job orchestration: extract, segment, translate, checkpoint, render.

A job is a strictly sequential pipeline. Each translated segment is written
to the progress store before the next one starts, so a job interrupted at any
point resumes from the first segment without a checkpoint.

    pending -> extracting -> translating -> completed
                    \\             \\
                     +-> error     +-> error / cancelled
"""

import asyncio
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, AsyncIterator, Callable, Dict, Optional, Set, Tuple

from epub2zh.config import MAX_SEGMENT_CHARS, TRANSLATE_DELAY, OUTPUT_DIR
from epub2zh.core.adapters import (
    CheckpointSaveError,
    ConfigurationError,
    ExtractionError,
    RenderError,
    ResumeError,
)
from epub2zh.core.backends import BackendKind
from epub2zh.core.extraction import ContentExtractor
from epub2zh.core.models import (
    ExtractionResult,
    JobStatus,
    ProgressEvent,
    Segment,
    TranslatedUnit,
    TranslationJob,
)
from epub2zh.core.rendering import build_consolidated_html
from epub2zh.core.translation import BatchTranslator, FallbackChain, build_default_chain, build_segments
from epub2zh.persistence import JobStore, ProgressStore
from epub2zh.utils.file_utils import resolve_pdf_output_path

logger = logging.getLogger(__name__)

DEGRADED_NOTICE = "offline simulation used, translation quality is degraded"


@dataclass
class JobOptions:
    """Per-job settings, stored with the job so a resume runs identically.

    Attributes:
        translate: Translate the text (False: plain conversion to PDF)
        render_pdf: Print the consolidated document to PDF
        backend: Primary backend name (TRANSLATOR_API when None)
        api_key: Key override for the primary backend
        model: Model override for chat-completion backends
        max_segment_chars: Segment size budget; must not change between resumes
        segment_delay: Seconds to wait between translated segments
        output_path: Explicit PDF path (a unique name in OUTPUT_DIR otherwise)
    """
    translate: bool = True
    render_pdf: bool = True
    backend: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    max_segment_chars: int = MAX_SEGMENT_CHARS
    segment_delay: float = TRANSLATE_DELAY
    output_path: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "JobOptions":
        data = dict(data or {})
        known = {name for name in cls.__dataclass_fields__ if name != 'extra'}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        extra = {k: v for k, v in data.items() if k not in known}
        options = cls(**values, extra=extra)
        options.validate()
        return options

    def validate(self):
        if int(self.max_segment_chars) <= 0:
            raise ConfigurationError(
                f"max_segment_chars must be positive, got {self.max_segment_chars}"
            )
        if float(self.segment_delay) < 0:
            raise ConfigurationError(f"segment_delay must not be negative, got {self.segment_delay}")
        if self.backend is not None:
            self.backend = BackendKind.parse(self.backend).value
        self.max_segment_chars = int(self.max_segment_chars)
        self.segment_delay = float(self.segment_delay)

    def backend_options(self) -> Dict[str, Any]:
        options = {}
        if self.api_key:
            options['api_key'] = self.api_key
        if self.model:
            options['model'] = self.model
        return options

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        extra = data.pop('extra')
        data.update(extra)
        # Keys stay with the running process, not in job records on disk
        data.pop('api_key', None)
        return data


ChainFactory = Callable[[JobOptions, Optional[Callable[[str, str], None]]], FallbackChain]


def chapter_title_for(segment: Segment, extraction: ExtractionResult) -> str:
    """Title of the nearest TOC entry at or before the segment's first block."""
    title = None
    for entry in extraction.toc:
        if entry.block_sequence is not None and entry.block_sequence <= segment.first_sequence:
            title = entry.title
    return title or f"Segment {segment.segment_id}"


class TaskOrchestrator:
    """Drives jobs through the pipeline and reports progress as events"""

    def __init__(
        self,
        job_store: JobStore,
        progress_store: ProgressStore,
        extractor: Optional[ContentExtractor] = None,
        chain_factory: Optional[ChainFactory] = None,
        renderer=None,
        output_dir: str = OUTPUT_DIR,
        log_callback: Optional[Callable[[str, str], None]] = None,
        sleep: Optional[Callable[[float], Any]] = None
    ):
        """
        Args:
            job_store: Shared registry that receives every status update
            progress_store: Checkpoint and artifact storage
            extractor: Source reader (ContentExtractor by default)
            chain_factory: Builds the fallback chain for a job's options
            renderer: Object with ``async render(html, output_path)``; PDF
                output is skipped when None
            output_dir: Directory for rendered PDFs without an explicit path
            log_callback: Receives (log_type, message) from every stage
            sleep: Awaitable sleep (tests pass a no-op)
        """
        self.job_store = job_store
        self.progress_store = progress_store
        self.extractor = extractor or ContentExtractor(log_callback=log_callback)
        self.chain_factory = chain_factory or self._default_chain
        self.renderer = renderer
        self.output_dir = output_dir
        self.log_callback = log_callback
        self._sleep = sleep or asyncio.sleep

    def _default_chain(self, options: JobOptions, log_callback=None) -> FallbackChain:
        return build_default_chain(
            options.backend,
            backend_options=options.backend_options(),
            log_callback=log_callback,
            sleep=self._sleep
        )

    def _log(self, log_type: str, message: str):
        if self.log_callback:
            self.log_callback(log_type, message)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def prepare_job(
        self,
        source_path: str,
        options: Optional[Dict[str, Any]] = None,
        job_id: Optional[str] = None
    ) -> Tuple[TranslationJob, JobOptions]:
        """
        Validate options and register a pending job.

        Raises:
            ConfigurationError: If options are invalid (no job is created)
        """
        job_options = JobOptions.from_dict(options)
        job = self.job_store.create_job(source_path, job_options.to_dict(), job_id=job_id)
        return job, job_options

    def prepare_resume(
        self,
        job_id: str,
        source_path: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> Tuple[TranslationJob, JobOptions]:
        """
        Put a stopped job back to pending.

        Args:
            job_id: Job to resume
            source_path: Replacement source location (the stored one otherwise)
            options: Overrides such as api_key; the stored segment size is kept

        Raises:
            ResumeError: No job record exists, or the job is already queued or running
        """
        job = self.job_store.get_job(job_id) or self.job_store.restore_job(job_id)
        if job is None:
            raise ResumeError(f"No job record found for {job_id}", job_id=job_id)

        merged = dict(job.options)
        for key, value in (options or {}).items():
            if key != 'max_segment_chars' and value is not None:
                merged[key] = value
        job_options = JobOptions.from_dict(merged)

        claimed = self.job_store.claim_for_resume(
            job_id,
            source_path=str(source_path or job.source_path),
            last_completed_segment_id=self.progress_store.last_completed_segment_id(job_id),
            cancel_requested=False,
            error_detail=None,
            message="Resuming"
        )
        return claimed, job_options

    async def run_job(
        self,
        source_path: str,
        options: Optional[Dict[str, Any]] = None,
        job_id: Optional[str] = None
    ) -> AsyncIterator[ProgressEvent]:
        """Create a job and run it to a terminal state."""
        job, job_options = self.prepare_job(source_path, options, job_id)
        yield ProgressEvent(0, job.message, JobStatus.PENDING, job_id=job.job_id)

        async for event in self.execute_job(job.job_id, job_options):
            yield event

    async def resume_job(
        self,
        job_id: str,
        source_path: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> AsyncIterator[ProgressEvent]:
        """Continue a stopped job from its checkpoints (see prepare_resume)."""
        job, job_options = self.prepare_resume(job_id, source_path, options)
        yield ProgressEvent(job.progress_percent, job.message, JobStatus.PENDING, job.degraded, job_id=job_id)

        async for event in self.execute_job(job_id, job_options):
            yield event


    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _event(self, job_id: str, status: JobStatus, percent: int, message: str,
               degraded: bool = False, segment_id: Optional[int] = None, **fields) -> ProgressEvent:
        """Record a state change in the job store and build the matching event."""
        if degraded:
            fields['degraded'] = True
        self.job_store.update_job(job_id, status=status, progress_percent=percent, message=message, **fields)
        return ProgressEvent(
            percent=percent,
            message=message,
            status=status,
            degraded=degraded,
            job_id=job_id,
            segment_id=segment_id
        )

    def _fail(self, job_id: str, percent: int, message: str, detail: str) -> ProgressEvent:
        logger.error(f"Job {job_id} failed: {detail}")
        self._log("error", detail)
        return self._event(job_id, JobStatus.ERROR, percent, message, error_detail=detail)

    async def execute_job(self, job_id: str, options: JobOptions) -> AsyncIterator[ProgressEvent]:
        """Run a prepared job from extraction to a terminal state."""
        job = self.job_store.get_job(job_id)

        yield self._event(job_id, JobStatus.EXTRACTING, 0, f"Extracting content from {job.source_path}")

        try:
            extraction = await self.extractor.extract(job.source_path)
        except ExtractionError as e:
            yield self._fail(job_id, 0, f"Extraction failed: {e.reason.value}", f"{e.reason.value}: {e.message}")
            return

        self._log("info", f"Extracted {len(extraction.blocks)} blocks, {len(extraction.toc)} TOC entries "
                          f"({extraction.method or extraction.source_format})")

        if not options.translate:
            async for event in self._convert_only(job_id, extraction, options):
                yield event
            return

        segments = build_segments(extraction.blocks, options.max_segment_chars)
        total = len(segments)

        checkpoint = await self.progress_store.load_checkpoint(job_id)
        units: Dict[int, TranslatedUnit] = {unit.segment_id: unit for unit in checkpoint.units}
        segment_ids = {segment.segment_id for segment in segments}
        done = len(segment_ids & set(units))
        degraded = any(unit.degraded for unit in units.values())

        if done:
            message = f"Resuming: {done}/{total} segments already translated"
        else:
            message = f"Translating {total} segments"
        yield self._event(
            job_id, JobStatus.TRANSLATING, done * 100 // total, message,
            degraded,
            total_segments=total,
            last_completed_segment_id=checkpoint.last_completed_segment_id
        )

        try:
            chain = self.chain_factory(options, self.log_callback)
        except ConfigurationError as e:
            yield self._fail(job_id, done * 100 // total, "Invalid backend configuration", e.message)
            return
        translator = BatchTranslator(chain, sleep=self._sleep, log_callback=self.log_callback)
        last_completed = checkpoint.last_completed_segment_id
        translated_this_run = False

        try:
            for segment in segments:
                if segment.segment_id in units:
                    continue

                if self.job_store.is_cancel_requested(job_id):
                    yield self._event(
                        job_id, JobStatus.CANCELLED, done * 100 // total,
                        f"Cancelled after {done}/{total} segments", degraded
                    )
                    return

                if translated_this_run and options.segment_delay > 0:
                    await self._sleep(options.segment_delay)

                result = await translator.translate_blocks(segment.blocks)
                unit = TranslatedUnit(
                    segment_id=segment.segment_id,
                    title=chapter_title_for(segment, extraction),
                    translated_text="\n\n".join(result.translations[block.sequence] for block in segment.blocks),
                    source_document_title=extraction.title,
                    block_translations=dict(result.translations),
                    degraded=result.is_degraded,
                    degraded_blocks=sorted(result.degraded)
                )

                try:
                    await self.progress_store.append_unit(job_id, unit)
                except CheckpointSaveError as e:
                    yield self._fail(job_id, done * 100 // total, "Could not save progress", e.message)
                    return

                units[unit.segment_id] = unit
                translated_this_run = True
                done += 1
                last_completed = max(last_completed, unit.segment_id)
                degraded = degraded or unit.degraded

                message = f"Translated segment {segment.segment_id}/{total}"
                if unit.degraded:
                    message += f" ({DEGRADED_NOTICE})"
                    self._log("warning", f"Segment {segment.segment_id}: {DEGRADED_NOTICE}")

                yield self._event(
                    job_id, JobStatus.TRANSLATING, done * 100 // total, message,
                    unit.degraded,
                    segment_id=segment.segment_id,
                    last_completed_segment_id=last_completed
                )
        finally:
            await chain.close()

        try:
            await self.progress_store.finalize(job_id)
        except CheckpointSaveError as e:
            yield self._fail(job_id, 99, "Could not write the translated text", e.message)
            return

        text_path = str(self.progress_store.text_output_path(job_id))
        self.job_store.update_job(job_id, text_output_path=text_path, degraded=degraded)

        translations: Dict[int, str] = {}
        simulated: Set[int] = set()
        for segment in segments:
            unit = units.get(segment.segment_id)
            if unit is None:
                continue
            translations.update(unit.block_translations)
            simulated.update(unit.degraded_blocks)

        message = "Translation completed"
        if degraded:
            message += f" ({DEGRADED_NOTICE})"

        render_note = await self._render(job_id, extraction, options, translations, simulated)
        if render_note:
            message += f"; {render_note}"

        yield self._event(job_id, JobStatus.COMPLETED, 100, message, degraded)

    async def _convert_only(self, job_id: str, extraction: ExtractionResult,
                            options: JobOptions) -> AsyncIterator[ProgressEvent]:
        """Plain conversion: no backend calls and no checkpoints."""
        message = "Conversion completed"
        render_note = await self._render(job_id, extraction, options, {}, set())
        if render_note:
            message += f"; {render_note}"
        yield self._event(job_id, JobStatus.COMPLETED, 100, message)

    async def _render(self, job_id: str, extraction: ExtractionResult, options: JobOptions,
                      translations: Dict[int, str], simulated: Set[int]) -> Optional[str]:
        """
        Print the consolidated document.

        Returns:
            A note for the final message when rendering was skipped or failed,
            None on success
        """
        if not options.render_pdf:
            return None
        if self.renderer is None:
            return "PDF rendering unavailable"

        job = self.job_store.get_job(job_id)
        output_path = resolve_pdf_output_path(
            job.source_path,
            output_path=options.output_path,
            output_dir=self.output_dir,
            translate=options.translate
        )
        html = build_consolidated_html(extraction, translations, simulated)

        try:
            pdf_path = await self.renderer.render(html, output_path)
        except RenderError as e:
            logger.warning(f"PDF rendering failed for job {job_id}: {e}")
            self._log("warning", f"PDF rendering failed: {e.message}")
            return f"PDF rendering failed: {e.message}"

        self.job_store.update_job(job_id, output_path=str(pdf_path))
        self._log("info", f"PDF written to {pdf_path}")
        return None
