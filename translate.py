"""
Command-line interface for EPUB/PDF to Chinese translation
"""
import argparse
import asyncio
import sys

from epub2zh.config import TRANSLATOR_API, MAX_SEGMENT_CHARS, TRANSLATE_DELAY, CHECKPOINT_DIR, OUTPUT_DIR
from epub2zh.core.adapters import ConfigurationError, ResumeError
from epub2zh.core.models import JobStatus
from epub2zh.core.orchestrator import TaskOrchestrator
from epub2zh.core.rendering import ChromePdfRenderer
from epub2zh.persistence import JobStore, ProgressStore
from epub2zh.utils.unified_logger import setup_cli_logger, LogType

BACKEND_CHOICES = ["siliconflow", "deepseek", "google", "simulate"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Translate an EPUB or PDF into Chinese and print it to PDF, with resumable progress."
    )
    parser.add_argument("-i", "--input", default=None, help="Path to the EPUB, unpacked EPUB directory or PDF.")
    parser.add_argument("-o", "--output", default=None, help=f"Path of the PDF to write (default: a unique name in {OUTPUT_DIR}/).")
    parser.add_argument("--backend", default=None, choices=BACKEND_CHOICES,
                        help=f"Primary translation backend (default: {TRANSLATOR_API.lower()}).")
    parser.add_argument("--api-key", default=None, help="API key for the primary backend (default: from .env).")
    parser.add_argument("--model", default=None, help="Model name for siliconflow/deepseek (default: from .env).")
    parser.add_argument("--no-translate", action="store_true", help="Convert to PDF without translating.")
    parser.add_argument("--no-pdf", action="store_true", help="Only write the translated text, skip PDF printing.")
    parser.add_argument("--resume", metavar="JOB_ID", default=None, help="Resume an interrupted job from its checkpoints.")
    parser.add_argument("--max-segment-chars", type=int, default=None,
                        help=f"Maximum characters per translation segment (default: {MAX_SEGMENT_CHARS}).")
    parser.add_argument("--delay", type=float, default=None,
                        help=f"Seconds to wait between segments (default: {TRANSLATE_DELAY}).")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output.")
    return parser


def options_from_args(args) -> dict:
    """Options for a new job; flags left unset take their configured defaults"""
    return {
        'translate': not args.no_translate,
        'render_pdf': not args.no_pdf,
        'backend': args.backend or TRANSLATOR_API.lower(),
        'api_key': args.api_key,
        'model': args.model,
        'max_segment_chars': args.max_segment_chars if args.max_segment_chars is not None else MAX_SEGMENT_CHARS,
        'segment_delay': args.delay if args.delay is not None else TRANSLATE_DELAY,
        'output_path': args.output,
    }


def resume_options_from_args(args) -> dict:
    """Only the flags given on the command line; everything else keeps the stored job options.

    Segment size is fixed by the original run and never overridden.
    """
    options = {
        'backend': args.backend,
        'api_key': args.api_key,
        'model': args.model,
        'segment_delay': args.delay,
        'output_path': args.output,
    }
    if args.no_pdf:
        options['render_pdf'] = False
    return {key: value for key, value in options.items() if value is not None}


async def run(args, logger) -> int:
    """Run or resume one job, printing its events; returns the exit code"""
    progress_store = ProgressStore(CHECKPOINT_DIR, OUTPUT_DIR)
    job_store = JobStore(progress_store)
    orchestrator = TaskOrchestrator(
        job_store,
        progress_store,
        renderer=None if args.no_pdf else ChromePdfRenderer(),
        log_callback=logger.create_log_callback()
    )

    if args.resume:
        job, job_options = orchestrator.prepare_resume(args.resume, args.input, resume_options_from_args(args))
    else:
        job, job_options = orchestrator.prepare_job(args.input, options_from_args(args))

    logger.info("Translation Started" if job_options.translate else "Conversion Started", LogType.TRANSLATION_START, {
        'input_file': job.source_path,
        'source_format': 'pdf' if job.source_path.lower().endswith('.pdf') else 'epub',
        'backend': job_options.backend or TRANSLATOR_API.lower(),
        'job_id': job.job_id,
    })

    last_event = None
    async for event in orchestrator.execute_job(job.job_id, job_options):
        if event.segment_id is None and job_store.get_field(job.job_id, 'total_segments'):
            logger.update_total_segments(job_store.get_field(job.job_id, 'total_segments'))
        logger.log_progress_event(event)
        last_event = event

    final = job_store.get_job(job.job_id)
    if last_event is not None and last_event.status == JobStatus.COMPLETED:
        logger.info("Job Completed", LogType.TRANSLATION_END, {
            'output_file': final.output_path,
            'text_file': final.text_output_path,
            'degraded': final.degraded,
        })
        return 0

    if last_event is not None and last_event.status == JobStatus.CANCELLED:
        logger.warning(f"Job cancelled. Resume with: --resume {job.job_id}")
        return 1

    logger.error("Job failed", LogType.ERROR_DETAIL, {
        'details': final.error_detail or final.message,
        'job_id': job.job_id,
    })
    return 1


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.input and not args.resume:
        parser.error("-i/--input is required unless --resume is given")
    if args.resume and args.no_translate:
        parser.error("--resume cannot be combined with --no-translate")

    logger = setup_cli_logger(enable_colors=not args.no_color)

    try:
        return asyncio.run(run(args, logger))
    except (ConfigurationError, ResumeError) as e:
        logger.error(e.message)
        return 2
    except KeyboardInterrupt:
        logger.warning("Interrupted. Completed segments are saved; use --resume with the job id to continue.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
