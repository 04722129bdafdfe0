"""
Job handlers: each job runs in its own daemon thread with a fresh event loop
"""
import asyncio
import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from epub2zh.config import OUTPUT_DIR
from epub2zh.core.models import JobStatus
from epub2zh.core.orchestrator import TaskOrchestrator
from epub2zh.core.rendering import ChromePdfRenderer
from epub2zh.persistence import JobStore, ProgressStore
from epub2zh.utils.unified_logger import setup_web_logger

logger = logging.getLogger(__name__)

MAX_STORED_LOGS = 200

OrchestratorFactory = Callable[[Callable[[str, str], None]], TaskOrchestrator]


def create_orchestrator(job_store: JobStore, progress_store: ProgressStore,
                        log_callback=None, output_dir: str = OUTPUT_DIR) -> TaskOrchestrator:
    """Orchestrator wired with the Chrome renderer, as used by the web service"""
    return TaskOrchestrator(
        job_store,
        progress_store,
        renderer=ChromePdfRenderer(),
        output_dir=output_dir,
        log_callback=log_callback
    )


def _job_logger(job_id: str, job_store: JobStore):
    """Per-job UnifiedLogger whose entries are kept on the in-memory job log"""
    def storage_callback(log_entry):
        job_store.append_log(job_id, log_entry, limit=MAX_STORED_LOGS)

    return setup_web_logger(storage_callback=storage_callback)


async def consume_job_events(events, job_logger) -> Optional[JobStatus]:
    """
    Drain an orchestrator event stream into the job logger.

    Returns:
        Status of the last event, or None if the stream was empty
    """
    last_status = None
    async for event in events:
        job_logger.log_progress_event(event)
        last_status = event.status
    return last_status


def run_job_async_wrapper(job_id: str, job_store: JobStore, make_events: Callable[[], Any], job_logger):
    """
    Run one job's event stream to completion on a new event loop

    Args:
        job_id: Job being run
        job_store: Registry updated if the job dies unexpectedly
        make_events: Builds the async iterator (called inside the new loop)
        job_logger: UnifiedLogger receiving the events
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        loop.run_until_complete(consume_job_events(make_events(), job_logger))
    except Exception as e:
        error_msg = f"Uncaught error in job {job_id}: {e}"
        logger.exception(error_msg)
        if job_store.exists(job_id):
            job_store.update_job(
                job_id,
                status=JobStatus.ERROR,
                message="Job failed unexpectedly",
                error_detail=error_msg
            )
            job_store.append_log(job_id, {
                'timestamp': datetime.now().isoformat(),
                'level': 'CRITICAL',
                'type': 'error_detail',
                'message': error_msg,
                'data': {}
            })
    finally:
        loop.close()


def _start_thread(job_id: str, job_store: JobStore, make_events, job_logger):
    thread = threading.Thread(
        target=run_job_async_wrapper,
        args=(job_id, job_store, make_events, job_logger),
        name=f"job-{job_id}"
    )
    thread.daemon = True
    thread.start()
    return thread


def start_translation_job(source_path: str, options: Optional[Dict[str, Any]],
                          job_store: JobStore, orchestrator_factory: OrchestratorFactory) -> str:
    """
    Register a job and start it in a separate thread

    Raises:
        ConfigurationError: Invalid options (nothing is started)

    Returns:
        The new job id
    """
    job_id = str(uuid.uuid4())
    job_logger = _job_logger(job_id, job_store)
    orchestrator = orchestrator_factory(job_logger.create_log_callback())
    try:
        job, job_options = orchestrator.prepare_job(source_path, options, job_id=job_id)
    except Exception:
        job_store.discard_logs(job_id)
        raise

    job_logger.info(f"Job queued for {source_path}")

    _start_thread(job.job_id, job_store, lambda: orchestrator.execute_job(job.job_id, job_options), job_logger)
    return job.job_id


def resume_translation_job(job_id: str, options: Optional[Dict[str, Any]],
                           job_store: JobStore, orchestrator_factory: OrchestratorFactory) -> str:
    """
    Resume a stopped job in a separate thread

    Raises:
        ResumeError: No job record, or the job is already queued or running
    """
    job_logger = _job_logger(job_id, job_store)
    orchestrator = orchestrator_factory(job_logger.create_log_callback())
    job, job_options = orchestrator.prepare_resume(job_id, options=options)
    job_logger.info(f"Resuming job {job_id} from segment {job.last_completed_segment_id + 1}")

    _start_thread(job_id, job_store, lambda: orchestrator.execute_job(job_id, job_options), job_logger)
    return job_id
