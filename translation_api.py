"""
Flask web server for the EPUB/PDF translation API
"""
import os
import sys
import logging

from flask import Flask
from flask_cors import CORS

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Reduce verbosity of werkzeug (Flask HTTP server logs)
logging.getLogger('werkzeug').setLevel(logging.WARNING)

from epub2zh import __version__
from epub2zh.config import (
    HOST,
    PORT,
    OUTPUT_DIR,
    UPLOAD_DIR,
    CHECKPOINT_DIR,
    TRANSLATOR_API,
    JOB_RETENTION_HOURS,
)
from epub2zh.api import configure_routes, create_orchestrator, start_translation_job, resume_translation_job
from epub2zh.persistence import JobStore, ProgressStore


app = Flask(__name__)
CORS(app)

progress_store = ProgressStore(CHECKPOINT_DIR, OUTPUT_DIR)
job_store = JobStore(progress_store)

# Ensure working directories exist
for directory in (OUTPUT_DIR, UPLOAD_DIR, CHECKPOINT_DIR):
    try:
        os.makedirs(directory, exist_ok=True)
    except OSError as e:
        logger.error(f"Critical error: Unable to create folder '{directory}': {e}")
        sys.exit(1)


def orchestrator_factory(log_callback):
    return create_orchestrator(job_store, progress_store, log_callback, output_dir=OUTPUT_DIR)


def start_job_wrapper(source_path, options):
    """Wrapper to inject dependencies into job starter"""
    return start_translation_job(source_path, options, job_store, orchestrator_factory)


def resume_job_wrapper(job_id, options):
    """Wrapper to inject dependencies into job resumer"""
    return resume_translation_job(job_id, options, job_store, orchestrator_factory)


configure_routes(app, job_store, start_job_wrapper, resume_job_wrapper, UPLOAD_DIR)


def restore_incomplete_jobs():
    """Load persisted jobs from the checkpoint directory and drop expired ones"""
    restored = job_store.restore_all()
    evicted = job_store.evict_expired(JOB_RETENTION_HOURS)
    resumable = job_store.get_resumable_jobs()
    if resumable:
        logger.info(f"Found {len(resumable)} incomplete job(s) from a previous session:")
        for job in resumable:
            logger.info(f"   - {job.job_id}: {job.source_path} "
                        f"({job.last_completed_segment_id}/{job.total_segments or '?'} segments)")
        logger.info("   POST /api/jobs/<id>/resume to continue, or DELETE /api/jobs/<id>")
    else:
        logger.info("No incomplete jobs to restore")
    logger.debug(f"Restored {restored} job(s), evicted {len(evicted)}")


restore_incomplete_jobs()


if __name__ == '__main__':
    logger.info("=" * 60)
    logger.info(f"EPUB/PDF TRANSLATION SERVER (version {__version__})")
    logger.info("=" * 60)
    logger.info(f"   - Default backend: {TRANSLATOR_API.lower()}")
    logger.info(f"   - API: http://{HOST}:{PORT}/api/")
    logger.info(f"   - Health Check: http://{HOST}:{PORT}/api/health")
    logger.info("   - Supported formats: .epub and .pdf")
    logger.info("")

    if HOST == '0.0.0.0':
        logger.warning("Server is binding to 0.0.0.0 (all network interfaces)")
        logger.warning("   For production, use a WSGI server: gunicorn -w 1 --bind 0.0.0.0:5000 translation_api:app")

    app.run(debug=False, host=HOST, port=PORT, threaded=True)
