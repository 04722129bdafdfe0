"""
Job management routes: submit, poll, cancel, resume, download
"""
import os
import uuid
from pathlib import Path

from flask import Blueprint, request, jsonify, send_file
from werkzeug.utils import secure_filename

from epub2zh.core.adapters import ConfigurationError, ResumeError
from epub2zh.core.extraction import ContentExtractor
from epub2zh.core.models import JobStatus

ALLOWED_EXTENSIONS = {'.epub', '.pdf'}

# Form values arrive as strings in multipart requests
_FALSE_VALUES = {'0', 'false', 'no', 'off'}

OPTION_FIELDS = ('translate', 'render_pdf', 'backend', 'api_key', 'model', 'max_segment_chars', 'segment_delay')


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_VALUES
    return bool(value)


def _read_options(data):
    """Pick job options out of a JSON body or form"""
    options = {}
    for name in OPTION_FIELDS:
        value = data.get(name)
        if value is None or value == '':
            continue
        if name in ('translate', 'render_pdf'):
            value = _as_bool(value)
        elif name == 'max_segment_chars':
            value = int(value)
        elif name == 'segment_delay':
            value = float(value)
        options[name] = value
    return options


def _job_payload(job, logs=None):
    payload = {
        "job_id": job.job_id,
        "status": job.status.value,
        "progress": job.progress_percent,
        "message": job.message,
        "error": job.error_detail,
        "degraded": job.degraded,
        "total_segments": job.total_segments,
        "last_completed_segment_id": job.last_completed_segment_id,
        "source_file": job.source_path,
        "output_path": job.output_path,
        "text_output_path": job.text_output_path,
        "created_at": job.created_at,
        "updated_at": job.updated_at,
    }
    if logs is not None:
        payload["logs"] = logs
    return payload


def create_job_blueprint(job_store, start_job, resume_job, upload_dir):
    """
    Create and configure the job blueprint

    Args:
        job_store: Shared JobStore
        start_job: Callable(source_path, options) -> job_id
        resume_job: Callable(job_id, options) -> job_id
        upload_dir: Where uploaded sources are saved
    """
    bp = Blueprint('jobs', __name__)

    def _save_upload(file):
        filename = secure_filename(file.filename or '')
        if not filename or Path(filename).suffix.lower() not in ALLOWED_EXTENSIONS:
            return None
        os.makedirs(upload_dir, exist_ok=True)
        target = Path(upload_dir) / f"{uuid.uuid4().hex[:8]}_{filename}"
        file.save(str(target))
        return str(target)

    @bp.route('/api/jobs', methods=['POST'])
    def submit_job():
        """Start a conversion/translation job from a path or an upload"""
        if 'file' in request.files:
            file = request.files['file']
            if not file or file.filename == '':
                return jsonify({"error": "No file selected"}), 400
            source_path = _save_upload(file)
            if source_path is None:
                return jsonify({"error": "Only .epub and .pdf files are accepted"}), 400
            data = request.form
        else:
            data = request.get_json(silent=True) or {}
            source_path = data.get('file_path')
            if not source_path:
                return jsonify({"error": "Missing field: file_path (or upload a file)"}), 400
            if not ContentExtractor.supports(source_path):
                return jsonify({"error": f"Unsupported source: {source_path}"}), 400

        try:
            options = _read_options(data)
        except ValueError as e:
            return jsonify({"error": f"Invalid option value: {e}"}), 400

        try:
            job_id = start_job(source_path, options)
        except ConfigurationError as e:
            return jsonify({"error": e.message}), 400

        return jsonify({"job_id": job_id, "message": "Job queued."}), 202

    @bp.route('/api/jobs', methods=['GET'])
    def list_jobs():
        """List all known jobs"""
        return jsonify({"jobs": job_store.get_job_summaries()})

    @bp.route('/api/jobs/<job_id>', methods=['GET'])
    def get_job_status(job_id):
        """Poll a job's progress"""
        job = job_store.get_job(job_id)
        if job is None:
            return jsonify({"error": "Job not found"}), 404
        return jsonify(_job_payload(job, logs=job_store.get_job_logs(job_id)))

    @bp.route('/api/jobs/<job_id>/cancel', methods=['POST'])
    def cancel_job(job_id):
        """Ask a running job to stop at the next segment boundary"""
        if not job_store.exists(job_id):
            return jsonify({"error": "Job not found"}), 404
        if not job_store.request_cancel(job_id):
            return jsonify({"error": "Job is not running"}), 400
        return jsonify({"message": "Cancellation requested. The job stops after the current segment."})

    @bp.route('/api/resumable', methods=['GET'])
    def list_resumable_jobs():
        """Unfinished jobs with saved progress"""
        jobs = [_job_payload(job) for job in job_store.get_resumable_jobs()]
        return jsonify({"jobs": jobs, "count": len(jobs)})

    @bp.route('/api/jobs/<job_id>/resume', methods=['POST'])
    def resume_job_request(job_id):
        """Continue a stopped job from its checkpoints"""
        if job_store.is_claimed(job_id):
            return jsonify({"error": "Job is already queued or running"}), 409

        data = request.get_json(silent=True) or {}
        try:
            options = _read_options(data)
        except ValueError as e:
            return jsonify({"error": f"Invalid option value: {e}"}), 400

        try:
            resume_job(job_id, options)
        except ResumeError as e:
            status = 409 if job_store.exists(job_id) else 404
            return jsonify({"error": e.message}), status
        except ConfigurationError as e:
            return jsonify({"error": e.message}), 400

        return jsonify({"job_id": job_id, "message": "Job resumed."}), 202

    @bp.route('/api/jobs/<job_id>/download', methods=['GET'])
    def download_job_output(job_id):
        """Serve the rendered PDF (default) or the translated text"""
        job = job_store.get_job(job_id)
        if job is None:
            return jsonify({"error": "Job not found"}), 404

        output_format = request.args.get('format', 'pdf').lower()
        if output_format == 'pdf':
            path, mimetype = job.output_path, 'application/pdf'
        elif output_format == 'txt':
            path, mimetype = job.text_output_path, 'text/plain'
        else:
            return jsonify({"error": "format must be 'pdf' or 'txt'"}), 400

        if job.status != JobStatus.COMPLETED or not path or not os.path.isfile(path):
            return jsonify({"error": f"No {output_format} output available for this job"}), 404

        return send_file(
            os.path.abspath(path),
            mimetype=mimetype,
            as_attachment=True,
            download_name=os.path.basename(path)
        )

    @bp.route('/api/jobs/<job_id>', methods=['DELETE'])
    def delete_job(job_id):
        """Forget a finished job and delete its checkpoints"""
        if job_store.is_active(job_id):
            return jsonify({"error": "Cancel the job before deleting it"}), 409
        if not job_store.delete_job(job_id):
            return jsonify({"error": "Job not found"}), 404
        return jsonify({"message": f"Job {job_id} deleted"})

    return bp
