"""
Flask routes orchestrator for the translation API

- blueprints/config_routes.py: Health check and default configuration
- blueprints/job_routes.py: Job submission, polling, cancel, resume, download
"""
import logging

from flask import jsonify

from .blueprints import create_config_blueprint, create_job_blueprint

logger = logging.getLogger(__name__)


def configure_routes(app, job_store, start_job, resume_job, upload_dir):
    """
    Configure Flask routes by registering all blueprints

    Args:
        app: Flask application instance
        job_store: Shared JobStore
        start_job: Callable(source_path, options) -> job_id
        resume_job: Callable(job_id, options) -> job_id
        upload_dir: Directory for uploaded sources
    """
    app.register_blueprint(create_config_blueprint())
    app.register_blueprint(create_job_blueprint(job_store, start_job, resume_job, upload_dir))

    _register_error_handlers(app)


def _register_error_handlers(app):
    """Register global error handlers"""

    @app.errorhandler(404)
    def route_not_found(error):
        return jsonify({"error": "API Endpoint not found"}), 404

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify({"error": "Internal server error", "details": str(error)}), 500
