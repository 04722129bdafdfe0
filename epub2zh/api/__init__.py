"""
Flask HTTP layer: job routes and background job handlers.
"""
from .routes import configure_routes
from .handlers import create_orchestrator, start_translation_job, resume_translation_job

__all__ = [
    'configure_routes',
    'create_orchestrator',
    'start_translation_job',
    'resume_translation_job',
]
