"""
Health check and configuration routes
"""
import logging

from flask import Blueprint, jsonify

from epub2zh import __version__
from epub2zh.config import (
    TRANSLATOR_API,
    MAX_SEGMENT_CHARS,
    TRANSLATE_DELAY,
    TARGET_LANGUAGE_CODE,
    DEBUG_MODE,
)
from epub2zh.core.backends import BackendKind
from epub2zh.core.rendering import find_chrome

logger = logging.getLogger('config_routes')
if DEBUG_MODE:
    logger.setLevel(logging.DEBUG)

SUPPORTED_FORMATS = ["epub", "pdf"]


def create_config_blueprint():
    """Create and configure the config blueprint"""
    bp = Blueprint('config', __name__)

    @bp.route('/api/health', methods=['GET'])
    def health_check():
        """API health check endpoint"""
        return jsonify({
            "status": "ok",
            "message": "EPUB/PDF translation API is running",
            "version": __version__,
            "supported_formats": SUPPORTED_FORMATS
        })

    @bp.route('/api/config', methods=['GET'])
    def get_default_config():
        """Default job settings (API keys are never returned)"""
        chrome = find_chrome()
        config_response = {
            "default_backend": TRANSLATOR_API.lower(),
            "backends": [kind.value.lower() for kind in BackendKind],
            "max_segment_chars": MAX_SEGMENT_CHARS,
            "segment_delay": TRANSLATE_DELAY,
            "target_language": TARGET_LANGUAGE_CODE,
            "pdf_rendering_available": chrome is not None,
            "supported_formats": SUPPORTED_FORMATS
        }
        logger.debug(f"/api/config response: {config_response}")
        return jsonify(config_response)

    return bp
