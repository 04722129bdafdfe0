"""
Interchangeable translation backends.
"""
from .base import TranslationBackend, classify_http_error, classify_transport_error
from .chat_completion import ChatCompletionBackend, SiliconFlowBackend, DeepSeekBackend
from .google import GoogleTranslateBackend
from .simulator import SimulatorBackend, simulate, substitute, is_simulated, DICTIONARY, ORIGINAL_MARKER
from .factory import BackendKind, create_backend

__all__ = [
    'TranslationBackend',
    'classify_http_error',
    'classify_transport_error',
    'ChatCompletionBackend',
    'SiliconFlowBackend',
    'DeepSeekBackend',
    'GoogleTranslateBackend',
    'SimulatorBackend',
    'simulate',
    'substitute',
    'is_simulated',
    'DICTIONARY',
    'ORIGINAL_MARKER',
    'BackendKind',
    'create_backend',
]
