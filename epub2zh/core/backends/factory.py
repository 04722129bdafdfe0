"""
Backend factory.
"""

from enum import Enum
from typing import Union

from epub2zh.core.adapters.exceptions import ConfigurationError
from .base import TranslationBackend
from .chat_completion import SiliconFlowBackend, DeepSeekBackend
from .google import GoogleTranslateBackend
from .simulator import SimulatorBackend


class BackendKind(Enum):
    """Available translation providers"""
    SILICONFLOW = "SILICONFLOW"
    DEEPSEEK = "DEEPSEEK"
    GOOGLE = "GOOGLE"
    SIMULATE = "SIMULATE"

    @classmethod
    def parse(cls, value: Union[str, "BackendKind"]) -> "BackendKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            valid = ", ".join(k.value.lower() for k in cls)
            raise ConfigurationError(
                f"Unknown translation backend '{value}' (expected one of: {valid})",
                context={'backend': value}
            )


_BACKEND_CLASSES = {
    BackendKind.SILICONFLOW: SiliconFlowBackend,
    BackendKind.DEEPSEEK: DeepSeekBackend,
    BackendKind.GOOGLE: GoogleTranslateBackend,
    BackendKind.SIMULATE: SimulatorBackend,
}


def create_backend(kind: Union[str, BackendKind] = BackendKind.SIMULATE, **kwargs) -> TranslationBackend:
    """Factory function to create translation backends

    Args:
        kind: Backend kind or its name (case-insensitive)
        **kwargs: Constructor overrides (api_key, model, client, max_length...)

    Raises:
        ConfigurationError: Unknown backend name
    """
    backend_kind = BackendKind.parse(kind)
    # Drop overrides left unset by callers such as the CLI
    overrides = {k: v for k, v in kwargs.items() if v is not None}
    return _BACKEND_CLASSES[backend_kind](**overrides)
