"""
Batch translation over an ordered backend fallback chain.
"""
from .fallback_chain import (
    TranslationStrategy,
    TranslationOutcome,
    FallbackChain,
    build_default_chain,
)
from .batch_translator import BatchTranslator, BatchResult, build_segments, make_delimiter

__all__ = [
    'TranslationStrategy',
    'TranslationOutcome',
    'FallbackChain',
    'build_default_chain',
    'BatchTranslator',
    'BatchResult',
    'build_segments',
    'make_delimiter',
]
