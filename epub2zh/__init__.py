"""
epub2zh - EPUB/PDF to Chinese translation pipeline with resumable checkpoints
"""
__version__ = "1.0.0"
