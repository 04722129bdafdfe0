"""
Utility modules

Import helpers directly from their module:

    from epub2zh.utils.file_utils import get_unique_output_path
    from epub2zh.utils.unified_logger import setup_cli_logger
"""

__all__ = []
