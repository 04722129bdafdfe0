"""
File utilities for conversion output
"""
from pathlib import Path
from typing import Optional

from epub2zh.config import OUTPUT_DIR


def get_unique_output_path(output_path):
    """
    Generate a unique output path by adding a number suffix if the file already exists.

    Args:
        output_path (str): Desired output path

    Returns:
        str: Unique output path (original or with numeric suffix)

    Examples:
        book.pdf -> book.pdf (if doesn't exist)
        book.pdf -> book (1).pdf (if book.pdf exists)
        book.pdf -> book (2).pdf (if book.pdf and book (1).pdf exist)
    """
    path = Path(output_path)

    if not path.exists():
        return str(output_path)

    parent = path.parent
    stem = path.stem
    suffix = path.suffix

    counter = 1
    while True:
        new_path = parent / f"{stem} ({counter}){suffix}"
        if not new_path.exists():
            return str(new_path)

        counter += 1
        if counter > 9999:
            raise RuntimeError(f"Could not find unique filename after 9999 attempts for: {output_path}")


def default_pdf_name(source_path, translate: bool = True) -> str:
    """book.epub -> book_zh.pdf (or book.pdf when not translating)"""
    stem = Path(source_path).stem or "document"
    return f"{stem}_zh.pdf" if translate else f"{stem}.pdf"


def resolve_pdf_output_path(source_path, output_path: Optional[str] = None,
                            output_dir: str = OUTPUT_DIR, translate: bool = True) -> str:
    """
    Pick where the rendered PDF goes.

    An explicit output_path is used as given (its directory is created); the
    default name inside output_dir never overwrites an existing file.
    """
    if output_path:
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        return str(output_path)

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    return get_unique_output_path(str(Path(output_dir) / default_pdf_name(source_path, translate)))
