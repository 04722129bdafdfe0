"""
Book images and stylesheets for the consolidated document.

The unpacked archive is deleted once extraction ends, so every referenced
file is inlined as a data URI while it is still on disk.
"""

import base64
import logging
import mimetypes
import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from urllib.parse import unquote

import aiofiles

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp')

CSS_URL_PATTERN = re.compile(r'url\(\s*([\'"]?)([^\'")]+)\1\s*\)')

EXTERNAL_PREFIXES = ('http:', 'https:', 'data:', '//')


def find_image_files(root_dir: Path) -> List[Path]:
    """Image files anywhere in the unpacked archive, for books without a manifest."""
    return sorted(
        path for path in root_dir.rglob('*')
        if path.suffix.lower() in IMAGE_EXTENSIONS and path.is_file()
    )


class AssetResolver:
    """
    Turns references found in content documents and stylesheets into data URIs.

    A reference is resolved against the referring file first. Books with
    broken relative paths are common, so an unresolved image falls back to
    the known image with the same file name.
    """

    def __init__(self, root_dir: Path, image_files: Optional[Iterable[Path]] = None):
        self.root_dir = Path(root_dir).resolve()
        if image_files is None:
            image_files = find_image_files(self.root_dir)
        self._by_name: Dict[str, Path] = {}
        for path in image_files:
            self._by_name.setdefault(Path(path).name.lower(), Path(path))
        self._uris: Dict[Path, Optional[str]] = {}

    def _inside_root(self, path: Path) -> bool:
        return os.path.commonpath([str(self.root_dir), str(path)]) == str(self.root_dir)

    def resolve(self, reference: str, base_dir: Path) -> Optional[Path]:
        """File a reference points at, or None for external or missing targets."""
        target = unquote(reference.split('#', 1)[0].split('?', 1)[0]).strip()
        if not target or target.lower().startswith(EXTERNAL_PREFIXES):
            return None

        candidate = (Path(base_dir) / target).resolve()
        if candidate.is_file() and self._inside_root(candidate):
            return candidate

        fallback = self._by_name.get(Path(target).name.lower())
        if fallback is not None:
            logger.debug(f"Resolved {reference} by file name to {fallback}")
        return fallback

    async def data_uri(self, path: Path) -> Optional[str]:
        if path in self._uris:
            return self._uris[path]

        mime_type = mimetypes.guess_type(path.name)[0] or 'application/octet-stream'
        try:
            async with aiofiles.open(path, 'rb') as f:
                content = await f.read()
        except OSError as e:
            logger.warning(f"Could not read {path}: {e}")
            uri = None
        else:
            uri = f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"

        self._uris[path] = uri
        return uri

    async def image_uri(self, reference: str, base_dir: Path) -> Optional[str]:
        path = self.resolve(reference, base_dir)
        if path is None:
            if reference and not reference.lower().startswith(EXTERNAL_PREFIXES):
                logger.warning(f"Image not found: {reference}")
            return None
        return await self.data_uri(path)

    async def inline_stylesheet(self, path: Path) -> Optional[str]:
        """
        Read a stylesheet and replace its url() references with data URIs.

        References that cannot be resolved are left as they are.
        """
        try:
            async with aiofiles.open(path, 'rb') as f:
                css = (await f.read()).decode('utf-8', errors='replace')
        except OSError as e:
            logger.warning(f"Could not read stylesheet {path}: {e}")
            return None

        replacements: Dict[str, str] = {}
        for match in CSS_URL_PATTERN.finditer(css):
            reference = match.group(2)
            if reference in replacements:
                continue
            target = self.resolve(reference, path.parent)
            uri = await self.data_uri(target) if target is not None else None
            if uri is not None:
                replacements[reference] = uri

        def replace(match):
            uri = replacements.get(match.group(2))
            return f"url('{uri}')" if uri else match.group(0)

        # A literal </style> would end the embedding element early
        return CSS_URL_PATTERN.sub(replace, css).replace('</', '<\\/')
