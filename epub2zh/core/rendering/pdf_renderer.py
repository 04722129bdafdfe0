"""
PDF printing through a headless Chrome/Chromium binary.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

import aiofiles

from epub2zh.config import CHROME_PATH, PDF_RENDER_TIMEOUT
from epub2zh.core.adapters import RenderError

logger = logging.getLogger(__name__)

CHROME_COMMANDS = ('google-chrome', 'google-chrome-stable', 'chromium', 'chromium-browser', 'chrome')

KNOWN_CHROME_PATHS = (
    '/Applications/Google Chrome.app/Contents/MacOS/Google Chrome',
    '/Applications/Chromium.app/Contents/MacOS/Chromium',
    '/usr/bin/google-chrome',
    '/usr/bin/chromium-browser',
    '/usr/bin/chromium',
    'C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe',
    'C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe',
)


def find_chrome(configured: Optional[str] = None) -> Optional[str]:
    """
    Locate a Chrome executable: the configured path, then PATH, then the
    usual install locations.
    """
    configured = configured if configured is not None else CHROME_PATH
    if configured and os.path.isfile(configured):
        return configured

    for command in CHROME_COMMANDS:
        found = shutil.which(command)
        if found:
            return found

    for path in KNOWN_CHROME_PATHS:
        if os.path.isfile(path):
            return path

    return None


class ChromePdfRenderer:
    """Prints an HTML document to PDF with headless Chrome"""

    def __init__(self, chrome_path: Optional[str] = None, timeout: float = PDF_RENDER_TIMEOUT):
        self.chrome_path = chrome_path
        self.timeout = timeout

    def build_command(self, executable: str, html_path: Path, output_path: Path) -> list:
        return [
            executable,
            '--headless',
            '--disable-gpu',
            '--no-sandbox',
            '--no-pdf-header-footer',
            f'--print-to-pdf={output_path}',
            html_path.resolve().as_uri(),
        ]

    async def render(self, html: str, output_path) -> str:
        """
        Write html to a temporary file and print it to output_path.

        Returns:
            The PDF path

        Raises:
            RenderError: No browser found, browser failed, timed out, or
                produced no file
        """
        executable = self.chrome_path or find_chrome()
        if not executable:
            raise RenderError(
                "Chrome/Chromium not found; install it or set CHROME_PATH",
                context={'searched': ', '.join(CHROME_COMMANDS)}
            )

        output = Path(output_path).resolve()
        output.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix='epub2zh_render_') as temp_dir:
            html_path = Path(temp_dir) / 'consolidated.html'
            async with aiofiles.open(html_path, 'w', encoding='utf-8') as f:
                await f.write(html)

            command = self.build_command(executable, html_path, output)
            logger.info(f"Printing PDF with {executable} -> {output}")

            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE
                )
            except OSError as e:
                raise RenderError(f"Could not start Chrome: {e}", browser_path=executable) from e

            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                process.kill()
                await process.wait()
                raise RenderError(
                    f"Chrome did not finish printing within {self.timeout}s",
                    browser_path=executable
                ) from e

        if process.returncode != 0 or not output.is_file():
            detail = stderr.decode('utf-8', errors='replace').strip()[-500:] if stderr else ''
            raise RenderError(
                f"Chrome exited with code {process.returncode} without writing the PDF",
                browser_path=executable,
                context={'stderr': detail} if detail else None
            )

        return str(output)
