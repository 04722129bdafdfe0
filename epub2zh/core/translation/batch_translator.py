"""
Block batching and batch translation.

Blocks are grouped into segments of whole blocks. Each segment's unique texts
are joined with a fresh delimiter and sent as one request; if the response
does not split back into one part per text, every text is translated on its
own instead.
"""

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from epub2zh.config import MAX_SEGMENT_CHARS, MIN_TRANSLATABLE_LENGTH, INDIVIDUAL_TRANSLATE_DELAY
from epub2zh.core.adapters import TranslationError, SegmentMismatchError
from epub2zh.core.backends import SimulatorBackend, simulate
from epub2zh.core.models import ContentBlock, Segment
from .fallback_chain import FallbackChain

logger = logging.getLogger(__name__)


def build_segments(blocks: List[ContentBlock], max_chars: int = MAX_SEGMENT_CHARS) -> List[Segment]:
    """
    Greedily group whole blocks into segments of at most max_chars.

    A block longer than max_chars gets a segment of its own; the backend
    splits it further at sentence boundaries.
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")

    segments = []
    current: List[ContentBlock] = []
    current_chars = 0

    for block in blocks:
        size = len(block.text)
        if current and current_chars + size > max_chars:
            segments.append(Segment(len(segments) + 1, current, current_chars))
            current = []
            current_chars = 0
        current.append(block)
        current_chars += size

    if current:
        segments.append(Segment(len(segments) + 1, current, current_chars))

    return segments


def make_delimiter() -> str:
    """Fresh batch delimiter: millisecond timestamp plus a random suffix."""
    return f"\n[[SEG-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()}]]\n"


@dataclass
class BatchResult:
    """Translations keyed by block sequence.

    Attributes:
        translations: Non-empty text for every block passed in
        degraded: Sequences whose text came from offline simulation
    """
    translations: Dict[int, str] = field(default_factory=dict)
    degraded: Set[int] = field(default_factory=set)

    @property
    def is_degraded(self) -> bool:
        return bool(self.degraded)


class BatchTranslator:
    """Translates a list of blocks through a fallback chain"""

    def __init__(
        self,
        chain: FallbackChain,
        individual_delay: float = INDIVIDUAL_TRANSLATE_DELAY,
        min_length: int = MIN_TRANSLATABLE_LENGTH,
        sleep: Optional[Callable[[float], object]] = None,
        log_callback: Optional[Callable[[str, str], None]] = None
    ):
        self.chain = chain
        self.individual_delay = individual_delay
        self.min_length = min_length
        self._sleep = sleep or asyncio.sleep
        self.log_callback = log_callback

    def _log(self, log_type: str, message: str):
        if self.log_callback:
            self.log_callback(log_type, message)

    async def translate_blocks(self, blocks: List[ContentBlock]) -> BatchResult:
        """
        Translate blocks, sending each distinct text once.

        Blocks shorter than min_length (after stripping) are kept as-is.
        """
        result = BatchResult()

        # Exact-text dedup; dict keeps first-seen order
        unique: Dict[str, List[int]] = {}
        for block in blocks:
            if len(block.text.strip()) < self.min_length:
                result.translations[block.sequence] = block.text
                continue
            unique.setdefault(block.text, []).append(block.sequence)

        if not unique:
            return result

        texts = list(unique)
        try:
            parts, degraded = await self._translate_batch(texts)
            translated = [(part, degraded) for part in parts]
        except SegmentMismatchError as e:
            logger.info(f"Batch response did not split cleanly ({e.message}), translating blocks individually")
            self._log("info", f"Falling back to individual translation for {len(texts)} blocks")
            translated = await self._translate_individually(texts)

        for text, (part, degraded) in zip(texts, translated):
            for sequence in unique[text]:
                result.translations[sequence] = part
                if degraded:
                    result.degraded.add(sequence)

        return result

    async def _translate_batch(self, texts: List[str]) -> Tuple[List[str], bool]:
        if len(texts) == 1:
            outcome = await self.chain.translate(texts[0])
            return [outcome.text.strip() or outcome.text], outcome.degraded

        delimiter = make_delimiter()
        outcome = await self.chain.translate(delimiter.join(texts))

        # The offline backend echoes the joined original, delimiters included
        if outcome.backend_name == SimulatorBackend.name:
            return [simulate(text) for text in texts], outcome.degraded

        # Translators may eat the surrounding newlines, so split on the marker itself
        marker = delimiter.strip()
        parts = [part.strip() for part in outcome.text.split(marker)]

        if len(parts) != len(texts):
            raise SegmentMismatchError(
                "Translated batch has a different number of parts",
                expected=len(texts),
                actual=len(parts)
            )
        if not all(parts):
            raise SegmentMismatchError(
                "Translated batch has an empty part",
                expected=len(texts),
                actual=sum(1 for p in parts if p)
            )

        return parts, outcome.degraded

    async def _translate_individually(self, texts: List[str]) -> List[Tuple[str, bool]]:
        results = []
        previous_was_network = False

        for text in texts:
            if previous_was_network and self.individual_delay > 0:
                await self._sleep(self.individual_delay)

            try:
                outcome = await self.chain.translate(text)
                translation = outcome.text.strip() or simulate(text)
                degraded = outcome.degraded or not outcome.text.strip()
                previous_was_network = outcome.backend_name != SimulatorBackend.name
            except TranslationError as e:
                logger.warning(f"Individual translation failed, using offline simulation: {e}")
                translation = simulate(text)
                degraded = True
                previous_was_network = True

            results.append((translation, degraded))

        return results
