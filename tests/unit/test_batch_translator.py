"""
Unit tests for segment building and batched block translation.
"""

import pytest

from epub2zh.core.adapters import BackendErrorKind
from epub2zh.core.backends import SimulatorBackend, simulate
from epub2zh.core.translation import (
    BatchTranslator,
    FallbackChain,
    TranslationStrategy,
    build_segments,
    make_delimiter,
)
from tests.fixtures.fakes import RecordingBackend, backend_error, make_blocks, no_sleep


def make_translator(backend):
    chain = FallbackChain([TranslationStrategy(backend)])
    return BatchTranslator(chain, individual_delay=0, sleep=no_sleep)


class TestBuildSegments:
    """Test greedy grouping of whole blocks."""

    def test_groups_blocks_up_to_limit(self):
        blocks = make_blocks(["a" * 40, "b" * 40, "c" * 40])
        segments = build_segments(blocks, max_chars=100)

        assert [s.segment_id for s in segments] == [1, 2]
        assert [[b.sequence for b in s.blocks] for s in segments] == [[1, 2], [3]]
        assert segments[0].char_count == 80

    def test_oversized_block_gets_own_segment(self):
        blocks = make_blocks(["a" * 30, "b" * 150, "c" * 30])
        segments = build_segments(blocks, max_chars=100)

        assert [[b.sequence for b in s.blocks] for s in segments] == [[1], [2], [3]]
        assert segments[1].char_count == 150

    def test_blocks_are_never_split_or_reordered(self):
        blocks = make_blocks([f"Paragraph number {i}." * (i % 4 + 1) for i in range(25)])
        segments = build_segments(blocks, max_chars=120)

        flattened = [b for s in segments for b in s.blocks]
        assert flattened == blocks
        assert [s.segment_id for s in segments] == list(range(1, len(segments) + 1))

    def test_same_blocks_give_same_segments(self):
        blocks = make_blocks(["x" * 70] * 7)
        first = build_segments(blocks, 150)
        second = build_segments(blocks, 150)
        assert [(s.segment_id, s.first_sequence) for s in first] == [(s.segment_id, s.first_sequence) for s in second]

    def test_empty_input(self):
        assert build_segments([], 100) == []

    def test_non_positive_limit(self):
        with pytest.raises(ValueError):
            build_segments(make_blocks(["text"]), 0)


class TestMakeDelimiter:
    """Test batch delimiter format."""

    def test_format(self):
        delimiter = make_delimiter()
        assert delimiter.startswith("\n[[SEG-")
        assert delimiter.endswith("]]\n")

    def test_fresh_each_time(self):
        assert make_delimiter() != make_delimiter()


class TestBatchTranslator:
    """Test translate_blocks."""

    @pytest.mark.asyncio
    async def test_batch_is_one_request(self):
        backend = RecordingBackend(transform=str.upper)
        blocks = make_blocks(["Hello world.", "Second block.", "Third block."])

        result = await make_translator(backend).translate_blocks(blocks)

        assert len(backend.calls) == 1
        assert result.translations == {1: "HELLO WORLD.", 2: "SECOND BLOCK.", 3: "THIRD BLOCK."}
        assert not result.is_degraded

    @pytest.mark.asyncio
    async def test_single_block_is_sent_without_delimiter(self):
        backend = RecordingBackend()
        result = await make_translator(backend).translate_blocks(make_blocks(["Only block here."]))

        assert backend.calls == ["Only block here."]
        assert result.translations == {1: "ZH:Only block here."}

    @pytest.mark.asyncio
    async def test_identical_texts_are_sent_once(self):
        backend = RecordingBackend()
        blocks = make_blocks(["Repeated text.", "Repeated text.", "Repeated text."])

        result = await make_translator(backend).translate_blocks(blocks)

        assert backend.calls == ["Repeated text."]
        assert result.translations == {1: "ZH:Repeated text.", 2: "ZH:Repeated text.", 3: "ZH:Repeated text."}

    @pytest.mark.asyncio
    async def test_short_blocks_are_kept(self):
        backend = RecordingBackend()
        blocks = make_blocks(["Hi", "  ", "A proper sentence."])

        result = await make_translator(backend).translate_blocks(blocks)

        assert result.translations[1] == "Hi"
        assert result.translations[2] == "  "
        assert result.translations[3] == "ZH:A proper sentence."
        assert backend.calls == ["A proper sentence."]

    @pytest.mark.asyncio
    async def test_only_short_blocks_makes_no_request(self):
        backend = RecordingBackend()
        result = await make_translator(backend).translate_blocks(make_blocks(["Hi", "Ok"]))
        assert backend.calls == []
        assert result.translations == {1: "Hi", 2: "Ok"}

    @pytest.mark.asyncio
    async def test_mismatched_response_falls_back_to_individual(self):
        backend = RecordingBackend(transform=lambda text: "merged")
        blocks = make_blocks(["First block.", "Second block.", "Third block."])

        result = await make_translator(backend).translate_blocks(blocks)

        assert len(backend.calls) == 4
        assert backend.calls[1:] == ["First block.", "Second block.", "Third block."]
        assert result.translations == {1: "merged", 2: "merged", 3: "merged"}

    @pytest.mark.asyncio
    async def test_empty_part_falls_back_to_individual(self):
        def drop_second(text):
            marker = next((line for line in text.split("\n") if line.startswith("[[SEG-")), None)
            if marker is None:
                return text.upper()
            first = text.split(marker)[0]
            return f"{first.upper()}{marker}\n "

        backend = RecordingBackend(transform=drop_second)
        blocks = make_blocks(["First block.", "Second block."])

        await make_translator(backend).translate_blocks(blocks)

        assert len(backend.calls) == 3

    @pytest.mark.asyncio
    async def test_delimiter_newlines_may_be_eaten(self):
        def collapse(text):
            return " ".join(part.strip().upper() for part in text.split("\n"))

        backend = RecordingBackend(transform=collapse)
        blocks = make_blocks(["First block.", "Second block."])

        result = await make_translator(backend).translate_blocks(blocks)

        assert len(backend.calls) == 1
        assert result.translations == {1: "FIRST BLOCK.", 2: "SECOND BLOCK."}

    @pytest.mark.asyncio
    async def test_simulated_blocks_are_marked_degraded(self):
        backend = RecordingBackend(errors=[backend_error(BackendErrorKind.AUTH_MISSING)])
        blocks = make_blocks(["The first book.", "The second table."])

        result = await make_translator(backend).translate_blocks(blocks)

        assert result.translations[1] == simulate("The first book.")
        assert result.translations[2] == simulate("The second table.")
        assert result.degraded == {1, 2}

    @pytest.mark.asyncio
    async def test_every_block_gets_text(self):
        backend = RecordingBackend(transform=lambda text: "")
        blocks = make_blocks(["Some words here.", "More words here."])

        result = await make_translator(backend).translate_blocks(blocks)

        assert set(result.translations) == {1, 2}
        assert all(result.translations.values())

    @pytest.mark.asyncio
    async def test_offline_batch_is_simulated_per_block(self):
        backend = RecordingBackend(errors=[backend_error(BackendErrorKind.NETWORK)] * 20)
        blocks = make_blocks(["The first book.", "The second table.", "A third chapter."])

        result = await make_translator(backend).translate_blocks(blocks)

        # One batched attempt only; no per-block retries after the fallback
        assert len(backend.calls) == 1
        assert result.translations == {
            1: simulate("The first book."),
            2: simulate("The second table."),
            3: simulate("A third chapter."),
        }
        assert result.degraded == {1, 2, 3}

    @pytest.mark.asyncio
    async def test_simulator_as_primary_is_not_degraded(self):
        translator = BatchTranslator(FallbackChain([TranslationStrategy(SimulatorBackend())]),
                                     individual_delay=0, sleep=no_sleep)
        blocks = make_blocks(["The first book.", "The second table."])

        result = await translator.translate_blocks(blocks)

        assert result.translations == {1: simulate("The first book."), 2: simulate("The second table.")}
        assert not result.is_degraded
