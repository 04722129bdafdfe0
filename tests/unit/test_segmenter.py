"""
Unit tests for sentence boundary detection and length-bounded splitting.
"""

import pytest

from epub2zh.core.chunking import split_text
from epub2zh.core.chunking.boundary_detector import (
    find_sentence_boundaries,
    find_sentence_boundary,
    find_word_boundary,
)

SENTENCE = "The data of the study is in the table. "


class TestFindSentenceBoundaries:
    """Test sentence cut positions."""

    def test_cut_keeps_trailing_space(self):
        """Cut position sits after the terminator and its whitespace."""
        text = "This is a sentence. This is another sentence."
        assert find_sentence_boundaries(text) == [20]
        assert text[:20] == "This is a sentence. "

    def test_final_terminator_without_whitespace_is_not_a_cut(self):
        assert find_sentence_boundaries("Only one sentence.") == []

    def test_abbreviation_is_not_a_sentence_end(self):
        text = "Mr. Smith went home. He slept."
        cuts = find_sentence_boundaries(text)
        assert len(cuts) == 1
        assert text[:cuts[0]] == "Mr. Smith went home. "

    def test_latin_abbreviation_with_inner_dots(self):
        text = "See e.g. the table. Done."
        cuts = find_sentence_boundaries(text)
        assert [text[:c] for c in cuts] == ["See e.g. the table. "]

    def test_initials_are_not_sentence_ends(self):
        text = "J. R. R. Tolkien wrote books. Many read them."
        cuts = find_sentence_boundaries(text)
        assert [text[:c] for c in cuts] == ["J. R. R. Tolkien wrote books. "]

    def test_cjk_terminators_need_no_whitespace(self):
        assert find_sentence_boundaries("第一句。第二句。") == [4, 8]

    def test_window_limits_results(self):
        text = "One. Two. Three. Four."
        cuts = find_sentence_boundaries(text, 0, 10)
        assert all(c <= 10 for c in cuts)
        assert find_sentence_boundary(text, 0, 10) == cuts[-1]

    def test_no_boundary_returns_minus_one(self):
        assert find_sentence_boundary("no terminator here", 0, 18) == -1


class TestFindWordBoundary:
    """Test word-boundary fallback."""

    def test_last_whitespace_in_window(self):
        assert find_word_boundary("aaaa bbbb cccc", 0, 6) == 5

    def test_no_whitespace(self):
        assert find_word_boundary("abcdefghij", 0, 4) == -1


class TestSplitText:
    """Test split_text."""

    @pytest.mark.parametrize("max_length", [0, -1])
    def test_non_positive_length_raises(self, max_length):
        with pytest.raises(ValueError):
            split_text("text", max_length)

    def test_empty_text(self):
        assert split_text("", 10) == []

    def test_short_text_is_one_piece(self):
        assert split_text("Short text.", 100) == ["Short text."]

    def test_prefers_sentence_boundaries(self):
        text = "First sentence here. Second sentence here. Third one."
        pieces = split_text(text, 45)
        assert pieces[0] == "First sentence here. Second sentence here. "
        assert "".join(pieces) == text

    def test_falls_back_to_word_boundary(self):
        assert split_text("aaaa bbbb cccc", 6) == ["aaaa ", "bbbb ", "cccc"]

    def test_forced_cut_when_no_boundary(self):
        assert split_text("abcdefghij", 4) == ["abcd", "efgh", "ij"]

    def test_ten_thousand_characters_at_three_thousand(self):
        """A 10000-char text splits into four sentence-aligned pieces."""
        text = (SENTENCE * 257)[:10000]
        pieces = split_text(text, 3000)

        assert len(pieces) == 4
        assert all(len(piece) <= 3000 for piece in pieces)
        assert "".join(pieces) == text
        for piece in pieces[:-1]:
            assert piece.endswith("table. ")

    def test_pieces_rebuild_input_with_mixed_whitespace(self):
        text = "Line one.\n\nLine two!\tLine three? Line four。第五句。" * 20
        pieces = split_text(text, 50)
        assert "".join(pieces) == text
        assert all(0 < len(piece) <= 50 for piece in pieces)
