import unittest

from reader.chunking import (
    chunk_start_offset,
    find_natural_break_point,
    split_into_chunks,
)


def _story(length: int) -> str:
    sentences = []
    index = 0
    while sum(len(sentence) + 1 for sentence in sentences) < length:
        sentences.append(f"Câu chuyện số {index} kể về một ngày đẹp trời ở làng.")
        index += 1
    return " ".join(sentences)[:length]


class SplitIntoChunksTests(unittest.TestCase):
    def test_empty_text_yields_no_chunks(self) -> None:
        self.assertEqual([], split_into_chunks("", 100))

    def test_rejects_non_positive_max_length(self) -> None:
        with self.assertRaises(ValueError):
            split_into_chunks("abc", 0)

    def test_short_text_is_a_single_chunk(self) -> None:
        self.assertEqual(["Xin chào."], split_into_chunks("Xin chào.", 100))

    def test_prefers_sentence_boundaries(self) -> None:
        text = "Hello world. This is a test. Another one."

        chunks = split_into_chunks(text, 20)

        self.assertEqual(["Hello world.", " This is a test.", " Another one."], chunks)

    def test_falls_back_to_whitespace(self) -> None:
        chunks = split_into_chunks("aaaa bbbb cccc", 7)

        self.assertEqual(["aaaa", " bbbb", " cccc"], chunks)

    def test_terminator_at_window_edge_counts_as_sentence_end(self) -> None:
        chunks = split_into_chunks("aaaaaaaaa. next", 10)

        self.assertEqual(["aaaaaaaaa.", " next"], chunks)

    def test_oversized_token_is_cut_hard(self) -> None:
        chunks = split_into_chunks("x" * 25, 10)

        self.assertEqual(["x" * 10, "x" * 10, "x" * 5], chunks)

    def test_long_story_is_lossless_and_bounded(self) -> None:
        text = _story(10_000)

        chunks = split_into_chunks(text, 3500)

        self.assertEqual(10_000, len(text))
        self.assertEqual(3, len(chunks))
        self.assertEqual(text, "".join(chunks))
        self.assertTrue(all(0 < len(chunk) <= 3500 for chunk in chunks))
        for chunk in chunks[:-1]:
            self.assertTrue(chunk.endswith("."), chunk[-20:])

    def test_chunk_start_offset_sums_previous_lengths(self) -> None:
        chunks = ["abc", " de", " fghi"]

        self.assertEqual(0, chunk_start_offset(chunks, 0))
        self.assertEqual(3, chunk_start_offset(chunks, 1))
        self.assertEqual(6, chunk_start_offset(chunks, 2))


class NaturalBreakPointTests(unittest.TestCase):
    def test_moves_back_to_sentence_start(self) -> None:
        text = "First sentence. Second sentence here."

        restart = find_natural_break_point(text, 25)

        self.assertEqual(16, restart)
        self.assertTrue(text[restart:].startswith("Second"))

    def test_falls_back_to_word_start(self) -> None:
        text = "alpha beta gamma"

        self.assertEqual(11, find_natural_break_point(text, 13))

    def test_returns_position_without_boundary(self) -> None:
        self.assertEqual(5, find_natural_break_point("abcdefghij", 5))

    def test_search_is_limited_to_lookback(self) -> None:
        text = "Start. " + "x" * 200 + " tail"
        position = 7 + 150

        self.assertEqual(position, find_natural_break_point(text, position, lookback=100))

    def test_clamps_out_of_range_positions(self) -> None:
        text = "Một hai ba."

        self.assertEqual(0, find_natural_break_point(text, 0))
        self.assertEqual(0, find_natural_break_point(text, -5))
        self.assertEqual(len(text), find_natural_break_point(text, len(text) + 10))

    def test_result_never_exceeds_position(self) -> None:
        text = _story(600)
        for position in range(0, len(text), 37):
            restart = find_natural_break_point(text, position)
            self.assertLessEqual(restart, position)
            self.assertGreaterEqual(restart, max(0, position - 100))


if __name__ == "__main__":
    unittest.main()
