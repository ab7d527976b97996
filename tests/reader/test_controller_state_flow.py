import logging
import unittest
from typing import Optional

from contracts.speech_engine import SpeakMode, VoiceInfo
from reader import PlaybackState, ReaderConfig, SpeechController


class _FakeEngine:
    def __init__(self):
        self.calls: list[str] = []
        self.spoken: list[tuple[str, SpeakMode, str]] = []
        self.silences: list[tuple[int, str]] = []
        self.settings: list[tuple[str, object]] = []
        self.voices: list[VoiceInfo] = []

    def start(self) -> None:
        self.calls.append("start")

    def speak(self, text: str, mode: SpeakMode, utterance_id: str) -> None:
        self.calls.append("speak")
        self.spoken.append((text, mode, utterance_id))

    def speak_silence(self, duration_ms: int, utterance_id: str) -> None:
        self.calls.append("silence")
        self.silences.append((duration_ms, utterance_id))

    def stop(self) -> None:
        self.calls.append("stop")

    def set_rate(self, rate: float) -> None:
        self.settings.append(("rate", rate))

    def set_pitch(self, pitch: float) -> None:
        self.settings.append(("pitch", pitch))

    def set_voice(self, name: Optional[str]) -> None:
        self.settings.append(("voice", name))

    def list_voices(self) -> list[VoiceInfo]:
        return list(self.voices)

    def shutdown(self) -> None:
        self.calls.append("shutdown")

    @property
    def last_id(self) -> str:
        return self.spoken[-1][2]


def _story(length: int) -> str:
    sentence = "Ngày xưa có một cô bé sống cùng bà ở bìa rừng."
    text = " ".join([sentence] * (length // len(sentence) + 2))
    return text[:length]


class SpeechControllerStateFlowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = _FakeEngine()
        self.states: list[PlaybackState] = []
        self.progress: list[int] = []

    def _controller(self, config: Optional[ReaderConfig] = None) -> SpeechController:
        return SpeechController(
            self.engine,
            on_state_change=self.states.append,
            on_progress_change=self.progress.append,
            config=config,
            logger=logging.getLogger("test.reader"),
        )

    def _ready_controller(self, config: Optional[ReaderConfig] = None) -> SpeechController:
        controller = self._controller(config)
        controller.initialize()
        controller.on_ready()
        return controller

    def test_initialize_moves_through_initializing_to_ready(self) -> None:
        controller = self._controller()

        controller.initialize()
        self.assertEqual(PlaybackState.INITIALIZING, controller.state)
        controller.on_ready()

        self.assertEqual(PlaybackState.READY, controller.state)
        self.assertEqual([PlaybackState.INITIALIZING, PlaybackState.READY], self.states)
        self.assertEqual(["start"], self.engine.calls)

    def test_title_silence_then_chunks_until_finished(self) -> None:
        controller = self._ready_controller()
        text = _story(5000)

        controller.start_reading(1, "Cô bé quàng khăn đỏ", text)

        session = controller.session
        self.assertIsNotNone(session)
        self.assertEqual(2, len(session.chunks))
        self.assertEqual(PlaybackState.PLAYING, controller.state)
        self.assertEqual(("Cô bé quàng khăn đỏ", SpeakMode.REPLACE, "1:title"), self.engine.spoken[0])

        controller.on_utterance_started("1:title")
        controller.on_utterance_finished("1:title")

        self.assertEqual([(1000, "1:silence")], self.engine.silences)
        self.assertEqual((session.chunks[0], SpeakMode.APPEND, "1:content_0"), self.engine.spoken[1])
        self.assertTrue(controller.cursor.title_consumed)

        controller.on_utterance_started("1:silence")
        controller.on_utterance_finished("1:silence")
        self.assertEqual(2, len(self.engine.spoken))

        controller.on_utterance_started("1:content_0")
        controller.on_range_start("1:content_0", 0, 40)
        controller.on_utterance_finished("1:content_0")

        self.assertEqual((session.chunks[1], SpeakMode.REPLACE, "1:content_1"), self.engine.spoken[2])

        controller.on_range_start("1:content_1", 0, 40)
        expected = int(100 * len(session.chunks[0]) / len(text) + 0.5)
        self.assertEqual(expected, controller.progress)

        controller.on_utterance_finished("1:content_1")

        self.assertEqual(PlaybackState.READY, controller.state)
        self.assertIsNone(controller.session)
        self.assertEqual(0, controller.progress)
        self.assertEqual(
            [
                PlaybackState.INITIALIZING,
                PlaybackState.READY,
                PlaybackState.PLAYING,
                PlaybackState.READY,
            ],
            self.states,
        )

    def test_short_story_plays_title_then_content_then_ready(self) -> None:
        controller = self._controller()
        controller.initialize()
        controller.on_ready()
        self.states.clear()

        controller.start_reading(1, "Title", "Sentence one. Sentence two.")
        controller.on_utterance_finished("1:title")
        controller.on_utterance_finished("1:silence")
        controller.on_range_start("1:content_0", 14, 27)
        controller.on_utterance_finished("1:content_0")

        self.assertEqual([PlaybackState.PLAYING, PlaybackState.READY], self.states)
        self.assertEqual(
            ["1:title", "1:content_0"],
            [utterance_id for _, _, utterance_id in self.engine.spoken],
        )
        self.assertEqual(0, self.progress[-1])

    def test_second_start_discards_first_session(self) -> None:
        controller = self._ready_controller()
        controller.start_reading(1, "Một", "Truyện một.")
        controller.start_reading(2, "Hai", "Truyện hai.")
        spoken_before = len(self.engine.spoken)

        controller.on_utterance_finished("1:title")
        controller.on_range_start("1:content_0", 3)
        controller.on_utterance_finished("2:title")

        self.assertEqual(2, controller.session.story_id)
        self.assertEqual(0, controller.progress)
        new_ids = [utterance_id for _, _, utterance_id in self.engine.spoken[spoken_before:]]
        self.assertEqual(["2:content_0"], new_ids)
        self.assertEqual([(1000, "2:silence")], self.engine.silences)

    def test_pause_in_ready_emits_no_state_event(self) -> None:
        controller = self._ready_controller()
        before = list(self.states)

        controller.pause()

        self.assertEqual(PlaybackState.READY, controller.state)
        self.assertEqual(before, self.states)

    def test_pause_then_spurious_finish_yields_playing_paused_only(self) -> None:
        controller = self._ready_controller()
        self.states.clear()

        controller.start_reading(1, "", "Văn bản dài.")
        controller.pause()
        controller.on_utterance_finished("1:content_0")

        self.assertEqual([PlaybackState.PLAYING, PlaybackState.PAUSED], self.states)

    def test_story_without_title_starts_with_first_chunk(self) -> None:
        controller = self._ready_controller()

        controller.start_reading(3, "", "Một câu ngắn.")

        self.assertEqual([("Một câu ngắn.", SpeakMode.REPLACE, "1:content_0")], self.engine.spoken)
        self.assertEqual([], self.engine.silences)
        self.assertTrue(controller.cursor.title_consumed)

    def test_speak_reads_text_without_title(self) -> None:
        controller = self._ready_controller()

        controller.speak("Xin chào.", story_id=9)

        self.assertEqual(9, controller.session.story_id)
        self.assertEqual("1:content_0", self.engine.last_id)

    def test_progress_is_monotonic_within_a_session(self) -> None:
        controller = self._ready_controller(ReaderConfig(max_chunk_length=60))
        text = _story(400)
        controller.start_reading(1, "", text)
        chunks = controller.session.chunks

        for index in range(len(chunks)):
            utterance_id = f"1:content_{index}"
            self.assertEqual(utterance_id, self.engine.last_id)
            controller.on_utterance_started(utterance_id)
            controller.on_range_start(utterance_id, 0)
            controller.on_range_start(utterance_id, len(chunks[index]) // 2)
            controller.on_utterance_finished(utterance_id)

        during = self.progress[:-1]
        self.assertEqual(during, sorted(during))
        self.assertTrue(all(0 <= value <= 100 for value in self.progress))
        self.assertEqual(0, self.progress[-1])
        self.assertEqual(PlaybackState.READY, controller.state)

    def test_progress_rounds_halves_up(self) -> None:
        controller = self._ready_controller()
        text = "Một hai."
        controller.start_reading(1, "", text)
        controller.on_utterance_started("1:content_0")

        controller.on_range_start("1:content_0", 1)
        self.assertEqual(13, controller.progress)

        controller.on_range_start("1:content_0", 5)
        self.assertEqual(63, controller.progress)

        controller.on_range_start("1:content_0", 8)
        self.assertEqual(100, controller.progress)

    def test_pause_suppresses_the_stop_completion(self) -> None:
        controller = self._ready_controller()
        text = _story(5000)
        controller.start_reading(1, "", text)
        controller.on_range_start("1:content_0", 2000, 2040)

        controller.pause()
        controller.on_utterance_finished("1:content_0")

        self.assertEqual(PlaybackState.PAUSED, controller.state)
        self.assertEqual(1, len(self.engine.spoken))
        self.assertEqual("stop", self.engine.calls[-1])
        self.assertEqual(2000, controller.cursor.absolute_offset)

    def test_late_events_from_paused_generation_do_not_leak_into_resume(self) -> None:
        controller = self._ready_controller()
        text = _story(5000)
        controller.start_reading(1, "", text)
        controller.on_range_start("1:content_0", 2000, 2040)
        controller.pause()

        controller.resume()
        resume_id = self.engine.last_id
        controller.on_utterance_started("1:content_0")
        controller.on_utterance_finished("1:content_0")

        self.assertEqual("2:resume_0", resume_id)
        self.assertEqual(PlaybackState.PLAYING, controller.state)
        self.assertEqual(resume_id, self.engine.last_id)

    def test_started_event_is_ignored_while_paused(self) -> None:
        controller = self._ready_controller()
        controller.start_reading(1, "", _story(300))
        controller.pause()

        controller.on_utterance_started("1:content_0")

        self.assertEqual(PlaybackState.PAUSED, controller.state)

    def test_resume_restarts_at_sentence_boundary(self) -> None:
        controller = self._ready_controller()
        text = "Câu một. Câu hai dài hơn một chút. Câu ba."
        controller.start_reading(1, "", text)
        controller.on_range_start("1:content_0", text.index("dài"))
        controller.pause()

        controller.resume()

        restart = text.index("Câu hai")
        self.assertEqual((text[restart:], SpeakMode.REPLACE, "2:resume_0"), self.engine.spoken[-1])
        self.assertEqual(restart, controller.cursor.chunk_base)
        self.assertEqual(restart, controller.cursor.absolute_offset)

        controller.on_range_start("2:resume_0", 4)

        self.assertEqual(restart + 4, controller.cursor.absolute_offset)
        self.assertEqual(31, controller.progress)

    def test_resume_at_start_replays_whole_text(self) -> None:
        controller = self._ready_controller()
        text = "Một. Hai. Ba."
        controller.start_reading(1, "", text)
        controller.pause()

        controller.resume()

        self.assertEqual((text, SpeakMode.REPLACE, "2:resume_0"), self.engine.spoken[-1])

    def test_resume_chunks_follow_resume_prefix(self) -> None:
        controller = self._ready_controller(ReaderConfig(max_chunk_length=20))
        text = "Hello world. This is a test. Another one."
        controller.start_reading(1, "", text)
        controller.on_utterance_finished("1:content_0")
        controller.on_range_start("1:content_1", 6)
        controller.pause()

        controller.resume()
        controller.on_utterance_finished("2:resume_0")

        self.assertEqual("2:resume_1", self.engine.last_id)
        self.assertEqual(" Another one.", self.engine.spoken[-1][0])

    def test_resume_during_title_replays_title(self) -> None:
        controller = self._ready_controller()
        controller.start_reading(1, "Tiêu đề", "Nội dung.")
        controller.on_utterance_started("1:title")
        controller.pause()

        controller.resume()

        self.assertEqual(("Tiêu đề", SpeakMode.REPLACE, "2:title"), self.engine.spoken[-1])
        self.assertEqual(PlaybackState.PLAYING, controller.state)

    def test_resume_at_end_of_text_finishes_session(self) -> None:
        controller = self._ready_controller()
        text = "Chỉ một câu."
        controller.start_reading(1, "", text)
        controller.on_range_start("1:content_0", len(text) + 5)
        controller.pause()

        controller.resume()

        self.assertEqual(PlaybackState.READY, controller.state)
        self.assertIsNone(controller.session)
        self.assertEqual(1, len(self.engine.spoken))

    def test_pause_and_resume_are_ignored_in_wrong_states(self) -> None:
        controller = self._ready_controller()

        controller.pause()
        controller.resume()

        self.assertEqual(PlaybackState.READY, controller.state)
        self.assertEqual(["start"], self.engine.calls)

    def test_stale_completion_is_ignored(self) -> None:
        controller = self._ready_controller()
        controller.start_reading(1, "", "Câu một.")
        controller.start_reading(2, "", "Câu hai.")

        controller.on_utterance_finished("1:content_0")

        self.assertEqual(PlaybackState.PLAYING, controller.state)
        self.assertEqual(2, controller.session.story_id)
        self.assertEqual(2, len(self.engine.spoken))

    def test_unknown_utterance_kind_is_ignored(self) -> None:
        controller = self._ready_controller()
        controller.start_reading(1, "", "Câu một.")

        controller.on_utterance_finished("1:bogus")
        controller.on_utterance_finished("no-generation")

        self.assertEqual(PlaybackState.PLAYING, controller.state)
        self.assertIsNotNone(controller.session)

    def test_start_before_ready_is_parked_and_latest_request_wins(self) -> None:
        controller = self._controller()
        controller.initialize()

        controller.start_reading(1, "Một", "Truyện một.")
        controller.start_reading(2, "Hai", "Truyện hai.")

        self.assertEqual(2, controller.pending_request.story_id)
        self.assertEqual([], self.engine.spoken)
        self.assertEqual(["start"], self.engine.calls)

        controller.on_ready()

        self.assertIsNone(controller.pending_request)
        self.assertEqual(("Hai", SpeakMode.REPLACE, "1:title"), self.engine.spoken[0])
        self.assertEqual(
            [PlaybackState.INITIALIZING, PlaybackState.READY, PlaybackState.PLAYING],
            self.states,
        )

    def test_start_from_idle_triggers_initialization(self) -> None:
        controller = self._controller()

        controller.start_reading(1, "", "Văn bản.")

        self.assertEqual(PlaybackState.INITIALIZING, controller.state)
        self.assertEqual(["start"], self.engine.calls)
        self.assertIsNotNone(controller.pending_request)

    def test_init_failure_then_retry(self) -> None:
        controller = self._controller()
        controller.initialize()
        controller.start_reading(1, "", "Văn bản.")

        controller.on_init_failed("voice missing")

        self.assertEqual(PlaybackState.ERROR, controller.state)
        self.assertIsNone(controller.pending_request)

        controller.start_reading(1, "", "Văn bản.")
        self.assertEqual(PlaybackState.INITIALIZING, controller.state)
        self.assertEqual(["start", "start"], self.engine.calls)

        controller.on_ready()

        self.assertEqual(PlaybackState.PLAYING, controller.state)
        self.assertEqual("1:content_0", self.engine.last_id)

    def test_synthesis_error_moves_to_error_and_keeps_session(self) -> None:
        controller = self._ready_controller()
        controller.start_reading(1, "", "Văn bản.")

        controller.on_error("0:content_0", "stale")
        self.assertEqual(PlaybackState.PLAYING, controller.state)

        controller.on_error("1:content_0", "device lost")

        self.assertEqual(PlaybackState.ERROR, controller.state)
        self.assertIsNotNone(controller.session)

        controller.start_reading(2, "", "Truyện khác.")
        self.assertEqual(PlaybackState.PLAYING, controller.state)
        self.assertEqual("2:content_0", self.engine.last_id)

    def test_stop_returns_to_ready_and_drops_late_events(self) -> None:
        controller = self._ready_controller()
        controller.start_reading(1, "", _story(500))
        controller.on_range_start("1:content_0", 200)

        controller.stop()
        controller.on_utterance_finished("1:content_0")

        self.assertEqual(PlaybackState.READY, controller.state)
        self.assertIsNone(controller.session)
        self.assertEqual(0, controller.progress)
        self.assertEqual("stop", self.engine.calls[-1])
        self.assertEqual(1, len(self.engine.spoken))

    def test_stop_while_initializing_clears_pending_request(self) -> None:
        controller = self._controller()
        controller.initialize()
        controller.start_reading(1, "", "Văn bản.")

        controller.stop()
        controller.on_ready()

        self.assertIsNone(controller.pending_request)
        self.assertEqual(PlaybackState.READY, controller.state)
        self.assertEqual([], self.engine.spoken)

    def test_empty_text_goes_to_ready_without_speaking(self) -> None:
        controller = self._ready_controller()

        controller.start_reading(1, "Tiêu đề", "")

        self.assertEqual(PlaybackState.READY, controller.state)
        self.assertEqual([], self.engine.spoken)
        self.assertEqual("stop", self.engine.calls[-1])
        self.assertEqual(
            [PlaybackState.INITIALIZING, PlaybackState.READY, PlaybackState.READY],
            self.states,
        )

    def test_shutdown_is_terminal(self) -> None:
        controller = self._ready_controller()
        controller.start_reading(1, "", "Văn bản.")

        controller.shutdown()
        controller.shutdown()
        controller.start_reading(2, "", "Khác.")
        controller.pause()
        controller.resume()
        controller.stop()
        controller.on_ready()
        controller.on_utterance_finished("1:content_0")

        self.assertTrue(controller.is_shut_down)
        self.assertEqual(PlaybackState.IDLE, controller.state)
        self.assertEqual(1, self.engine.calls.count("shutdown"))
        self.assertEqual(1, len(self.engine.spoken))
        self.assertEqual(PlaybackState.IDLE, self.states[-1])

    def test_configure_forwards_settings(self) -> None:
        controller = self._ready_controller()

        controller.configure(1.25, 0.9, "vi_VN-vais1000-medium")
        controller.configure(1.0, 1.0)

        self.assertEqual(
            [
                ("rate", 1.25),
                ("pitch", 0.9),
                ("voice", "vi_VN-vais1000-medium"),
                ("rate", 1.0),
                ("pitch", 1.0),
            ],
            self.engine.settings,
        )

    def test_list_voices_prefers_language(self) -> None:
        controller = self._ready_controller()
        self.engine.voices = [
            VoiceInfo(name="en_US-amy-medium", locale="en_US"),
            VoiceInfo(name="vi_VN-vais1000-medium", locale="vi_VN"),
        ]

        preferred = controller.list_voices("vi-VN")
        fallback = controller.list_voices("de")

        self.assertEqual(["vi_VN-vais1000-medium"], [voice.name for voice in preferred])
        self.assertEqual(2, len(fallback))


if __name__ == "__main__":
    unittest.main()
