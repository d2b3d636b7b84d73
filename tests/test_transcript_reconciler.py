from __future__ import annotations

import unittest

from errors import UnsupportedError
from transcript_reconciler import Hypothesis, ListenerState, RecognitionEvent, TranscriptReconciler


class FakeSpeechEngine:
    def __init__(self, fail_start: bool = False) -> None:
        self.lang = ""
        self.continuous = False
        self.interim_results = False
        self.on_start = None
        self.on_result = None
        self.on_error = None
        self.on_end = None
        self.fail_start = fail_start
        self.start_calls = 0
        self.stop_calls = 0
        self.abort_calls = 0

    def start(self) -> None:
        self.start_calls += 1
        if self.fail_start:
            raise RuntimeError("microphone busy")

    def stop(self) -> None:
        self.stop_calls += 1

    def abort(self) -> None:
        self.abort_calls += 1

    def emit(self, *hypotheses: tuple[str, bool]) -> None:
        self.on_result(RecognitionEvent.of(Hypothesis(text, final) for text, final in hypotheses))


class ReconcilerHarness:
    def __init__(self, engine: FakeSpeechEngine | None = None) -> None:
        self.engine = engine if engine is not None else FakeSpeechEngine()
        self.deltas: list[str] = []
        self.previews: list[str] = []
        self.errors: list[str] = []
        self.states: list[ListenerState] = []
        self.reconciler = TranscriptReconciler(
            self.engine,
            on_delta=self.deltas.append,
            on_preview=self.previews.append,
            on_error=self.errors.append,
            on_state_change=self.states.append,
        )


class ReconcilerDedupTests(unittest.TestCase):
    def test_resent_finals_are_emitted_once_in_index_order(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        engine = harness.engine

        engine.emit(("hello", False))
        engine.emit(("hello there", True))
        engine.emit(("hello there", True), ("how", False))
        engine.emit(("hello there", True), ("how are you", True))
        engine.emit(("hello there", True), ("how are you", True), ("fine", True))
        engine.emit(("hello there", True), ("how are you", True), ("fine", True))

        self.assertEqual(harness.deltas, ["hello there", "how are you", "fine"])
        self.assertEqual(harness.reconciler.transcript, "hello there how are you fine")

    def test_finals_confirmed_in_same_batch_are_joined(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.emit(("  one ", True), ("two", True), ("three", False))
        self.assertEqual(harness.deltas, ["one two"])
        self.assertEqual(harness.reconciler.live_preview, "three")

    def test_blank_finals_advance_without_emitting(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.emit(("   ", True))
        harness.engine.emit(("   ", True), ("next", True))
        self.assertEqual(harness.deltas, ["next"])

    def test_final_after_interim_gap_waits_for_gap(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.emit(("first", False), ("second", True))
        self.assertEqual(harness.deltas, [])
        harness.engine.emit(("first", True), ("second", True))
        self.assertEqual(harness.deltas, ["first second"])

    def test_new_session_resets_bookkeeping(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.emit(("alpha", True))
        harness.reconciler.stop()
        harness.reconciler.start("en-US")
        harness.engine.emit(("beta", True))
        self.assertEqual(harness.deltas, ["alpha", "beta"])
        self.assertEqual(harness.reconciler.transcript, "beta")


class ReconcilerPreviewTests(unittest.TestCase):
    def test_preview_joins_interims_and_falls_back_to_latest_final(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.emit(("good", True), ("mor", False), ("ning", False))
        self.assertEqual(harness.reconciler.live_preview, "mor ning")
        harness.engine.emit(("good", True), ("morning", True))
        self.assertEqual(harness.reconciler.live_preview, "morning")
        self.assertEqual(harness.previews, ["mor ning", "morning"])

    def test_trailing_finals_after_stop_are_kept_until_engine_end(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.emit(("first", True), ("hello wor", False))
        harness.reconciler.stop()

        harness.engine.emit(("first", True), ("hello world", False))
        harness.engine.emit(("first", True), ("hello world", True))
        self.assertEqual(harness.deltas, ["first", "hello world"])
        self.assertEqual(harness.reconciler.live_preview, "")
        self.assertEqual(harness.reconciler.state, ListenerState.IDLE)

        harness.engine.on_end()
        harness.engine.emit(("first", True), ("hello world", True), ("late", True))
        self.assertEqual(harness.deltas, ["first", "hello world"])
        self.assertEqual(harness.states, [ListenerState.LISTENING, ListenerState.IDLE])

    def test_batches_after_engine_end_are_ignored(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.on_end()
        harness.engine.emit(("late", True))
        self.assertEqual(harness.deltas, [])
        self.assertEqual(harness.reconciler.live_preview, "")

    def test_restart_while_draining_starts_fresh_session(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.emit(("one", True))
        harness.reconciler.stop()
        harness.reconciler.start("en-US")
        harness.engine.emit(("two", True))
        self.assertEqual(harness.deltas, ["one", "two"])
        self.assertEqual(harness.engine.start_calls, 2)
        self.assertTrue(harness.reconciler.is_listening)


class ReconcilerLifecycleTests(unittest.TestCase):
    def test_start_configures_engine_and_ignores_reentrant_start(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("pt-BR")
        harness.reconciler.start("pt-BR")
        self.assertEqual(harness.engine.start_calls, 1)
        self.assertEqual(harness.engine.lang, "pt-BR")
        self.assertTrue(harness.engine.continuous)
        self.assertTrue(harness.engine.interim_results)
        self.assertEqual(harness.reconciler.state, ListenerState.LISTENING)

    def test_start_without_engine_raises_unsupported(self) -> None:
        reconciler = TranscriptReconciler(None)
        self.assertFalse(reconciler.is_supported)
        with self.assertRaises(UnsupportedError):
            reconciler.start("en-US")

    def test_stop_is_idempotent(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.stop()
        self.assertEqual(harness.engine.stop_calls, 0)
        self.assertEqual(harness.states, [])

        harness.reconciler.start("en-US")
        harness.reconciler.stop()
        harness.reconciler.stop()
        self.assertEqual(harness.engine.stop_calls, 1)
        self.assertEqual(harness.states, [ListenerState.LISTENING, ListenerState.IDLE])
        self.assertEqual(harness.errors, [])

    def test_engine_end_returns_to_idle_once(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.on_end()
        harness.engine.on_end()
        self.assertEqual(harness.states, [ListenerState.LISTENING, ListenerState.IDLE])

    def test_failed_engine_start_is_reported_and_released(self) -> None:
        harness = ReconcilerHarness(FakeSpeechEngine(fail_start=True))
        harness.reconciler.start("en-US")
        self.assertEqual(harness.reconciler.state, ListenerState.IDLE)
        self.assertEqual(harness.engine.abort_calls, 1)
        self.assertEqual(harness.errors, ["Error: microphone busy"])

    def test_close_aborts_and_detaches(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.reconciler.close()
        self.assertEqual(harness.engine.abort_calls, 1)
        self.assertIsNone(harness.engine.on_result)


class ReconcilerErrorTests(unittest.TestCase):
    def test_no_speech_is_suppressed_and_session_continues(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.on_error("no-speech")
        self.assertEqual(harness.errors, [])
        self.assertTrue(harness.reconciler.is_listening)

    def test_permission_denied_is_fatal(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.on_error("not-allowed")
        self.assertEqual(harness.errors, ["Microphone access denied. Please allow microphone permissions."])
        self.assertEqual(harness.reconciler.state, ListenerState.IDLE)
        self.assertEqual(harness.engine.abort_calls, 1)

    def test_aborted_is_fatal(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.on_error("aborted")
        self.assertEqual(harness.errors, ["Speech recognition was aborted."])
        self.assertFalse(harness.reconciler.is_listening)

    def test_network_error_is_reported_without_ending_session(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.on_error("network")
        self.assertEqual(harness.errors, ["Network error. Please check your connection."])
        self.assertTrue(harness.reconciler.is_listening)

    def test_unknown_code_is_reported_with_code(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.on_error("audio-capture")
        self.assertEqual(harness.errors, ["Error: audio-capture"])

    def test_reconciler_is_usable_after_fatal_error(self) -> None:
        harness = ReconcilerHarness()
        harness.reconciler.start("en-US")
        harness.engine.on_error("not-allowed")
        harness.reconciler.start("en-US")
        harness.engine.emit(("again", True))
        self.assertEqual(harness.deltas, ["again"])


if __name__ == "__main__":
    unittest.main()
