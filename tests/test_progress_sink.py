"""
Unit tests for advisory progress writes.
"""
import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock

from quizsession.progress_sink import JsonlProgressSink, NullProgressSink, ProgressDispatcher
from tests.test_fixtures import RecordingProgressSink


class TestJsonlProgressSink(unittest.IsolatedAsyncioTestCase):
    """Test cases for the JSON lines sink."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.log_path = Path(self.temp_dir) / "nested" / "progress.jsonl"
        self.sink = JsonlProgressSink(str(self.log_path))

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def read_events(self):
        with open(self.log_path, 'r', encoding='utf-8') as f:
            return [json.loads(line) for line in f]

    async def test_full_attempt_is_written(self):
        attempt_id = await self.sink.record_attempt_start("quiz-1", "session-1")
        await self.sink.record_answer(attempt_id, "q1", "q1-b", True, 1)
        await self.sink.record_attempt_finish(attempt_id, 1, 1, 100, 12)
        await self.sink.increment_attempt_counter("quiz-1")

        events = self.read_events()

        self.assertEqual(
            [event['event'] for event in events],
            ['attempt_started', 'answer_recorded', 'attempt_finished', 'attempt_counted']
        )
        self.assertTrue(attempt_id)
        self.assertEqual(events[0]['session_id'], "session-1")
        self.assertEqual(events[1]['attempt_id'], attempt_id)
        self.assertEqual(events[2]['percentage'], 100)
        self.assertEqual(events[3]['attempt_count'], 1)

    async def test_attempt_ids_are_unique(self):
        first = await self.sink.record_attempt_start("quiz-1", "a")
        second = await self.sink.record_attempt_start("quiz-1", "b")

        self.assertNotEqual(first, second)

    async def test_attempt_counter_is_per_quiz(self):
        await self.sink.increment_attempt_counter("quiz-1")
        await self.sink.increment_attempt_counter("quiz-1")
        await self.sink.increment_attempt_counter("quiz-2")

        self.assertEqual(self.sink.attempt_counts, {"quiz-1": 2, "quiz-2": 1})


class TestProgressDispatcherWithoutLoop(unittest.TestCase):

    def test_write_is_dropped_without_event_loop(self):
        sink = RecordingProgressSink()
        dispatcher = ProgressDispatcher(sink)

        self.assertIsNone(dispatcher.fire('increment_attempt_counter', "quiz-1"))
        self.assertEqual(sink.calls, [])
        self.assertEqual(dispatcher.pending_count, 0)

    def test_default_sink_discards(self):
        self.assertIsInstance(ProgressDispatcher().sink, NullProgressSink)


class TestProgressDispatcher(unittest.IsolatedAsyncioTestCase):
    """Test cases for fire-and-forget dispatch."""

    async def test_result_is_passed_to_handler(self):
        sink = RecordingProgressSink(attempt_id="attempt-9")
        dispatcher = ProgressDispatcher(sink)
        on_result = Mock()

        task = dispatcher.fire('record_attempt_start', "quiz-1", "session-1", on_result=on_result)
        self.assertIsNotNone(task)
        await dispatcher.drain()

        on_result.assert_called_once_with("attempt-9")
        self.assertEqual(dispatcher.pending_count, 0)

    async def test_failed_write_is_logged_and_dropped(self):
        dispatcher = ProgressDispatcher(RecordingProgressSink(fail=True))
        on_result = Mock()

        with self.assertLogs('quizsession.progress_sink', level='WARNING') as logs:
            dispatcher.fire('record_attempt_start', "quiz-1", "session-1", on_result=on_result)
            await dispatcher.drain()

        on_result.assert_not_called()
        self.assertIn("record_attempt_start failed", logs.output[0])

    async def test_failing_result_handler_is_contained(self):
        dispatcher = ProgressDispatcher(RecordingProgressSink())

        with self.assertLogs('quizsession.progress_sink', level='WARNING'):
            dispatcher.fire('record_attempt_start', "quiz-1", "s", on_result=Mock(side_effect=KeyError("x")))
            await dispatcher.drain()

        self.assertEqual(dispatcher.pending_count, 0)

    async def test_writes_keep_issue_order(self):
        sink = RecordingProgressSink()
        dispatcher = ProgressDispatcher(sink)

        dispatcher.fire('record_answer', "a", "q1", "x", True, 1)
        dispatcher.fire('record_answer', "a", "q2", "y", False, 0)
        await dispatcher.drain()

        self.assertEqual([call[2] for call in sink.calls], ["q1", "q2"])

    async def test_drain_with_nothing_pending(self):
        await ProgressDispatcher().drain()


if __name__ == '__main__':
    unittest.main()
