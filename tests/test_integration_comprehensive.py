"""
Comprehensive integration tests for the quiz session engine.
Tests complete quiz session flows through the real repository and config layers.
"""
import json
import shutil
import tempfile
import unittest
from pathlib import Path

from quizsession.config_manager import ConfigManager
from quizsession.data_manager import DataManager
from quizsession.models import Question, QuestionType, SessionState
from quizsession.progress_sink import JsonlProgressSink, ProgressDispatcher
from quizsession.quiz_controller import QuizController
from quizsession.quiz_engine import QuizEngine
from tests.test_fixtures import RecordingProgressSink, TestFixtures


def question_to_json(question: Question, id_prefix: str = "") -> dict:
    data = {
        "id": id_prefix + question.id,
        "type": question.question_type.value,
        "text": question.text,
        "points": question.points,
        "order_index": question.order_index
    }
    if question.explanation:
        data["explanation"] = question.explanation
    if question.question_type == QuestionType.SHORT_ANSWER:
        data["answers"] = [
            {"text": key.text, "case_sensitive": key.case_sensitive, "exact_match": key.exact_match}
            for key in question.answer_keys
        ]
    else:
        data["options"] = [
            {"id": id_prefix + option.id, "text": option.text, "is_correct": option.is_correct, "order_index": option.order_index}
            for option in question.options
        ]
    return data


def sample_bank_json(id_prefix: str = "", **quiz_overrides) -> dict:
    """The ten question sample bank as a quiz file."""
    quiz = {
        "id": "quiz-1",
        "slug": "sample",
        "title": "Sample Quiz",
        "pass_score": 70,
        "show_correct_answer": True,
        "allow_review": True
    }
    quiz.update(quiz_overrides)
    return {
        "quiz": quiz,
        "questions": [question_to_json(question, id_prefix) for question in TestFixtures.create_sample_questions()]
    }


class IntegrationTestCase(unittest.TestCase):

    channel_id = 12345

    def setUp(self):
        """Set up integration test environment."""
        self.temp_dir = tempfile.mkdtemp()
        TestFixtures.write_quiz_file(self.temp_dir, "sample.json", sample_bank_json())
        TestFixtures.write_quiz_file(
            self.temp_dir,
            "timed.json",
            sample_bank_json("timed-", id="timed-1", slug="timed", title="Timed", time_limit=60)
        )
        self.data_manager = DataManager(self.temp_dir)
        self.data_manager.load_quiz_files()
        self.config_manager = ConfigManager()
        self.quiz_controller = QuizController(
            self.data_manager,
            self.config_manager,
            quiz_engine=QuizEngine(rng=TestFixtures.create_seeded_rng())
        )

    def tearDown(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def play(self, channel_id=None, wrong_ids=()):
        """Answer every question, wrongly for the given question ids."""
        channel_id = channel_id or self.channel_id
        while self.quiz_controller.get_session_state(channel_id) == SessionState.ACTIVE:
            question = self.quiz_controller.get_current_question(channel_id)
            if question.id in wrong_ids:
                answer = TestFixtures.wrong_answer_for(question)
            else:
                answer = TestFixtures.correct_answer_for(question)
            self.quiz_controller.submit_answer(channel_id, answer)
            self.quiz_controller.advance_question(channel_id)


class TestCompleteQuizFlow(IntegrationTestCase):
    """Test complete quiz flow from start to finish."""

    def test_bank_loads_from_disk(self):
        self.assertEqual(self.data_manager.get_question_count("quiz-1"), 10)
        self.assertFalse(self.data_manager.has_load_errors())

    def test_five_of_ten_all_correct(self):
        self.quiz_controller.open_quiz(self.channel_id, slug="sample")
        session = self.quiz_controller.start_quiz(self.channel_id, 5)

        self.assertEqual(len(session.questions), 5)
        self.assertEqual(len({question.id for question in session.questions}), 5)
        self.play()

        summary = self.quiz_controller.get_summary(self.channel_id)
        self.assertEqual(session.state, SessionState.COMPLETED)
        self.assertEqual(summary.percentage, 100)
        self.assertTrue(summary.passed)
        self.assertEqual(summary.earned_points, summary.total_points)
        self.assertEqual(summary.total_points, sum(question.points for question in session.questions))

    def test_one_wrong_short_answer_costs_its_points_only(self):
        self.quiz_controller.open_quiz(self.channel_id, slug="sample")
        self.quiz_controller.start_quiz(self.channel_id, 10)

        self.play(wrong_ids={"q10"})

        summary = self.quiz_controller.get_summary(self.channel_id)
        self.assertEqual(summary.total_points, 13)
        self.assertEqual(summary.earned_points, 10)
        self.assertEqual(summary.percentage, 77)
        self.assertTrue(summary.passed)
        self.assertEqual(summary.wrong_count, 1)

    def test_failing_score(self):
        self.quiz_controller.open_quiz(self.channel_id, slug="sample")
        self.quiz_controller.start_quiz(self.channel_id, 10)

        self.play(wrong_ids={"q9", "q10"})

        summary = self.quiz_controller.get_summary(self.channel_id)
        self.assertEqual(summary.earned_points, 8)
        self.assertEqual(summary.percentage, 62)
        self.assertFalse(summary.passed)

    def test_review_after_completion(self):
        self.quiz_controller.open_quiz(self.channel_id, slug="sample")
        session = self.quiz_controller.start_quiz(self.channel_id, 4)
        self.play(wrong_ids={question.id for question in session.questions[:1]})

        review = self.quiz_controller.get_review(self.channel_id)

        self.assertEqual([entry.question.id for entry in review], [question.id for question in session.questions])
        self.assertFalse(review[0].record.is_correct)
        self.assertTrue(all(entry.record.is_correct for entry in review[1:]))

    def test_restart_and_play_again(self):
        self.quiz_controller.open_quiz(self.channel_id, slug="sample")
        first = self.quiz_controller.start_quiz(self.channel_id, 3)
        first_id = first.session_id
        self.play(wrong_ids={question.id for question in first.questions})
        self.assertEqual(self.quiz_controller.get_summary(self.channel_id).percentage, 0)

        self.quiz_controller.restart_quiz(self.channel_id)
        second = self.quiz_controller.start_quiz(self.channel_id, 3)
        self.play()

        self.assertNotEqual(second.session_id, first_id)
        self.assertEqual(self.quiz_controller.get_summary(self.channel_id).percentage, 100)

    def test_configured_question_count_is_used(self):
        self.config_manager.set_question_count(4)
        self.quiz_controller.open_quiz(self.channel_id, slug="sample")

        self.assertEqual(len(self.quiz_controller.start_quiz(self.channel_id).questions), 4)

    def test_channels_are_independent(self):
        other_channel = 54321
        self.quiz_controller.open_quiz(self.channel_id, slug="sample")
        self.quiz_controller.open_quiz(other_channel, slug="timed")
        self.quiz_controller.start_quiz(self.channel_id, 2)
        self.quiz_controller.start_quiz(other_channel, 2)

        self.play(self.channel_id)

        self.assertEqual(self.quiz_controller.get_session_state(self.channel_id), SessionState.COMPLETED)
        self.assertEqual(self.quiz_controller.get_session_state(other_channel), SessionState.ACTIVE)
        self.assertEqual(list(self.quiz_controller.get_all_active_sessions()), [other_channel])


class TestTimedQuizFlow(IntegrationTestCase):
    """Timed sessions driven tick by tick."""

    def test_budget_is_proportional_to_selection(self):
        self.quiz_controller.open_quiz(self.channel_id, slug="timed")

        session = self.quiz_controller.start_quiz(self.channel_id, 5)

        self.assertEqual(session.time_budget, 30)

    def test_expiry_completes_with_partial_score(self):
        self.quiz_controller.open_quiz(self.channel_id, slug="timed")
        session = self.quiz_controller.start_quiz(self.channel_id, 10)
        question = self.quiz_controller.get_current_question(self.channel_id)
        self.quiz_controller.submit_answer(self.channel_id, TestFixtures.correct_answer_for(question))

        for _ in range(session.time_budget):
            self.quiz_controller.tick(self.channel_id)

        summary = self.quiz_controller.get_summary(self.channel_id)
        self.assertEqual(session.state, SessionState.COMPLETED)
        self.assertEqual(summary.earned_points, question.points)
        self.assertEqual(summary.total_points, 13)
        self.assertEqual(summary.time_spent, 60)
        self.assertIsNone(self.quiz_controller.tick(self.channel_id))

    def test_finishing_early_records_time_spent(self):
        self.quiz_controller.open_quiz(self.channel_id, slug="timed")
        self.quiz_controller.start_quiz(self.channel_id, 2)
        for _ in range(7):
            self.quiz_controller.tick(self.channel_id)

        self.play()

        self.assertEqual(self.quiz_controller.get_summary(self.channel_id).time_spent, 7)

    def test_disabled_timer_runs_untimed(self):
        self.config_manager.set_timer_enabled(False)
        self.quiz_controller.open_quiz(self.channel_id, slug="timed")

        session = self.quiz_controller.start_quiz(self.channel_id, 2)

        self.assertIsNone(session.time_budget)
        self.assertIsNone(self.quiz_controller.tick(self.channel_id))


class TestBundledQuizzes(unittest.TestCase):
    """The quiz files shipped with the bot."""

    def test_world_capitals_plays_through(self):
        quiz_dir = Path(__file__).resolve().parent.parent / "quizzes"
        data_manager = DataManager(str(quiz_dir))
        data_manager.load_quiz_files()
        controller = QuizController(data_manager, ConfigManager())

        controller.open_quiz(1, slug="world-capitals")
        session = controller.start_quiz(1, 5)

        self.assertEqual(session.time_budget, 185)
        while controller.get_session_state(1) == SessionState.ACTIVE:
            question = controller.get_current_question(1)
            controller.submit_answer(1, TestFixtures.correct_answer_for(question))
            controller.advance_question(1)
        self.assertEqual(controller.get_summary(1).percentage, 100)


class TestProgressWritesEndToEnd(unittest.IsolatedAsyncioTestCase):
    """Progress records for a full play-through on a running loop."""

    channel_id = 12345

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        TestFixtures.write_quiz_file(self.temp_dir, "sample.json", sample_bank_json())
        self.data_manager = DataManager(self.temp_dir)
        self.data_manager.load_quiz_files()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    async def play_all(self, controller: QuizController, dispatcher: ProgressDispatcher, count: int):
        controller.open_quiz(self.channel_id, slug="sample")
        controller.start_quiz(self.channel_id, count)
        await dispatcher.drain()
        while controller.get_session_state(self.channel_id) == SessionState.ACTIVE:
            question = controller.get_current_question(self.channel_id)
            controller.submit_answer(self.channel_id, TestFixtures.correct_answer_for(question))
            controller.advance_question(self.channel_id)
        await dispatcher.drain()

    async def test_recorded_writes_match_session(self):
        sink = RecordingProgressSink()
        dispatcher = ProgressDispatcher(sink)
        controller = QuizController(self.data_manager, ConfigManager(), progress=dispatcher)

        await self.play_all(controller, dispatcher, 5)

        session = controller.get_session(self.channel_id)
        answered_ids = [call[2] for call in sink.calls_named('record_answer')]
        self.assertEqual(answered_ids, [question.id for question in session.questions])
        finish = sink.calls_named('record_attempt_finish')[0]
        self.assertEqual(finish[2], finish[3])
        self.assertEqual(finish[4], 100)

    async def test_jsonl_log_is_written(self):
        log_path = Path(self.temp_dir) / "logs" / "progress.jsonl"
        dispatcher = ProgressDispatcher(JsonlProgressSink(str(log_path)))
        controller = QuizController(self.data_manager, ConfigManager(), progress=dispatcher)

        await self.play_all(controller, dispatcher, 3)

        with open(log_path, 'r', encoding='utf-8') as f:
            events = [json.loads(line)['event'] for line in f]
        self.assertEqual(events[0], 'attempt_started')
        self.assertEqual(events.count('answer_recorded'), 3)
        self.assertEqual(sorted(events[-2:]), ['attempt_counted', 'attempt_finished'])


if __name__ == '__main__':
    unittest.main()
