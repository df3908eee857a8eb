"""
Unit tests for ConfigManager class.
"""
import logging
import tempfile
import unittest
from pathlib import Path

from quizsession.config_manager import ConfigManager


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        settings = self.config_manager.get_quiz_settings()

        self.assertIsNone(settings.question_count)
        self.assertTrue(settings.timer_enabled)
        self.assertEqual(settings.tick_interval, 1.0)
        self.assertEqual(settings.default_pass_score, 70)
        self.assertEqual(self.config_manager.get_quiz_directory(), "./quizzes/")
        self.assertEqual(self.config_manager.get_progress_log_path(), "./logs/progress.jsonl")

    def test_set_question_count_valid_values(self):
        for count in (None, 1, 5, 100):
            with self.subTest(count=count):
                result = self.config_manager.set_question_count(count)
                self.assertTrue(result['success'])
                self.assertEqual(self.config_manager.get_question_count(), count)

    def test_set_question_count_invalid_values(self):
        self.config_manager.set_question_count(7)

        for count in (0, -3, 101, "5", 2.5, True):
            with self.subTest(count=count):
                result = self.config_manager.set_question_count(count)
                self.assertFalse(result['success'])
                self.assertIn('error', result)
                self.assertTrue(result['user_message'].startswith("❌"))

        self.assertEqual(self.config_manager.get_question_count(), 7)

    def test_set_timer_enabled(self):
        result = self.config_manager.set_timer_enabled(False)

        self.assertTrue(result['success'])
        self.assertFalse(self.config_manager.is_timer_enabled())
        self.assertFalse(self.config_manager.set_timer_enabled("yes")['success'])
        self.assertFalse(self.config_manager.is_timer_enabled())

    def test_toggle_timer(self):
        first = self.config_manager.toggle_timer()
        second = self.config_manager.toggle_timer()

        self.assertFalse(first['new_value'])
        self.assertTrue(second['new_value'])
        self.assertTrue(self.config_manager.is_timer_enabled())

    def test_set_tick_interval(self):
        self.assertTrue(self.config_manager.set_tick_interval(0.5)['success'])
        self.assertEqual(self.config_manager.get_quiz_settings().tick_interval, 0.5)

        for interval in (0, 0.05, 11, "1", False):
            with self.subTest(interval=interval):
                self.assertFalse(self.config_manager.set_tick_interval(interval)['success'])
        self.assertEqual(self.config_manager.get_quiz_settings().tick_interval, 0.5)

    def test_set_default_pass_score(self):
        self.assertTrue(self.config_manager.set_default_pass_score(0)['success'])
        self.assertTrue(self.config_manager.set_default_pass_score(100)['success'])

        for score in (-1, 101, 55.5, None):
            with self.subTest(score=score):
                self.assertFalse(self.config_manager.set_default_pass_score(score)['success'])
        self.assertEqual(self.config_manager.get_quiz_settings().default_pass_score, 100)

    def test_set_quiz_directory_valid_values(self):
        directory = tempfile.mkdtemp()

        result = self.config_manager.set_quiz_directory(directory)

        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_quiz_directory(), str(Path(directory).resolve()))

    def test_set_quiz_directory_invalid_values(self):
        for directory in ("", "   ", 123, None, "/etc/quizzes", "/proc"):
            with self.subTest(directory=directory):
                self.assertFalse(self.config_manager.set_quiz_directory(directory)['success'])
        self.assertEqual(self.config_manager.get_quiz_directory(), "./quizzes/")

    def test_get_quiz_settings_returns_copy(self):
        settings = self.config_manager.get_quiz_settings()
        settings.question_count = 42
        settings.timer_enabled = False

        fresh = self.config_manager.get_quiz_settings()
        self.assertIsNone(fresh.question_count)
        self.assertTrue(fresh.timer_enabled)

    def test_apply_config(self):
        directory = tempfile.mkdtemp()
        config = {
            'quiz': {
                'quiz_directory': directory,
                'default_question_count': 5,
                'timer_enabled': False,
                'tick_interval': 2,
                'default_pass_score': 60
            },
            'progress': {'log_path': './var/progress.jsonl'}
        }

        errors = self.config_manager.apply_config(config)

        self.assertEqual(errors, [])
        settings = self.config_manager.get_quiz_settings()
        self.assertEqual(settings.question_count, 5)
        self.assertFalse(settings.timer_enabled)
        self.assertEqual(settings.tick_interval, 2.0)
        self.assertEqual(settings.default_pass_score, 60)
        self.assertEqual(self.config_manager.get_progress_log_path(), './var/progress.jsonl')

    def test_apply_config_skips_invalid_values(self):
        errors = self.config_manager.apply_config({
            'quiz': {'default_question_count': 0, 'default_pass_score': 250, 'timer_enabled': False}
        })

        self.assertEqual(len(errors), 2)
        self.assertIsNone(self.config_manager.get_question_count())
        self.assertEqual(self.config_manager.get_quiz_settings().default_pass_score, 70)
        self.assertFalse(self.config_manager.is_timer_enabled())

    def test_apply_empty_config_keeps_defaults(self):
        self.assertEqual(self.config_manager.apply_config({}), [])
        self.assertTrue(self.config_manager.validate_settings()['valid'])

    def test_reset_to_defaults(self):
        self.config_manager.set_question_count(3)
        self.config_manager.set_timer_enabled(False)
        self.config_manager.apply_config({'progress': {'log_path': 'elsewhere.jsonl'}})

        self.config_manager.reset_to_defaults()

        settings = self.config_manager.get_quiz_settings()
        self.assertIsNone(settings.question_count)
        self.assertTrue(settings.timer_enabled)
        self.assertEqual(self.config_manager.get_progress_log_path(), ConfigManager.DEFAULT_PROGRESS_LOG)

    def test_validate_settings_invalid_configuration(self):
        # Bypass the setters to simulate corrupted state
        self.config_manager._global_settings.question_count = 500
        self.config_manager._global_settings.tick_interval = 0
        self.config_manager._quiz_directory = ""

        result = self.config_manager.validate_settings()

        self.assertFalse(result['valid'])
        self.assertEqual(len(result['issues']), 3)

    def test_get_settings_summary(self):
        summary = self.config_manager.get_settings_summary()
        self.assertIn("Questions: all available", summary)
        self.assertIn("Time limits: enabled", summary)

        self.config_manager.set_question_count(10)
        self.config_manager.set_timer_enabled(False)
        summary = self.config_manager.get_settings_summary()
        self.assertIn("Questions: 10", summary)
        self.assertIn("Time limits: disabled", summary)
        self.assertIn("Default pass score: 70%", summary)


if __name__ == '__main__':
    unittest.main()
