"""
Unit tests for the entry point's config and token handling.
"""
import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from main import (
    StartupError,
    config_path_from_env,
    describe_startup,
    get_bot_token,
    load_config,
)


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "config.json"

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_loads_json_object(self):
        self.config_path.write_text(json.dumps({"bot": {"token": "abc"}}), encoding='utf-8')

        self.assertEqual(load_config(self.config_path), {"bot": {"token": "abc"}})

    def test_missing_file(self):
        with self.assertRaises(StartupError) as context:
            load_config(self.config_path)
        self.assertIn("not found", str(context.exception))

    def test_invalid_json(self):
        self.config_path.write_text("{ nope", encoding='utf-8')

        with self.assertRaises(StartupError) as context:
            load_config(self.config_path)
        self.assertIn("not valid JSON", str(context.exception))

    def test_non_object_root(self):
        self.config_path.write_text("[1, 2]", encoding='utf-8')

        with self.assertRaises(StartupError):
            load_config(self.config_path)

    def test_bundled_config_loads(self):
        config = load_config(Path(__file__).parent.parent / "config.json")

        self.assertEqual(config['quiz']['quiz_directory'], "./quizzes/")


class TestBotToken(unittest.TestCase):

    @patch.dict(os.environ, {"DISCORD_BOT_TOKEN": "from-env"})
    def test_environment_overrides_config(self):
        self.assertEqual(get_bot_token({"bot": {"token": "from-file"}}), "from-env")

    @patch.dict(os.environ, {}, clear=True)
    def test_config_token(self):
        self.assertEqual(get_bot_token({"bot": {"token": "from-file"}}), "from-file")

    @patch.dict(os.environ, {}, clear=True)
    def test_placeholder_and_missing_tokens_are_rejected(self):
        for config in ({"bot": {"token": "YOUR_DISCORD_BOT_TOKEN_HERE"}}, {"bot": {}}, {}):
            with self.subTest(config=config):
                with self.assertRaises(StartupError):
                    get_bot_token(config)


class TestStartupHelpers(unittest.TestCase):

    @patch.dict(os.environ, {"QUIZ_BOT_CONFIG": "/etc/quiz/bot.json"})
    def test_config_path_from_env(self):
        self.assertEqual(config_path_from_env(), Path("/etc/quiz/bot.json"))

    @patch.dict(os.environ, {}, clear=True)
    def test_default_config_path(self):
        self.assertEqual(config_path_from_env(), Path("config.json"))

    def test_describe_startup(self):
        text = describe_startup({"quiz": {"quiz_directory": "./q/", "default_question_count": 5, "timer_enabled": False}})

        self.assertEqual(text, "quizzes from ./q/, 5 questions per session, timer off")
        self.assertIn("all questions", describe_startup({}))


if __name__ == '__main__':
    unittest.main()
