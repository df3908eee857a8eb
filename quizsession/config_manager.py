"""
Configuration manager for quiz session settings.
"""
import logging
from typing import Optional, Dict, Any, List
from pathlib import Path

from .models import QuizSettings


class ConfigManager:
    """Manages runtime quiz settings applied to new sessions."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = None  # Use the whole bank by default
    DEFAULT_TIMER_ENABLED = True
    DEFAULT_TICK_INTERVAL = 1.0
    DEFAULT_PASS_SCORE = 70
    DEFAULT_QUIZ_DIRECTORY = "./quizzes/"
    DEFAULT_PROGRESS_LOG = "./logs/progress.jsonl"

    # Validation limits
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100
    MIN_TICK_INTERVAL = 0.1
    MAX_TICK_INTERVAL = 10.0
    MIN_PASS_SCORE = 0
    MAX_PASS_SCORE = 100

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = QuizSettings()
        self._quiz_directory = self.DEFAULT_QUIZ_DIRECTORY
        self._progress_log_path = self.DEFAULT_PROGRESS_LOG

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get current quiz settings.

        Returns:
            Copy of the QuizSettings used for new sessions
        """
        return QuizSettings(
            question_count=self._global_settings.question_count,
            timer_enabled=self._global_settings.timer_enabled,
            tick_interval=self._global_settings.tick_interval,
            default_pass_score=self._global_settings.default_pass_score
        )

    def set_question_count(self, count: Optional[int]) -> Dict[str, Any]:
        """
        Set the default number of questions per session.

        Args:
            count: Number of questions, or None to play the whole bank

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if count is None:
            self._global_settings.question_count = None
            self.logger.info("Question count set to use the whole question bank")
            return {
                'success': True,
                'message': "Question count set to use the whole question bank",
                'user_message': "✅ Will use every question in the quiz"
            }

        if not isinstance(count, int) or isinstance(count, bool):
            error_msg = f"Question count must be an integer, got {type(count).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(count).__name__}"
            }

        if count < self.MIN_QUESTION_COUNT:
            error_msg = f"Question count must be at least {self.MIN_QUESTION_COUNT}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too few questions: Minimum is {self.MIN_QUESTION_COUNT}"
            }

        if count > self.MAX_QUESTION_COUNT:
            error_msg = f"Question count cannot exceed {self.MAX_QUESTION_COUNT}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too many questions: Maximum is {self.MAX_QUESTION_COUNT}"
            }

        self._global_settings.question_count = count
        self.logger.info(f"Question count set to {count}")
        return {
            'success': True,
            'message': f"Question count set to {count}",
            'user_message': f"✅ Question count set to {count}"
        }

    def get_question_count(self) -> Optional[int]:
        """
        Get current question count setting.

        Returns:
            Number of questions, or None if using the whole bank
        """
        return self._global_settings.question_count

    def set_timer_enabled(self, enabled: bool) -> Dict[str, Any]:
        """
        Enable or disable the countdown for timed quizzes.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(enabled, bool):
            error_msg = f"Timer enabled must be a boolean, got {type(enabled).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected true/false, got {type(enabled).__name__}"
            }

        self._global_settings.timer_enabled = enabled
        state = "enabled" if enabled else "disabled"
        self.logger.info(f"Quiz timer {state}")
        return {
            'success': True,
            'message': f"Quiz timer {state}",
            'user_message': f"✅ Time limits are now {state}"
        }

    def toggle_timer(self) -> Dict[str, Any]:
        """
        Toggle the timer setting.

        Returns:
            Dictionary with success status, new value, and user-friendly message
        """
        new_value = not self._global_settings.timer_enabled
        result = self.set_timer_enabled(new_value)
        if result['success']:
            result['new_value'] = new_value
        return result

    def is_timer_enabled(self) -> bool:
        return self._global_settings.timer_enabled

    def set_tick_interval(self, interval: float) -> Dict[str, Any]:
        """
        Set the wall-clock length of one timer tick.

        Args:
            interval: Seconds per tick

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(interval, bool) or not isinstance(interval, (int, float)):
            error_msg = f"Tick interval must be a number, got {type(interval).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(interval).__name__}"
            }

        if not self.MIN_TICK_INTERVAL <= interval <= self.MAX_TICK_INTERVAL:
            error_msg = (
                f"Tick interval must be between {self.MIN_TICK_INTERVAL} and {self.MAX_TICK_INTERVAL} seconds"
            )
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Tick interval out of range: {error_msg.lower()}"
            }

        self._global_settings.tick_interval = float(interval)
        self.logger.info(f"Tick interval set to {interval} seconds")
        return {
            'success': True,
            'message': f"Tick interval set to {interval} seconds",
            'user_message': f"✅ Timer ticks every {interval} seconds"
        }

    def set_default_pass_score(self, score: int) -> Dict[str, Any]:
        """
        Set the pass score used by quizzes that do not define one.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(score, int) or isinstance(score, bool):
            error_msg = f"Pass score must be an integer, got {type(score).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(score).__name__}"
            }

        if not self.MIN_PASS_SCORE <= score <= self.MAX_PASS_SCORE:
            error_msg = f"Pass score must be between {self.MIN_PASS_SCORE} and {self.MAX_PASS_SCORE}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Pass score must be a percentage between {self.MIN_PASS_SCORE} and {self.MAX_PASS_SCORE}"
            }

        self._global_settings.default_pass_score = score
        self.logger.info(f"Default pass score set to {score}%")
        return {
            'success': True,
            'message': f"Default pass score set to {score}%",
            'user_message': f"✅ Default pass score set to {score}%"
        }

    def set_quiz_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory path for quiz files with validation.

        Args:
            directory: Path to quiz files directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(directory, str):
            error_msg = f"Quiz directory must be a string, got {type(directory).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            }

        if not directory.strip():
            error_msg = "Quiz directory cannot be empty"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Directory path cannot be empty"
            }

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            error_msg = f"Invalid directory path format: {e}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid path format: {directory}"
            }

        system_dirs = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']
        if any(normalized_path.startswith(sys_dir) for sys_dir in system_dirs):
            error_msg = f"Cannot use system directory: {normalized_path}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Cannot use system directory: {directory}"
            }

        self._quiz_directory = normalized_path
        self.logger.info(f"Quiz directory set to {normalized_path}")
        return {
            'success': True,
            'message': f"Quiz directory set to {normalized_path}",
            'user_message': f"✅ Quiz directory set to {normalized_path}"
        }

    def get_quiz_directory(self) -> str:
        """
        Get current quiz directory setting.

        Returns:
            Path to quiz files directory
        """
        return self._quiz_directory

    def get_progress_log_path(self) -> str:
        return self._progress_log_path

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the ``quiz`` and ``progress`` sections of a loaded config.json.

        Invalid values are logged and skipped, keeping the current setting.

        Args:
            config: Parsed config.json contents

        Returns:
            Error messages for the values that were rejected
        """
        quiz_config = config.get('quiz', {})
        results = []

        if 'quiz_directory' in quiz_config:
            results.append(self.set_quiz_directory(quiz_config['quiz_directory']))
        if 'default_question_count' in quiz_config:
            results.append(self.set_question_count(quiz_config['default_question_count']))
        if 'timer_enabled' in quiz_config:
            results.append(self.set_timer_enabled(quiz_config['timer_enabled']))
        if 'tick_interval' in quiz_config:
            results.append(self.set_tick_interval(quiz_config['tick_interval']))
        if 'default_pass_score' in quiz_config:
            results.append(self.set_default_pass_score(quiz_config['default_pass_score']))

        log_path = config.get('progress', {}).get('log_path')
        if isinstance(log_path, str) and log_path.strip():
            self._progress_log_path = log_path

        errors = [result['error'] for result in results if not result['success']]
        if errors:
            self.logger.warning(f"Ignored {len(errors)} invalid configuration values")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._global_settings = QuizSettings(
            question_count=self.DEFAULT_QUESTION_COUNT,
            timer_enabled=self.DEFAULT_TIMER_ENABLED,
            tick_interval=self.DEFAULT_TICK_INTERVAL,
            default_pass_score=self.DEFAULT_PASS_SCORE
        )
        self._quiz_directory = self.DEFAULT_QUIZ_DIRECTORY
        self._progress_log_path = self.DEFAULT_PROGRESS_LOG
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }
        settings = self._global_settings

        if settings.question_count is not None:
            if (not isinstance(settings.question_count, int) or
                settings.question_count < self.MIN_QUESTION_COUNT or
                settings.question_count > self.MAX_QUESTION_COUNT):
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid question count: {settings.question_count}")

        if not isinstance(settings.timer_enabled, bool):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid timer setting: {settings.timer_enabled}")

        if (not isinstance(settings.tick_interval, (int, float)) or
            not self.MIN_TICK_INTERVAL <= settings.tick_interval <= self.MAX_TICK_INTERVAL):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid tick interval: {settings.tick_interval}")

        if (not isinstance(settings.default_pass_score, int) or
            not self.MIN_PASS_SCORE <= settings.default_pass_score <= self.MAX_PASS_SCORE):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid pass score: {settings.default_pass_score}")

        if not isinstance(self._quiz_directory, str) or not self._quiz_directory.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid quiz directory: {self._quiz_directory}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        question_count_str = (
            str(self._global_settings.question_count)
            if self._global_settings.question_count is not None
            else "all available"
        )
        timer_str = "enabled" if self._global_settings.timer_enabled else "disabled"

        return (
            f"Quiz Settings:\n"
            f"• Questions: {question_count_str}\n"
            f"• Time limits: {timer_str}\n"
            f"• Default pass score: {self._global_settings.default_pass_score}%\n"
            f"• Quiz Directory: {self._quiz_directory}"
        )
