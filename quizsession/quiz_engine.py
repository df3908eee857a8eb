"""
Quiz engine core logic for the quiz session engine.
Handles question sampling, answer grading, countdown timing and scoring.
"""
import random
import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .models import (
    AnswerKey,
    Question,
    QuestionType,
    QuizSession,
    ScoreSummary,
)

# Set up logger for timer operations
logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_created(channel_id: Any, session_id: str, duration: int) -> None:
        """Log timer creation event with structured data."""
        logger.info(
            f"Timer lifecycle: CREATED - Channel {channel_id}, Session {session_id}, Duration {duration}s",
            extra={
                'event_type': 'timer_created',
                'channel_id': channel_id,
                'session_id': session_id,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_start(session_id: str, task_id: str = None) -> None:
        """Log timer countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Session {session_id}",
            extra={
                'event_type': 'timer_countdown_start',
                'session_id': session_id,
                'task_id': task_id,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(session_id: str, remaining_time: int, total_duration: int) -> None:
        """Log timer update events (throttled to avoid spam)."""
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100
            logger.debug(
                f"Timer lifecycle: UPDATE - Session {session_id}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'session_id': session_id,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(session_id: str, completion_type: str, total_duration: int) -> None:
        """Log timer completion (natural expiry or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Session {session_id}, Type {completion_type}, Duration {total_duration}s",
            extra={
                'event_type': 'timer_completed',
                'session_id': session_id,
                'completion_type': completion_type,
                'total_duration': total_duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(session_id: str, from_state: str, to_state: str, reason: str = None) -> None:
        """Log timer state transitions."""
        logger.info(
            f"Timer lifecycle: STATE_TRANSITION - Session {session_id}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'session_id': session_id,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(session_id: str, error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Session {session_id}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'session_id': session_id,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_race_condition_detected(channel_id: Any, details: str) -> None:
        """Log race condition detection."""
        logger.warning(
            f"Timer lifecycle: RACE_CONDITION - Channel {channel_id}: {details}",
            extra={
                'event_type': 'timer_race_condition',
                'channel_id': channel_id,
                'details': details,
                'timestamp': time.time()
            }
        )


class QuizTimer:
    """
    Countdown clock for one quiz session.

    Ticks once per ``tick_interval`` seconds on the running event loop. When no
    loop is running the owner drives it by calling ``tick()`` directly.
    """

    def __init__(
        self,
        session_id: str,
        expiry_callback: Callable[[], Any],
        update_callback: Optional[Callable[[int], Any]] = None,
        tick_interval: float = 1.0
    ):
        """
        Initialize the timer.

        Args:
            session_id: Identity of the session that owns this timer
            expiry_callback: Called exactly once when the countdown reaches zero
            update_callback: Called after every tick with the remaining seconds
            tick_interval: Seconds of wall time per tick
        """
        self._session_id = session_id
        self._expiry_callback = expiry_callback
        self._update_callback = update_callback
        self._tick_interval = tick_interval
        self._task: Optional[asyncio.Task] = None
        self._remaining_time = 0
        self._total_duration = 0
        self._is_running = False
        self._is_cancelled = False
        self._has_expired = False

    def start(self, duration: int) -> None:
        """
        Start counting down from ``duration`` seconds.

        Raises:
            ValueError: If duration is not positive
            RuntimeError: If the timer was already started
        """
        if duration < 1:
            raise ValueError(f"Timer duration must be positive, got {duration}")
        if self._is_running or self._has_expired or self._is_cancelled:
            raise RuntimeError(f"Timer for session {self._session_id} was already started")

        self._remaining_time = duration
        self._total_duration = duration
        self._is_running = True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            logger.debug(f"No running event loop, ticks for session {self._session_id} are driven externally")
            return

        self._task = loop.create_task(self._run())
        TimerLifecycleLogger.log_timer_start(self._session_id, str(id(self._task)))

    async def _run(self) -> None:
        try:
            while self._is_running:
                await asyncio.sleep(self._tick_interval)
                if not self._is_running:
                    break
                self.tick()
        except asyncio.CancelledError:
            TimerLifecycleLogger.log_timer_completion(
                self._session_id,
                "asyncio_cancelled",
                self._total_duration
            )
            raise

    def tick(self) -> int:
        """
        Consume one second.

        Returns:
            Remaining seconds. Ticks after expiry or cancellation change nothing.
        """
        if not self._is_running:
            return self._remaining_time

        self._remaining_time -= 1
        TimerLifecycleLogger.log_timer_update(self._session_id, self._remaining_time, self._total_duration)

        if self._update_callback is not None:
            try:
                self._update_callback(self._remaining_time)
            except Exception as e:
                TimerLifecycleLogger.log_timer_error(self._session_id, "update_callback_error", str(e), "tick")

        if self._remaining_time <= 0 and self._is_running:
            self._remaining_time = 0
            self._is_running = False
            self._has_expired = True
            TimerLifecycleLogger.log_timer_completion(self._session_id, "natural_expiry", self._total_duration)
            try:
                self._expiry_callback()
            except Exception as e:
                TimerLifecycleLogger.log_timer_error(self._session_id, "expiry_callback_error", str(e), "tick")

        return self._remaining_time

    def cancel(self) -> None:
        """Stop the countdown. Safe to call any number of times."""
        if self._is_running:
            self._is_running = False
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_state_transition(
                self._session_id,
                "running",
                "cancelled",
                "cancel requested"
            )

        if self._task and not self._task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if self._task is not current:
                logger.debug(f"Cancelling timer task for session {self._session_id}")
                self._task.cancel()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def is_running(self) -> bool:
        """Check if timer is still counting down."""
        return self._is_running

    @property
    def is_cancelled(self) -> bool:
        """Check if timer was cancelled before expiry."""
        return self._is_cancelled

    @property
    def has_expired(self) -> bool:
        """Check if timer reached zero."""
        return self._has_expired

    @property
    def remaining_time(self) -> int:
        """Get remaining time in seconds."""
        return self._remaining_time


class QuizEngine:
    """Core quiz engine that handles question sampling, grading, timing and scoring."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize the quiz engine.

        Args:
            rng: Randomness source for sampling. A fresh unseeded one is used if omitted.
        """
        self._rng = rng or random.Random()
        self._timers: Dict[Any, QuizTimer] = {}  # Channel ID -> Timer mapping

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def sample_question_ids(self, pool_ids: Iterable[str], count: int) -> List[str]:
        """
        Pick a uniformly random subset of question ids without replacement.

        Every id gets a random key; ids are sorted by key and the first
        ``count`` are returned, so the result order is itself random.

        Args:
            pool_ids: Question ids of the quiz bank
            count: Number of ids wanted, clamped to the pool size

        Returns:
            Ordered list of distinct ids

        Raises:
            ValueError: If count is less than 1
        """
        if count < 1:
            raise ValueError(f"Question count must be at least 1, got {count}")

        # Canonical order first so a seeded rng gives the same answer for equal pools
        pool = sorted(set(pool_ids), key=str)
        keyed = [(self._rng.random(), position, question_id) for position, question_id in enumerate(pool)]
        keyed.sort(key=lambda item: (item[0], item[1]))

        return [question_id for _, _, question_id in keyed[:count]]

    @staticmethod
    def question_count_options(total: int) -> List[int]:
        """
        Question counts offered to the player before a quiz starts.

        Returns:
            Multiples of five up to ``total`` plus ``total`` itself
        """
        if total <= 0:
            return []
        if total < 5:
            return [total]

        options = list(range(5, total + 1, 5))
        if total % 5 != 0:
            options.append(total)
        return options

    # ------------------------------------------------------------------
    # Grading
    # ------------------------------------------------------------------

    def grade_answer(self, question: Question, submitted: Any) -> Tuple[bool, int]:
        """
        Decide whether a submitted answer is correct.

        Args:
            question: Question being answered
            submitted: Option id for choice questions, free text for short answers

        Returns:
            Tuple of (is_correct, points_earned). Malformed input is simply incorrect.
        """
        question_id = getattr(question, 'id', None)
        try:
            if question.question_type == QuestionType.MULTIPLE_CHOICE:
                is_correct = self._grade_multiple_choice(question, submitted)
            elif question.question_type == QuestionType.TRUE_FALSE:
                is_correct = self._grade_true_false(question, submitted)
            elif question.question_type == QuestionType.SHORT_ANSWER:
                is_correct = self._grade_short_answer(question, submitted)
            else:
                logger.warning(f"Unknown question type for question {question_id}: {question.question_type}")
                is_correct = False
        except Exception as e:
            logger.error(f"Failed to grade answer for question {question_id}: {e}")
            is_correct = False

        points_earned = getattr(question, 'points', 0) if is_correct else 0
        logger.debug(
            f"Graded question {question_id}: correct={is_correct}, points={points_earned}",
            extra={
                'event_type': 'answer_graded',
                'question_id': question_id,
                'is_correct': is_correct,
                'points_earned': points_earned,
                'timestamp': time.time()
            }
        )
        return is_correct, points_earned

    @staticmethod
    def _option_key(submitted: Any) -> Optional[str]:
        if isinstance(submitted, bool) or not isinstance(submitted, (str, int)):
            return None
        return str(submitted)

    def _grade_multiple_choice(self, question: Question, submitted: Any) -> bool:
        option_id = self._option_key(submitted)
        if option_id is None:
            return False
        for option in question.options:
            if option.id == option_id:
                return bool(option.is_correct)
        return False

    def _grade_true_false(self, question: Question, submitted: Any) -> bool:
        option_id = self._option_key(submitted)
        correct_option = next((option for option in question.options if option.is_correct), None)
        if option_id is None or correct_option is None:
            return False
        return option_id == correct_option.id

    def _grade_short_answer(self, question: Question, submitted: Any) -> bool:
        if not isinstance(submitted, str):
            return False
        return any(self._matches_answer_key(submitted, key) for key in question.answer_keys)

    @staticmethod
    def _matches_answer_key(submitted: str, key: AnswerKey) -> bool:
        accepted = key.text
        if not key.case_sensitive:
            submitted = submitted.lower()
            accepted = accepted.lower()
        if key.exact_match:
            return submitted == accepted
        return accepted in submitted

    @staticmethod
    def correct_answer_text(question: Question) -> Optional[str]:
        """
        Text shown when revealing the correct answer.

        Returns:
            The correct option's text, the first accepted short answer, or None
        """
        if question.question_type == QuestionType.SHORT_ANSWER:
            return question.answer_keys[0].text if question.answer_keys else None
        correct_option = next((option for option in question.options if option.is_correct), None)
        return correct_option.text if correct_option else None

    # ------------------------------------------------------------------
    # Timing
    # ------------------------------------------------------------------

    @staticmethod
    def compute_time_budget(time_limit: Optional[int], bank_size: int, selected_count: int) -> Optional[int]:
        """
        Time budget for a session that plays part of the bank.

        The configured limit covers the whole bank, so the budget is the
        per-question share of it times the number of selected questions.

        Returns:
            Seconds for the session, or None if the quiz is untimed
        """
        if not time_limit or time_limit <= 0 or bank_size <= 0 or selected_count <= 0:
            return None
        budget = (time_limit // bank_size) * selected_count
        return max(1, budget)

    def start_timer(
        self,
        channel_id: Any,
        session_id: str,
        duration: int,
        expiry_callback: Callable[[], Any],
        update_callback: Optional[Callable[[int], Any]] = None,
        tick_interval: float = 1.0
    ) -> QuizTimer:
        """
        Start the countdown for a channel's session, replacing any previous timer.

        Args:
            channel_id: Channel the session runs in
            session_id: Identity of the session that owns the timer
            duration: Countdown length in seconds
            expiry_callback: Called once when the countdown reaches zero
            update_callback: Called with remaining seconds after every tick
            tick_interval: Seconds of wall time per tick

        Returns:
            The running timer
        """
        existing = self._timers.get(channel_id)
        if existing is not None and existing.is_running:
            TimerLifecycleLogger.log_race_condition_detected(
                channel_id,
                f"Live timer for session {existing.session_id} found while starting session {session_id}"
            )
        self.cancel_timer(channel_id)

        timer = QuizTimer(session_id, expiry_callback, update_callback, tick_interval)
        self._timers[channel_id] = timer
        timer.start(duration)
        TimerLifecycleLogger.log_timer_created(channel_id, session_id, duration)
        return timer

    def tick_timer(self, channel_id: Any) -> Optional[int]:
        """
        Drive a channel's timer by one second.

        Returns:
            Remaining seconds, or None if the channel has no timer
        """
        timer = self._timers.get(channel_id)
        if timer is None:
            return None
        return timer.tick()

    def cancel_timer(self, channel_id: Any) -> bool:
        """
        Cancel and forget the timer for a channel.

        Returns:
            True if a timer was removed, False if there was none
        """
        timer = self._timers.pop(channel_id, None)
        if timer is None:
            logger.debug(
                f"No timer found for channel {channel_id}",
                extra={
                    'event_type': 'timer_cancel_no_timer',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )
            return False

        timer.cancel()
        return True

    def get_timer_status(self, channel_id: Any) -> Optional[dict]:
        """
        Get the status of a timer for a specific channel.

        Returns:
            Dictionary with timer status or None if no timer
        """
        timer = self._timers.get(channel_id)
        if timer is None:
            return None
        return {
            'session_id': timer.session_id,
            'remaining_time': timer.remaining_time,
            'is_running': timer.is_running,
            'is_cancelled': timer.is_cancelled,
            'has_expired': timer.has_expired
        }

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    @staticmethod
    def summarize(session: QuizSession, now: Optional[datetime] = None) -> ScoreSummary:
        """
        Summarize a session's score. Works mid-session as well as at the end.

        Args:
            session: Session to summarize
            now: Reference time for untimed sessions still in progress

        Returns:
            ScoreSummary with totals, rounded percentage and pass/fail
        """
        total_points = sum(question.points for question in session.questions)
        records = [
            record for index, record in session.answers.items()
            if 0 <= index < len(session.questions)
        ]
        earned_points = sum(record.points_earned for record in records)
        earned_points = max(0, min(earned_points, total_points))

        if total_points > 0:
            # Half-up rounding of 100 * earned / total in integer arithmetic
            percentage = (200 * earned_points + total_points) // (2 * total_points)
        else:
            percentage = 0

        correct_count = sum(1 for record in records if record.is_correct)

        if session.time_budget is not None and session.remaining_time is not None:
            time_spent = session.time_budget - session.remaining_time
        elif session.start_time is not None:
            end_time = session.completed_at or now or datetime.now()
            time_spent = max(0, int((end_time - session.start_time).total_seconds()))
        else:
            time_spent = None

        return ScoreSummary(
            earned_points=earned_points,
            total_points=total_points,
            percentage=percentage,
            passed=percentage >= session.quiz.pass_score,
            correct_count=correct_count,
            wrong_count=len(session.questions) - correct_count,
            answered_count=len(records),
            total_questions=len(session.questions),
            time_spent=time_spent
        )


def format_duration(seconds: Optional[int]) -> str:
    """Format seconds as m:ss, empty for missing or zero durations."""
    if not seconds:
        return ""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"
