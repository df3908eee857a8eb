"""
Quiz session controller for the quiz session engine.
Manages one quiz session per Discord channel and its Setup -> Active -> Completed lifecycle.
"""
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .models import (
    AnswerFeedback,
    AnswerRecord,
    Question,
    QuestionType,
    QuizSession,
    ReviewEntry,
    ScoreSummary,
    SessionState,
)
from .quiz_engine import QuizEngine, TimerLifecycleLogger
from .data_manager import DataManager
from .config_manager import ConfigManager
from .progress_sink import ProgressDispatcher


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class QuizNotFoundError(QuizControllerError):
    """Raised when a quiz is missing, unpublished or has no questions."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class InvalidSessionStateError(QuizControllerError):
    """Raised when session is in an invalid state for the requested operation."""
    pass


class QuizController:
    """
    Orchestrates quiz sessions across Discord channels.

    Each channel has at most one session. All transitions run synchronously on
    the caller's thread; progress writes are handed to the dispatcher and never
    awaited.
    """

    def __init__(
        self,
        data_manager: DataManager,
        config_manager: ConfigManager,
        progress: Optional[ProgressDispatcher] = None,
        quiz_engine: Optional[QuizEngine] = None,
        on_session_completed: Optional[Callable[[QuizSession, ScoreSummary], Any]] = None,
        on_timer_tick: Optional[Callable[[QuizSession, int], Any]] = None
    ):
        """
        Initialize the quiz controller.

        Args:
            data_manager: Question repository
            config_manager: Source of runtime quiz settings
            progress: Dispatcher for advisory progress writes
            quiz_engine: Engine for sampling, grading, timing and scoring
            on_session_completed: Called with the session and its final summary
            on_timer_tick: Called with the session and remaining seconds after each timer tick
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self.progress = progress or ProgressDispatcher()
        self.quiz_engine = quiz_engine or QuizEngine()
        self.on_session_completed = on_session_completed
        self.on_timer_tick = on_timer_tick

        # Sessions mapped by channel ID, in any state
        self._sessions: Dict[int, QuizSession] = {}

        self.logger.info("QuizController initialized")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def open_quiz(self, channel_id: int, slug: Optional[str] = None, quiz_id: Optional[str] = None) -> QuizSession:
        """
        Load a quiz into a channel and put its session in Setup.

        Args:
            channel_id: Discord channel identifier
            slug: Quiz slug, used when given
            quiz_id: Quiz id, used when no slug is given

        Returns:
            The new session

        Raises:
            QuizNotFoundError: If the quiz is missing, unpublished or has no questions
        """
        if slug is not None:
            quiz = self.data_manager.get_quiz_definition_by_slug(slug)
        elif quiz_id is not None:
            quiz = self.data_manager.get_quiz_definition_by_id(quiz_id)
        else:
            raise ValueError("Either slug or quiz_id is required")

        if quiz is None:
            raise QuizNotFoundError(f"Quiz '{slug or quiz_id}' not found")

        bank_ids = self.data_manager.get_question_ids(quiz.id)
        if not bank_ids:
            raise QuizNotFoundError(f"Quiz '{quiz.slug}' has no questions")

        if channel_id in self._sessions:
            self.logger.info(f"Replacing existing session in channel {channel_id}")
            self.quiz_engine.cancel_timer(channel_id)

        session = QuizSession(
            channel_id=channel_id,
            quiz=quiz,
            bank_ids=sorted(bank_ids)
        )
        self._sessions[channel_id] = session

        self.logger.info(
            f"Opened quiz '{quiz.slug}' in channel {channel_id} with {len(bank_ids)} questions in the bank",
            extra={
                'event_type': 'session_opened',
                'channel_id': channel_id,
                'quiz_id': quiz.id,
                'bank_size': len(bank_ids),
                'timestamp': time.time()
            }
        )
        return session

    def start_quiz(self, channel_id: int, count: Optional[int] = None) -> QuizSession:
        """
        Sample questions and start playing.

        Args:
            channel_id: Discord channel identifier
            count: Number of questions to play. Defaults to the configured
                question count, else the whole bank.

        Returns:
            The active session

        Raises:
            SessionNotFoundError: If the channel has no session
            InvalidSessionStateError: If the session is not in Setup
            ValueError: If count is less than 1
        """
        session = self._require_session(channel_id)
        if session.state != SessionState.SETUP:
            raise InvalidSessionStateError(
                f"Cannot start quiz in channel {channel_id}: session is {session.state.value}"
            )

        settings = self.config_manager.get_quiz_settings()
        if count is None:
            count = settings.question_count or len(session.bank_ids)
        if count < 1:
            raise ValueError(f"Question count must be at least 1, got {count}")

        selected_ids = self.quiz_engine.sample_question_ids(session.bank_ids, count)

        # The repository returns bank order, restore the sampled order
        questions_by_id = {question.id: question for question in self.data_manager.get_questions_by_ids(selected_ids)}
        questions = [questions_by_id[question_id] for question_id in selected_ids if question_id in questions_by_id]
        if not questions:
            raise QuizNotFoundError(f"No questions could be loaded for quiz '{session.quiz.slug}'")

        session_id = uuid.uuid4().hex
        session.session_id = session_id
        session.requested_count = count
        session.questions = questions
        session.current_index = 0
        session.answers = {}
        session.attempt_id = None
        session.start_time = datetime.now()
        session.completed_at = None
        session.time_budget = None
        session.remaining_time = None
        session.state = SessionState.ACTIVE

        if settings.timer_enabled:
            budget = self.quiz_engine.compute_time_budget(
                session.quiz.time_limit,
                len(session.bank_ids),
                len(questions)
            )
            if budget is not None:
                session.time_budget = budget
                session.remaining_time = budget
                self.quiz_engine.start_timer(
                    channel_id,
                    session_id,
                    budget,
                    lambda: self.handle_timer_expiry(channel_id, session_id),
                    lambda remaining: self._handle_timer_update(channel_id, session_id, remaining),
                    settings.tick_interval
                )

        self.progress.fire(
            'record_attempt_start',
            session.quiz.id,
            session_id,
            on_result=lambda attempt_id: self._store_attempt_id(channel_id, session_id, attempt_id)
        )

        self.logger.info(
            f"Started quiz '{session.quiz.slug}' in channel {channel_id}: "
            f"questions={len(questions)}, time_budget={session.time_budget}",
            extra={
                'event_type': 'session_started',
                'channel_id': channel_id,
                'session_id': session_id,
                'question_count': len(questions),
                'time_budget': session.time_budget,
                'timestamp': time.time()
            }
        )
        return session

    def submit_answer(self, channel_id: int, answer: Any) -> AnswerFeedback:
        """
        Grade an answer for the current question.

        Args:
            channel_id: Discord channel identifier
            answer: Option id for choice questions, text for short answers

        Returns:
            AnswerFeedback. ``accepted`` is False when the question was already
            answered or a short answer was blank.

        Raises:
            SessionNotFoundError: If the channel has no session
            InvalidSessionStateError: If the session is not Active
        """
        session = self._require_active_session(channel_id, "submit answer")
        index = session.current_index
        question = session.questions[index]
        is_last_question = index == len(session.questions) - 1

        existing = session.answers.get(index)
        if existing is not None:
            self.logger.debug(f"Question {index + 1} in channel {channel_id} already answered, ignoring")
            return AnswerFeedback(
                accepted=False,
                question_index=index,
                record=existing,
                is_last_question=is_last_question
            )

        if isinstance(answer, str):
            answer = answer.strip()
            if not answer and question.question_type == QuestionType.SHORT_ANSWER:
                return AnswerFeedback(accepted=False, question_index=index, is_last_question=is_last_question)

        is_correct, points_earned = self.quiz_engine.grade_answer(question, answer)
        record = AnswerRecord(answer=answer, is_correct=is_correct, points_earned=points_earned)
        session.answers[index] = record

        if session.attempt_id is not None:
            self.progress.fire(
                'record_answer',
                session.attempt_id,
                question.id,
                answer,
                is_correct,
                points_earned
            )

        self.logger.info(
            f"Answer recorded for question {index + 1}/{len(session.questions)} in channel {channel_id}: "
            f"correct={is_correct}",
            extra={
                'event_type': 'answer_recorded',
                'channel_id': channel_id,
                'session_id': session.session_id,
                'question_id': question.id,
                'is_correct': is_correct,
                'points_earned': points_earned,
                'timestamp': time.time()
            }
        )

        correct_answer = None
        if session.quiz.show_correct_answer and not is_correct:
            correct_answer = self.quiz_engine.correct_answer_text(question)

        return AnswerFeedback(
            accepted=True,
            question_index=index,
            record=record,
            correct_answer=correct_answer,
            explanation=question.explanation,
            is_last_question=is_last_question
        )

    def advance_question(self, channel_id: int) -> SessionState:
        """
        Move past an answered question.

        Returns:
            ACTIVE while questions remain, COMPLETED after the last one

        Raises:
            SessionNotFoundError: If the channel has no session
            InvalidSessionStateError: If the session is not Active or the
                current question has no answer yet
        """
        session = self._require_active_session(channel_id, "advance question")

        if session.current_index not in session.answers:
            raise InvalidSessionStateError(
                f"Question {session.current_index + 1} in channel {channel_id} has not been answered"
            )

        if session.current_index + 1 >= len(session.questions):
            self._complete_session(session, "all_questions_answered")
            return session.state

        session.current_index += 1
        self.logger.debug(f"Advanced to question {session.current_index + 1} for channel {channel_id}")
        return session.state

    def handle_timer_expiry(self, channel_id: int, session_id: str) -> bool:
        """
        Complete a session whose time ran out.

        Args:
            channel_id: Discord channel identifier
            session_id: Session the expiring timer was started for

        Returns:
            True if the session was completed, False if the expiry was stale
        """
        session = self._sessions.get(channel_id)
        if session is None or session.session_id != session_id or session.state != SessionState.ACTIVE:
            TimerLifecycleLogger.log_race_condition_detected(
                channel_id,
                f"Discarding expiry for session {session_id}, no matching active session"
            )
            return False

        session.remaining_time = 0
        self._complete_session(session, "time_expired")
        return True

    def tick(self, channel_id: int) -> Optional[int]:
        """
        Drive the live session's timer by one second.

        Returns:
            Remaining seconds, or None if there is no running timer
        """
        session = self._sessions.get(channel_id)
        if session is None or session.state != SessionState.ACTIVE or not session.is_timed:
            return None
        return self.quiz_engine.tick_timer(channel_id)

    def restart_quiz(self, channel_id: int) -> QuizSession:
        """
        Return a session to Setup, discarding the previous play-through.

        Raises:
            SessionNotFoundError: If the channel has no session
        """
        session = self._require_session(channel_id)
        self.quiz_engine.cancel_timer(channel_id)

        previous_state = session.state
        session.state = SessionState.SETUP
        session.session_id = None
        session.requested_count = None
        session.questions = []
        session.current_index = 0
        session.answers = {}
        session.attempt_id = None
        session.time_budget = None
        session.remaining_time = None
        session.start_time = None
        session.completed_at = None

        self.logger.info(
            f"Restarted quiz '{session.quiz.slug}' in channel {channel_id}",
            extra={
                'event_type': 'session_restarted',
                'channel_id': channel_id,
                'from_state': previous_state.value,
                'timestamp': time.time()
            }
        )
        return session

    def stop_session(self, channel_id: int) -> bool:
        """
        Stop and remove a channel's session in any state.

        Returns:
            True if session was stopped, False if no session exists
        """
        session = self._sessions.get(channel_id)

        if session is None:
            self.logger.warning(
                f"Cannot stop session for channel {channel_id}: no session exists",
                extra={
                    'event_type': 'session_stop_no_session',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )
            return False

        timer_cancelled = self.quiz_engine.cancel_timer(channel_id)
        del self._sessions[channel_id]

        self.logger.info(
            f"Stopped and cleaned up session for channel {channel_id}, timer cancelled: {timer_cancelled}",
            extra={
                'event_type': 'session_stopped',
                'channel_id': channel_id,
                'timer_cancelled': timer_cancelled,
                'timestamp': time.time()
            }
        )
        return True

    def _complete_session(self, session: QuizSession, reason: str) -> None:
        self.quiz_engine.cancel_timer(session.channel_id)
        session.state = SessionState.COMPLETED
        session.completed_at = datetime.now()

        summary = self.quiz_engine.summarize(session)

        if session.attempt_id is not None:
            self.progress.fire(
                'record_attempt_finish',
                session.attempt_id,
                summary.earned_points,
                summary.total_points,
                summary.percentage,
                summary.time_spent
            )
        self.progress.fire('increment_attempt_counter', session.quiz.id)

        self.logger.info(
            f"Quiz completed for channel {session.channel_id}: "
            f"{summary.earned_points}/{summary.total_points} ({summary.percentage}%), reason={reason}",
            extra={
                'event_type': 'session_completed',
                'channel_id': session.channel_id,
                'session_id': session.session_id,
                'reason': reason,
                'percentage': summary.percentage,
                'passed': summary.passed,
                'timestamp': time.time()
            }
        )

        if self.on_session_completed is not None:
            try:
                self.on_session_completed(session, summary)
            except Exception as e:
                self.logger.error(f"Completion listener failed for channel {session.channel_id}: {e}", exc_info=True)

    def _handle_timer_update(self, channel_id: int, session_id: str, remaining: int) -> None:
        session = self._sessions.get(channel_id)
        if session is None or session.session_id != session_id or session.state != SessionState.ACTIVE:
            TimerLifecycleLogger.log_race_condition_detected(
                channel_id,
                f"Discarding tick for session {session_id}, no matching active session"
            )
            return

        session.remaining_time = remaining
        if self.on_timer_tick is not None:
            self.on_timer_tick(session, remaining)

    def _store_attempt_id(self, channel_id: int, session_id: str, attempt_id: Optional[str]) -> None:
        session = self._sessions.get(channel_id)
        if session is None or session.session_id != session_id:
            self.logger.debug(f"Attempt id arrived for a discarded session in channel {channel_id}")
            return
        session.attempt_id = attempt_id

    def _require_session(self, channel_id: int) -> QuizSession:
        session = self._sessions.get(channel_id)
        if session is None:
            raise SessionNotFoundError(f"No quiz session in channel {channel_id}")
        return session

    def _require_active_session(self, channel_id: int, operation: str) -> QuizSession:
        session = self._require_session(channel_id)
        if session.state != SessionState.ACTIVE:
            raise InvalidSessionStateError(
                f"Cannot {operation} in channel {channel_id}: session is {session.state.value}"
            )
        return session

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_session(self, channel_id: int) -> Optional[QuizSession]:
        """
        Get the session for a channel.

        Returns:
            QuizSession in any state, None if the channel has none
        """
        return self._sessions.get(channel_id)

    def has_session(self, channel_id: int) -> bool:
        return channel_id in self._sessions

    def get_session_state(self, channel_id: int) -> Optional[SessionState]:
        session = self._sessions.get(channel_id)
        return session.state if session else None

    def get_current_question(self, channel_id: int) -> Optional[Question]:
        """
        Get the current question for an active session.

        Returns:
            Current Question if session is active, None otherwise
        """
        session = self._sessions.get(channel_id)
        if session is None or session.state != SessionState.ACTIVE:
            return None
        return session.questions[session.current_index]

    def get_summary(self, channel_id: int) -> ScoreSummary:
        """
        Score summary of a started session, final once it has completed.

        Raises:
            SessionNotFoundError: If the channel has no session
            InvalidSessionStateError: If the session has not been started
        """
        session = self._require_session(channel_id)
        if session.state == SessionState.SETUP:
            raise InvalidSessionStateError(f"Quiz in channel {channel_id} has not been started")
        return self.quiz_engine.summarize(session)

    def get_review(self, channel_id: int) -> List[ReviewEntry]:
        """
        Per-question results of a completed session.

        Raises:
            SessionNotFoundError: If the channel has no session
            InvalidSessionStateError: If the session is not completed or the
                quiz does not allow review
        """
        session = self._require_session(channel_id)
        if session.state != SessionState.COMPLETED:
            raise InvalidSessionStateError(f"Quiz in channel {channel_id} is not completed")
        if not session.quiz.allow_review:
            raise InvalidSessionStateError(f"Quiz '{session.quiz.slug}' does not allow review")

        review = []
        for index, question in enumerate(session.questions):
            record = session.answers.get(index)
            review.append(ReviewEntry(
                index=index,
                question=question,
                record=record,
                points_earned=record.points_earned if record else 0,
                points_possible=question.points
            ))
        return review

    def get_question_count_options(self, channel_id: int) -> List[int]:
        """Question counts the player can choose from before starting."""
        session = self._require_session(channel_id)
        return self.quiz_engine.question_count_options(len(session.bank_ids))

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Get progress information for a session.

        Returns:
            Dictionary with progress info, None if no session
        """
        session = self._sessions.get(channel_id)

        if session is None:
            return None

        return {
            'quiz_id': session.quiz.id,
            'quiz_slug': session.quiz.slug,
            'quiz_title': session.quiz.title,
            'state': session.state.value,
            'session_id': session.session_id,
            'current_question': session.current_index + 1,
            'total_questions': len(session.questions),
            'bank_size': len(session.bank_ids),
            'answered': len(session.answers),
            'time_budget': session.time_budget,
            'remaining_time': session.remaining_time,
            'start_time': session.start_time
        }

    def get_all_active_sessions(self) -> Dict[int, Dict[str, Any]]:
        """
        Get information about all active sessions.

        Returns:
            Dictionary mapping channel IDs to session progress info
        """
        return {
            channel_id: self.get_session_progress(channel_id)
            for channel_id, session in self._sessions.items()
            if session.state == SessionState.ACTIVE
        }

    def get_available_quizzes(self) -> List[str]:
        """
        Get list of available quiz slugs.

        Returns:
            Slugs of quizzes that can be opened
        """
        return self.data_manager.get_available_quizzes()
