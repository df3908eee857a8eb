"""
Core data models for the quiz session engine.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum


class QuestionType(Enum):
    """Supported question formats."""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class SessionState(Enum):
    """Lifecycle states of a single play-through."""
    SETUP = "setup"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class QuizCategory:
    """Catalogue category a quiz belongs to."""
    id: str
    name: str
    color: Optional[str] = None
    icon: Optional[str] = None


@dataclass(frozen=True)
class QuizDefinition:
    """Quiz metadata, immutable for the lifetime of a session."""
    id: str
    slug: str
    title: str
    total_question_count: int
    time_limit: Optional[int] = None
    pass_score: int = 70
    show_correct_answer: bool = False
    allow_review: bool = False
    description: Optional[str] = None
    category: Optional[QuizCategory] = None
    difficulty: Optional[str] = None
    is_published: bool = True
    attempt_count: int = 0


@dataclass(frozen=True)
class Option:
    """A selectable answer for multiple choice and true/false questions."""
    id: str
    text: str
    is_correct: bool = False
    order_index: int = 0


@dataclass(frozen=True)
class AnswerKey:
    """An accepted short answer together with its matching policy."""
    text: str
    case_sensitive: bool = False
    exact_match: bool = True


@dataclass
class Question:
    """Represents a single quiz question."""
    id: str
    question_type: QuestionType
    text: str
    points: int = 1
    options: List[Option] = field(default_factory=list)
    answer_keys: List[AnswerKey] = field(default_factory=list)
    explanation: Optional[str] = None
    image: Optional[str] = None
    order_index: int = 0


@dataclass(frozen=True)
class AnswerRecord:
    """Result of grading one submitted answer. Written once per question index."""
    answer: Any
    is_correct: bool
    points_earned: int
    answered_at: datetime = field(default_factory=datetime.now)


@dataclass
class QuizSettings:
    """Runtime settings applied to new quiz sessions."""
    question_count: Optional[int] = None
    timer_enabled: bool = True
    tick_interval: float = 1.0
    default_pass_score: int = 70


@dataclass
class QuizSession:
    """One play-through of a quiz in a Discord channel."""
    channel_id: int
    quiz: QuizDefinition
    bank_ids: List[str]
    session_id: Optional[str] = None
    state: SessionState = SessionState.SETUP
    requested_count: Optional[int] = None
    questions: List[Question] = field(default_factory=list)
    current_index: int = 0
    answers: Dict[int, AnswerRecord] = field(default_factory=dict)
    time_budget: Optional[int] = None
    remaining_time: Optional[int] = None
    start_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    attempt_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    @property
    def is_timed(self) -> bool:
        return self.time_budget is not None


@dataclass(frozen=True)
class ScoreSummary:
    """Aggregated score for a session, final or in progress."""
    earned_points: int
    total_points: int
    percentage: int
    passed: bool
    correct_count: int
    wrong_count: int
    answered_count: int
    total_questions: int
    time_spent: Optional[int] = None


@dataclass(frozen=True)
class AnswerFeedback:
    """What the caller learns right after submitting an answer."""
    accepted: bool
    question_index: int
    record: Optional[AnswerRecord] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    is_last_question: bool = False


@dataclass(frozen=True)
class ReviewEntry:
    """Per-question outcome shown on the results screen."""
    index: int
    question: Question
    record: Optional[AnswerRecord]
    points_earned: int
    points_possible: int
