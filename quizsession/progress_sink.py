"""
Advisory progress persistence for quiz attempts.

Writes are best effort: the session's in-memory state is authoritative and a
failed write is logged and dropped, never retried.
"""
import abc
import asyncio
import json
import logging
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Set


class ProgressSink(abc.ABC):
    """Destination for attempt, answer and score records."""

    @abc.abstractmethod
    async def record_attempt_start(self, quiz_id: str, session_id: str) -> Optional[str]:
        """Create an attempt and return its id."""

    @abc.abstractmethod
    async def record_answer(
        self,
        attempt_id: str,
        question_id: str,
        answer: Any,
        is_correct: bool,
        points: int
    ) -> None:
        """Log one graded answer."""

    @abc.abstractmethod
    async def record_attempt_finish(
        self,
        attempt_id: str,
        earned_points: int,
        total_points: int,
        percentage: int,
        time_spent: Optional[int]
    ) -> None:
        """Store the final score of an attempt."""

    @abc.abstractmethod
    async def increment_attempt_counter(self, quiz_id: str) -> None:
        """Bump the number of finished attempts for a quiz."""


class NullProgressSink(ProgressSink):
    """Sink that discards everything."""

    async def record_attempt_start(self, quiz_id: str, session_id: str) -> Optional[str]:
        return None

    async def record_answer(self, attempt_id, question_id, answer, is_correct, points) -> None:
        return None

    async def record_attempt_finish(self, attempt_id, earned_points, total_points, percentage, time_spent) -> None:
        return None

    async def increment_attempt_counter(self, quiz_id: str) -> None:
        return None


class JsonlProgressSink(ProgressSink):
    """Appends one JSON object per event to a log file."""

    def __init__(self, log_path: str = "./logs/progress.jsonl"):
        self.log_path = Path(log_path)
        self.logger = logging.getLogger(__name__)
        self.attempt_counts: Dict[str, int] = {}

    def _append(self, record: Dict[str, Any]) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")

    async def _write(self, event: str, **fields: Any) -> None:
        record = {'event': event, 'recorded_at': datetime.now().isoformat()}
        record.update(fields)
        await asyncio.to_thread(self._append, record)

    async def record_attempt_start(self, quiz_id: str, session_id: str) -> Optional[str]:
        attempt_id = uuid.uuid4().hex
        await self._write(
            'attempt_started',
            attempt_id=attempt_id,
            quiz_id=quiz_id,
            session_id=session_id
        )
        return attempt_id

    async def record_answer(self, attempt_id, question_id, answer, is_correct, points) -> None:
        await self._write(
            'answer_recorded',
            attempt_id=attempt_id,
            question_id=question_id,
            answer=answer,
            is_correct=is_correct,
            points_earned=points
        )

    async def record_attempt_finish(self, attempt_id, earned_points, total_points, percentage, time_spent) -> None:
        await self._write(
            'attempt_finished',
            attempt_id=attempt_id,
            score=earned_points,
            total_points=total_points,
            percentage=percentage,
            time_spent=time_spent
        )

    async def increment_attempt_counter(self, quiz_id: str) -> None:
        self.attempt_counts[quiz_id] = self.attempt_counts.get(quiz_id, 0) + 1
        await self._write(
            'attempt_counted',
            quiz_id=quiz_id,
            attempt_count=self.attempt_counts[quiz_id]
        )


class ProgressDispatcher:
    """
    Fire-and-forget front for a ProgressSink.

    Each write becomes an asyncio task that nobody awaits. Failures are logged
    at WARNING and dropped. Without a running event loop writes are dropped.
    """

    def __init__(self, sink: Optional[ProgressSink] = None):
        self.sink = sink or NullProgressSink()
        self.logger = logging.getLogger(__name__)
        self._pending: Set[asyncio.Task] = set()

    def fire(
        self,
        operation: str,
        *args: Any,
        on_result: Optional[Callable[[Any], None]] = None
    ) -> Optional[asyncio.Task]:
        """
        Issue a sink call without waiting for it.

        Args:
            operation: Name of the ProgressSink method to call
            *args: Positional arguments for that method
            on_result: Called with the method's return value if it succeeds

        Returns:
            The scheduled task, or None if the write was dropped
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug(
                f"No running event loop, dropping advisory write {operation}",
                extra={
                    'event_type': 'progress_write_dropped',
                    'operation': operation,
                    'timestamp': time.time()
                }
            )
            return None

        method: Callable[..., Awaitable[Any]] = getattr(self.sink, operation)
        task = loop.create_task(self._run(operation, method, args, on_result))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(self, operation, method, args, on_result) -> None:
        try:
            result = await method(*args)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.warning(
                f"Advisory write {operation} failed: {e}",
                extra={
                    'event_type': 'progress_write_failed',
                    'operation': operation,
                    'error': str(e),
                    'timestamp': time.time()
                }
            )
            return

        if on_result is not None:
            try:
                on_result(result)
            except Exception as e:
                self.logger.warning(f"Result handler for {operation} failed: {e}")

    async def drain(self) -> None:
        """Wait for writes issued so far. Used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)
