"""Lifecycle of one sitting of a complete exam.

    start ──> in_progress ──pause──> paused ──resume──> in_progress
                   │  answer / tick                         │
                   └──── finish (user or time out) ─────────┴──> completed

``paused`` is an in-progress attempt persisted with its answers and remaining
time and no running clock. ``completed`` is final.
"""

import asyncio
import logging
from enum import Enum

from mocktest.config import settings
from mocktest.models.exam import Attempt, AttemptStatus, Exam, ExamContent, ExamStatus, utcnow

from .content_store import ContentStore
from .errors import AttemptNotFound, PreconditionViolation
from .question_keys import QuestionKey, decode_key, resolve_question
from .scoring import ScoringEngine

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


def normalize_answers(content: ExamContent, answers: dict[str, int | None]) -> dict[str, int]:
    """Canonicalize an answer map against the exam it belongs to.

    Unanswered entries are dropped. Keys that name no question of ``content``
    and options outside a question's choices raise ``PreconditionViolation``.
    """
    normalized = {}
    for raw_key, selected in answers.items():
        key = decode_key(raw_key)
        question = resolve_question(content, key)
        if question is None:
            raise PreconditionViolation(f"Exam has no question {raw_key}")
        if selected is None:
            continue
        if not isinstance(selected, int) or isinstance(selected, bool):
            raise PreconditionViolation(f"Invalid option {selected!r} for {raw_key}")
        if not 0 <= selected < len(question.options):
            raise PreconditionViolation(f"Option {selected} is out of range for {raw_key}")
        normalized[key.encode()] = selected
    return normalized


class AttemptSession:
    """State machine around one attempt of one exam."""

    def __init__(
        self,
        exam: Exam,
        attempt: Attempt,
        store: ContentStore,
        scorer: ScoringEngine | None = None,
    ):
        self.exam = exam
        self.attempt = attempt
        self.store = store
        self.scorer = scorer or ScoringEngine()
        self.running = attempt.status == AttemptStatus.IN_PROGRESS

    @classmethod
    async def start(
        cls,
        exam: Exam,
        store: ContentStore,
        scorer: ScoringEngine | None = None,
        time_limit: int | None = None,
    ) -> "AttemptSession":
        """Create a new attempt with empty answers and the full time budget."""
        if exam.status != ExamStatus.COMPLETE:
            raise PreconditionViolation(f"Exam {exam.id} is not ready to be taken")

        attempt = Attempt(time_left=time_limit or settings.attempt_time_limit_seconds)
        exam.attempts.append(attempt)
        await store.update_exam(exam)
        logger.info(f"Started attempt {attempt.id} on exam {exam.id}")
        return cls(exam, attempt, store, scorer)

    @classmethod
    def resume(
        cls,
        exam: Exam,
        attempt_id: str,
        store: ContentStore,
        scorer: ScoringEngine | None = None,
    ) -> "AttemptSession":
        """Re-enter a paused attempt from its persisted answers and time."""
        if exam.status != ExamStatus.COMPLETE:
            raise PreconditionViolation(f"Exam {exam.id} is not ready to be taken")
        attempt = exam.find_attempt(attempt_id)
        if attempt is None:
            raise AttemptNotFound(attempt_id)
        if attempt.status == AttemptStatus.COMPLETED:
            raise PreconditionViolation(f"Attempt {attempt_id} is already finished")
        logger.info(f"Resumed attempt {attempt_id} with {attempt.time_left}s left")
        return cls(exam, attempt, store, scorer)

    @property
    def state(self) -> AttemptState:
        if self.attempt.status == AttemptStatus.COMPLETED:
            return AttemptState.COMPLETED
        return AttemptState.IN_PROGRESS if self.running else AttemptState.PAUSED

    @property
    def time_left(self) -> int:
        return self.attempt.time_left

    def _require_not_finished(self) -> None:
        if self.attempt.status == AttemptStatus.COMPLETED:
            raise PreconditionViolation(f"Attempt {self.attempt.id} is already finished")

    def _require_running(self) -> None:
        self._require_not_finished()
        if not self.running:
            raise PreconditionViolation(f"Attempt {self.attempt.id} is paused")

    def answer(self, key: QuestionKey, option_index: int | None) -> None:
        """Select (or with None, clear) the answer for one question. Not persisted."""
        self._require_running()
        question = resolve_question(self.exam.content, key)
        if question is None:
            raise PreconditionViolation(f"Exam {self.exam.id} has no question {key.encode()}")
        if option_index is None:
            self.attempt.answers.pop(key.encode(), None)
            return
        if not 0 <= option_index < len(question.options):
            raise PreconditionViolation(f"Option {option_index} is out of range for {key.encode()}")
        self.attempt.answers[key.encode()] = option_index

    async def tick(self, seconds: int = 1) -> Attempt:
        """Count the clock down; at zero the attempt is finished as it stands."""
        self._require_running()
        self.attempt.time_left = max(0, self.attempt.time_left - seconds)
        if self.attempt.time_left == 0:
            logger.info(f"Attempt {self.attempt.id} ran out of time")
            return await self.finish()
        return self.attempt

    async def run_clock(self, interval: float = 1.0) -> None:
        """Tick once per ``interval`` seconds until paused or finished."""
        while self.running:
            await asyncio.sleep(interval)
            if not self.running:
                break
            await self.tick()

    async def pause(
        self,
        answers: dict[str, int | None] | None = None,
        time_left: int | None = None,
    ) -> Attempt:
        """Persist answers and remaining time and stop the clock."""
        self._require_running()
        if answers is not None:
            self.attempt.answers = normalize_answers(self.exam.content, answers)
        if time_left is not None:
            # the counter never goes up
            self.attempt.time_left = max(0, min(self.attempt.time_left, time_left))
        if self.attempt.time_left == 0:
            return await self.finish()

        await self.store.update_exam(self.exam)
        self.running = False
        logger.info(f"Paused attempt {self.attempt.id} with {self.attempt.time_left}s left")
        return self.attempt

    async def finish(self, answers: dict[str, int | None] | None = None) -> Attempt:
        """Score, freeze and persist the attempt."""
        self._require_not_finished()
        if answers is not None:
            self.attempt.answers = normalize_answers(self.exam.content, answers)

        self.attempt.score = self.scorer.score(self.exam, self.attempt.answers)
        self.attempt.status = AttemptStatus.COMPLETED
        self.attempt.time_left = 0
        self.attempt.finished_at = utcnow()
        self.running = False
        await self.store.update_exam(self.exam)
        logger.info(f"Finished attempt {self.attempt.id}: {self.attempt.score.total}%")
        return self.attempt
