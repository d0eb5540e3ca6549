"""Mock test catalog: lobby, generation and attempts behind one service."""

import asyncio
import logging

from mocktest.config import settings
from mocktest.models.exam import (
    Attempt,
    AttemptReview,
    AttemptStatus,
    Exam,
    ExamSummary,
    PartProgress,
)

from .attempts import AttemptSession
from .content_store import ContentStore
from .errors import (
    AttemptInProgress,
    AttemptNotFound,
    ExamNotFound,
    GenerationFailure,
    GenerationInProgress,
    PreconditionViolation,
)
from .generation import GenerationPipeline, ProgressCallback
from .question_keys import decode_key
from .scoring import ScoringEngine
from .section_generators import SectionGenerators

logger = logging.getLogger(__name__)


class ExamCatalog:
    """Service for managing mock tests and their attempts.

    Running attempts are held in memory keyed by attempt id. An attempt that
    is in progress in the store but has no session here is paused.
    """

    def __init__(
        self,
        store: ContentStore,
        generators: SectionGenerators,
        scorer: ScoringEngine | None = None,
        clock_interval: float = 1.0,
    ):
        self.store = store
        self.generators = generators
        self.scorer = scorer or ScoringEngine()
        self.clock_interval = clock_interval  # seconds per server clock tick
        self._generating: set[str] = set()
        self._generation_lock = asyncio.Lock()
        self._sessions: dict[str, AttemptSession] = {}
        self._clocks: dict[str, asyncio.Task] = {}

    # --- Lobby ---

    async def list_exams(self) -> list[ExamSummary]:
        exams = await self.store.list_exams()
        exams.sort(key=lambda e: e.created_at, reverse=True)
        return [ExamSummary.from_exam(e) for e in exams]

    async def get_exam(self, exam_id: str) -> Exam:
        exam = await self.store.get_exam(exam_id)
        if not exam:
            raise ExamNotFound(exam_id)
        return exam

    @property
    def is_generating(self) -> bool:
        return bool(self._generating)

    async def delete_exam(self, exam_id: str) -> None:
        """Delete an exam and all of its attempts."""
        if exam_id in self._generating:
            raise GenerationInProgress(exam_id)
        exam = await self.get_exam(exam_id)
        for attempt in exam.attempts:
            self._release(attempt.id)
        await self.store.delete_exam(exam_id)
        logger.info(f"Deleted exam {exam_id} with {len(exam.attempts)} attempts")

    # --- Generation ---

    def _require_idle(self) -> None:
        if self._generating:
            raise GenerationInProgress(next(iter(self._generating)))

    async def begin_generation(self, name: str | None = None) -> Exam:
        """Create a new exam and reserve the generation slot for it."""
        async with self._generation_lock:
            self._require_idle()
            existing = await self.store.list_exams()
            exam = Exam(name=name or f"Mock Test {len(existing) + 1}")
            await self.store.create_exam(exam)
            self._generating.add(exam.id)
        logger.info(f"Created exam {exam.id} for generation")
        return exam

    async def begin_resume(self, exam_id: str) -> Exam:
        """Reserve the generation slot for an existing exam."""
        async with self._generation_lock:
            self._require_idle()
            exam = await self.get_exam(exam_id)
            self._generating.add(exam.id)
        return exam

    async def run_generation(self, exam: Exam, on_progress: ProgressCallback | None = None) -> Exam:
        """Run the pipeline for an exam reserved by ``begin_generation``/``begin_resume``."""
        if exam.id not in self._generating:
            raise PreconditionViolation(f"Generation of exam {exam.id} was not reserved")
        pipeline = GenerationPipeline(self.store, self.generators, on_progress=on_progress)
        try:
            return await pipeline.run(exam)
        finally:
            self._generating.discard(exam.id)

    async def run_generation_in_background(self, exam: Exam) -> None:
        try:
            await self.run_generation(exam)
        except GenerationFailure as e:
            # the exam is already persisted as failed
            logger.warning(f"Background generation of exam {exam.id} stopped: {e}")

    async def generate_exam(
        self, on_progress: ProgressCallback | None = None, name: str | None = None
    ) -> Exam:
        exam = await self.begin_generation(name)
        return await self.run_generation(exam, on_progress)

    async def resume_generation(
        self, exam_id: str, on_progress: ProgressCallback | None = None
    ) -> Exam:
        exam = await self.begin_resume(exam_id)
        return await self.run_generation(exam, on_progress)

    # --- Attempts ---

    async def _find_attempt(self, attempt_id: str) -> tuple[Exam, Attempt]:
        for exam in await self.store.list_exams():
            attempt = exam.find_attempt(attempt_id)
            if attempt:
                return exam, attempt
        raise AttemptNotFound(attempt_id)

    def _register(self, session: AttemptSession) -> None:
        attempt_id = session.attempt.id
        self._sessions[attempt_id] = session
        if settings.server_clock:
            task = asyncio.create_task(session.run_clock(self.clock_interval))
            task.add_done_callback(lambda t: self._on_clock_done(attempt_id, t))
            self._clocks[attempt_id] = task

    def _on_clock_done(self, attempt_id: str, task: asyncio.Task) -> None:
        self._clocks.pop(attempt_id, None)
        if task.cancelled():
            return
        if task.exception():
            logger.error(f"Clock of attempt {attempt_id} failed: {task.exception()}")
        session = self._sessions.get(attempt_id)
        if session and session.attempt.status == AttemptStatus.COMPLETED:
            self._sessions.pop(attempt_id, None)

    def _release(self, attempt_id: str) -> None:
        self._sessions.pop(attempt_id, None)
        task = self._clocks.pop(attempt_id, None)
        if task:
            task.cancel()

    def _running_session(self, attempt_id: str) -> AttemptSession:
        session = self._sessions.get(attempt_id)
        if not session:
            raise PreconditionViolation(f"Attempt {attempt_id} is not running")
        return session

    async def start_attempt(self, exam_id: str) -> Attempt:
        exam = await self.get_exam(exam_id)
        resumable = exam.resumable_attempt
        if resumable:
            raise AttemptInProgress(exam_id, resumable.id)
        session = await AttemptSession.start(exam, self.store, self.scorer)
        self._register(session)
        return session.attempt

    async def submit_answer(self, attempt_id: str, key: str, option_index: int | None) -> Attempt:
        session = self._running_session(attempt_id)
        session.answer(decode_key(key), option_index)
        return session.attempt

    async def pause_attempt(
        self,
        attempt_id: str,
        answers: dict[str, int | None] | None = None,
        time_left: int | None = None,
    ) -> Attempt:
        session = self._running_session(attempt_id)
        try:
            return await session.pause(answers, time_left)
        finally:
            if not session.running:
                self._release(attempt_id)

    async def resume_attempt(self, attempt_id: str) -> Attempt:
        if attempt_id in self._sessions:
            raise PreconditionViolation(f"Attempt {attempt_id} is already running")
        exam, _ = await self._find_attempt(attempt_id)
        session = AttemptSession.resume(exam, attempt_id, self.store, self.scorer)
        self._register(session)
        return session.attempt

    async def finish_attempt(
        self, attempt_id: str, answers: dict[str, int | None] | None = None
    ) -> Attempt:
        """Finish a running or paused attempt and return it scored."""
        session = self._sessions.get(attempt_id)
        if not session:
            exam, _ = await self._find_attempt(attempt_id)
            session = AttemptSession.resume(exam, attempt_id, self.store, self.scorer)
        try:
            return await session.finish(answers)
        finally:
            if not session.running:
                self._release(attempt_id)

    async def get_history(self, exam_id: str) -> list[Attempt]:
        """Completed attempts of an exam, most recently finished first."""
        exam = await self.get_exam(exam_id)
        return sorted(exam.completed_attempts, key=lambda a: a.finished_at, reverse=True)

    async def get_review(self, exam_id: str, attempt_id: str) -> AttemptReview:
        exam = await self.get_exam(exam_id)
        attempt = exam.find_attempt(attempt_id)
        if not attempt:
            raise AttemptNotFound(attempt_id)
        return self.scorer.build_review(exam, attempt)

    async def get_progress(self, attempt_id: str) -> list[PartProgress]:
        """Per-part answered counts, graded once the attempt is finished."""
        session = self._sessions.get(attempt_id)
        if session:
            exam, attempt = session.exam, session.attempt
        else:
            exam, attempt = await self._find_attempt(attempt_id)
        return self.scorer.part_progress(
            exam.content,
            attempt.answers,
            graded=attempt.status == AttemptStatus.COMPLETED,
        )
