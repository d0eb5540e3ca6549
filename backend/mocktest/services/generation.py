"""Resumable mock test generation.

Steps run strictly in order. Whether a step is done is read from the exam
itself: a content step is done once its slot holds data, the advice step once
``advice`` is set. The exam is persisted after every step, and item loops
persist after every item and sub-stage, so a rerun picks up at the first
missing piece.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from mocktest.config import settings
from mocktest.models.exam import (
    GENERATION_STEPS,
    Exam,
    ExamStatus,
    GenerationStep,
    PhotoDescriptionExercise,
    StepDraft,
)

from .content_store import ContentStore
from .errors import GenerationFailure
from .question_keys import part_sizes
from .section_generators import SectionGenerators

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]


class GenerationPipeline:
    """Drives the section generators over one exam."""

    def __init__(
        self,
        store: ContentStore,
        generators: SectionGenerators,
        steps: list[GenerationStep] | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self.store = store
        self.generators = generators
        self.steps = steps if steps is not None else GENERATION_STEPS
        self.on_progress = on_progress

    def is_step_complete(self, exam: Exam, step: GenerationStep) -> bool:
        if step.group is None:
            return bool(getattr(exam, step.id, None))
        return bool(exam.content.get_slot(step.group, step.id))

    def remaining_steps(self, exam: Exam) -> list[GenerationStep]:
        return [s for s in self.steps if not self.is_step_complete(exam, s)]

    async def run(self, exam: Exam) -> Exam:
        """Generate every missing step of ``exam``.

        Raises GenerationFailure after persisting the exam as failed. Store
        errors propagate as they are; the exam is left as last persisted.
        """
        remaining = self.remaining_steps(exam)
        if exam.status == ExamStatus.COMPLETE and not remaining:
            logger.info(f"Exam {exam.id} is already complete")
            return exam

        exam.status = ExamStatus.GENERATING
        exam.error_message = None
        await self.store.update_exam(exam)

        total = len(self.steps)
        content_generated = False
        try:
            for i, step in enumerate(self.steps):
                progress = i / total * 100
                if step.group is None and content_generated:
                    # counts are checked before any derived step sees the content
                    await self._check_cardinality(exam)
                    content_generated = False
                if self.is_step_complete(exam, step):
                    logger.info(f"Skipping already generated: {step.name}")
                    continue

                self._report(f"Generating {step.name}...", progress)
                if step.item_loop:
                    await self._run_photo_loop(exam, step, progress)
                else:
                    await self._run_single(exam, step)
                await self.store.update_exam(exam)
                content_generated = content_generated or step.group is not None

            if content_generated:
                await self._check_cardinality(exam)
        except GenerationFailure as e:
            exam.status = ExamStatus.FAILED
            exam.error_message = str(e)
            logger.error(f"Generation of exam {exam.id} failed: {e}")
            await self.store.update_exam(exam)
            raise

        exam.status = ExamStatus.COMPLETE
        await self.store.update_exam(exam)
        self._report("Generation complete", 100.0)
        logger.info(f"Exam {exam.id} generated")
        return exam

    async def _generate(self, step: GenerationStep, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        try:
            result = await func(*args)
        except GenerationFailure as e:
            if e.step_id is None:
                e.step_id = step.id
            raise
        except Exception as e:
            raise GenerationFailure(f"{step.name}: {e}", step_id=step.id) from e
        if not result:
            raise GenerationFailure(f"{step.name} generation returned nothing", step_id=step.id)
        return result

    async def _run_single(self, exam: Exam, step: GenerationStep) -> None:
        func = getattr(self.generators, step.generator)
        if step.group is None:
            result = await self._generate(step, func, exam.content)
            setattr(exam, step.id, result)
            return

        if isinstance(step.quantity, tuple):
            result = await self._generate(step, func, *step.quantity)
        else:
            result = await self._generate(step, func, step.quantity)
        exam.content.set_slot(step.group, step.id, list(result))
        exam.drafts.pop(step.id, None)

    async def _run_photo_loop(self, exam: Exam, step: GenerationStep, progress: float) -> None:
        """Seed -> image -> question per item; every finished sub-stage is persisted."""
        count = step.quantity
        draft = exam.drafts.setdefault(step.id, StepDraft())
        prior_seeds = await self._prior_seeds(exam)

        while len(draft.items) < count:
            n = len(draft.items) + 1
            stage = draft.in_flight

            if "image_prompt" not in stage:
                self._report(f"{step.name} ({n}/{count}) - writing image prompt", progress)
                seed = await self._generate(step, self.generators.image_prompt, prior_seeds)
                prior_seeds.append(seed)
                exam.image_prompts.append(seed)
                stage["image_prompt"] = seed
                await self.store.update_exam(exam)

            if "image_base64" not in stage:
                self._report(f"{step.name} ({n}/{count}) - drawing image", progress)
                stage["image_base64"] = await self._generate(
                    step, self.generators.image, stage["image_prompt"]
                )
                await self.store.update_exam(exam)

            self._report(f"{step.name} ({n}/{count}) - writing question", progress)
            question = await self._generate(
                step,
                getattr(self.generators, step.generator),
                stage["image_base64"],
                stage["image_prompt"],
            )
            draft.items.append(question.model_dump(mode="json"))
            draft.in_flight = {}
            await self.store.update_exam(exam)

        items = [PhotoDescriptionExercise.model_validate(item) for item in draft.items[:count]]
        exam.content.set_slot(step.group, step.id, items)
        del exam.drafts[step.id]

    async def _prior_seeds(self, exam: Exam) -> list[str]:
        seeds = []
        for other in await self.store.list_exams():
            if other.id != exam.id:
                seeds.extend(other.image_prompts)
        seeds.extend(exam.image_prompts)
        return list(dict.fromkeys(seeds))

    async def _check_cardinality(self, exam: Exam) -> None:
        """Compare generated part sizes against the format's expected counts.

        With ``enforce_canonical_totals`` the mismatching parts are cleared so a
        resume regenerates them; otherwise the mismatch is only logged.
        """
        sizes = {tag.slot: size for tag, size in part_sizes(exam.content).items()}
        mismatched = [
            s for s in self.steps
            if s.group is not None and s.expected_questions is not None
            and sizes.get(s.id, 0) != s.expected_questions
        ]
        if not mismatched:
            return

        detail = ", ".join(
            f"{s.name}: {sizes.get(s.id, 0)}/{s.expected_questions}" for s in mismatched
        )
        if not settings.enforce_canonical_totals:
            logger.warning(f"Exam {exam.id} question counts differ from the format ({detail})")
            return

        for s in mismatched:
            exam.content.set_slot(s.group, s.id, None)
        raise GenerationFailure(
            f"Question counts differ from the format ({detail})", step_id=mismatched[0].id
        )

    def _report(self, message: str, progress: float) -> None:
        logger.debug(message)
        if self.on_progress:
            self.on_progress(message, progress)
