"""Scoring of mock test attempts."""

import logging
import math

from mocktest.config import settings
from mocktest.models.exam import (
    Attempt,
    AttemptReview,
    AttemptStatus,
    Exam,
    ExamContent,
    ExamStatus,
    PartProgress,
    QuestionReview,
    Score,
)

from .errors import MalformedQuestionKey, PreconditionViolation
from .question_keys import (
    LISTENING,
    READING,
    QuestionKey,
    SectionTag,
    decode_key,
    iter_question_keys,
    part_sizes,
    question_number,
    resolve_question,
)

logger = logging.getLogger(__name__)


def _percent(correct: int, total: int) -> int:
    """Half-up rounded percentage, capped at 100."""
    if total <= 0:
        return 0
    return min(100, math.floor(correct * 100 / total + 0.5))


def _answered_keys(content: ExamContent, answers: dict[str, int | None]) -> list[tuple[QuestionKey, int]]:
    """Decode and resolve answered keys, skipping anything that does not address a question.

    Keys that decode to the same question count once; the later entry wins.
    """
    resolved: dict[QuestionKey, int] = {}
    for raw_key, selected in answers.items():
        if selected is None:
            continue
        try:
            key = decode_key(raw_key)
        except MalformedQuestionKey:
            logger.warning(f"Skipping malformed answer key {raw_key!r}")
            continue
        if resolve_question(content, key) is None:
            logger.warning(f"Skipping answer key {raw_key!r}: no such question in content")
            continue
        if key in resolved:
            logger.warning(f"Answer key {raw_key!r} repeats question {key.encode()}")
        resolved[key] = selected
    return list(resolved.items())


class ScoringEngine:
    """Grades answer maps against an exam's answer key.

    Group percentages use the format's canonical question totals as the
    denominator, so unanswered questions count as incorrect.
    """

    def __init__(self, listening_total: int | None = None, reading_total: int | None = None):
        self.listening_total = listening_total or settings.listening_question_total
        self.reading_total = reading_total or settings.reading_question_total

    def correct_counts(self, exam: Exam, answers: dict[str, int | None]) -> dict[str, int]:
        if exam.status != ExamStatus.COMPLETE:
            raise PreconditionViolation(f"Exam {exam.id} is not complete and cannot be scored")

        correct = {LISTENING: 0, READING: 0}
        for key, selected in _answered_keys(exam.content, answers):
            question = resolve_question(exam.content, key)
            if selected == question.correct_option_index:
                correct[key.group] += 1
        return correct

    def score(self, exam: Exam, answers: dict[str, int | None]) -> Score:
        correct = self.correct_counts(exam, answers)
        return Score(
            listening=_percent(correct[LISTENING], self.listening_total),
            reading=_percent(correct[READING], self.reading_total),
            total=_percent(
                correct[LISTENING] + correct[READING],
                self.listening_total + self.reading_total,
            ),
        )

    def part_progress(
        self, content: ExamContent, answers: dict[str, int | None], graded: bool = False
    ) -> list[PartProgress]:
        """Answered counts per part, plus correct counts when ``graded``."""
        answered = {tag: 0 for tag in SectionTag}
        correct = {tag: 0 for tag in SectionTag}
        for key, selected in _answered_keys(content, answers):
            answered[key.tag] += 1
            if selected == resolve_question(content, key).correct_option_index:
                correct[key.tag] += 1

        return [
            PartProgress(
                tag=tag.value,
                title=tag.title,
                answered=answered[tag],
                total=size,
                correct=correct[tag] if graded else None,
            )
            for tag, size in part_sizes(content).items()
            if size > 0
        ]

    def build_review(self, exam: Exam, attempt: Attempt) -> AttemptReview:
        if exam.status != ExamStatus.COMPLETE:
            raise PreconditionViolation(f"Exam {exam.id} is not complete and cannot be reviewed")
        if attempt.status != AttemptStatus.COMPLETED:
            raise PreconditionViolation(f"Attempt {attempt.id} is not finished")

        questions = []
        for key in iter_question_keys(exam.content):
            question = resolve_question(exam.content, key)
            selected = attempt.answers.get(key.encode())
            questions.append(QuestionReview(
                key=key.encode(),
                number=question_number(exam.content, key),
                part=key.tag.value,
                correct_option_index=question.correct_option_index,
                selected_option_index=selected,
                is_correct=selected == question.correct_option_index,
                explanation=question.explanation,
            ))

        return AttemptReview(
            exam_id=exam.id,
            exam_name=exam.name,
            attempt=attempt,
            advice=exam.advice,
            parts=self.part_progress(exam.content, attempt.answers, graded=True),
            questions=questions,
        )
