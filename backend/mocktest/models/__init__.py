"""Pydantic models for the mock test engine."""

from .exam import (
    Attempt,
    AttemptReview,
    AttemptStatus,
    Conversation,
    Exam,
    ExamContent,
    ExamStatus,
    ExamSummary,
    IncompleteSentenceExercise,
    PartProgress,
    PhotoDescriptionExercise,
    QuestionResponseExercise,
    QuestionReview,
    ReadingComprehensionExercise,
    Score,
    StepDraft,
    TextCompletionExercise,
)

__all__ = [
    "Attempt",
    "AttemptReview",
    "AttemptStatus",
    "Conversation",
    "Exam",
    "ExamContent",
    "ExamStatus",
    "ExamSummary",
    "IncompleteSentenceExercise",
    "PartProgress",
    "PhotoDescriptionExercise",
    "QuestionResponseExercise",
    "QuestionReview",
    "ReadingComprehensionExercise",
    "Score",
    "StepDraft",
    "TextCompletionExercise",
]
