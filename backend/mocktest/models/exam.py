"""Mock test models for the listening/reading exam format.

Exam format (seven parts, two groups):
- Listening: Part 1 photographs (6), Part 2 question-response (25),
  Part 3 conversations (13 x 3 questions), Part 4 talks (10 x 3 questions)
- Reading: Part 5 incomplete sentences (30), Part 6 text completion
  (4 x 4 questions), Part 7 reading comprehension (10 single-passage and
  5 multi-passage sets)
- 100 listening + 100 reading questions, 120 minutes
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExamStatus(str, Enum):
    GENERATING = "generating"
    COMPLETE = "complete"
    FAILED = "failed"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# --- Section items ---


class Sentence(BaseModel):
    """One line of a spoken passage."""

    english: str = Field(min_length=1)
    japanese: str = ""


class ListeningOption(BaseModel):
    en: str
    jp: str = ""


class MultipleChoice(BaseModel):
    """Base for every answerable question: options plus one correct index.

    Subclasses declare ``options``; validation runs after all fields are set.
    """

    correct_option_index: int
    explanation: str = ""

    @model_validator(mode="after")
    def validate_correct_option(self) -> "MultipleChoice":
        options = getattr(self, "options", [])
        labels = [o.en if isinstance(o, ListeningOption) else o for o in options]
        if len(labels) < 2:
            raise ValueError("a question needs at least two options")
        if any(not label.strip() for label in labels):
            raise ValueError("options must not be empty")
        if not 0 <= self.correct_option_index < len(labels):
            raise ValueError(
                f"correct_option_index {self.correct_option_index} is out of range "
                f"for {len(labels)} options"
            )
        return self


class PhotoDescriptionExercise(MultipleChoice):
    """Part 1: four spoken statements about a generated photograph."""

    image_base64: str = Field(min_length=1)
    image_prompt: str
    options: list[str]


class QuestionResponseExercise(MultipleChoice):
    """Part 2: a spoken question with three spoken responses."""

    question: str = Field(min_length=1)
    options: list[str]


class ListeningQuestion(MultipleChoice):
    question: str = Field(min_length=1)
    options: list[ListeningOption]


class Conversation(BaseModel):
    """Part 3 conversation or Part 4 talk with its questions."""

    title: str
    passage: list[Sentence] = Field(min_length=1)
    questions: list[ListeningQuestion] = Field(min_length=1)


class IncompleteSentenceExercise(MultipleChoice):
    """Part 5: a sentence with one blank."""

    sentence_with_blank: str = Field(min_length=1)
    options: list[str]


class TextCompletionQuestion(MultipleChoice):
    blank_number: int = Field(ge=1)
    options: list[str]


class TextCompletionExercise(BaseModel):
    """Part 6: a passage with numbered blanks like "[1]"."""

    passage: str = Field(min_length=1)
    questions: list[TextCompletionQuestion] = Field(min_length=1)


class PassageType(str, Enum):
    EMAIL = "Email"
    ARTICLE = "Article"
    ADVERTISEMENT = "Advertisement"
    FORM = "Form"
    CHART = "Chart"
    MEMO = "Memo"
    NOTICE = "Notice"


class ReadingPassage(BaseModel):
    type: PassageType
    title: str
    content: str = Field(min_length=1)


class ReadingQuestion(MultipleChoice):
    question: str = Field(min_length=1)
    options: list[str]


class ReadingComprehensionExercise(BaseModel):
    """Part 7: one passage (single) or two to three passages (multiple)."""

    passages: list[ReadingPassage] = Field(min_length=1)
    questions: list[ReadingQuestion] = Field(min_length=1)


# --- Content tree ---


class ListeningContent(BaseModel):
    part1: list[PhotoDescriptionExercise] | None = None
    part2: list[QuestionResponseExercise] | None = None
    part3: list[Conversation] | None = None
    part4: list[Conversation] | None = None


class ReadingContent(BaseModel):
    part5: list[IncompleteSentenceExercise] | None = None
    part6: list[TextCompletionExercise] | None = None
    part7: list[ReadingComprehensionExercise] | None = None


class ExamContent(BaseModel):
    """Generated sections. A slot stays None until its step has finished."""

    listening: ListeningContent = Field(default_factory=ListeningContent)
    reading: ReadingContent = Field(default_factory=ReadingContent)

    def get_slot(self, group: str, slot: str) -> list | None:
        return getattr(getattr(self, group), slot)

    def set_slot(self, group: str, slot: str, items: list) -> None:
        setattr(getattr(self, group), slot, items)


class StepDraft(BaseModel):
    """In-flight state of an item loop, persisted between items and sub-stages."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    in_flight: dict[str, Any] = Field(default_factory=dict)


class GenerationStep(BaseModel):
    """One step of exam generation and the slot it fills."""

    id: str
    name: str
    generator: str  # SectionGenerators method
    group: str | None = None  # None for derived fields
    quantity: int | tuple[int, int] | None = None
    item_loop: bool = False  # one generator round per item, checkpointed per item
    expected_questions: int | None = None


GENERATION_STEPS: list[GenerationStep] = [
    GenerationStep(
        id="part1", name="Part 1: Photographs", generator="photo_question",
        group="listening", quantity=6, item_loop=True, expected_questions=6,
    ),
    GenerationStep(
        id="part2", name="Part 2: Question-Response", generator="question_response",
        group="listening", quantity=25, expected_questions=25,
    ),
    GenerationStep(
        id="part3", name="Part 3: Conversations", generator="conversations",
        group="listening", quantity=13, expected_questions=39,  # 13 x 3
    ),
    GenerationStep(
        id="part4", name="Part 4: Talks", generator="talks",
        group="listening", quantity=10, expected_questions=30,  # 10 x 3
    ),
    GenerationStep(
        id="part5", name="Part 5: Incomplete Sentences", generator="incomplete_sentences",
        group="reading", quantity=30, expected_questions=30,
    ),
    GenerationStep(
        id="part6", name="Part 6: Text Completion", generator="text_completion",
        group="reading", quantity=4, expected_questions=16,  # 4 x 4
    ),
    GenerationStep(
        id="part7", name="Part 7: Reading Comprehension", generator="reading_comprehension",
        group="reading", quantity=(10, 5), expected_questions=54,  # 29 single + 25 multi
    ),
    GenerationStep(id="advice", name="AI Advice", generator="advice"),
]


# --- Exam and attempts ---


class Score(BaseModel):
    listening: int = Field(default=0, ge=0, le=100)
    reading: int = Field(default=0, ge=0, le=100)
    total: int = Field(default=0, ge=0, le=100)


class Attempt(BaseModel):
    """One timed sitting of a complete exam."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    answers: dict[str, int | None] = Field(default_factory=dict)  # question key -> option
    time_left: int = Field(ge=0)  # seconds
    score: Score | None = None


class Exam(BaseModel):
    """A generated mock test together with its attempts."""

    id: str | None = None
    name: str
    created_at: datetime = Field(default_factory=utcnow)
    level: str = "Slightly Harder"
    status: ExamStatus = ExamStatus.GENERATING
    error_message: str | None = None
    image_prompts: list[str] = Field(default_factory=list)
    content: ExamContent = Field(default_factory=ExamContent)
    advice: str = ""
    drafts: dict[str, StepDraft] = Field(default_factory=dict)
    attempts: list[Attempt] = Field(default_factory=list)

    def find_attempt(self, attempt_id: str) -> Attempt | None:
        return next((a for a in self.attempts if a.id == attempt_id), None)

    @property
    def completed_attempts(self) -> list[Attempt]:
        return [a for a in self.attempts if a.status == AttemptStatus.COMPLETED]

    @property
    def resumable_attempt(self) -> Attempt | None:
        return next(
            (a for a in self.attempts if a.status == AttemptStatus.IN_PROGRESS), None
        )

    @property
    def best_score(self) -> int | None:
        scores = [a.score.total for a in self.completed_attempts if a.score]
        return max(scores) if scores else None


# --- Read models ---


class ExamSummary(BaseModel):
    """Lobby entry for one exam."""

    id: str
    name: str
    created_at: datetime
    status: ExamStatus
    error_message: str | None = None
    completed_attempts: int = 0
    best_score: int | None = None
    resumable_attempt_id: str | None = None

    @classmethod
    def from_exam(cls, exam: Exam) -> "ExamSummary":
        resumable = exam.resumable_attempt
        return cls(
            id=exam.id,
            name=exam.name,
            created_at=exam.created_at,
            status=exam.status,
            error_message=exam.error_message,
            completed_attempts=len(exam.completed_attempts),
            best_score=exam.best_score,
            resumable_attempt_id=resumable.id if resumable else None,
        )


class PartProgress(BaseModel):
    """Answered (and, once graded, correct) counts for one part."""

    tag: str
    title: str
    answered: int
    total: int
    correct: int | None = None


class QuestionReview(BaseModel):
    key: str
    number: int
    part: str
    correct_option_index: int
    selected_option_index: int | None = None
    is_correct: bool
    explanation: str


class AttemptReview(BaseModel):
    """Read-only review of a completed attempt."""

    exam_id: str
    exam_name: str
    attempt: Attempt
    advice: str
    parts: list[PartProgress]
    questions: list[QuestionReview]
