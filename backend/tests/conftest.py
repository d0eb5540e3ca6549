"""Shared fakes and fixtures for the mock test engine tests."""

from uuid import uuid4

import pytest

from mocktest.models.exam import (
    Conversation,
    Exam,
    ExamContent,
    ExamStatus,
    IncompleteSentenceExercise,
    ListeningContent,
    ListeningOption,
    ListeningQuestion,
    PassageType,
    PhotoDescriptionExercise,
    QuestionResponseExercise,
    ReadingComprehensionExercise,
    ReadingContent,
    ReadingPassage,
    ReadingQuestion,
    Sentence,
    TextCompletionExercise,
    TextCompletionQuestion,
)
from mocktest.services.content_store import ContentStore
from mocktest.services.scoring import ScoringEngine

OPTIONS = ["Option A", "Option B", "Option C", "Option D"]


class StoreUnavailable(Exception):
    pass


class FakeExamStore(ContentStore):
    """In-memory store. Exams go through JSON on every read and write, like the SQL store."""

    def __init__(self):
        self.exams: dict[str, str] = {}
        self.writes = 0
        self.fail_when = None  # predicate over the exam being written; fails once

    def seed(self, exam: Exam) -> Exam:
        exam.id = exam.id or str(uuid4())
        self.exams[exam.id] = exam.model_dump_json()
        return exam

    def load(self, exam_id: str) -> Exam:
        return Exam.model_validate_json(self.exams[exam_id])

    async def create_exam(self, exam: Exam) -> str:
        exam.id = str(uuid4())
        self.exams[exam.id] = exam.model_dump_json()
        return exam.id

    async def get_exam(self, exam_id: str) -> Exam | None:
        data = self.exams.get(exam_id)
        return Exam.model_validate_json(data) if data else None

    async def update_exam(self, exam: Exam) -> None:
        self.writes += 1
        if self.fail_when and self.fail_when(exam):
            self.fail_when = None
            raise StoreUnavailable("store unavailable")
        self.exams[exam.id] = exam.model_dump_json()

    async def delete_exam(self, exam_id: str) -> None:
        self.exams.pop(exam_id, None)

    async def list_exams(self) -> list[Exam]:
        return [Exam.model_validate_json(data) for data in self.exams.values()]


# --- Content factories ---


def photo(i: int, image_prompt: str = "An office desk") -> PhotoDescriptionExercise:
    return PhotoDescriptionExercise(
        image_base64=f"aW1hZ2U{i}",
        image_prompt=image_prompt,
        options=OPTIONS,
        correct_option_index=0,
    )


def question_response(i: int) -> QuestionResponseExercise:
    return QuestionResponseExercise(
        question=f"When does meeting {i} start?",
        options=OPTIONS[:3],
        correct_option_index=1,
    )


def spoken_set(i: int, questions: int = 3) -> Conversation:
    return Conversation(
        title=f"Conversation {i}",
        passage=[Sentence(english="Did you send the report?", japanese="報告書を送りましたか。")],
        questions=[
            ListeningQuestion(
                question=f"Question {q}?",
                options=[ListeningOption(en=o) for o in OPTIONS],
                correct_option_index=2,
            )
            for q in range(questions)
        ],
    )


def incomplete_sentence(i: int) -> IncompleteSentenceExercise:
    return IncompleteSentenceExercise(
        sentence_with_blank=f"The shipment {i} ____ yesterday.",
        options=OPTIONS,
        correct_option_index=3,
    )


def text_completion(i: int, questions: int = 4) -> TextCompletionExercise:
    return TextCompletionExercise(
        passage=f"Notice {i}: [1] [2] [3] [4]",
        questions=[
            TextCompletionQuestion(blank_number=q + 1, options=OPTIONS, correct_option_index=0)
            for q in range(questions)
        ],
    )


def reading_set(i: int, passages: int = 1, questions: int = 3) -> ReadingComprehensionExercise:
    return ReadingComprehensionExercise(
        passages=[
            ReadingPassage(type=PassageType.EMAIL, title=f"Email {i}-{p}", content="Dear team, ...")
            for p in range(passages)
        ],
        questions=[
            ReadingQuestion(question=f"What is {i}-{q} about?", options=OPTIONS, correct_option_index=1)
            for q in range(questions)
        ],
    )


def reading_sets(single: int, multiple: int) -> list[ReadingComprehensionExercise]:
    # 9 x 3 + 1 x 2 single-passage questions, 5 per multi-passage set: 29 + 25
    singles = [reading_set(i, questions=3 if i < single - 1 else 2) for i in range(single)]
    multis = [reading_set(single + i, passages=2, questions=5) for i in range(multiple)]
    return singles + multis


def full_content() -> ExamContent:
    return ExamContent(
        listening=ListeningContent(
            part1=[photo(i) for i in range(6)],
            part2=[question_response(i) for i in range(25)],
            part3=[spoken_set(i) for i in range(13)],
            part4=[spoken_set(i) for i in range(10)],
        ),
        reading=ReadingContent(
            part5=[incomplete_sentence(i) for i in range(30)],
            part6=[text_completion(i) for i in range(4)],
            part7=reading_sets(10, 5),
        ),
    )


class FakeSectionGenerators:
    """Deterministic generators with per-method call logs and failure injection."""

    def __init__(self):
        self.calls: list[str] = []
        self.seeds_seen: list[list[str]] = []
        self.empty: set[str] = set()
        self._failures: dict[str, int] = {}
        self._seed = 0

    def fail(self, name: str, after: int = 0) -> None:
        """Make ``name`` raise once it has succeeded ``after`` more times."""
        self._failures[name] = after

    def heal(self) -> None:
        self._failures.clear()
        self.empty.clear()

    def count(self, name: str) -> int:
        return self.calls.count(name)

    def _call(self, name: str) -> bool:
        self.calls.append(name)
        if name in self._failures:
            if self._failures[name] == 0:
                raise RuntimeError(f"{name} generator unavailable")
            self._failures[name] -= 1
        return name not in self.empty

    async def image_prompt(self, prior_seeds):
        self.seeds_seen.append(list(prior_seeds))
        if not self._call("image_prompt"):
            return ""
        self._seed += 1
        return f"A photograph of scene {self._seed}"

    async def image(self, image_prompt):
        return f"aW1hZ2U{len(image_prompt)}" if self._call("image") else ""

    async def photo_question(self, image_base64, image_prompt):
        if not self._call("photo_question"):
            return None
        return PhotoDescriptionExercise(
            image_base64=image_base64, image_prompt=image_prompt,
            options=OPTIONS, correct_option_index=0,
        )

    async def question_response(self, count):
        return [question_response(i) for i in range(count)] if self._call("question_response") else []

    async def conversations(self, count):
        return [spoken_set(i) for i in range(count)] if self._call("conversations") else []

    async def talks(self, count):
        return [spoken_set(i) for i in range(count)] if self._call("talks") else []

    async def incomplete_sentences(self, count):
        return [incomplete_sentence(i) for i in range(count)] if self._call("incomplete_sentences") else []

    async def text_completion(self, count):
        return [text_completion(i) for i in range(count)] if self._call("text_completion") else []

    async def reading_comprehension(self, single, multiple):
        return reading_sets(single, multiple) if self._call("reading_comprehension") else []

    async def advice(self, content):
        return "Review Part 3 vocabulary." if self._call("advice") else ""


@pytest.fixture
def store():
    return FakeExamStore()


@pytest.fixture
def generators():
    return FakeSectionGenerators()


@pytest.fixture
def scorer():
    return ScoringEngine(listening_total=100, reading_total=100)


@pytest.fixture
def complete_exam(store):
    exam = Exam(
        name="Mock Test 1",
        status=ExamStatus.COMPLETE,
        content=full_content(),
        advice="Review Part 3 vocabulary.",
    )
    return store.seed(exam)
