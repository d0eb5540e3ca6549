"""Stable, typed addresses for every question in an exam's content tree.

A key is ``(tag, indices)``: flat parts (``l1``, ``l2``, ``r5``) carry one
item index, grouped parts (``l3``, ``l4``, ``r6``, ``r7``) carry a group index
and a question index within the group. In answer maps keys are stored in
their encoded form, e.g. ``"l3_0_2"``. Only this module builds or parses that
form.
"""

from collections.abc import Iterator
from enum import Enum
from typing import NamedTuple

from mocktest.models.exam import ExamContent, MultipleChoice

from .errors import MalformedQuestionKey

LISTENING = "listening"
READING = "reading"

_SEPARATOR = "_"


class SectionTag(str, Enum):
    """The seven parts, in exam order."""

    L1 = "l1"
    L2 = "l2"
    L3 = "l3"
    L4 = "l4"
    R5 = "r5"
    R6 = "r6"
    R7 = "r7"

    @property
    def group(self) -> str:
        return LISTENING if self.value.startswith("l") else READING

    @property
    def slot(self) -> str:
        return f"part{self.value[1]}"

    @property
    def grouped(self) -> bool:
        return self in _GROUPED

    @property
    def arity(self) -> int:
        return 2 if self.grouped else 1

    @property
    def title(self) -> str:
        return _TITLES[self]


_GROUPED = frozenset({SectionTag.L3, SectionTag.L4, SectionTag.R6, SectionTag.R7})

_TITLES = {
    SectionTag.L1: "Part 1: Photographs",
    SectionTag.L2: "Part 2: Question-Response",
    SectionTag.L3: "Part 3: Conversations",
    SectionTag.L4: "Part 4: Talks",
    SectionTag.R5: "Part 5: Incomplete Sentences",
    SectionTag.R6: "Part 6: Text Completion",
    SectionTag.R7: "Part 7: Reading Comprehension",
}


class QuestionKey(NamedTuple):
    tag: SectionTag
    indices: tuple[int, ...]

    @classmethod
    def of(cls, tag: SectionTag | str, *indices: int) -> "QuestionKey":
        """Build a key, checking the index count against the part's shape."""
        try:
            tag = SectionTag(tag)
        except ValueError:
            raise MalformedQuestionKey(f"Unknown section tag: {tag!r}") from None
        if len(indices) != tag.arity:
            raise MalformedQuestionKey(
                f"{tag.value} keys take {tag.arity} index(es), got {len(indices)}"
            )
        if any(not isinstance(i, int) or isinstance(i, bool) or i < 0 for i in indices):
            raise MalformedQuestionKey(f"Invalid indices for {tag.value}: {indices!r}")
        return cls(tag, tuple(indices))

    @property
    def group(self) -> str:
        return self.tag.group

    def encode(self) -> str:
        return encode_key(self)


def encode_key(key: QuestionKey) -> str:
    return _SEPARATOR.join([key.tag.value, *(str(i) for i in key.indices)])


def decode_key(raw: str) -> QuestionKey:
    """Parse an encoded key. Raises MalformedQuestionKey on anything else."""
    if not isinstance(raw, str) or not raw:
        raise MalformedQuestionKey(f"Not a question key: {raw!r}")
    tag, *parts = raw.split(_SEPARATOR)
    if any(not (p.isascii() and p.isdigit()) for p in parts):
        raise MalformedQuestionKey(f"Not a question key: {raw!r}")
    return QuestionKey.of(tag, *(int(p) for p in parts))


def resolve_question(content: ExamContent, key: QuestionKey) -> MultipleChoice | None:
    """Return the question a key addresses, or None if the content lacks it."""
    items = content.get_slot(key.tag.group, key.tag.slot) or []
    if not key.tag.grouped:
        (index,) = key.indices
        return items[index] if index < len(items) else None

    group_index, question_index = key.indices
    if group_index >= len(items):
        return None
    questions = items[group_index].questions
    return questions[question_index] if question_index < len(questions) else None


def iter_question_keys(content: ExamContent) -> Iterator[QuestionKey]:
    """Yield every key of the generated content, in exam order."""
    for tag in SectionTag:
        items = content.get_slot(tag.group, tag.slot) or []
        if tag.grouped:
            for group_index, item in enumerate(items):
                for question_index in range(len(item.questions)):
                    yield QuestionKey(tag, (group_index, question_index))
        else:
            for index in range(len(items)):
                yield QuestionKey(tag, (index,))


def part_sizes(content: ExamContent) -> dict[SectionTag, int]:
    """Number of questions generated per part."""
    sizes = {tag: 0 for tag in SectionTag}
    for key in iter_question_keys(content):
        sizes[key.tag] += 1
    return sizes


def group_sizes(content: ExamContent) -> dict[str, int]:
    sizes = {LISTENING: 0, READING: 0}
    for tag, size in part_sizes(content).items():
        sizes[tag.group] += size
    return sizes


def first_question_numbers(content: ExamContent) -> dict[SectionTag, int]:
    """Display number of each part's first question.

    Shifts whenever a part is regenerated with a different size, so it is never
    used as a storage key.
    """
    numbers = {}
    next_number = 1
    for tag, size in part_sizes(content).items():
        numbers[tag] = next_number
        next_number += size
    return numbers


def question_number(content: ExamContent, key: QuestionKey) -> int:
    first = first_question_numbers(content)[key.tag]
    if not key.tag.grouped:
        return first + key.indices[0]

    group_index, question_index = key.indices
    items = content.get_slot(key.tag.group, key.tag.slot) or []
    offset = sum(len(item.questions) for item in items[:group_index])
    return first + offset + question_index
