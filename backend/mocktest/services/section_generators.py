"""AI section generators, one capability per exam part.

Every generator returns validated content or raises. Empty output counts as a
failure so the pipeline never stores an empty slot.
"""

import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from mocktest.models.exam import (
    Conversation,
    ExamContent,
    IncompleteSentenceExercise,
    PhotoDescriptionExercise,
    QuestionResponseExercise,
    ReadingComprehensionExercise,
    TextCompletionExercise,
)

from .errors import GenerationFailure
from .llm_generator import LLMGenerator
from .question_keys import part_sizes

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

SYSTEM_PROMPT = """
You write material for an English listening and reading proficiency exam
aimed at business learners, slightly harder than the real test.
Japanese translations and explanations are written in Japanese.
Every question has exactly one correct option; "correct_option_index" is its
zero-based position in "options".
Respond with a single JSON object.
"""

_QUESTION_FIELDS = '"options": [...], "correct_option_index": 0, "explanation": "..."'


def _validate_items(label: str, data: Any, model: type[T]) -> list[T]:
    items = data.get("items") if isinstance(data, dict) else data
    if not items:
        raise GenerationFailure(f"{label}: generator returned no items")
    try:
        return TypeAdapter(list[model]).validate_python(items)
    except ValidationError as e:
        raise GenerationFailure(f"{label}: invalid content ({e.error_count()} errors)") from e


class SectionGenerators:
    """Generator capabilities backed by an LLM provider."""

    def __init__(self, llm: LLMGenerator):
        self.llm = llm

    async def _items(self, label: str, prompt: str, model: type[T], temperature: float = 0.8) -> list[T]:
        data = await self.llm.generate_json(SYSTEM_PROMPT, prompt, temperature=temperature)
        items = _validate_items(label, data, model)
        logger.info(f"{label}: generated {len(items)} items")
        return items

    # --- Part 1: seed -> image -> question ---

    async def image_prompt(self, prior_seeds: list[str]) -> str:
        avoid = "\n".join(f"- {s}" for s in prior_seeds[-50:]) or "(none)"
        prompt = (
            "Describe one realistic workplace or everyday photograph for a "
            "photo-description question, in one or two sentences. People, "
            "objects and actions must be clearly visible.\n"
            f"Avoid scenes similar to these:\n{avoid}\n"
            'Return {"prompt": "..."}'
        )
        data = await self.llm.generate_json(SYSTEM_PROMPT, prompt, temperature=1.0)
        seed = (data.get("prompt") or "").strip() if isinstance(data, dict) else ""
        if not seed:
            raise GenerationFailure("Part 1: image prompt generation returned nothing")
        return seed

    async def image(self, image_prompt: str) -> str:
        image = await self.llm.generate_image(f"Photograph, natural light, no text: {image_prompt}")
        if not image:
            raise GenerationFailure("Part 1: image generation returned nothing")
        return image

    async def photo_question(self, image_base64: str, image_prompt: str) -> PhotoDescriptionExercise:
        prompt = (
            f"A photograph shows: {image_prompt}\n"
            "Write four short spoken statements (A-D) about it; exactly one "
            "accurately describes the photograph.\n"
            f"Return {{{_QUESTION_FIELDS}}}"
        )
        data = await self.llm.generate_json(SYSTEM_PROMPT, prompt)
        if not isinstance(data, dict) or not data:
            raise GenerationFailure("Part 1: question generation returned nothing")
        try:
            return PhotoDescriptionExercise(
                image_base64=image_base64, image_prompt=image_prompt, **data
            )
        except (ValidationError, TypeError) as e:
            raise GenerationFailure(f"Part 1: invalid question: {e}") from e

    # --- Batch parts ---

    async def question_response(self, count: int) -> list[QuestionResponseExercise]:
        prompt = (
            f"Write {count} question-response items: a spoken question or "
            "statement and three spoken responses, one of which is appropriate.\n"
            f'Return {{"items": [{{"question": "...", {_QUESTION_FIELDS}}}]}}'
        )
        return await self._items("Part 2", prompt, QuestionResponseExercise)

    async def _spoken_sets(self, label: str, kind: str, count: int) -> list[Conversation]:
        prompt = (
            f"Write {count} {kind}, each 6-10 lines, each followed by exactly "
            "three questions with four options. Options carry English (en) and "
            "Japanese (jp) text; passage lines carry english and japanese.\n"
            'Return {"items": [{"title": "...", '
            '"passage": [{"english": "...", "japanese": "..."}], '
            '"questions": [{"question": "...", "options": [{"en": "...", "jp": "..."}], '
            '"correct_option_index": 0, "explanation": "..."}]}]}'
        )
        return await self._items(label, prompt, Conversation)

    async def conversations(self, count: int) -> list[Conversation]:
        return await self._spoken_sets("Part 3", "conversations between two or three speakers", count)

    async def talks(self, count: int) -> list[Conversation]:
        return await self._spoken_sets("Part 4", "short talks by a single speaker", count)

    async def incomplete_sentences(self, count: int) -> list[IncompleteSentenceExercise]:
        prompt = (
            f"Write {count} grammar and vocabulary items: one sentence with a "
            'single blank written as "____" and four options.\n'
            f'Return {{"items": [{{"sentence_with_blank": "...", {_QUESTION_FIELDS}}}]}}'
        )
        return await self._items("Part 5", prompt, IncompleteSentenceExercise)

    async def text_completion(self, count: int) -> list[TextCompletionExercise]:
        prompt = (
            f"Write {count} business passages, each with four numbered blanks "
            'written "[1]" to "[4]", and one four-option question per blank.\n'
            'Return {"items": [{"passage": "...", "questions": '
            f'[{{"blank_number": 1, {_QUESTION_FIELDS}}}]}}]}}'
        )
        return await self._items("Part 6", prompt, TextCompletionExercise)

    async def reading_comprehension(self, single: int, multiple: int) -> list[ReadingComprehensionExercise]:
        prompt = (
            f"Write {single} single-passage sets (2-4 questions each) followed by "
            f"{multiple} multiple-passage sets (2-3 related passages, 5 questions "
            "each). Passage type is one of Email, Article, Advertisement, Form, "
            "Chart, Memo, Notice.\n"
            'Return {"items": [{"passages": [{"type": "Email", "title": "...", '
            '"content": "..."}], "questions": '
            f'[{{"question": "...", {_QUESTION_FIELDS}}}]}}]}}'
        )
        return await self._items("Part 7", prompt, ReadingComprehensionExercise, temperature=0.7)

    # --- Derived summary ---

    async def advice(self, content: ExamContent) -> str:
        outline = {tag.title: size for tag, size in part_sizes(content).items()}
        prompt = (
            "Give a learner concise study advice (in Japanese, under 200 words) "
            "for a mock test with these parts and question counts:\n"
            f"{json.dumps(outline, ensure_ascii=False)}"
        )
        system = "You are an experienced English exam coach."
        advice = (await self.llm.generate_text(system, prompt, temperature=0.5)).strip()
        if not advice:
            raise GenerationFailure("Advice generation returned nothing")
        return advice
