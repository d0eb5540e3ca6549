"""Business logic services."""

from .attempts import AttemptSession, AttemptState
from .content_store import ContentStore, SqlExamStore
from .errors import (
    AttemptInProgress,
    AttemptNotFound,
    ExamNotFound,
    GenerationFailure,
    GenerationInProgress,
    MalformedQuestionKey,
    MockTestError,
    PreconditionViolation,
)
from .exam_catalog import ExamCatalog
from .generation import GenerationPipeline
from .llm_generator import LLMGenerator
from .scoring import ScoringEngine
from .section_generators import SectionGenerators

__all__ = [
    "AttemptSession",
    "AttemptState",
    "ContentStore",
    "SqlExamStore",
    "AttemptInProgress",
    "AttemptNotFound",
    "ExamNotFound",
    "GenerationFailure",
    "GenerationInProgress",
    "MalformedQuestionKey",
    "MockTestError",
    "PreconditionViolation",
    "ExamCatalog",
    "GenerationPipeline",
    "LLMGenerator",
    "ScoringEngine",
    "SectionGenerators",
]
