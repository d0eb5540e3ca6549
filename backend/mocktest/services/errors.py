"""Error taxonomy for generation and attempts."""


class MockTestError(Exception):
    """Base class for mock test errors."""


class GenerationFailure(MockTestError):
    """A section generator raised or returned empty/invalid content.

    Terminal for the current pipeline run; the exam is left ``failed`` and can
    be resumed explicitly.
    """

    def __init__(self, message: str, step_id: str | None = None):
        super().__init__(message)
        self.step_id = step_id


class PreconditionViolation(MockTestError):
    """An operation was requested in a state that does not allow it."""


class ExamNotFound(PreconditionViolation):
    def __init__(self, exam_id: str):
        super().__init__(f"Exam {exam_id} not found")
        self.exam_id = exam_id


class AttemptNotFound(PreconditionViolation):
    def __init__(self, attempt_id: str):
        super().__init__(f"Attempt {attempt_id} not found")
        self.attempt_id = attempt_id


class GenerationInProgress(PreconditionViolation):
    def __init__(self, exam_id: str):
        super().__init__(f"Exam {exam_id} is already being generated")
        self.exam_id = exam_id


class AttemptInProgress(PreconditionViolation):
    def __init__(self, exam_id: str, attempt_id: str):
        super().__init__(f"Exam {exam_id} already has attempt {attempt_id} in progress")
        self.exam_id = exam_id
        self.attempt_id = attempt_id


class MalformedQuestionKey(MockTestError, ValueError):
    """A question key string or tuple that does not address any question shape."""
