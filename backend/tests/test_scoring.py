import pytest

from mocktest.models.exam import (
    Attempt,
    AttemptStatus,
    Exam,
    ExamContent,
    ExamStatus,
    ListeningContent,
    ReadingContent,
    Score,
)
from mocktest.services.errors import PreconditionViolation
from mocktest.services.scoring import ScoringEngine, _percent

from conftest import incomplete_sentence, photo, question_response


@pytest.fixture
def small_exam():
    # l1_0 -> 0, l2_0 -> 1, r5_0 -> 3, r5_1 -> 3
    return Exam(
        id="exam-1",
        name="Mock Test 1",
        status=ExamStatus.COMPLETE,
        content=ExamContent(
            listening=ListeningContent(part1=[photo(0)], part2=[question_response(0)]),
            reading=ReadingContent(part5=[incomplete_sentence(0), incomplete_sentence(1)]),
        ),
    )


def test_empty_answers_score_zero(complete_exam, scorer):
    assert scorer.score(complete_exam, {}) == Score(listening=0, reading=0, total=0)


def test_all_correct_scores_full_marks(complete_exam, scorer):
    from mocktest.services.question_keys import iter_question_keys, resolve_question

    answers = {
        key.encode(): resolve_question(complete_exam.content, key).correct_option_index
        for key in iter_question_keys(complete_exam.content)
    }
    assert scorer.score(complete_exam, answers) == Score(listening=100, reading=100, total=100)


def test_exact_arithmetic_against_canonical_totals(small_exam):
    scorer = ScoringEngine(listening_total=2, reading_total=2)
    answers = {"l1_0": 0, "l2_0": 0, "r5_0": 3, "r5_1": 3}

    assert scorer.correct_counts(small_exam, answers) == {"listening": 1, "reading": 2}
    assert scorer.score(small_exam, answers) == Score(listening=50, reading=100, total=75)


def test_unanswered_questions_count_against_canonical_total(small_exam):
    scorer = ScoringEngine(listening_total=100, reading_total=100)
    score = scorer.score(small_exam, {"l1_0": 0, "r5_0": 3, "r5_1": None})
    assert score == Score(listening=1, reading=1, total=1)


def test_malformed_and_unknown_keys_are_skipped(small_exam, caplog):
    scorer = ScoringEngine(listening_total=2, reading_total=2)
    answers = {"l1_0": 0, "garbage": 1, "l3_0_0": 2, "r5_9": 3, "r5_0": 3}

    assert scorer.score(small_exam, answers) == Score(listening=50, reading=50, total=50)
    assert "garbage" in caplog.text
    assert "r5_9" in caplog.text


def test_equivalent_keys_count_once(small_exam, caplog):
    scorer = ScoringEngine(listening_total=2, reading_total=2)
    answers = {"l1_0": 0, "l1_00": 0, "r5_1": 0, "r5_01": 3}

    assert scorer.correct_counts(small_exam, answers) == {"listening": 1, "reading": 1}
    assert scorer.score(small_exam, answers) == Score(listening=50, reading=50, total=50)
    progress = {p.tag: p.answered for p in scorer.part_progress(small_exam.content, answers)}
    assert progress["l1"] == 1
    assert progress["r5"] == 1
    assert "l1_00" in caplog.text


def test_incomplete_exam_cannot_be_scored(small_exam, scorer):
    small_exam.status = ExamStatus.FAILED
    with pytest.raises(PreconditionViolation):
        scorer.score(small_exam, {"l1_0": 0})


@pytest.mark.parametrize(
    "correct, total, expected",
    [(0, 100, 0), (1, 200, 1), (1, 3, 33), (2, 3, 67), (1, 8, 13), (5, 0, 0), (7, 5, 100)],
)
def test_percent_rounds_half_up(correct, total, expected):
    assert _percent(correct, total) == expected


def test_part_progress_counts_answered_and_graded(small_exam, scorer):
    answers = {"l1_0": 1, "r5_1": 3, "l2_0": None}

    progress = scorer.part_progress(small_exam.content, answers)
    assert [(p.tag, p.answered, p.total, p.correct) for p in progress] == [
        ("l1", 1, 1, None),
        ("l2", 0, 1, None),
        ("r5", 1, 2, None),
    ]

    graded = scorer.part_progress(small_exam.content, answers, graded=True)
    assert [p.correct for p in graded] == [0, 0, 1]


def test_review_lists_every_question(complete_exam, scorer):
    attempt = Attempt(
        time_left=0,
        status=AttemptStatus.COMPLETED,
        answers={"l1_0": 0, "l3_1_0": 1, "r7_14_4": 1},
    )
    attempt.score = scorer.score(complete_exam, attempt.answers)
    complete_exam.attempts.append(attempt)

    review = scorer.build_review(complete_exam, attempt)

    assert len(review.questions) == 200
    assert review.advice == "Review Part 3 vocabulary."
    by_key = {q.key: q for q in review.questions}
    assert by_key["l1_0"].is_correct and by_key["l1_0"].number == 1
    assert by_key["l3_1_0"].number == 35
    assert not by_key["l3_1_0"].is_correct
    assert by_key["l3_1_0"].correct_option_index == 2
    assert by_key["r7_14_4"].is_correct and by_key["r7_14_4"].number == 200
    assert by_key["r5_0"].selected_option_index is None
    assert sum(p.correct for p in review.parts) == 2


def test_review_requires_a_finished_attempt(complete_exam, scorer):
    attempt = Attempt(time_left=60)
    with pytest.raises(PreconditionViolation):
        scorer.build_review(complete_exam, attempt)
