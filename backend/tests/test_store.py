import json
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from mocktest.db.models import Base, ExamDB
from mocktest.models.exam import Attempt, Exam, ExamContent, ExamStatus, ListeningContent, StepDraft
from mocktest.services.content_store import SqlExamStore

from conftest import full_content


@pytest.fixture
async def sql_store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mocktest.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield SqlExamStore(async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()


async def test_create_assigns_id_and_round_trips(sql_store):
    exam = Exam(name="Mock Test 1", status=ExamStatus.COMPLETE, content=full_content(), advice="Keep going.")
    exam.attempts.append(Attempt(time_left=7200, answers={"l1_0": 2, "r7_3_1": None}))

    exam_id = await sql_store.create_exam(exam)

    assert exam.id == exam_id
    loaded = await sql_store.get_exam(exam_id)
    assert loaded.model_dump() == exam.model_dump()


async def test_unset_slots_are_stored_as_null(sql_store):
    part1 = full_content().listening.part1
    exam = Exam(name="Mock Test 1", content=ExamContent(listening=ListeningContent(part1=part1)))
    await sql_store.create_exam(exam)

    async with sql_store.session_factory() as db:
        row = await db.get(ExamDB, exam.id)
    data = json.loads(row.data)
    assert data["content"]["listening"]["part2"] is None
    assert data["content"]["reading"] == {"part5": None, "part6": None, "part7": None}

    loaded = await sql_store.get_exam(exam.id)
    assert len(loaded.content.listening.part1) == 6
    assert loaded.content.listening.part2 is None
    assert loaded.content.reading.part7 is None


async def test_update_is_a_full_upsert(sql_store):
    exam = Exam(name="Mock Test 1")
    await sql_store.create_exam(exam)

    exam.drafts["part1"] = StepDraft(items=[], in_flight={"image_prompt": "A busy station"})
    exam.status = ExamStatus.FAILED
    exam.error_message = "Part 1: Photographs: timeout"
    await sql_store.update_exam(exam)

    loaded = await sql_store.get_exam(exam.id)
    assert loaded.status == ExamStatus.FAILED
    assert loaded.drafts["part1"].in_flight == {"image_prompt": "A busy station"}


async def test_update_requires_an_id(sql_store):
    with pytest.raises(ValueError):
        await sql_store.update_exam(Exam(name="Mock Test 1"))


async def test_list_is_newest_first(sql_store):
    older = Exam(name="Mock Test 1")
    older.created_at = older.created_at - timedelta(hours=1)
    newer = Exam(name="Mock Test 2")
    await sql_store.create_exam(older)
    await sql_store.create_exam(newer)

    assert [e.name for e in await sql_store.list_exams()] == ["Mock Test 2", "Mock Test 1"]


async def test_delete_removes_exam_and_attempts(sql_store):
    exam = Exam(name="Mock Test 1", attempts=[Attempt(time_left=10)])
    await sql_store.create_exam(exam)

    await sql_store.delete_exam(exam.id)

    assert await sql_store.get_exam(exam.id) is None
    assert await sql_store.list_exams() == []


async def test_missing_exam(sql_store):
    assert await sql_store.get_exam("missing") is None
