"""Durable storage for exams and their embedded attempts."""

import logging
from abc import ABC, abstractmethod

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mocktest.db.models import ExamDB
from mocktest.models.exam import Exam

logger = logging.getLogger(__name__)


class ContentStore(ABC):
    """Keyed exam storage. Every write is a full-exam upsert."""

    @abstractmethod
    async def create_exam(self, exam: Exam) -> str:
        """Persist a new exam and return the id assigned to it."""

    @abstractmethod
    async def get_exam(self, exam_id: str) -> Exam | None:
        pass

    @abstractmethod
    async def update_exam(self, exam: Exam) -> None:
        pass

    @abstractmethod
    async def delete_exam(self, exam_id: str) -> None:
        """Delete an exam together with its attempts."""

    @abstractmethod
    async def list_exams(self) -> list[Exam]:
        pass


class SqlExamStore(ContentStore):
    """ContentStore backed by one JSON document row per exam.

    Opens a session per operation so long-running generation never holds a
    session open across generator calls.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_exam(self, exam: Exam) -> str:
        async with self.session_factory() as db:
            row = ExamDB(name=exam.name, status=exam.status.value, created_at=exam.created_at, data="{}")
            db.add(row)
            await db.flush()
            exam.id = row.id
            row.data = exam.model_dump_json()
            await db.commit()
        logger.info(f"Created exam {exam.id} ({exam.name})")
        return exam.id

    async def get_exam(self, exam_id: str) -> Exam | None:
        async with self.session_factory() as db:
            result = await db.execute(select(ExamDB).where(ExamDB.id == exam_id))
            row = result.scalar_one_or_none()
            if not row:
                return None
            return Exam.model_validate_json(row.data)

    async def update_exam(self, exam: Exam) -> None:
        if not exam.id:
            raise ValueError("Cannot update an exam that was never created")
        async with self.session_factory() as db:
            row = await db.get(ExamDB, exam.id)
            if row is None:
                row = ExamDB(id=exam.id, created_at=exam.created_at)
                db.add(row)
            row.name = exam.name
            row.status = exam.status.value
            row.data = exam.model_dump_json()
            await db.commit()

    async def delete_exam(self, exam_id: str) -> None:
        async with self.session_factory() as db:
            await db.execute(delete(ExamDB).where(ExamDB.id == exam_id))
            await db.commit()
        logger.info(f"Deleted exam {exam_id}")

    async def list_exams(self) -> list[Exam]:
        async with self.session_factory() as db:
            result = await db.execute(select(ExamDB).order_by(ExamDB.created_at.desc()))
            return [Exam.model_validate_json(row.data) for row in result.scalars().all()]
