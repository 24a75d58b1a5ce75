# src/services/grading/store.py
import uuid
from datetime import date, timedelta
from typing import Iterable, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.sql import Select

from src.exceptions import ConflictError
from src.logging_config import app_logger
from src.models.grading import GradeComponent, GradeRecord, Milestone
from src.schema.grading import (
    ComponentType,
    GradedBy,
    GradeStatus,
    WorkType,
)
from src.services.grading.milestones import default_milestones
from src.settings import settings

DEFAULT_COMPONENT_WEIGHTS = (
    (ComponentType.SUPERVISOR_SCORE, 0.7, GradedBy.SUPERVISOR),
    (ComponentType.COMPANY_SCORE, 0.3, GradedBy.COMPANY),
)


def default_grade_components() -> List[GradeComponent]:
    """Two fixed components, weights summing to 1.0, nothing graded yet."""
    return [
        GradeComponent(
            position=position,
            type=component_type.value,
            score=0.0,
            weight=weight,
            comment="",
            graded_by=graded_by.value,
        )
        for position, (component_type, weight, graded_by) in enumerate(DEFAULT_COMPONENT_WEIGHTS)
    ]


class GradeRecordStore:
    """
    Persistence for grade records. One record per (student, subject);
    children are loaded eagerly so the aggregate is always complete.
    """

    def __init__(self, db: Session):
        self.db = db

    def _select(self) -> Select:
        return select(GradeRecord).options(
            selectinload(GradeRecord.milestones).selectinload(Milestone.submitted_documents),
            selectinload(GradeRecord.grade_components),
        )

    def find_by_id(self, record_id: Union[uuid.UUID, str]) -> Optional[GradeRecord]:
        try:
            record_id = uuid.UUID(str(record_id))
        except ValueError:
            return None
        return self.db.execute(
            self._select().where(GradeRecord.id == record_id)
        ).scalars().first()

    def find_one(self, student_id: str, subject_id: str) -> Optional[GradeRecord]:
        return self.db.execute(
            self._select().where(
                GradeRecord.student_id == student_id,
                GradeRecord.subject_id == subject_id,
            )
        ).scalars().first()

    def find_by_student(self, student_id: str) -> Optional[GradeRecord]:
        """Most recently created record of a student."""
        return self.db.execute(
            self._select()
            .where(GradeRecord.student_id == student_id)
            .order_by(GradeRecord.created_on.desc())
        ).scalars().first()

    def find_by_supervisor(
        self,
        supervisor_id: str,
        status_filter: Optional[GradeStatus] = None,
    ) -> List[GradeRecord]:
        query = self._select().where(GradeRecord.supervisor_id == supervisor_id)
        if status_filter:
            query = query.where(GradeRecord.status == GradeStatus(status_filter).value)
        return list(
            self.db.execute(query.order_by(GradeRecord.updated_on.desc())).scalars().all()
        )

    def find_by_subject_and_status(
        self,
        subject_ids: Iterable[str],
        statuses: Iterable[GradeStatus],
    ) -> List[GradeRecord]:
        subject_ids = list(subject_ids)
        if not subject_ids:
            return []
        query = self._select().where(
            GradeRecord.subject_id.in_(subject_ids),
            GradeRecord.status.in_([GradeStatus(s).value for s in statuses]),
        )
        return list(
            self.db.execute(query.order_by(GradeRecord.submitted_at.desc())).scalars().all()
        )

    def build(
        self,
        student_id: str,
        supervisor_id: str,
        subject_id: str,
        work_type: Union[WorkType, str] = WorkType.INTERNSHIP,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> GradeRecord:
        work_type = WorkType(work_type)
        start_date = start_date or date.today()
        end_date = end_date or start_date + timedelta(days=settings.DEFAULT_ENGAGEMENT_DAYS)
        return GradeRecord(
            id=uuid.uuid4(),
            student_id=student_id,
            supervisor_id=supervisor_id,
            subject_id=subject_id,
            work_type=work_type.value,
            start_date=start_date,
            end_date=end_date,
            status=GradeStatus.NOT_STARTED.value,
            submitted_to_bcn=False,
            grading_files=[],
            milestones=default_milestones(work_type, start_date),
            grade_components=default_grade_components(),
        )

    def get_or_create(
        self,
        student_id: str,
        supervisor_id: str,
        subject_id: str,
        work_type: Union[WorkType, str] = WorkType.INTERNSHIP,
    ) -> GradeRecord:
        """
        Return the record for (student, subject), creating it with default
        milestones and components on first access. A concurrent creator
        wins on the unique constraint; the loser re-reads its record.
        """
        existing = self.find_one(student_id, subject_id)
        if existing:
            return existing

        record = self.build(student_id, supervisor_id, subject_id, work_type)
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            app_logger.info(
                f"Grade record for {student_id}/{subject_id} created concurrently, re-reading"
            )
            existing = self.find_one(student_id, subject_id)
            if existing is None:
                raise
            return existing

        app_logger.info(
            f"Created grade record {record.id} for student {student_id} "
            f"(supervisor {supervisor_id}, subject {subject_id})"
        )
        return self.find_by_id(record.id)

    def save(self, record: GradeRecord) -> GradeRecord:
        """
        Commit the aggregate. The version column turns a concurrent
        writer's stale save into ConflictError instead of a lost update.
        """
        record_id = record.id
        record.touch()
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            app_logger.warning(f"Concurrent modification of grade record {record_id}")
            raise ConflictError(record_id)
        return record

    def filtered(
        self,
        status: Optional[GradeStatus] = None,
        work_type: Optional[WorkType] = None,
        subject_id: Optional[str] = None,
        supervisor_id: Optional[str] = None,
    ) -> Select:
        """Filtered selection of records, shared by paging and aggregates."""
        query = select(GradeRecord)
        if status:
            query = query.where(GradeRecord.status == GradeStatus(status).value)
        if work_type:
            query = query.where(GradeRecord.work_type == WorkType(work_type).value)
        if subject_id:
            query = query.where(GradeRecord.subject_id == subject_id)
        if supervisor_id:
            query = query.where(GradeRecord.supervisor_id == supervisor_id)
        return query

    def page(self, query: Select, page: int, limit: int) -> List[GradeRecord]:
        query = query.options(
            selectinload(GradeRecord.milestones),
        ).order_by(GradeRecord.updated_on.desc()).limit(limit).offset((page - 1) * limit)
        return list(self.db.execute(query).scalars().all())

    def count(self, query: Select) -> int:
        return self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

    def count_by(self, query: Select, column_name: str) -> dict:
        subquery = query.subquery()
        column = subquery.c[column_name]
        rows = self.db.execute(
            select(column, func.count()).where(column.is_not(None)).group_by(column)
        ).all()
        return {value: count for value, count in rows}

    def final_grades(self, query: Select) -> List[float]:
        subquery = query.subquery()
        return list(
            self.db.execute(
                select(subquery.c.final_grade).where(subquery.c.final_grade.is_not(None))
            ).scalars().all()
        )
