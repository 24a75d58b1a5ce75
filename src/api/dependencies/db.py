# src/api/dependencies/db.py
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models.directory import (
    CommitteeSubject,
    StudentAssignment,
)


def select_student_assignment(
    db: Session,
    student_id: str,
    supervisor_id: str = None,
    subject_id: str = None,
) -> Optional[StudentAssignment]:
    """
    Fetch the roster entry binding a student to a supervisor and subject.

    Args:
        db: Database session
        student_id: The student's account ID (e.g. "SV0001")
        supervisor_id: Restrict to this supervisor (optional)
        subject_id: Restrict to this subject (optional)

    Returns:
        The most recent matching StudentAssignment, or None
    """
    if not student_id:
        raise ValueError("student_id must be provided")

    query = select(StudentAssignment).where(StudentAssignment.student_id == student_id)

    if supervisor_id:
        query = query.where(StudentAssignment.supervisor_id == supervisor_id)

    if subject_id:
        query = query.where(StudentAssignment.subject_id == subject_id)

    return db.execute(query.order_by(StudentAssignment.created_on.desc())).scalars().first()


def select_supervisor_assignments(db: Session, supervisor_id: str) -> List[StudentAssignment]:
    """All students assigned to a supervisor, ordered by student ID."""
    query = (
        select(StudentAssignment)
        .where(StudentAssignment.supervisor_id == supervisor_id)
        .order_by(StudentAssignment.student_id)
    )
    return list(db.execute(query).scalars().all())


def select_committee_subject_ids(db: Session, committee_id: str) -> List[str]:
    """Subjects a committee (BCN) member manages."""
    query = select(CommitteeSubject.subject_id).where(
        CommitteeSubject.committee_id == committee_id
    )
    return list(db.execute(query).scalars().all())


def select_subject_committee_ids(db: Session, subject_id: str) -> List[str]:
    """Committee members managing a subject; they receive submissions."""
    query = select(CommitteeSubject.committee_id).where(
        CommitteeSubject.subject_id == subject_id
    )
    return list(db.execute(query).scalars().all())


def committee_manages_subject(db: Session, committee_id: str, subject_id: str) -> bool:
    query = select(CommitteeSubject.id).where(
        CommitteeSubject.committee_id == committee_id,
        CommitteeSubject.subject_id == subject_id,
    )
    return db.execute(query).first() is not None


def select_assignments_by_student(db: Session, student_ids: List[str]) -> dict:
    """Map (student_id, subject_id) to roster entries, for display names."""
    if not student_ids:
        return {}
    query = select(StudentAssignment).where(StudentAssignment.student_id.in_(student_ids))
    return {
        (row.student_id, row.subject_id): row
        for row in db.execute(query).scalars().all()
    }
