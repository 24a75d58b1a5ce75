# src/models/directory.py
"""
Local mirror of the roster owned by account management: which faculty
member supervises which student for which internship subject, and which
committee (BCN) member manages which subject.
"""
from sqlalchemy import Column, Integer, String, UniqueConstraint

from src.database import Base
from src.models.base import BaseMixin
from src.schema.grading import WorkType


class StudentAssignment(Base, BaseMixin):
    __tablename__ = "student_assignments"
    __table_args__ = (
        UniqueConstraint("student_id", "subject_id", name="uq_assignment_student_subject"),
    )

    student_id = Column(String(50), nullable=False, index=True)
    student_name = Column(String(155), nullable=False, default="")
    student_email = Column(String(155), nullable=True)
    supervisor_id = Column(String(50), nullable=False, index=True)
    supervisor_name = Column(String(155), nullable=False, default="")
    subject_id = Column(String(50), nullable=False, index=True)
    subject_title = Column(String(255), nullable=False, default="")
    work_type = Column(String(20), nullable=False, default=WorkType.INTERNSHIP.value)


class CommitteeSubject(Base):
    __tablename__ = "committee_subjects"
    __table_args__ = (
        UniqueConstraint("committee_id", "subject_id", name="uq_committee_subject"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    committee_id = Column(String(50), nullable=False, index=True)
    committee_name = Column(String(155), nullable=False, default="")
    subject_id = Column(String(50), nullable=False, index=True)
