# src/models/grading.py
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.base import BaseMixin, utcnow
from src.schema.grading import (
    ComponentType,
    GradeStatus,
    GradedBy,
    MilestoneStatus,
    MilestoneType,
    WorkType,
)


class GradeRecord(Base, BaseMixin):
    """
    Aggregate root: one grading record per (student, subject). Milestones
    and grade components are owned rows, only reachable through the record.
    """

    __tablename__ = "grade_records"
    __table_args__ = (
        UniqueConstraint("student_id", "subject_id", name="uq_grade_student_subject"),
    )

    student_id = Column(String(50), nullable=False, index=True)
    supervisor_id = Column(String(50), nullable=False, index=True)
    subject_id = Column(String(50), nullable=False, index=True)

    work_type = Column(String(20), nullable=False, default=WorkType.INTERNSHIP.value)
    company = Column(JSON, nullable=True)
    project_topic = Column(String(500), nullable=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    final_grade = Column(Float, nullable=True)
    letter_grade = Column(String(2), nullable=True)

    status = Column(String(20), nullable=False, default=GradeStatus.NOT_STARTED.value, index=True)

    submitted_to_bcn = Column(Boolean, nullable=False, default=False)
    submitted_at = Column(DateTime, nullable=True)
    approved_by = Column(String(50), nullable=True)
    approved_at = Column(DateTime, nullable=True)

    supervisor_final_comment = Column(Text, nullable=True)
    grading_notes = Column(Text, nullable=True)
    grading_files = Column(JSON, nullable=False, default=list)
    bcn_comment = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    milestones = relationship(
        "Milestone",
        back_populates="record",
        order_by="Milestone.position",
        cascade="all, delete-orphan",
    )
    grade_components = relationship(
        "GradeComponent",
        back_populates="record",
        order_by="GradeComponent.position",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    def touch(self):
        self.updated_on = utcnow()


class Milestone(Base, BaseMixin):
    __tablename__ = "milestones"

    grade_record_id = Column(
        Uuid(as_uuid=True), ForeignKey("grade_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)
    type = Column(String(20), nullable=False, default=MilestoneType.CUSTOM.value)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    due_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=MilestoneStatus.PENDING.value)
    completed_at = Column(DateTime, nullable=True)
    supervisor_notes = Column(Text, nullable=True)
    is_custom = Column(Boolean, nullable=False, default=False)

    record = relationship("GradeRecord", back_populates="milestones")
    submitted_documents = relationship(
        "MilestoneDocument",
        back_populates="milestone",
        order_by="MilestoneDocument.position",
        cascade="all, delete-orphan",
    )


class MilestoneDocument(Base):
    __tablename__ = "milestone_documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    milestone_id = Column(
        Uuid(as_uuid=True), ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)
    file_name = Column(String(255), nullable=False)
    file_url = Column(String(1000), nullable=False)
    file_size = Column(Integer, nullable=True)
    uploaded_by = Column(String(20), nullable=False)
    submitted_at = Column(DateTime, nullable=False, default=utcnow)

    milestone = relationship("Milestone", back_populates="submitted_documents")


class GradeComponent(Base):
    __tablename__ = "grade_components"

    id = Column(Integer, primary_key=True, autoincrement=True)
    grade_record_id = Column(
        Uuid(as_uuid=True), ForeignKey("grade_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)
    type = Column(String(30), nullable=False, default=ComponentType.SUPERVISOR_SCORE.value)
    score = Column(Float, nullable=False, default=0.0)
    weight = Column(Float, nullable=False)
    comment = Column(Text, nullable=False, default="")
    graded_by = Column(String(20), nullable=False, default=GradedBy.SUPERVISOR.value)
    graded_at = Column(DateTime, nullable=False, default=utcnow)

    record = relationship("GradeRecord", back_populates="grade_components")
