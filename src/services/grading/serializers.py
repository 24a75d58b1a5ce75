# src/services/grading/serializers.py
from typing import Optional

from src.models.directory import StudentAssignment
from src.models.grading import GradeRecord
from src.schema.grading import (
    GradeRecordData,
    GradeRecordSummary,
    GradeStatus,
    MilestoneData,
    StudentMilestoneData,
    StudentProgressData,
)
from src.services.grading.milestones import progress_percentage


def _roster_fields(assignment: Optional[StudentAssignment]) -> dict:
    if assignment is None:
        return {}
    return {
        "student_name": assignment.student_name,
        "supervisor_name": assignment.supervisor_name,
        "subject_title": assignment.subject_title,
    }


def serialize_summary(record: GradeRecord, assignment: Optional[StudentAssignment] = None) -> GradeRecordSummary:
    summary = GradeRecordSummary.model_validate(record)
    return summary.model_copy(
        update={
            "progress_percentage": progress_percentage(record.milestones),
            **_roster_fields(assignment),
        }
    )


def serialize_record(record: GradeRecord, assignment: Optional[StudentAssignment] = None) -> GradeRecordData:
    data = GradeRecordData.model_validate(record)
    return data.model_copy(
        update={
            "progress_percentage": progress_percentage(record.milestones),
            **_roster_fields(assignment),
        }
    )


def serialize_milestone(milestone) -> MilestoneData:
    return MilestoneData.model_validate(milestone)


def serialize_progress(record: GradeRecord, assignment: Optional[StudentAssignment] = None) -> StudentProgressData:
    """
    A student's own view. The grade is only revealed once approved and
    the supervisor's final comment once the record has been submitted.
    """
    status = GradeStatus(record.status)
    approved = status == GradeStatus.APPROVED
    comment_visible = status in (GradeStatus.SUBMITTED, GradeStatus.APPROVED)
    roster = _roster_fields(assignment)

    return StudentProgressData(
        id=record.id,
        supervisor_id=record.supervisor_id,
        supervisor_name=roster.get("supervisor_name"),
        subject_id=record.subject_id,
        subject_title=roster.get("subject_title"),
        work_type=record.work_type,
        status=status,
        start_date=record.start_date,
        end_date=record.end_date,
        milestones=[StudentMilestoneData.model_validate(m) for m in record.milestones],
        progress_percentage=progress_percentage(record.milestones),
        final_grade=record.final_grade if approved else None,
        letter_grade=record.letter_grade if approved else None,
        supervisor_final_comment=record.supervisor_final_comment if comment_visible else None,
        submitted_to_bcn=record.submitted_to_bcn,
    )
