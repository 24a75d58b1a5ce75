# src/services/grading/milestones.py
"""
Milestone tracker: ordered checkpoints of a grade record, their completion
state and the evidence files attached to them. Every function mutates the
record in memory only; persisting is the store's job.
"""
import math
import uuid
from datetime import date
from typing import Iterable, List, Optional, Tuple, Union

from src.exceptions import (
    ForbiddenError,
    InvalidOperationError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from src.models.base import utcnow
from src.models.grading import GradeRecord, Milestone, MilestoneDocument
from src.schema.grading import (
    FileRef,
    MilestoneStatus,
    MilestoneType,
    UploaderRole,
    WorkType,
)
from src.services.grading.events import MilestoneCompleted
from src.settings import settings

DEFAULT_START_MILESTONES = {
    WorkType.INTERNSHIP: (
        "Internship kick-off",
        "Start of the internship at the host company",
    ),
    WorkType.THESIS: (
        "Thesis kick-off",
        "Start of the graduation thesis project",
    ),
}


def default_milestones(work_type: Union[WorkType, str], start_date: date) -> List[Milestone]:
    title, description = DEFAULT_START_MILESTONES[WorkType(work_type)]
    return [
        Milestone(
            id=uuid.uuid4(),
            position=0,
            type=MilestoneType.START.value,
            title=title,
            description=description,
            due_date=start_date,
            status=MilestoneStatus.PENDING.value,
            is_custom=False,
        )
    ]


def _as_uuid(value, resource_type: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundError(resource_type, value)


def find_milestone(record: GradeRecord, milestone_id) -> Milestone:
    wanted = _as_uuid(milestone_id, "Milestone")
    for milestone in record.milestones:
        if milestone.id == wanted:
            return milestone
    raise NotFoundError("Milestone", milestone_id)


def find_document(milestone: Milestone, file_id) -> MilestoneDocument:
    wanted = _as_uuid(file_id, "File")
    for document in milestone.submitted_documents:
        if document.id == wanted:
            return document
    raise NotFoundError("File", file_id)


def _build_documents(files: Iterable[FileRef], uploader_role: UploaderRole, first_position: int) -> List[MilestoneDocument]:
    now = utcnow()
    return [
        MilestoneDocument(
            id=uuid.uuid4(),
            position=first_position + offset,
            file_name=file.file_name,
            file_url=file.file_url,
            file_size=file.file_size,
            uploaded_by=UploaderRole(uploader_role).value,
            submitted_at=now,
        )
        for offset, file in enumerate(files)
    ]


def update_status(
    record: GradeRecord,
    milestone_id,
    status: Union[MilestoneStatus, str],
    notes: Optional[str] = None,
    documents: Optional[List[FileRef]] = None,
) -> Tuple[Milestone, List[MilestoneCompleted]]:
    """
    Set a milestone's status, optionally with supervisor notes and a
    replacement list of supervisor documents. Student uploads are kept.

    Returns:
        The milestone and the domain events raised (completion of a
        milestone that was not already completed)
    """
    milestone = find_milestone(record, milestone_id)
    status = MilestoneStatus(status)
    events = []

    if documents is not None:
        # Only the supervisor's own uploads are replaced
        student_documents = [
            d for d in milestone.submitted_documents
            if d.uploaded_by == UploaderRole.STUDENT.value
        ]
        limit = settings.MAX_MILESTONE_DOCUMENTS
        if len(student_documents) + len(documents) > limit:
            raise ValidationError(
                f"A milestone holds at most {limit} documents",
                details={
                    "limit": limit,
                    "current": len(student_documents),
                    "requested": len(documents),
                },
            )
        next_position = max((d.position for d in student_documents), default=-1) + 1
        milestone.submitted_documents = student_documents + _build_documents(
            documents, UploaderRole.SUPERVISOR, next_position
        )

    if notes is not None:
        milestone.supervisor_notes = notes

    was_completed = milestone.status == MilestoneStatus.COMPLETED.value
    milestone.status = status.value

    if status == MilestoneStatus.COMPLETED:
        if not milestone.completed_at:
            milestone.completed_at = utcnow()
        if not was_completed:
            events.append(
                MilestoneCompleted(milestone_id=milestone.id, milestone_type=milestone.type)
            )
    else:
        milestone.completed_at = None

    return milestone, events


def add_custom_milestone(record: GradeRecord, title: str, description: str, due_date: date) -> Milestone:
    if not (title or "").strip():
        raise ValidationError("Milestone title is required")
    if not isinstance(due_date, date):
        raise ValidationError("Milestone due date is malformed", details={"due_date": str(due_date)})

    position = max((m.position for m in record.milestones), default=-1) + 1
    milestone = Milestone(
        id=uuid.uuid4(),
        position=position,
        type=MilestoneType.CUSTOM.value,
        title=title.strip(),
        description=description or "",
        due_date=due_date,
        status=MilestoneStatus.PENDING.value,
        is_custom=True,
    )
    record.milestones.append(milestone)
    return milestone


def edit_milestone(
    record: GradeRecord,
    milestone_id,
    title: Optional[str] = None,
    description: Optional[str] = None,
    due_date: Optional[date] = None,
) -> Milestone:
    milestone = find_milestone(record, milestone_id)
    if title is not None:
        if not title.strip():
            raise ValidationError("Milestone title cannot be empty")
        milestone.title = title.strip()
    if description is not None:
        milestone.description = description
    if due_date is not None:
        milestone.due_date = due_date
    return milestone


def delete_milestone(record: GradeRecord, milestone_id) -> Milestone:
    milestone = find_milestone(record, milestone_id)
    if not milestone.is_custom:
        raise InvalidOperationError(
            "Default milestones cannot be deleted",
            details={"milestone_id": str(milestone.id), "type": milestone.type},
        )
    record.milestones.remove(milestone)
    return milestone


def attach_files(
    record: GradeRecord,
    milestone_id,
    files: List[FileRef],
    uploader_role: Union[UploaderRole, str],
) -> Tuple[Milestone, List[MilestoneDocument]]:
    """Append evidence files; the whole call is refused past the cap."""
    milestone = find_milestone(record, milestone_id)
    if not files:
        raise ValidationError("No files to attach")

    limit = settings.MAX_MILESTONE_DOCUMENTS
    current = len(milestone.submitted_documents)
    if current + len(files) > limit:
        raise LimitExceededError(limit=limit, current=current, requested=len(files))

    next_position = max((d.position for d in milestone.submitted_documents), default=-1) + 1
    documents = _build_documents(files, uploader_role, next_position)
    milestone.submitted_documents.extend(documents)
    return milestone, documents


def remove_file(
    record: GradeRecord,
    milestone_id,
    file_id,
    caller_role: Union[UploaderRole, str],
) -> MilestoneDocument:
    milestone = find_milestone(record, milestone_id)
    document = find_document(milestone, file_id)

    caller_role = UploaderRole(caller_role)
    if caller_role == UploaderRole.STUDENT and document.uploaded_by != UploaderRole.STUDENT.value:
        raise ForbiddenError("Students can only remove files they uploaded")

    milestone.submitted_documents.remove(document)
    return document


def progress_percentage(milestones: Iterable[Milestone]) -> int:
    milestones = list(milestones)
    if not milestones:
        return 0
    completed = sum(1 for m in milestones if m.status == MilestoneStatus.COMPLETED.value)
    # half-up rounding
    return int(math.floor(100 * completed / len(milestones) + 0.5))
