# src/services/grading/workflow.py
"""
Workflow orchestrator: the only entry point the HTTP layer uses.

Each operation checks the actor's capability and relationship to the
record once, delegates the mutation to the milestone tracker / grade
calculator, lets the approval pipeline decide status changes, persists
through the store and finally emits notifications. Notifications are
emitted only after a successful commit and never undo it.
"""
import math
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from src.api.dependencies.db import (
    committee_manages_subject,
    select_assignments_by_student,
    select_committee_subject_ids,
    select_student_assignment,
    select_subject_committee_ids,
    select_supervisor_assignments,
)
from src.exceptions import ForbiddenError, NotFoundError, ValidationError
from src.logging_config import app_logger
from src.models.base import utcnow
from src.models.grading import GradeRecord
from src.schema.grading import (
    AttachFilesRequest,
    GradeComponentsUpdateRequest,
    GradeRecordData,
    GradeRecordSummary,
    GradeStatistics,
    GradeStatisticsData,
    GradeStatus,
    MilestoneCreateRequest,
    MilestoneData,
    MilestoneEditRequest,
    MilestoneStatus,
    MilestoneStatusUpdateRequest,
    MilestoneUpdateResult,
    Pagination,
    ReviewDecision,
    ReviewRequest,
    StatisticsQuery,
    StudentProgressData,
    WorkInfoUpdateRequest,
    WorkType,
)
from src.schema.notification import (
    NotificationEvent,
    NotificationPriority,
    NotificationType,
)
from src.services.grading import calculator, milestones, pipeline
from src.services.grading.actors import Actor, Capability, Role
from src.services.grading.events import AllComponentsGraded, ContentRevised
from src.services.grading.serializers import (
    serialize_milestone,
    serialize_progress,
    serialize_record,
    serialize_summary,
)
from src.services.grading.store import GradeRecordStore, default_grade_components
from src.services.notifications import NotificationDispatcher
from src.settings import settings

STUDENT_LINK = "/my-internship"
SUPERVISOR_LINK = "/grade-management"
COMMITTEE_LINK = "/grade-review"

MILESTONE_STATUS_LABELS = {
    MilestoneStatus.PENDING: "pending",
    MilestoneStatus.IN_PROGRESS: "in progress",
    MilestoneStatus.COMPLETED: "completed",
    MilestoneStatus.OVERDUE: "overdue",
}

COMMITTEE_HISTORY_STATUSES = (
    GradeStatus.SUBMITTED,
    GradeStatus.APPROVED,
    GradeStatus.REJECTED,
)


# ---------------------------------------------------------------------------
# Record resolution
# ---------------------------------------------------------------------------

def _assignment_for(db: Session, record: GradeRecord):
    return select_student_assignment(db, record.student_id, subject_id=record.subject_id)


def get_or_create_for_student(db: Session, actor: Actor, student_id: str) -> GradeRecord:
    """
    Resolve the record a supervisor works on, creating it on first access.
    The student must be assigned to the calling supervisor.
    """
    actor.require(Capability.VIEW_RECORD)
    if actor.role != Role.FACULTY:
        raise ForbiddenError("Only the supervising faculty member can open this record")

    store = GradeRecordStore(db)
    assignment = select_student_assignment(db, student_id, supervisor_id=actor.actor_id)
    if assignment is None:
        if select_student_assignment(db, student_id) is None and store.find_by_student(student_id) is None:
            raise NotFoundError("Student", student_id)
        raise ForbiddenError(
            "You are not assigned to supervise this student",
            details={"student_id": student_id},
        )

    record = store.get_or_create(
        student_id,
        actor.actor_id,
        assignment.subject_id,
        assignment.work_type,
    )
    if record.supervisor_id != actor.actor_id:
        raise ForbiddenError(
            "This grade record belongs to another supervisor",
            details={"student_id": student_id},
        )
    return record


def _record_for_file_actor(db: Session, actor: Actor, student_id: str) -> GradeRecord:
    actor.require(Capability.ATTACH_FILES)
    if actor.role == Role.FACULTY:
        return get_or_create_for_student(db, actor, student_id)

    if actor.actor_id != student_id:
        raise ForbiddenError("Students can only handle files on their own record")
    record = GradeRecordStore(db).find_by_student(student_id)
    if record is None:
        raise NotFoundError("GradeRecord", student_id)
    return record


def _record_for_committee(db: Session, actor: Actor, record_id) -> GradeRecord:
    actor.require(Capability.REVIEW)
    record = GradeRecordStore(db).find_by_id(record_id)
    if record is None:
        raise NotFoundError("GradeRecord", record_id)
    if not committee_manages_subject(db, actor.actor_id, record.subject_id):
        raise ForbiddenError(
            "You do not manage this internship subject",
            details={"subject_id": record.subject_id},
        )
    return record


# ---------------------------------------------------------------------------
# Notification builders
# ---------------------------------------------------------------------------

def _notify_student(record: GradeRecord, actor: Actor, type_: NotificationType, title: str, message: str, **metadata) -> NotificationEvent:
    return NotificationEvent(
        type=type_,
        recipient=record.student_id,
        sender=actor.actor_id,
        title=title,
        message=message,
        link=STUDENT_LINK,
        priority=NotificationPriority.NORMAL,
        metadata={"grade_id": str(record.id), **metadata},
    )


def _format_grade(final_grade: Optional[float]) -> str:
    return f"{final_grade:.1f}" if final_grade is not None else "N/A"


# ---------------------------------------------------------------------------
# Supervisor views
# ---------------------------------------------------------------------------

def list_supervisor_records(db: Session, actor: Actor, status: Optional[GradeStatus] = None) -> List[GradeRecordSummary]:
    """Every assigned student's record, creating the missing ones."""
    actor.require(Capability.VIEW_RECORD)
    if actor.role != Role.FACULTY:
        raise ForbiddenError("Only faculty members have supervised students")

    store = GradeRecordStore(db)
    assignments = select_supervisor_assignments(db, actor.actor_id)
    for assignment in assignments:
        store.get_or_create(
            assignment.student_id,
            actor.actor_id,
            assignment.subject_id,
            assignment.work_type,
        )

    roster = {(a.student_id, a.subject_id): a for a in assignments}
    return [
        serialize_summary(record, roster.get((record.student_id, record.subject_id)))
        for record in store.find_by_supervisor(actor.actor_id, status)
    ]


def get_record_detail(db: Session, actor: Actor, student_id: str) -> GradeRecordData:
    """Full record for its supervisor or a committee member of its subject."""
    actor.require(Capability.VIEW_RECORD)
    if actor.role == Role.FACULTY:
        record = get_or_create_for_student(db, actor, student_id)
    else:
        record = GradeRecordStore(db).find_by_student(student_id)
        if record is None:
            raise NotFoundError("GradeRecord", student_id)
        if not committee_manages_subject(db, actor.actor_id, record.subject_id):
            raise ForbiddenError("You do not manage this internship subject")
    return serialize_record(record, _assignment_for(db, record))


# ---------------------------------------------------------------------------
# Milestones
# ---------------------------------------------------------------------------

def update_milestone_status(
    db: Session,
    actor: Actor,
    student_id: str,
    milestone_id,
    request: MilestoneStatusUpdateRequest,
    notifier: NotificationDispatcher,
) -> MilestoneUpdateResult:
    actor.require(Capability.MANAGE_MILESTONES)
    record = get_or_create_for_student(db, actor, student_id)
    pipeline.ensure_editable(record, "update milestones")

    milestone, events = milestones.update_status(
        record,
        milestone_id,
        request.status,
        notes=request.supervisor_notes,
        documents=request.submitted_documents,
    )
    for event in events:
        pipeline.apply(record, event)
    pipeline.apply(record, ContentRevised("milestone status updated"))

    GradeRecordStore(db).save(record)

    status_label = MILESTONE_STATUS_LABELS[MilestoneStatus(milestone.status)]
    notifier.emit([
        _notify_student(
            record,
            actor,
            NotificationType.MILESTONE_UPDATED,
            "Internship progress updated",
            f"Your supervisor marked milestone \"{milestone.title}\" as {status_label}",
            milestone_id=str(milestone.id),
            milestone_type=milestone.type,
        )
    ])

    return MilestoneUpdateResult(
        milestone=serialize_milestone(milestone),
        progress_percentage=milestones.progress_percentage(record.milestones),
        grade_status=GradeStatus(record.status),
    )


def add_milestone(
    db: Session,
    actor: Actor,
    student_id: str,
    request: MilestoneCreateRequest,
    notifier: NotificationDispatcher,
) -> MilestoneData:
    actor.require(Capability.MANAGE_MILESTONES)
    record = get_or_create_for_student(db, actor, student_id)
    pipeline.ensure_editable(record, "add milestones")

    milestone = milestones.add_custom_milestone(
        record, request.title, request.description, request.due_date
    )
    pipeline.apply(record, ContentRevised("milestone added"))
    GradeRecordStore(db).save(record)

    notifier.emit([
        _notify_student(
            record,
            actor,
            NotificationType.MILESTONE_ADDED,
            "New milestone",
            f"Your supervisor added a new milestone: {milestone.title} "
            f"(due {milestone.due_date.isoformat()})",
            milestone_id=str(milestone.id),
        )
    ])
    return serialize_milestone(milestone)


def edit_milestone(
    db: Session,
    actor: Actor,
    student_id: str,
    milestone_id,
    request: MilestoneEditRequest,
    notifier: NotificationDispatcher,
) -> MilestoneData:
    actor.require(Capability.MANAGE_MILESTONES)
    record = get_or_create_for_student(db, actor, student_id)
    pipeline.ensure_editable(record, "edit milestones")

    milestone = milestones.edit_milestone(
        record,
        milestone_id,
        title=request.title,
        description=request.description,
        due_date=request.due_date,
    )
    pipeline.apply(record, ContentRevised("milestone edited"))
    GradeRecordStore(db).save(record)

    notifier.emit([
        _notify_student(
            record,
            actor,
            NotificationType.MILESTONE_UPDATED,
            "Milestone updated",
            f"Your supervisor updated milestone: {milestone.title}",
            milestone_id=str(milestone.id),
        )
    ])
    return serialize_milestone(milestone)


def delete_milestone(
    db: Session,
    actor: Actor,
    student_id: str,
    milestone_id,
    notifier: NotificationDispatcher,
) -> None:
    actor.require(Capability.MANAGE_MILESTONES)
    record = get_or_create_for_student(db, actor, student_id)
    pipeline.ensure_editable(record, "delete milestones")

    milestone = milestones.delete_milestone(record, milestone_id)
    title = milestone.title
    pipeline.apply(record, ContentRevised("milestone deleted"))
    GradeRecordStore(db).save(record)

    notifier.emit([
        _notify_student(
            record,
            actor,
            NotificationType.MILESTONE_UPDATED,
            "Milestone removed",
            f"Your supervisor removed milestone: {title}",
            milestone_id=str(milestone_id),
        )
    ])


def _file_counterpart_event(
    record: GradeRecord,
    actor: Actor,
    milestone,
    message: str,
) -> NotificationEvent:
    if actor.role == Role.STUDENT:
        return NotificationEvent(
            type=NotificationType.FILE_SUBMITTED,
            recipient=record.supervisor_id,
            sender=actor.actor_id,
            title="Milestone files updated",
            message=message,
            link=f"{SUPERVISOR_LINK}/{record.student_id}",
            priority=NotificationPriority.NORMAL,
            metadata={
                "grade_id": str(record.id),
                "milestone_id": str(milestone.id),
                "student_id": record.student_id,
            },
        )
    return _notify_student(
        record,
        actor,
        NotificationType.FILE_SUBMITTED,
        "Milestone files updated",
        message,
        milestone_id=str(milestone.id),
    )


def attach_milestone_files(
    db: Session,
    actor: Actor,
    student_id: str,
    milestone_id,
    request: AttachFilesRequest,
    notifier: NotificationDispatcher,
) -> MilestoneData:
    record = _record_for_file_actor(db, actor, student_id)
    pipeline.ensure_editable(record, "attach files")

    milestone, documents = milestones.attach_files(
        record, milestone_id, request.files, actor.uploader_role
    )
    GradeRecordStore(db).save(record)

    who = "Student" if actor.role == Role.STUDENT else "Your supervisor"
    notifier.emit([
        _file_counterpart_event(
            record,
            actor,
            milestone,
            f"{who} attached {len(documents)} file(s) to milestone \"{milestone.title}\"",
        )
    ])
    return serialize_milestone(milestone)


def remove_milestone_file(
    db: Session,
    actor: Actor,
    student_id: str,
    milestone_id,
    file_id,
    notifier: NotificationDispatcher,
) -> MilestoneData:
    record = _record_for_file_actor(db, actor, student_id)
    pipeline.ensure_editable(record, "remove files")

    document = milestones.remove_file(record, milestone_id, file_id, actor.uploader_role)
    milestone = milestones.find_milestone(record, milestone_id)
    file_name = document.file_name
    GradeRecordStore(db).save(record)

    who = "Student" if actor.role == Role.STUDENT else "Your supervisor"
    notifier.emit([
        _file_counterpart_event(
            record,
            actor,
            milestone,
            f"{who} removed \"{file_name}\" from milestone \"{milestone.title}\"",
        )
    ])
    return serialize_milestone(milestone)


# ---------------------------------------------------------------------------
# Grading
# ---------------------------------------------------------------------------

def update_grade_components(
    db: Session,
    actor: Actor,
    student_id: str,
    request: GradeComponentsUpdateRequest,
    notifier: NotificationDispatcher,
) -> GradeRecordData:
    """
    Write component scores, recompute the final grade and let the
    pipeline promote the record once every component is graded.
    """
    actor.require(Capability.GRADE)
    record = get_or_create_for_student(db, actor, student_id)
    pipeline.ensure_editable(record, "update grades")

    if request.grade_components is not None:
        by_type = {component.type: component for component in record.grade_components}
        # Validate everything before touching the record
        for item in request.grade_components:
            if item.type.value not in by_type:
                raise ValidationError(
                    f"Unknown grade component '{item.type.value}'",
                    details={"type": item.type.value},
                )
            calculator.validate_score(item.score)
            if item.weight is not None:
                calculator.validate_weight(item.weight)

        now = utcnow()
        for item in request.grade_components:
            component = by_type[item.type.value]
            component.score = float(item.score)
            if item.weight is not None:
                component.weight = float(item.weight)
            if item.comment is not None:
                component.comment = item.comment
            component.graded_at = now

        result = calculator.recompute(record.grade_components)
        record.final_grade = result.final_grade
        record.letter_grade = result.letter_grade

    if request.supervisor_final_comment is not None:
        record.supervisor_final_comment = request.supervisor_final_comment
    if request.grading_notes is not None:
        record.grading_notes = request.grading_notes
    if request.grading_files is not None:
        record.grading_files = [
            {
                **file.model_dump(mode="json"),
                "id": file.id or str(uuid.uuid4()),
                "uploaded_at": (file.uploaded_at or utcnow()).isoformat(),
            }
            for file in request.grading_files
        ]

    if calculator.all_graded(record.grade_components):
        pipeline.apply(record, AllComponentsGraded(final_grade=record.final_grade))
    pipeline.apply(record, ContentRevised("grades updated"))

    GradeRecordStore(db).save(record)

    notifier.emit([
        _notify_student(
            record,
            actor,
            NotificationType.GRADE_UPDATED,
            "Internship grade updated",
            "Your supervisor updated your internship grade"
            + (f" (grade: {_format_grade(record.final_grade)})" if record.final_grade else ""),
            final_grade=record.final_grade,
        )
    ])
    return serialize_record(record, _assignment_for(db, record))


def update_work_info(
    db: Session,
    actor: Actor,
    student_id: str,
    request: WorkInfoUpdateRequest,
    notifier: NotificationDispatcher,
) -> GradeRecordData:
    """
    Change work type, company / thesis topic and the engagement window.
    Switching work type starts over with default milestones and components.
    """
    actor.require(Capability.GRADE)
    record = get_or_create_for_student(db, actor, student_id)
    pipeline.ensure_editable(record, "update work information")

    start_date = request.start_date or record.start_date
    end_date = request.end_date or record.end_date
    if end_date < start_date:
        raise ValidationError(
            "end_date must not be before start_date",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )
    record.start_date = start_date
    record.end_date = end_date

    if request.work_type and request.work_type.value != record.work_type:
        app_logger.info(
            f"Record {record.id}: work type {record.work_type} → {request.work_type.value}, "
            f"resetting milestones and components"
        )
        record.work_type = request.work_type.value
        record.milestones = milestones.default_milestones(request.work_type, record.start_date)
        record.grade_components = default_grade_components()
        record.final_grade = None
        record.letter_grade = None

    if record.work_type == WorkType.INTERNSHIP.value:
        if request.company is not None:
            record.company = request.company.model_dump()
        record.project_topic = None
    else:
        if request.project_topic is not None:
            record.project_topic = request.project_topic
        record.company = None

    pipeline.apply(record, ContentRevised("work information updated"))
    GradeRecordStore(db).save(record)

    notifier.emit([
        _notify_student(
            record,
            actor,
            NotificationType.WORK_INFO_UPDATED,
            "Internship information updated",
            "Your supervisor updated your internship information",
            work_type=record.work_type,
        )
    ])
    return serialize_record(record, _assignment_for(db, record))


def submit_grade(
    db: Session,
    actor: Actor,
    student_id: str,
    notifier: NotificationDispatcher,
) -> GradeRecordData:
    actor.require(Capability.SUBMIT)
    record = get_or_create_for_student(db, actor, student_id)

    pipeline.submit(record)
    GradeRecordStore(db).save(record)

    assignment = _assignment_for(db, record)
    student_name = assignment.student_name if assignment else record.student_id
    grade_text = _format_grade(record.final_grade)

    events = [
        NotificationEvent(
            type=NotificationType.GRADE_SUBMITTED,
            recipient=committee_id,
            sender=actor.actor_id,
            title="Internship grade awaiting review",
            message=f"A supervisor submitted the internship grade of {student_name} (grade: {grade_text})",
            link=COMMITTEE_LINK,
            priority=NotificationPriority.HIGH,
            metadata={
                "grade_id": str(record.id),
                "student_id": record.student_id,
                "subject_id": record.subject_id,
            },
        )
        for committee_id in select_subject_committee_ids(db, record.subject_id)
    ]
    if not events:
        app_logger.warning(f"No committee member manages subject {record.subject_id}")
    events.append(
        _notify_student(
            record,
            actor,
            NotificationType.GRADE_SUBMITTED,
            "Internship grade submitted",
            f"Your supervisor submitted your internship grade for committee review (grade: {grade_text})",
            final_grade=record.final_grade,
        )
    )
    notifier.emit(events)
    return serialize_record(record, assignment)


# ---------------------------------------------------------------------------
# Committee
# ---------------------------------------------------------------------------

def _committee_list(db: Session, actor: Actor, statuses) -> List[GradeRecordSummary]:
    actor.require(Capability.REVIEW)
    subject_ids = select_committee_subject_ids(db, actor.actor_id)
    records = GradeRecordStore(db).find_by_subject_and_status(subject_ids, statuses)
    roster = select_assignments_by_student(db, [r.student_id for r in records])
    return [
        serialize_summary(record, roster.get((record.student_id, record.subject_id)))
        for record in records
    ]


def list_pending_for_committee(db: Session, actor: Actor) -> List[GradeRecordSummary]:
    return _committee_list(db, actor, [GradeStatus.SUBMITTED])


def list_reviewed_for_committee(db: Session, actor: Actor) -> List[GradeRecordSummary]:
    return _committee_list(db, actor, COMMITTEE_HISTORY_STATUSES)


def get_record_for_committee(db: Session, actor: Actor, record_id) -> GradeRecordData:
    record = _record_for_committee(db, actor, record_id)
    return serialize_record(record, _assignment_for(db, record))


def review_grade(
    db: Session,
    actor: Actor,
    record_id,
    request: ReviewRequest,
    notifier: NotificationDispatcher,
) -> GradeRecordData:
    record = _record_for_committee(db, actor, record_id)

    pipeline.review(record, request.action, request.bcn_comment, actor.actor_id)
    GradeRecordStore(db).save(record)

    approved = ReviewDecision(request.action) == ReviewDecision.APPROVE
    type_ = NotificationType.GRADE_APPROVED if approved else NotificationType.GRADE_REJECTED
    assignment = _assignment_for(db, record)
    student_name = assignment.student_name if assignment else record.student_id
    comment_suffix = f": {record.bcn_comment}" if record.bcn_comment else ""

    notifier.emit([
        NotificationEvent(
            type=type_,
            recipient=record.supervisor_id,
            sender=actor.actor_id,
            title="Internship grade approved" if approved else "Internship grade rejected",
            message=(
                f"The committee {'approved' if approved else 'rejected'} the internship grade "
                f"of {student_name}{comment_suffix}"
            ),
            link=SUPERVISOR_LINK,
            priority=NotificationPriority.NORMAL,
            metadata={
                "grade_id": str(record.id),
                "student_id": record.student_id,
                "action": ReviewDecision(request.action).value,
            },
        ),
        NotificationEvent(
            type=type_,
            recipient=record.student_id,
            sender=actor.actor_id,
            title="Internship grade approved" if approved else "Internship grade needs revision",
            message=(
                f"Your internship grade was approved (grade: {_format_grade(record.final_grade)})"
                if approved
                else f"Your internship grade needs to be revised{comment_suffix}"
            ),
            link=STUDENT_LINK,
            priority=NotificationPriority.NORMAL if approved else NotificationPriority.HIGH,
            metadata={
                "grade_id": str(record.id),
                "final_grade": record.final_grade,
                "action": ReviewDecision(request.action).value,
            },
        ),
    ])
    return serialize_record(record, assignment)


# ---------------------------------------------------------------------------
# Student
# ---------------------------------------------------------------------------

def get_my_progress(db: Session, actor: Actor) -> Optional[StudentProgressData]:
    actor.require(Capability.VIEW_OWN_PROGRESS)
    record = GradeRecordStore(db).find_by_student(actor.actor_id)
    if record is None:
        return None
    return serialize_progress(record, _assignment_for(db, record))


# ---------------------------------------------------------------------------
# Training office
# ---------------------------------------------------------------------------

def grade_statistics(db: Session, actor: Actor, query: StatisticsQuery) -> GradeStatisticsData:
    """Paged records plus aggregates over the whole filtered set."""
    actor.require(Capability.VIEW_STATISTICS)

    page = max(1, query.page)
    limit = min(settings.STATISTICS_MAX_PAGE_SIZE, max(1, query.limit))

    store = GradeRecordStore(db)
    filtered = store.filtered(
        status=query.status,
        work_type=query.work_type,
        subject_id=query.subject_id,
        supervisor_id=query.supervisor_id,
    )
    total = store.count(filtered)
    records = store.page(filtered, page, limit)
    roster = select_assignments_by_student(db, [r.student_id for r in records])

    by_status = store.count_by(filtered, "status")
    final_grades = store.final_grades(filtered)
    passed = sum(1 for grade in final_grades if calculator.is_passing(grade))

    statistics = GradeStatistics(
        total=total,
        by_status=by_status,
        by_work_type=store.count_by(filtered, "work_type"),
        by_letter_grade=store.count_by(filtered, "letter_grade"),
        average_grade=round(sum(final_grades) / len(final_grades), 2) if final_grades else 0.0,
        pass_rate=round(100 * passed / len(final_grades), 1) if final_grades else 0.0,
        submitted_count=store.count(filtered.where(GradeRecord.submitted_to_bcn.is_(True))),
        approved_count=by_status.get(GradeStatus.APPROVED.value, 0),
        total_finalized=len(final_grades),
    )

    return GradeStatisticsData(
        grades=[
            serialize_summary(record, roster.get((record.student_id, record.subject_id)))
            for record in records
        ],
        pagination=Pagination(
            page=page,
            pages=max(1, math.ceil(total / limit)),
            total=total,
        ),
        statistics=statistics,
    )
