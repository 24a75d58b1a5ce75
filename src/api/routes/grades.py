# src/api/routes/grades.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.api.dependencies.auth import get_actor
from src.api.dependencies.notifications import get_notifier
from src.database import get_db
from src.schema.base import BaseResponse
from src.schema.grading import (
    AttachFilesRequest,
    GradeComponentsUpdateRequest,
    GradeRecordListResponse,
    GradeRecordResponse,
    GradeStatisticsResponse,
    GradeStatus,
    MilestoneCreateRequest,
    MilestoneEditRequest,
    MilestoneResponse,
    MilestoneStatusUpdateRequest,
    MilestoneUpdateResponse,
    ReviewDecision,
    ReviewRequest,
    StatisticsQuery,
    StudentProgressResponse,
    WorkInfoUpdateRequest,
    WorkType,
)
from src.services.grading import workflow
from src.services.grading.actors import Actor
from src.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/grades")


# Supervisor (faculty)
@router.get("/supervisor/students", response_model=GradeRecordListResponse)
async def list_supervised_students(
    status: Optional[GradeStatus] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> GradeRecordListResponse:
    """
    Grade records of every student assigned to the calling supervisor.
    Records are created on first access.
    """
    records = workflow.list_supervisor_records(db, actor, status)
    return GradeRecordListResponse(data=records)


@router.get("/students/{student_id}", response_model=GradeRecordResponse)
async def get_student_grade(
    student_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> GradeRecordResponse:
    record = workflow.get_record_detail(db, actor, student_id)
    return GradeRecordResponse(data=record)


@router.put(
    "/students/{student_id}/milestones/{milestone_id}",
    response_model=MilestoneUpdateResponse,
)
async def update_milestone(
    student_id: str,
    milestone_id: str,
    request: MilestoneStatusUpdateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MilestoneUpdateResponse:
    result = workflow.update_milestone_status(
        db, actor, student_id, milestone_id, request, notifier
    )
    return MilestoneUpdateResponse(data=result, message="Milestone updated")


@router.post("/students/{student_id}/milestones", response_model=MilestoneResponse)
async def add_milestone(
    student_id: str,
    request: MilestoneCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MilestoneResponse:
    milestone = workflow.add_milestone(db, actor, student_id, request, notifier)
    return MilestoneResponse(data=milestone, message="Milestone added")


@router.put(
    "/students/{student_id}/milestones/{milestone_id}/details",
    response_model=MilestoneResponse,
)
async def edit_milestone(
    student_id: str,
    milestone_id: str,
    request: MilestoneEditRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MilestoneResponse:
    milestone = workflow.edit_milestone(
        db, actor, student_id, milestone_id, request, notifier
    )
    return MilestoneResponse(data=milestone, message="Milestone updated")


@router.delete(
    "/students/{student_id}/milestones/{milestone_id}",
    response_model=BaseResponse,
)
async def delete_milestone(
    student_id: str,
    milestone_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> BaseResponse:
    """Only custom milestones can be deleted."""
    workflow.delete_milestone(db, actor, student_id, milestone_id, notifier)
    return BaseResponse(message="Milestone deleted", data=None)


# Milestone files (supervisor or the student themself)
@router.post(
    "/students/{student_id}/milestones/{milestone_id}/files",
    response_model=MilestoneResponse,
)
async def attach_milestone_files(
    student_id: str,
    milestone_id: str,
    request: AttachFilesRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MilestoneResponse:
    milestone = workflow.attach_milestone_files(
        db, actor, student_id, milestone_id, request, notifier
    )
    return MilestoneResponse(
        data=milestone,
        message=f"{len(request.files)} file(s) attached",
    )


@router.delete(
    "/students/{student_id}/milestones/{milestone_id}/files/{file_id}",
    response_model=MilestoneResponse,
)
async def remove_milestone_file(
    student_id: str,
    milestone_id: str,
    file_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MilestoneResponse:
    milestone = workflow.remove_milestone_file(
        db, actor, student_id, milestone_id, file_id, notifier
    )
    return MilestoneResponse(data=milestone, message="File removed")


@router.put("/students/{student_id}/grades", response_model=GradeRecordResponse)
async def update_grades(
    student_id: str,
    request: GradeComponentsUpdateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> GradeRecordResponse:
    record = workflow.update_grade_components(db, actor, student_id, request, notifier)
    return GradeRecordResponse(data=record, message="Grades updated")


@router.put("/students/{student_id}/work-info", response_model=GradeRecordResponse)
async def update_work_info(
    student_id: str,
    request: WorkInfoUpdateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> GradeRecordResponse:
    record = workflow.update_work_info(db, actor, student_id, request, notifier)
    return GradeRecordResponse(data=record, message="Work information updated")


@router.post("/students/{student_id}/submit", response_model=GradeRecordResponse)
async def submit_grade(
    student_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> GradeRecordResponse:
    record = workflow.submit_grade(db, actor, student_id, notifier)
    return GradeRecordResponse(data=record, message="Grade submitted for committee review")


# Committee (BCN)
@router.get("/committee/pending", response_model=GradeRecordListResponse)
async def list_pending_grades(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> GradeRecordListResponse:
    records = workflow.list_pending_for_committee(db, actor)
    return GradeRecordListResponse(data=records)


@router.get("/committee/submitted", response_model=GradeRecordListResponse)
async def list_reviewed_grades(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> GradeRecordListResponse:
    """Submitted, approved and rejected records of the caller's subjects."""
    records = workflow.list_reviewed_for_committee(db, actor)
    return GradeRecordListResponse(data=records)


@router.get("/committee/grades/{grade_id}", response_model=GradeRecordResponse)
async def get_grade_for_review(
    grade_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> GradeRecordResponse:
    record = workflow.get_record_for_committee(db, actor, grade_id)
    return GradeRecordResponse(data=record)


@router.post("/committee/grades/{grade_id}/review", response_model=GradeRecordResponse)
async def review_grade(
    grade_id: str,
    request: ReviewRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> GradeRecordResponse:
    record = workflow.review_grade(db, actor, grade_id, request, notifier)
    message = (
        "Grade approved"
        if request.action == ReviewDecision.APPROVE
        else "Grade rejected"
    )
    return GradeRecordResponse(data=record, message=message)


# Student
@router.get("/student/my-progress", response_model=StudentProgressResponse)
async def get_my_progress(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> StudentProgressResponse:
    progress = workflow.get_my_progress(db, actor)
    if progress is None:
        return StudentProgressResponse(data=None, message="No grade record yet")
    return StudentProgressResponse(data=progress)


# Training office
@router.get("/training-office/statistics", response_model=GradeStatisticsResponse)
async def get_grade_statistics(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
    status: Optional[GradeStatus] = None,
    work_type: Optional[WorkType] = None,
    subject_id: Optional[str] = None,
    supervisor_id: Optional[str] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> GradeStatisticsResponse:
    query = StatisticsQuery(
        page=page,
        limit=limit,
        status=status,
        work_type=work_type,
        subject_id=subject_id,
        supervisor_id=supervisor_id,
    )
    return GradeStatisticsResponse(data=workflow.grade_statistics(db, actor, query))
