# src/schema/grading.py
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from src.schema.base import BaseResponse


class WorkType(str, Enum):
    INTERNSHIP = "internship"
    THESIS = "thesis"


class GradeStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DRAFT_COMPLETED = "draft_completed"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class MilestoneType(str, Enum):
    START = "start"
    CUSTOM = "custom"


class MilestoneStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class ComponentType(str, Enum):
    SUPERVISOR_SCORE = "supervisor_score"
    COMPANY_SCORE = "company_score"


class GradedBy(str, Enum):
    SUPERVISOR = "supervisor"
    COMPANY = "company"


class UploaderRole(str, Enum):
    STUDENT = "student"
    SUPERVISOR = "supervisor"


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


# Value objects
class FileRef(BaseModel):
    """File produced by the external upload endpoint"""
    file_name: str = Field(min_length=1)
    file_url: str = Field(min_length=1)
    file_size: Optional[int] = Field(default=None, ge=0)


class GradingFile(FileRef):
    id: Optional[str] = None
    uploaded_at: Optional[datetime] = None


class CompanyInfo(BaseModel):
    name: Optional[str] = None
    supervisor_name: Optional[str] = None
    supervisor_email: Optional[str] = None
    supervisor_phone: Optional[str] = None
    address: Optional[str] = None


# Read models
class MilestoneDocumentData(BaseModel):
    id: UUID
    file_name: str
    file_url: str
    file_size: Optional[int] = None
    uploaded_by: UploaderRole
    submitted_at: datetime

    model_config = {"from_attributes": True}


class MilestoneData(BaseModel):
    id: UUID
    type: MilestoneType
    title: str
    description: str = ""
    due_date: date
    status: MilestoneStatus
    completed_at: Optional[datetime] = None
    supervisor_notes: Optional[str] = None
    is_custom: bool
    submitted_documents: List[MilestoneDocumentData] = []

    model_config = {"from_attributes": True}


class GradeComponentData(BaseModel):
    type: ComponentType
    score: float
    weight: float
    comment: str = ""
    graded_by: GradedBy
    graded_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class GradeRecordSummary(BaseModel):
    """Row of a list view"""
    id: UUID
    student_id: str
    student_name: Optional[str] = None
    supervisor_id: str
    supervisor_name: Optional[str] = None
    subject_id: str
    subject_title: Optional[str] = None
    work_type: WorkType
    status: GradeStatus
    final_grade: Optional[float] = None
    letter_grade: Optional[str] = None
    progress_percentage: int = 0
    submitted_to_bcn: bool = False
    submitted_at: Optional[datetime] = None
    supervisor_final_comment: Optional[str] = None
    start_date: date
    end_date: date
    updated_on: datetime

    model_config = {"from_attributes": True}


class GradeRecordData(GradeRecordSummary):
    """Full record as seen by its supervisor or the reviewing committee"""
    company: Optional[CompanyInfo] = None
    project_topic: Optional[str] = None
    milestones: List[MilestoneData] = []
    grade_components: List[GradeComponentData] = []
    grading_notes: Optional[str] = None
    grading_files: List[GradingFile] = []
    bcn_comment: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_on: datetime


class StudentMilestoneData(BaseModel):
    id: UUID
    type: MilestoneType
    title: str
    due_date: date
    status: MilestoneStatus
    completed_at: Optional[datetime] = None
    supervisor_notes: Optional[str] = None
    submitted_documents: List[MilestoneDocumentData] = []

    model_config = {"from_attributes": True}


class StudentProgressData(BaseModel):
    """A student's own view; grades stay hidden until approved"""
    id: UUID
    supervisor_id: str
    supervisor_name: Optional[str] = None
    subject_id: str
    subject_title: Optional[str] = None
    work_type: WorkType
    status: GradeStatus
    start_date: date
    end_date: date
    milestones: List[StudentMilestoneData] = []
    progress_percentage: int = 0
    final_grade: Optional[float] = None
    letter_grade: Optional[str] = None
    supervisor_final_comment: Optional[str] = None
    submitted_to_bcn: bool = False


class MilestoneUpdateResult(BaseModel):
    milestone: MilestoneData
    progress_percentage: int
    grade_status: GradeStatus


class Pagination(BaseModel):
    page: int
    pages: int
    total: int


class GradeStatistics(BaseModel):
    total: int = 0
    by_status: Dict[str, int] = {}
    by_work_type: Dict[str, int] = {}
    by_letter_grade: Dict[str, int] = {}
    average_grade: float = 0.0
    pass_rate: float = 0.0
    submitted_count: int = 0
    approved_count: int = 0
    total_finalized: int = 0


class GradeStatisticsData(BaseModel):
    grades: List[GradeRecordSummary]
    pagination: Pagination
    statistics: GradeStatistics


# Requests
class MilestoneStatusUpdateRequest(BaseModel):
    status: MilestoneStatus
    supervisor_notes: Optional[str] = None
    submitted_documents: Optional[List[FileRef]] = None


class MilestoneCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    due_date: date


class MilestoneEditRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[date] = None


class AttachFilesRequest(BaseModel):
    files: List[FileRef] = Field(min_length=1)


class GradeComponentInput(BaseModel):
    type: ComponentType
    score: float
    weight: Optional[float] = None
    comment: Optional[str] = None


class GradeComponentsUpdateRequest(BaseModel):
    grade_components: Optional[List[GradeComponentInput]] = None
    supervisor_final_comment: Optional[str] = None
    grading_notes: Optional[str] = None
    grading_files: Optional[List[GradingFile]] = None

    @field_validator("grade_components")
    @classmethod
    def unique_component_types(cls, components):
        if components is None:
            return components
        types = [component.type for component in components]
        if len(types) != len(set(types)):
            raise ValueError("each component type may appear only once")
        return components


class WorkInfoUpdateRequest(BaseModel):
    work_type: Optional[WorkType] = None
    company: Optional[CompanyInfo] = None
    project_topic: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_window(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ReviewRequest(BaseModel):
    action: ReviewDecision
    bcn_comment: Optional[str] = None


class StatisticsQuery(BaseModel):
    page: int = 1
    limit: int = 20
    status: Optional[GradeStatus] = None
    work_type: Optional[WorkType] = None
    subject_id: Optional[str] = None
    supervisor_id: Optional[str] = None


# Responses
class GradeRecordResponse(BaseResponse[GradeRecordData]):
    pass


class GradeRecordListResponse(BaseResponse[List[GradeRecordSummary]]):
    pass


class MilestoneResponse(BaseResponse[MilestoneData]):
    pass


class MilestoneUpdateResponse(BaseResponse[MilestoneUpdateResult]):
    pass


class StudentProgressResponse(BaseResponse[StudentProgressData]):
    pass


class GradeStatisticsResponse(BaseResponse[GradeStatisticsData]):
    pass
