# src/services/grading/pipeline.py
"""
Approval pipeline for grade records.

    not_started → in_progress → draft_completed → submitted → approved
                       ↑               ↑              ↓
                       └─────────── rejected ←────────┘

A draft whose components are no longer all graded falls back to
in_progress. Every status change goes through ``transition`` and is validated against
``TRANSITIONS``; callers never assign ``record.status`` directly.
"""
from typing import Dict, List, Optional, Set, Union

from src.exceptions import InvalidStateError, ValidationError
from src.logging_config import app_logger
from src.models.base import utcnow
from src.schema.grading import GradeStatus, MilestoneType, ReviewDecision
from src.services.grading.calculator import all_graded
from src.services.grading.events import (
    AllComponentsGraded,
    ContentRevised,
    MilestoneCompleted,
    StatusChanged,
)

TRANSITIONS: Dict[GradeStatus, Set[GradeStatus]] = {
    GradeStatus.NOT_STARTED: {GradeStatus.IN_PROGRESS},
    GradeStatus.IN_PROGRESS: {GradeStatus.DRAFT_COMPLETED},
    GradeStatus.DRAFT_COMPLETED: {GradeStatus.SUBMITTED, GradeStatus.IN_PROGRESS},
    GradeStatus.SUBMITTED: {GradeStatus.APPROVED, GradeStatus.REJECTED},
    GradeStatus.REJECTED: {GradeStatus.DRAFT_COMPLETED, GradeStatus.IN_PROGRESS},
    GradeStatus.APPROVED: set(),
}

# Read-only for supervisor and student while the committee holds the record
LOCKED_STATUSES = {GradeStatus.SUBMITTED, GradeStatus.APPROVED}

Event = Union[MilestoneCompleted, AllComponentsGraded, ContentRevised]


def current_status(record) -> GradeStatus:
    return GradeStatus(record.status)


def can_transition(from_status: GradeStatus, to_status: GradeStatus) -> bool:
    return to_status in TRANSITIONS.get(GradeStatus(from_status), set())


def transition(record, to_status: GradeStatus, reason: Optional[str] = None) -> StatusChanged:
    from_status = current_status(record)
    if not can_transition(from_status, to_status):
        allowed = sorted(s.value for s in TRANSITIONS.get(from_status, set()))
        app_logger.warning(
            f"Rejected transition {from_status.value} → {to_status.value} "
            f"for record {record.id}. Allowed: {allowed}"
        )
        raise InvalidStateError(
            from_status.value,
            f"move to '{to_status.value}'",
        )

    record.status = to_status.value
    change = StatusChanged(
        from_status=from_status.value,
        to_status=to_status.value,
        reason=reason,
    )
    app_logger.info(
        f"Record {record.id}: {from_status.value} → {to_status.value} ({reason})"
    )
    return change


def ensure_editable(record, action: str):
    status = current_status(record)
    if status in LOCKED_STATUSES:
        raise InvalidStateError(
            status.value,
            action,
            message=f"Grade record is {status.value} and can no longer be edited",
        )


def apply(record, event: Event) -> List[StatusChanged]:
    """Decide which automatic transitions a domain event triggers."""
    status = current_status(record)
    changes: List[StatusChanged] = []

    if isinstance(event, MilestoneCompleted):
        if (
            event.milestone_type == MilestoneType.START.value
            and status == GradeStatus.NOT_STARTED
        ):
            changes.append(
                transition(record, GradeStatus.IN_PROGRESS, "start milestone completed")
            )

    elif isinstance(event, AllComponentsGraded):
        if status == GradeStatus.NOT_STARTED:
            # Grading implies the engagement has begun
            changes.append(
                transition(record, GradeStatus.IN_PROGRESS, "grading started")
            )
            status = GradeStatus.IN_PROGRESS
        if status in (GradeStatus.IN_PROGRESS, GradeStatus.REJECTED):
            changes.append(
                transition(
                    record,
                    GradeStatus.DRAFT_COMPLETED,
                    f"all components graded (final grade {event.final_grade})",
                )
            )

    elif isinstance(event, ContentRevised):
        if status == GradeStatus.DRAFT_COMPLETED and not all_graded(record.grade_components):
            changes.append(
                transition(record, GradeStatus.IN_PROGRESS, f"draft reopened: {event.reason}")
            )
        elif status == GradeStatus.REJECTED:
            target = (
                GradeStatus.DRAFT_COMPLETED
                if all_graded(record.grade_components)
                else GradeStatus.IN_PROGRESS
            )
            changes.append(
                transition(record, target, f"revised after rejection: {event.reason}")
            )

    return changes


def missing_submission_requirements(record) -> List[str]:
    missing = []
    ungraded = [c.type for c in record.grade_components if not c.score > 0]
    if not record.grade_components or ungraded:
        missing.append(
            "all grade components must be scored"
            + (f" ({', '.join(ungraded)})" if ungraded else "")
        )
    if not (record.supervisor_final_comment or "").strip():
        missing.append("supervisor final comment is required")
    return missing


def submit(record) -> StatusChanged:
    """Supervisor hands the draft to the committee."""
    missing = missing_submission_requirements(record)
    if missing:
        raise ValidationError(
            "Cannot submit grade: " + "; ".join(missing),
            details={"missing": missing},
        )

    if current_status(record) != GradeStatus.DRAFT_COMPLETED:
        raise InvalidStateError(record.status, "submit")

    change = transition(record, GradeStatus.SUBMITTED, "submitted to committee")
    record.submitted_to_bcn = True
    record.submitted_at = utcnow()
    return change


def review(record, decision: Union[ReviewDecision, str], comment: Optional[str], reviewer_id: str) -> StatusChanged:
    """Committee approves or rejects a submitted record."""
    if current_status(record) != GradeStatus.SUBMITTED:
        raise InvalidStateError(record.status, "review")

    try:
        decision = ReviewDecision(decision)
    except ValueError:
        raise ValidationError(
            f"Unknown review decision '{decision}'",
            details={"allowed": [d.value for d in ReviewDecision]},
        )

    comment = (comment or "").strip()
    if decision == ReviewDecision.REJECT and not comment:
        raise ValidationError("A comment is required when rejecting a grade")

    target = (
        GradeStatus.APPROVED
        if decision == ReviewDecision.APPROVE
        else GradeStatus.REJECTED
    )
    change = transition(record, target, f"committee {decision.value}")
    record.bcn_comment = comment
    record.approved_by = reviewer_id
    record.approved_at = utcnow()
    return change
