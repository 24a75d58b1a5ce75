# src/services/grading/events.py
"""Domain events raised by the milestone tracker and grade writes and
consumed by the approval pipeline."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from src.models.base import utcnow


@dataclass(frozen=True)
class MilestoneCompleted:
    milestone_id: Any
    milestone_type: str


@dataclass(frozen=True)
class AllComponentsGraded:
    final_grade: Optional[float]


@dataclass(frozen=True)
class ContentRevised:
    """Supervisor changed grading content (components, comment, milestones)."""
    reason: str


@dataclass
class StatusChanged:
    """Record of an applied transition"""
    from_status: str
    to_status: str
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)
