# src/services/grading/actors.py
"""
Authenticated actors and what each role may do. The upstream gateway
vouches for ``actor_id`` and ``role``; this module only maps a role to
its capability set.
"""
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Dict, FrozenSet, Type

from src.exceptions import ForbiddenError
from src.schema.grading import UploaderRole


class Role(str, Enum):
    TRAINING_OFFICE = "training-office"
    COMMITTEE = "committee"
    FACULTY = "faculty"
    STUDENT = "student"


class Capability(str, Enum):
    VIEW_RECORD = "view_record"
    MANAGE_MILESTONES = "manage_milestones"
    ATTACH_FILES = "attach_files"
    GRADE = "grade"
    SUBMIT = "submit"
    REVIEW = "review"
    VIEW_OWN_PROGRESS = "view_own_progress"
    VIEW_STATISTICS = "view_statistics"


@dataclass(frozen=True)
class Actor:
    actor_id: str

    role: ClassVar[Role]
    capabilities: ClassVar[FrozenSet[Capability]] = frozenset()

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability):
        if not self.can(capability):
            raise ForbiddenError(
                f"Role '{self.role.value}' may not {capability.value.replace('_', ' ')}",
                details={"role": self.role.value, "capability": capability.value},
            )

    @property
    def uploader_role(self) -> UploaderRole:
        raise ForbiddenError(f"Role '{self.role.value}' cannot handle milestone files")


@dataclass(frozen=True)
class Supervisor(Actor):
    role: ClassVar[Role] = Role.FACULTY
    capabilities: ClassVar[FrozenSet[Capability]] = frozenset({
        Capability.VIEW_RECORD,
        Capability.MANAGE_MILESTONES,
        Capability.ATTACH_FILES,
        Capability.GRADE,
        Capability.SUBMIT,
    })

    @property
    def uploader_role(self) -> UploaderRole:
        return UploaderRole.SUPERVISOR


@dataclass(frozen=True)
class Committee(Actor):
    role: ClassVar[Role] = Role.COMMITTEE
    capabilities: ClassVar[FrozenSet[Capability]] = frozenset({
        Capability.VIEW_RECORD,
        Capability.REVIEW,
    })


@dataclass(frozen=True)
class Student(Actor):
    role: ClassVar[Role] = Role.STUDENT
    capabilities: ClassVar[FrozenSet[Capability]] = frozenset({
        Capability.ATTACH_FILES,
        Capability.VIEW_OWN_PROGRESS,
    })

    @property
    def uploader_role(self) -> UploaderRole:
        return UploaderRole.STUDENT


@dataclass(frozen=True)
class TrainingOffice(Actor):
    role: ClassVar[Role] = Role.TRAINING_OFFICE
    capabilities: ClassVar[FrozenSet[Capability]] = frozenset({
        Capability.VIEW_STATISTICS,
    })


ACTOR_TYPES: Dict[Role, Type[Actor]] = {
    Role.FACULTY: Supervisor,
    Role.COMMITTEE: Committee,
    Role.STUDENT: Student,
    Role.TRAINING_OFFICE: TrainingOffice,
}


def actor_from(actor_id: str, role: str) -> Actor:
    """Build the actor for an authenticated (id, role) pair."""
    try:
        actor_type = ACTOR_TYPES[Role(role)]
    except ValueError:
        raise ForbiddenError(f"Unknown role '{role}'", details={"role": role})
    return actor_type(actor_id=actor_id)
