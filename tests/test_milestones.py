from datetime import date, timedelta

import pytest

from src.exceptions import (
    ForbiddenError,
    InvalidOperationError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from src.schema.grading import FileRef, MilestoneStatus, UploaderRole
from src.services.grading import milestones
from src.services.grading.events import MilestoneCompleted

from conftest import file_ref


def files(count):
    return [FileRef(**file_ref()) for _ in range(count)]


def start_milestone(record):
    return record.milestones[0]


def test_default_milestone_is_start(new_record):
    assert len(new_record.milestones) == 1
    milestone = start_milestone(new_record)
    assert milestone.type == "start"
    assert milestone.is_custom is False
    assert milestone.status == "pending"
    assert milestone.due_date == new_record.start_date


def test_thesis_start_title():
    [milestone] = milestones.default_milestones("thesis", date(2024, 9, 1))
    assert milestone.title == "Thesis kick-off"


class TestUpdateStatus:
    def test_completion_raises_event(self, new_record):
        milestone = start_milestone(new_record)
        updated, events = milestones.update_status(new_record, milestone.id, MilestoneStatus.COMPLETED)
        assert updated.completed_at is not None
        assert events == [MilestoneCompleted(milestone_id=milestone.id, milestone_type="start")]

    def test_completing_twice_raises_once(self, new_record):
        milestone = start_milestone(new_record)
        milestones.update_status(new_record, milestone.id, "completed")
        completed_at = milestone.completed_at
        _, events = milestones.update_status(new_record, milestone.id, "completed")
        assert events == []
        assert milestone.completed_at == completed_at

    def test_leaving_completed_clears_timestamp(self, new_record):
        milestone = start_milestone(new_record)
        milestones.update_status(new_record, milestone.id, "completed")
        milestones.update_status(new_record, milestone.id, "in_progress")
        assert milestone.completed_at is None

    def test_notes_and_documents(self, new_record):
        milestone = start_milestone(new_record)
        milestones.update_status(
            new_record, str(milestone.id), "in_progress", notes="Onboarding done", documents=files(2)
        )
        assert milestone.supervisor_notes == "Onboarding done"
        assert [d.uploaded_by for d in milestone.submitted_documents] == ["supervisor", "supervisor"]

    def test_too_many_documents(self, new_record):
        milestone = start_milestone(new_record)
        with pytest.raises(ValidationError):
            milestones.update_status(new_record, milestone.id, "in_progress", documents=files(11))
        assert milestone.submitted_documents == []

    def test_documents_keep_student_uploads(self, new_record):
        milestone = start_milestone(new_record)
        _, [student_doc] = milestones.attach_files(
            new_record, milestone.id, [FileRef(**file_ref(file_name="report.pdf"))], "student"
        )
        milestones.attach_files(new_record, milestone.id, files(2), "supervisor")

        milestones.update_status(
            new_record, milestone.id, "in_progress",
            documents=[FileRef(**file_ref(file_name="report.pdf"))],
        )
        assert [(d.file_name, d.uploaded_by) for d in milestone.submitted_documents] == [
            ("report.pdf", "student"),
            ("report.pdf", "supervisor"),
        ]

        milestones.remove_file(new_record, milestone.id, student_doc.id, "student")
        assert [d.uploaded_by for d in milestone.submitted_documents] == ["supervisor"]

    def test_documents_cap_counts_student_uploads(self, new_record):
        milestone = start_milestone(new_record)
        milestones.attach_files(new_record, milestone.id, files(4), "student")
        with pytest.raises(ValidationError):
            milestones.update_status(new_record, milestone.id, "in_progress", documents=files(7))
        assert len(milestone.submitted_documents) == 4

    def test_unknown_milestone(self, new_record):
        with pytest.raises(NotFoundError):
            milestones.update_status(new_record, "not-a-uuid", "completed")


class TestCustomMilestones:
    def test_add_edit_delete(self, new_record):
        due = new_record.start_date + timedelta(days=30)
        milestone = milestones.add_custom_milestone(new_record, "  Midterm report ", "", due)
        assert milestone.title == "Midterm report"
        assert milestone.position == 1
        assert milestone.is_custom

        milestones.edit_milestone(new_record, milestone.id, due_date=due + timedelta(days=7))
        assert milestone.due_date == due + timedelta(days=7)
        assert milestone.title == "Midterm report"

        milestones.delete_milestone(new_record, milestone.id)
        assert len(new_record.milestones) == 1

    def test_title_required(self, new_record):
        with pytest.raises(ValidationError):
            milestones.add_custom_milestone(new_record, "   ", "", date.today())

    def test_default_milestone_cannot_be_deleted(self, new_record):
        with pytest.raises(InvalidOperationError):
            milestones.delete_milestone(new_record, start_milestone(new_record).id)


class TestFiles:
    def test_attach_up_to_limit(self, new_record):
        milestone = start_milestone(new_record)
        _, documents = milestones.attach_files(new_record, milestone.id, files(10), UploaderRole.STUDENT)
        assert len(documents) == 10
        assert [d.position for d in milestone.submitted_documents] == list(range(10))

    def test_eleventh_file_is_refused(self, new_record):
        milestone = start_milestone(new_record)
        milestones.attach_files(new_record, milestone.id, files(10), "supervisor")
        with pytest.raises(LimitExceededError) as exc_info:
            milestones.attach_files(new_record, milestone.id, files(1), "student")
        assert exc_info.value.details == {"limit": 10, "current": 10, "requested": 1}
        assert len(milestone.submitted_documents) == 10

    def test_batch_past_limit_attaches_nothing(self, new_record):
        milestone = start_milestone(new_record)
        milestones.attach_files(new_record, milestone.id, files(8), "student")
        with pytest.raises(LimitExceededError):
            milestones.attach_files(new_record, milestone.id, files(3), "student")
        assert len(milestone.submitted_documents) == 8

    def test_student_removes_only_own_files(self, new_record):
        milestone = start_milestone(new_record)
        _, [supervisor_doc] = milestones.attach_files(new_record, milestone.id, files(1), "supervisor")
        _, [student_doc] = milestones.attach_files(new_record, milestone.id, files(1), "student")

        with pytest.raises(ForbiddenError):
            milestones.remove_file(new_record, milestone.id, supervisor_doc.id, "student")

        milestones.remove_file(new_record, milestone.id, student_doc.id, "student")
        milestones.remove_file(new_record, milestone.id, supervisor_doc.id, "supervisor")
        assert milestone.submitted_documents == []

    def test_unknown_file(self, new_record):
        with pytest.raises(NotFoundError):
            milestones.remove_file(new_record, start_milestone(new_record).id, "missing", "supervisor")


class TestProgress:
    def test_empty(self):
        assert milestones.progress_percentage([]) == 0

    def test_all_completed(self, new_record):
        milestones.update_status(new_record, start_milestone(new_record).id, "completed")
        assert milestones.progress_percentage(new_record.milestones) == 100

    def test_rounds_half_up(self, new_record):
        for title in ("Report", "Defense"):
            milestones.add_custom_milestone(new_record, title, "", date.today())
        milestones.update_status(new_record, start_milestone(new_record).id, "completed")
        # 1 of 3
        assert milestones.progress_percentage(new_record.milestones) == 33

        milestones.delete_milestone(new_record, new_record.milestones[-1].id)
        milestones.add_custom_milestone(new_record, "Poster", "", date.today())
        milestones.add_custom_milestone(new_record, "Slides", "", date.today())
        milestones.add_custom_milestone(new_record, "Logbook", "", date.today())
        milestones.add_custom_milestone(new_record, "Evaluation", "", date.today())
        milestones.add_custom_milestone(new_record, "Summary", "", date.today())
        milestones.add_custom_milestone(new_record, "Handover", "", date.today())
        # 1 of 8 = 12.5
        assert milestones.progress_percentage(new_record.milestones) == 13
