from conftest import (
    CLASSMATE_ID,
    COMMITTEE_ID,
    OTHER_COMMITTEE_ID,
    STUDENT_ID,
    SUPERVISOR_ID,
    committee_headers,
    file_ref,
    student_headers,
    supervisor_headers,
    training_office_headers,
)


def open_record(client, student_id=STUDENT_ID):
    response = client.get(f"/grades/students/{student_id}", headers=supervisor_headers())
    assert response.status_code == 200
    return response.json()["data"]


def grade(client, student_id=STUDENT_ID, supervisor_score=8.0, company_score=9.0, comment="Good"):
    payload = {
        "grade_components": [
            {"type": "supervisor_score", "score": supervisor_score},
            {"type": "company_score", "score": company_score},
        ]
    }
    if comment is not None:
        payload["supervisor_final_comment"] = comment
    response = client.put(
        f"/grades/students/{student_id}/grades", headers=supervisor_headers(), json=payload
    )
    assert response.status_code == 200
    return response.json()["data"]


def submit(client, student_id=STUDENT_ID):
    return client.post(f"/grades/students/{student_id}/submit", headers=supervisor_headers())


def review(client, record_id, action, comment=None, committee_id=COMMITTEE_ID):
    return client.post(
        f"/grades/committee/grades/{record_id}/review",
        headers=committee_headers(committee_id),
        json={"action": action, "bcn_comment": comment},
    )


def my_progress(client, student_id=STUDENT_ID):
    response = client.get("/grades/student/my-progress", headers=student_headers(student_id))
    assert response.status_code == 200
    return response.json()["data"]


class TestSubmitAndApprove:
    def test_full_approval(self, client, roster, notifications):
        open_record(client)
        graded = grade(client)
        assert (graded["final_grade"], graded["letter_grade"]) == (8.3, "B+")
        assert graded["status"] == "draft_completed"

        submitted = submit(client)
        assert submitted.status_code == 200
        record = submitted.json()["data"]
        assert record["status"] == "submitted"
        assert record["submitted_to_bcn"] is True
        assert record["submitted_at"] is not None

        submit_events = notifications.of_type("grade-submitted")
        committee_event = next(e for e in submit_events if e.recipient == COMMITTEE_ID)
        assert committee_event.priority.value == "high"
        assert committee_event.link == "/grade-review"
        assert {e.recipient for e in submit_events} == {COMMITTEE_ID, STUDENT_ID}

        pending = client.get("/grades/committee/pending", headers=committee_headers())
        assert [r["id"] for r in pending.json()["data"]] == [record["id"]]

        approved = review(client, record["id"], "approve", "OK")
        assert approved.status_code == 200
        record = approved.json()["data"]
        assert record["status"] == "approved"
        assert record["approved_at"] is not None
        assert record["approved_by"] == COMMITTEE_ID
        assert record["bcn_comment"] == "OK"
        assert record["final_grade"] == 8.3

        approval_events = notifications.of_type("grade-approved")
        assert {e.recipient for e in approval_events} == {SUPERVISOR_ID, STUDENT_ID}

        assert client.get("/grades/committee/pending", headers=committee_headers()).json()["data"] == []
        progress = my_progress(client)
        assert progress["final_grade"] == 8.3
        assert progress["letter_grade"] == "B+"

    def test_submit_with_ungraded_component(self, client, roster):
        open_record(client)
        grade(client, company_score=0)
        response = submit(client)
        assert response.status_code == 422
        assert "company_score" in response.json()["error"]["message"]

    def test_submit_without_comment(self, client, roster):
        open_record(client)
        grade(client, comment=None)
        response = submit(client)
        assert response.status_code == 422

    def test_submitted_record_is_locked(self, client, roster):
        record = open_record(client)
        grade(client)
        submit(client)

        regrade = client.put(
            f"/grades/students/{STUDENT_ID}/grades",
            headers=supervisor_headers(),
            json={"supervisor_final_comment": "Changed my mind"},
        )
        assert regrade.status_code == 409
        assert regrade.json()["error"]["code"] == "INVALID_STATE"

        upload = client.post(
            f"/grades/students/{STUDENT_ID}/milestones/{record['milestones'][0]['id']}/files",
            headers=student_headers(),
            json={"files": [file_ref()]},
        )
        assert upload.status_code == 409

        again = submit(client)
        assert again.status_code == 409


class TestReview:
    def test_review_before_submission(self, client, roster):
        record = open_record(client)
        grade(client)
        response = review(client, record["id"], "approve", "OK")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATE"

    def test_committee_of_other_subject(self, client, roster):
        record = open_record(client)
        grade(client)
        submit(client)
        response = review(client, record["id"], "approve", "OK", committee_id=OTHER_COMMITTEE_ID)
        assert response.status_code == 403
        assert client.get(
            "/grades/committee/pending", headers=committee_headers(OTHER_COMMITTEE_ID)
        ).json()["data"] == []

    def test_supervisor_cannot_review(self, client, roster):
        record = open_record(client)
        grade(client)
        submit(client)
        response = client.post(
            f"/grades/committee/grades/{record['id']}/review",
            headers=supervisor_headers(),
            json={"action": "approve"},
        )
        assert response.status_code == 403

    def test_unknown_record(self, client, roster):
        response = client.get("/grades/committee/grades/not-a-record", headers=committee_headers())
        assert response.status_code == 404

    def test_invalid_decision(self, client, roster):
        record = open_record(client)
        grade(client)
        submit(client)
        response = review(client, record["id"], "maybe")
        assert response.status_code == 422

    def test_reject_then_resubmit(self, client, roster, notifications):
        record = open_record(client)
        grade(client)
        submit(client)

        missing_comment = review(client, record["id"], "reject")
        assert missing_comment.status_code == 422

        rejected = review(client, record["id"], "reject", "Company score needs evidence")
        assert rejected.status_code == 200
        assert rejected.json()["data"]["status"] == "rejected"
        assert rejected.json()["data"]["final_grade"] == 8.3

        student_event = next(
            e for e in notifications.of_type("grade-rejected") if e.recipient == STUDENT_ID
        )
        assert student_event.priority.value == "high"

        history = client.get("/grades/committee/submitted", headers=committee_headers())
        assert [r["status"] for r in history.json()["data"]] == ["rejected"]

        detail = client.get(f"/grades/committee/grades/{record['id']}", headers=committee_headers())
        assert detail.json()["data"]["bcn_comment"] == "Company score needs evidence"

        revised = client.put(
            f"/grades/students/{STUDENT_ID}/grades",
            headers=supervisor_headers(),
            json={"grading_files": [file_ref(file_name="company-evaluation.pdf")]},
        )
        assert revised.json()["data"]["status"] == "draft_completed"

        resubmitted = submit(client)
        assert resubmitted.status_code == 200
        assert resubmitted.json()["data"]["status"] == "submitted"

    def test_committee_sees_record_detail(self, client, roster):
        open_record(client)
        response = client.get(f"/grades/students/{STUDENT_ID}", headers=committee_headers())
        assert response.status_code == 200
        assert response.json()["data"]["student_id"] == STUDENT_ID


class TestStudentProgress:
    def test_no_record_yet(self, client, roster):
        response = client.get("/grades/student/my-progress", headers=student_headers())
        assert response.status_code == 200
        assert response.json()["data"] is None

    def test_grade_hidden_until_approved(self, client, roster):
        record = open_record(client)
        grade(client)

        progress = my_progress(client)
        assert progress["status"] == "draft_completed"
        assert progress["final_grade"] is None
        assert progress["letter_grade"] is None
        assert progress["supervisor_final_comment"] is None

        submit(client)
        progress = my_progress(client)
        assert progress["supervisor_final_comment"] == "Good"
        assert progress["final_grade"] is None

        review(client, record["id"], "approve", "OK")
        assert my_progress(client)["final_grade"] == 8.3

    def test_faculty_has_no_progress_view(self, client, roster):
        response = client.get("/grades/student/my-progress", headers=supervisor_headers())
        assert response.status_code == 403


class TestStatistics:
    def test_statistics(self, client, roster):
        record = open_record(client)
        open_record(client, CLASSMATE_ID)
        grade(client)
        submit(client)
        review(client, record["id"], "approve", "OK")

        response = client.get("/grades/training-office/statistics", headers=training_office_headers())
        assert response.status_code == 200
        data = response.json()["data"]
        statistics = data["statistics"]
        assert statistics["total"] == 2
        assert statistics["by_status"] == {"approved": 1, "not_started": 1}
        assert statistics["by_letter_grade"] == {"B+": 1}
        assert statistics["average_grade"] == 8.3
        assert statistics["pass_rate"] == 100.0
        assert statistics["approved_count"] == 1
        assert statistics["submitted_count"] == 1
        assert statistics["total_finalized"] == 1
        assert data["pagination"] == {"page": 1, "pages": 1, "total": 2}

        approved_only = client.get(
            "/grades/training-office/statistics",
            params={"status": "approved"},
            headers=training_office_headers(),
        ).json()["data"]
        assert [g["student_id"] for g in approved_only["grades"]] == [STUDENT_ID]

        paged = client.get(
            "/grades/training-office/statistics",
            params={"page": 2, "limit": 1},
            headers=training_office_headers(),
        ).json()["data"]
        assert len(paged["grades"]) == 1
        assert paged["pagination"] == {"page": 2, "pages": 2, "total": 2}

    def test_statistics_requires_training_office(self, client, roster):
        response = client.get("/grades/training-office/statistics", headers=supervisor_headers())
        assert response.status_code == 403


def test_notification_failure_keeps_state(client, roster, notifications):
    open_record(client)
    notifications.fail = True

    graded = grade(client)
    assert graded["status"] == "draft_completed"
    assert notifications.events == []
    assert open_record(client)["status"] == "draft_completed"
