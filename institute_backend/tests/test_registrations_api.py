from datetime import date, datetime

import pytest

from app.core.errors import ConflictError
from app.models.course import Batch
from app.models.enrollment import Enrollment
from app.models.registration import Registration
from app.schemas.registration import RegistrationDecision
from app.services import registrations as registration_service
from app.services.registration_workflow import Gate, RegistrationStatus


@pytest.fixture
def student(make_user):
    return make_user("STUDENT")


@pytest.fixture
def staff(make_user):
    return make_user("STAFF")


@pytest.fixture
def finance(make_user):
    return make_user("FINANCE")


@pytest.fixture
def admin(make_user):
    return make_user("ADMIN")


@pytest.fixture
def submit(client, auth_headers, student, course):
    def _submit(**overrides):
        body = {"course_id": course.id, "documents": {"id_card": "https://files.academy.io/id.png"}}
        body.update(overrides)
        response = client.post("/api/registrations", json=body, headers=auth_headers(student))
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _submit


def _gate(client, headers, registration_id, gate, status, notes=None):
    body = {"status": status}
    if notes is not None:
        body["admin_notes"] = notes
    return client.patch(f"/api/registrations/{registration_id}/{gate}", json=body, headers=headers)


def _to_financial_verified(client, auth_headers, staff, finance, registration_id):
    assert _gate(client, auth_headers(staff), registration_id, "academic-review", "ACADEMIC_REVIEWED").status_code == 200
    assert _gate(client, auth_headers(finance), registration_id, "financial-verify", "FINANCIAL_VERIFIED").status_code == 200


def test_submit_creates_pending_registration(submit, student):
    data = submit()

    assert data["status"] == "PENDING"
    assert data["student_id"] == student.id
    assert data["documents"] == {"id_card": "https://files.academy.io/id.png"}
    assert data["academic_reviewed_by"] is None


def test_submit_unknown_course_is_404(client, auth_headers, student, db_session):
    response = client.post(
        "/api/registrations", json={"course_id": "missing", "documents": None}, headers=auth_headers(student)
    )

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_submit_requires_authentication(client, course):
    response = client.post("/api/registrations", json={"course_id": course.id})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_academic_review_stamps_reviewer_and_repeat_conflicts(client, auth_headers, submit, staff):
    registration = submit()

    response = _gate(client, auth_headers(staff), registration["id"], "academic-review", "ACADEMIC_REVIEWED", "Docs ok")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "ACADEMIC_REVIEWED"
    assert data["academic_reviewed_by"] == staff.id
    assert data["academic_reviewed_at"] is not None
    assert data["admin_notes"] == "Docs ok"

    repeat = _gate(client, auth_headers(staff), registration["id"], "academic-review", "ACADEMIC_REVIEWED")
    assert repeat.status_code == 409
    assert repeat.json()["error"]["code"] == "CONFLICT"


def test_skipping_a_gate_conflicts_and_leaves_record_unchanged(client, auth_headers, submit, finance, admin):
    registration = submit()

    response = _gate(client, auth_headers(finance), registration["id"], "financial-verify", "FINANCIAL_VERIFIED")
    assert response.status_code == 409

    response = _gate(client, auth_headers(admin), registration["id"], "final-approve", "APPROVED")
    assert response.status_code == 409

    current = client.get(f"/api/registrations/{registration['id']}", headers=auth_headers(admin))
    assert current.json()["data"]["status"] == "PENDING"
    assert current.json()["data"]["financial_verified_by"] is None


def test_gate_rejects_a_status_it_cannot_produce(client, auth_headers, submit, staff):
    registration = submit()

    response = _gate(client, auth_headers(staff), registration["id"], "academic-review", "APPROVED")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_STATUS"


def test_gate_requires_its_permission(client, auth_headers, submit, student, finance):
    registration = submit()

    assert _gate(client, auth_headers(student), registration["id"], "academic-review", "ACADEMIC_REVIEWED").status_code == 403
    # Finance may verify but not review.
    assert _gate(client, auth_headers(finance), registration["id"], "academic-review", "ACADEMIC_REVIEWED").status_code == 403


def test_unknown_registration_is_404(client, auth_headers, staff):
    response = _gate(client, auth_headers(staff), "does-not-exist", "academic-review", "ACADEMIC_REVIEWED")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "REGISTRATION_NOT_FOUND"


def test_final_reject_is_terminal(client, auth_headers, submit, staff, finance, admin):
    registration = submit()
    _to_financial_verified(client, auth_headers, staff, finance, registration["id"])

    response = _gate(client, auth_headers(admin), registration["id"], "final-approve", "REJECTED", "Seats full")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "REJECTED"
    assert data["approved_by"] == admin.id
    assert data["approved_at"] is not None
    assert data["admin_notes"] == "Seats full"

    for gate, status in (
        ("academic-review", "ACADEMIC_REVIEWED"),
        ("financial-verify", "FINANCIAL_VERIFIED"),
        ("final-approve", "APPROVED"),
        ("final-approve", "REJECTED"),
    ):
        assert _gate(client, auth_headers(admin), registration["id"], gate, status).status_code == 409


def test_pending_registration_can_be_rejected_at_final_approve(client, auth_headers, submit, admin):
    registration = submit()

    response = _gate(client, auth_headers(admin), registration["id"], "final-approve", "REJECTED")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "REJECTED"


def test_approval_enrolls_into_preferred_batch(client, auth_headers, submit, staff, finance, admin, student, batch, db_session):
    later = Batch(course_id=batch.course_id, name="Evening Batch", start_date=date(2030, 6, 1))
    db_session.add(later)
    db_session.commit()
    registration = submit(batch_preference=later.id)
    _to_financial_verified(client, auth_headers, staff, finance, registration["id"])

    response = _gate(client, auth_headers(admin), registration["id"], "final-approve", "APPROVED")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "APPROVED"
    enrollments = client.get("/api/enrollments/my", headers=auth_headers(student)).json()["data"]
    assert len(enrollments) == 1
    assert enrollments[0]["batch_id"] == later.id
    assert enrollments[0]["registration_id"] == registration["id"]
    assert enrollments[0]["status"] == "ACTIVE"
    assert enrollments[0]["payment_status"] == "APPROVED"


def test_approval_falls_back_to_earliest_upcoming_batch(client, auth_headers, submit, staff, finance, admin, student, batch, db_session):
    db_session.add(Batch(course_id=batch.course_id, name="Later Batch", start_date=date(2031, 1, 1)))
    db_session.commit()
    registration = submit(batch_preference="no-such-batch")
    _to_financial_verified(client, auth_headers, staff, finance, registration["id"])

    assert _gate(client, auth_headers(admin), registration["id"], "final-approve", "APPROVED").status_code == 200

    enrollments = client.get("/api/enrollments/my", headers=auth_headers(student)).json()["data"]
    assert [e["batch_id"] for e in enrollments] == [batch.id]


def test_approval_without_a_batch_rolls_back(client, auth_headers, submit, staff, finance, admin, db_session):
    registration = submit()
    _to_financial_verified(client, auth_headers, staff, finance, registration["id"])

    response = _gate(client, auth_headers(admin), registration["id"], "final-approve", "APPROVED")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BATCH_NOT_FOUND"
    db_session.expire_all()
    stored = db_session.get(Registration, registration["id"])
    assert stored.status == "FINANCIAL_VERIFIED"
    assert stored.approved_by is None
    assert db_session.query(Enrollment).count() == 0


def test_queue_lists_open_registrations_oldest_first(client, auth_headers, submit, staff, admin, db_session):
    first = submit()
    second = submit()
    rejected = submit()
    created = {second["id"]: datetime(2030, 1, 1, 9, 0), first["id"]: datetime(2030, 1, 1, 10, 0)}
    for registration_id, created_at in created.items():
        db_session.query(Registration).filter(Registration.id == registration_id).update(
            {Registration.created_at: created_at}, synchronize_session=False
        )
    db_session.commit()
    assert _gate(client, auth_headers(admin), rejected["id"], "final-approve", "REJECTED").status_code == 200
    assert _gate(client, auth_headers(staff), first["id"], "academic-review", "ACADEMIC_REVIEWED").status_code == 200

    response = client.get("/api/registrations", headers=auth_headers(staff))

    assert response.status_code == 200
    assert [r["id"] for r in response.json()["data"]] == [second["id"], first["id"]]

    filtered = client.get("/api/registrations", params={"status": "REJECTED"}, headers=auth_headers(staff))
    assert [r["id"] for r in filtered.json()["data"]] == [rejected["id"]]


def test_students_cannot_list_the_queue(client, auth_headers, student):
    response = client.get("/api/registrations", headers=auth_headers(student))

    assert response.status_code == 403


def test_terminal_record_conflicts_even_for_a_foreign_target(client, auth_headers, submit, staff, admin):
    registration = submit()
    assert _gate(client, auth_headers(admin), registration["id"], "final-approve", "REJECTED").status_code == 200

    response = _gate(client, auth_headers(staff), registration["id"], "academic-review", "FINANCIAL_VERIFIED")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONFLICT"


def test_concurrent_reviewers_second_write_conflicts(submit, staff, make_user, session_factory):
    registration_id = submit()["id"]
    other_reviewer = make_user("STAFF")
    first, second = session_factory(), session_factory()
    try:
        # Both reviewers load the record while it is still PENDING.
        assert registration_service.get_registration(second, registration_id).status == "PENDING"

        registration_service.decide(
            first,
            registration_id,
            Gate.ACADEMIC_REVIEW,
            staff.id,
            RegistrationDecision(status=RegistrationStatus.ACADEMIC_REVIEWED, admin_notes="first"),
        )
        with pytest.raises(ConflictError):
            registration_service.decide(
                second,
                registration_id,
                Gate.ACADEMIC_REVIEW,
                other_reviewer.id,
                RegistrationDecision(status=RegistrationStatus.REJECTED, admin_notes="second"),
            )
    finally:
        first.close()
        second.close()

    check = session_factory()
    try:
        stored = check.get(Registration, registration_id)
        assert stored.status == "ACADEMIC_REVIEWED"
        assert stored.academic_reviewed_by == staff.id
        assert stored.admin_notes == "first"
    finally:
        check.close()
