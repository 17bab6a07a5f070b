from sqlalchemy.orm import Session
from starlette.testclient import TestClient

from demo_scheduling.constants.signup import SignupStatus
from demo_scheduling.core.exceptions import BusyError
from demo_scheduling.crud import demo_signup as demo_signup_crud
from tests.utils.demo_session import create_random_demo_session, sign_up


def test_requires_authentication(client: TestClient):
    response = client.get("/api/v1/demo-sessions")
    assert response.status_code == 401


def test_list_available_sessions_marks_own_signup(
    client: TestClient, db_session: Session, student_headers
):
    mine = create_random_demo_session(db_session, max_scheduled=2)
    other = create_random_demo_session(db_session, max_scheduled=2, days_ahead=9)
    create_random_demo_session(db_session, is_cancelled=True)
    sign_up(db_session, mine, "student_x")

    response = client.get("/api/v1/demo-sessions", headers=student_headers)

    assert response.status_code == 200
    data = {s["id"]: s for s in response.json()}
    assert set(data) == {mine.id, other.id}
    assert data[mine.id]["user_signed_up"] is True
    assert data[mine.id]["signup_count"] == 1
    assert data[mine.id]["available_slots"] == 1
    assert data[other.id]["user_signed_up"] is False


def test_get_session(client: TestClient, db_session: Session, student_headers):
    session_obj = create_random_demo_session(db_session)

    response = client.get(f"/api/v1/demo-sessions/{session_obj.id}", headers=student_headers)
    assert response.status_code == 200
    assert response.json()["meeting_link"] == "https://meet.example.com/demo"

    response = client.get("/api/v1/demo-sessions/dses_missing", headers=student_headers)
    assert response.status_code == 404
    assert response.json()["error"]["reason"] == "SessionNotFound"


def test_signup_for_session(client: TestClient, db_session: Session, student_headers):
    session_obj = create_random_demo_session(db_session, max_scheduled=1)

    response = client.post(
        f"/api/v1/demo-sessions/{session_obj.id}/signup",
        headers=student_headers,
        json={"demo_id": "demo_1", "signup_notes": "First time presenting"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["student_id"] == "student_x"
    assert data["status"] == SignupStatus.SIGNED_UP
    assert data["demo_ref"] == "demo_1"
    assert data["notes"] == "First time presenting"


def test_signup_rejections(
    client: TestClient, db_session: Session, student_headers, other_student_headers
):
    session_obj = create_random_demo_session(db_session, max_scheduled=1)
    url = f"/api/v1/demo-sessions/{session_obj.id}/signup"
    assert client.post(url, headers=student_headers, json={}).status_code == 201

    again = client.post(url, headers=student_headers, json={})
    assert again.status_code == 409
    assert again.json()["error"]["reason"] == "AlreadySignedUp"

    full = client.post(url, headers=other_student_headers, json={})
    assert full.status_code == 409
    assert full.json()["error"]["reason"] == "Full"


def test_signup_for_closed_sessions(client: TestClient, db_session: Session, student_headers):
    inactive = create_random_demo_session(db_session, is_active=False)
    cancelled = create_random_demo_session(db_session, is_cancelled=True)

    response = client.post(
        f"/api/v1/demo-sessions/{inactive.id}/signup", headers=student_headers, json={}
    )
    assert response.status_code == 403
    assert response.json()["error"]["reason"] == "SessionInactive"

    response = client.post(
        f"/api/v1/demo-sessions/{cancelled.id}/signup", headers=student_headers, json={}
    )
    assert response.status_code == 403
    assert response.json()["error"]["reason"] == "SessionCancelled"


def test_edit_signup(client: TestClient, db_session: Session, student_headers, other_student_headers):
    session_obj = create_random_demo_session(db_session)
    signup = sign_up(db_session, session_obj, "student_x")

    response = client.put(
        f"/api/v1/demo-signups/{signup.id}",
        headers=student_headers,
        json={"notes": "Updated notes", "demo_ref": "demo_9"},
    )
    assert response.status_code == 200
    assert response.json()["notes"] == "Updated notes"
    assert response.json()["demo_ref"] == "demo_9"

    response = client.put(
        f"/api/v1/demo-signups/{signup.id}", headers=other_student_headers, json={"notes": "x"}
    )
    assert response.status_code == 403


def test_withdraw_through_put(client: TestClient, db_session: Session, student_headers):
    session_obj = create_random_demo_session(db_session)
    signup = sign_up(db_session, session_obj, "student_x")

    response = client.put(
        f"/api/v1/demo-signups/{signup.id}",
        headers=student_headers,
        json={"status": "withdrawn", "notes": "Can't make it"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == SignupStatus.WITHDRAWN
    assert response.json()["notes"] == "Can't make it"

    response = client.put(
        f"/api/v1/demo-signups/{signup.id}", headers=student_headers, json={"notes": "back"}
    )
    assert response.status_code == 409
    assert response.json()["error"]["reason"] == "InvalidState"


def test_withdraw_through_put_saves_nothing_when_withdrawal_fails(
    client: TestClient, db_session: Session, student_headers, monkeypatch
):
    session_obj = create_random_demo_session(db_session)
    signup = sign_up(db_session, session_obj, "student_x", notes="Original notes")

    def busy(*args, **kwargs):
        raise BusyError(1, session_id=session_obj.id)

    monkeypatch.setattr(demo_signup_crud, "mark_withdrawn", busy)

    response = client.put(
        f"/api/v1/demo-signups/{signup.id}",
        headers=student_headers,
        json={"status": "withdrawn", "notes": "Can't make it"},
    )

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    db_session.refresh(signup)
    assert signup.status == SignupStatus.SIGNED_UP
    assert signup.notes == "Original notes"


def test_student_cannot_mark_attendance_through_put(
    client: TestClient, db_session: Session, student_headers
):
    session_obj = create_random_demo_session(db_session)
    signup = sign_up(db_session, session_obj, "student_x")

    response = client.put(
        f"/api/v1/demo-signups/{signup.id}", headers=student_headers, json={"status": "presented"}
    )
    assert response.status_code == 403
    assert response.json()["error"]["reason"] == "Forbidden"


def test_cancel_signup_frees_slot(
    client: TestClient, db_session: Session, student_headers, other_student_headers
):
    session_obj = create_random_demo_session(db_session, max_scheduled=1)
    signup = sign_up(db_session, session_obj, "student_x")

    response = client.delete(f"/api/v1/demo-signups/{signup.id}", headers=student_headers)
    assert response.status_code == 200
    assert response.json()["status"] == SignupStatus.WITHDRAWN
    assert response.json()["withdrawn_at"] is not None

    response = client.get(f"/api/v1/demo-sessions/{session_obj.id}", headers=student_headers)
    assert response.json()["signup_count"] == 0

    response = client.post(
        f"/api/v1/demo-sessions/{session_obj.id}/signup", headers=other_student_headers, json={}
    )
    assert response.status_code == 201

    response = client.delete(f"/api/v1/demo-signups/{signup.id}", headers=student_headers)
    assert response.status_code == 409

    response = client.delete("/api/v1/demo-signups/dsu_missing", headers=student_headers)
    assert response.status_code == 404


def test_list_my_signups(client: TestClient, db_session: Session, student_headers):
    first = create_random_demo_session(db_session)
    second = create_random_demo_session(db_session)
    sign_up(db_session, first, "student_x")
    sign_up(db_session, second, "student_y")

    response = client.get("/api/v1/students/me/demo-signups", headers=student_headers)

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["session_id"] == first.id


def test_health(client: TestClient):
    assert client.get("/api/v1/health").json()["status"] == "healthy"
    assert client.get("/api/v1/health/db").json()["component"] == "database"
