import csv
import io

import pytest

from conftest import register


@pytest.fixture
def faculty_auth(client):
    body, headers = register(client, "Jane Doe", "jane@example.com", role="faculty", college_name="MIT")
    return body, headers


@pytest.fixture
def student_auth(client):
    return register(client, "Ravi Kumar", "ravi@example.com")


def follow_via_api(client, faculty_auth, student_headers):
    faculty, faculty_headers = faculty_auth
    response = client.post(
        "/network/follow-requests",
        json={"faculty_handle": faculty["faculty_handle"]},
        headers=student_headers,
    )
    assert response.status_code == 201, response.text
    response = client.post(
        f"/network/follow-requests/{response.json()['id']}/respond",
        json={"status": "accepted"},
        headers=faculty_headers,
    )
    assert response.status_code == 200, response.text


def publish_via_api(client, faculty_headers, count=3, **extra):
    draft = client.post("/question-sets/generate", json={"topic": "Graphs", "count": count}, headers=faculty_headers)
    assert draft.status_code == 201, draft.text
    payload = {"question_set_id": draft.json()["id"], "title": "Midterm", "duration_minutes": 10, **extra}
    response = client.post("/tests", json=payload, headers=faculty_headers)
    assert response.status_code == 201, response.text
    return response.json()


def start_via_api(client, student_headers, test_id):
    inbox = client.get("/notifications", headers=student_headers).json()
    notification = next(n for n in inbox if n["test_id"] == test_id)
    response = client.post(
        f"/tests/{test_id}/attempts",
        json={"notification_id": notification["id"], "student": {"name": "Ravi", "registration_number": "21CS001"}},
        headers=student_headers,
    )
    return response


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_faculty_handles_are_sequential(client):
    first, _ = register(client, "Jane Doe", "jane@example.com", role="faculty")
    second, _ = register(client, "A. Turing", "alan@example.com", role="faculty")
    student, _ = register(client, "Ravi", "ravi@example.com")
    assert first["faculty_handle"] == "JaneDoe-faculty101"
    assert second["faculty_handle"] == "ATuring-faculty102"
    assert student["faculty_handle"] is None


def test_register_and_login(client):
    register(client, "Ravi", "ravi@example.com", password="secret123")
    duplicate = client.post("/auth/register", json={"name": "R", "email": "ravi@example.com", "password": "secret123"})
    assert duplicate.status_code == 400

    assert client.post("/auth/login", json={"email": "ravi@example.com", "password": "wrong!!"}).status_code == 401
    login = client.post("/auth/login", json={"email": "ravi@example.com", "password": "secret123"})
    assert login.status_code == 200
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {login.json()['access_token']}"})
    assert me.json()["role"] == "student"


def test_unverified_faculty_cannot_author(client):
    response = client.post("/auth/register", json={
        "name": "New Prof", "email": "new@example.com", "password": "secret123", "role": "faculty",
    })
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    denied = client.get("/question-sets", headers=headers)

    assert denied.status_code == 403
    assert denied.json()["code"] == "permission_denied"


def test_students_cannot_use_faculty_routes(client, student_auth):
    _, headers = student_auth
    assert client.get("/tests", headers=headers).status_code == 403
    assert client.post("/auth/verify-id", headers=headers).status_code == 409


def test_duplicate_follow_request(client, faculty_auth, student_auth):
    faculty, _ = faculty_auth
    _, headers = student_auth
    payload = {"faculty_handle": faculty["faculty_handle"]}
    assert client.post("/network/follow-requests", json=payload, headers=headers).status_code == 201
    duplicate = client.post("/network/follow-requests", json=payload, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "duplicate_request"


def test_take_test_end_to_end(client, faculty_auth, student_auth):
    _, faculty_headers = faculty_auth
    _, student_headers = student_auth
    follow_via_api(client, faculty_auth, student_headers)

    published = publish_via_api(client, faculty_headers)
    assert published["status"] == "complete"
    assert published["notified_count"] == 1
    test_id = published["test"]["id"]

    started = start_via_api(client, student_headers, test_id)
    assert started.status_code == 201, started.text
    session = started.json()
    assert session["state"] == "awaiting_secure_mode"
    assert client.get("/notifications", headers=student_headers).json() == []

    early = client.post(f"/sessions/{session['id']}/answer", json={"question_index": 0, "option": "x"},
                        headers=student_headers)
    assert early.status_code == 409

    base = f"/sessions/{session['id']}"
    assert client.post(f"{base}/secure-mode", json={"granted": True}, headers=student_headers).json()["state"] == "in_progress"
    client.post(f"{base}/answer", json={"question_index": 0, "option": "x"}, headers=student_headers)
    client.post(f"{base}/answer", json={"question_index": 1, "option": "w"}, headers=student_headers)
    client.post(f"{base}/review", json={"question_index": 2}, headers=student_headers)
    view = client.post(f"{base}/navigate", json={"direction": 1}, headers=student_headers).json()
    assert view["current_index"] == 1
    assert view["marked_for_review"] == [2]
    assert view["answered_count"] == 2

    submitted = client.post(f"{base}/submit", headers=student_headers).json()
    assert submitted["state"] == "submitted"
    assert submitted["score"] == 1
    assert submitted["attempt_id"]
    assert client.get(base, headers=student_headers).status_code == 404

    history = client.get("/attempts", headers=student_headers).json()
    assert [a["id"] for a in history] == [submitted["attempt_id"]]
    review = client.get(f"/attempts/{submitted['attempt_id']}", headers=student_headers).json()
    assert review["questions"][1]["is_correct"] is False
    assert review["questions"][1]["correct_option"] == "x"

    report = client.get(f"/analytics/tests/{test_id}", headers=faculty_headers).json()
    assert report["attempt_count"] == 1
    assert report["highest_score"] == 1

    export = client.get(f"/analytics/tests/{test_id}/export", headers=faculty_headers)
    assert export.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(export.text)))
    assert rows[1][:2] == ["21CS001", "Ravi"]
    assert rows[1][-2:] == ["1 / 3", "33.33%"]


def test_disqualification_and_reattempt(client, faculty_auth, student_auth):
    _, faculty_headers = faculty_auth
    _, student_headers = student_auth
    follow_via_api(client, faculty_auth, student_headers)
    test_id = publish_via_api(client, faculty_headers)["test"]["id"]

    base = f"/sessions/{start_via_api(client, student_headers, test_id).json()['id']}"
    for violation in range(1, 4):
        client.post(f"{base}/secure-mode", json={"granted": True}, headers=student_headers)
        view = client.post(f"{base}/focus-lost", json={"source": "visibility"}, headers=student_headers).json()
        assert view["violation_count"] == violation
    assert view["state"] == "disqualified"
    assert view["attempt_id"]

    alerts = client.get("/alerts", params={"status": "pending"}, headers=faculty_headers).json()
    assert len(alerts) == 1
    assert alerts[0]["student_name"] == "Ravi Kumar"

    blocked = client.post(
        f"/tests/{test_id}/attempts",
        json={"notification_id": alerts[0]["id"], "student": {"name": "Ravi"}},
        headers=student_headers,
    )
    assert blocked.status_code == 403
    assert blocked.json()["code"] == "disqualified"

    granted = client.post(f"/alerts/{alerts[0]['id']}/grant", headers=faculty_headers)
    assert granted.json()["status"] == "resolved"
    assert start_via_api(client, student_headers, test_id).status_code == 201

    dashboard = client.get("/analytics/dashboard", headers=faculty_headers).json()
    assert dashboard["pending_violation_alerts"] == 0
    assert dashboard["followers"] == 1


def test_session_times_out_on_the_server_clock(client, clock, faculty_auth, student_auth):
    _, faculty_headers = faculty_auth
    _, student_headers = student_auth
    follow_via_api(client, faculty_auth, student_headers)
    test_id = publish_via_api(client, faculty_headers)["test"]["id"]
    session = start_via_api(client, student_headers, test_id).json()
    base = f"/sessions/{session['id']}"
    client.post(f"{base}/secure-mode", json={"granted": True}, headers=student_headers)

    clock.advance(120)
    assert client.get(base, headers=student_headers).json()["remaining_seconds"] == 480

    clock.advance(480)
    late = client.post(f"{base}/answer", json={"question_index": 0, "option": "x"}, headers=student_headers)
    assert late.status_code == 200
    assert late.json()["state"] == "submitted"
    assert late.json()["answers"] == [None, None, None]


def test_sessions_are_private(client, faculty_auth, student_auth):
    _, faculty_headers = faculty_auth
    _, student_headers = student_auth
    follow_via_api(client, faculty_auth, student_headers)
    test_id = publish_via_api(client, faculty_headers)["test"]["id"]
    session = start_via_api(client, student_headers, test_id).json()

    _, other_headers = register(client, "Eve", "eve@example.com")
    assert client.get(f"/sessions/{session['id']}", headers=other_headers).status_code == 404


def test_revoke_and_ignore(client, faculty_auth, student_auth):
    _, faculty_headers = faculty_auth
    _, student_headers = student_auth
    follow_via_api(client, faculty_auth, student_headers)
    first = publish_via_api(client, faculty_headers)["test"]["id"]
    second = publish_via_api(client, faculty_headers)["test"]["id"]

    draft = client.delete(f"/tests/{first}", headers=faculty_headers).json()
    assert draft["source"] == "revoked"
    assert len(draft["questions"]) == 3

    inbox = client.get("/notifications", headers=student_headers).json()
    assert [n["test_id"] for n in inbox] == [second]
    dismissed = client.post(f"/notifications/{inbox[0]['id']}/dismiss", headers=student_headers).json()
    assert dismissed["status"] == "ignored"

    ignored = client.get("/notifications/ignored", headers=faculty_headers).json()
    assert [n["student_name"] for n in ignored] == ["Ravi Kumar"]


def test_publish_validation_error_shape(client, faculty_auth):
    _, headers = faculty_auth
    draft = client.post("/question-sets/generate", json={"count": 2}, headers=headers).json()
    response = client.post(
        "/tests",
        json={"question_set_id": draft["id"], "title": "  ", "duration_minutes": 10},
        headers=headers,
    )
    assert response.status_code == 422
    assert response.json() == {"detail": "Title must not be empty", "code": "validation_error"}


def test_publish_without_followers_reports_status(client, faculty_auth):
    _, headers = faculty_auth
    published = publish_via_api(client, headers)
    assert published["status"] == "no_followers"
    assert published["notified_count"] == 0


def test_faculty_connections(client, faculty_auth):
    _, jane_headers = faculty_auth
    alan, alan_headers = register(client, "Alan Turing", "alan@example.com", role="faculty")
    request = client.post("/network/connection-requests", json={"faculty_handle": alan["faculty_handle"]},
                          headers=jane_headers).json()
    pending = client.get("/network/connection-requests", headers=alan_headers).json()
    assert [r["id"] for r in pending] == [request["id"]]

    client.post(f"/network/connection-requests/{request['id']}/respond", json={"status": "accepted"},
                headers=alan_headers)

    assert [u["name"] for u in client.get("/network/connections", headers=jane_headers).json()] == ["Alan Turing"]
    assert [u["name"] for u in client.get("/network/connections", headers=alan_headers).json()] == ["Jane Doe"]


def test_connected_faculty_messaging(client, faculty_auth):
    jane, jane_headers = faculty_auth
    alan, alan_headers = register(client, "Alan Turing", "alan@example.com", role="faculty")
    thread = f"/network/connections/{alan['user_id']}/messages"

    refused = client.post(thread, json={"text": "hi"}, headers=jane_headers)
    assert refused.status_code == 409
    assert refused.json()["code"] == "invalid_operation"

    request = client.post("/network/connection-requests", json={"faculty_handle": alan["faculty_handle"]},
                          headers=jane_headers).json()
    client.post(f"/network/connection-requests/{request['id']}/respond", json={"status": "accepted"},
                headers=alan_headers)

    sent = client.post(thread, json={"text": "Shall we co-author the midterm?"}, headers=jane_headers)
    assert sent.status_code == 201, sent.text
    client.post(f"/network/connections/{jane['user_id']}/messages", json={"text": "Yes"}, headers=alan_headers)
    assert client.post(thread, json={"text": ""}, headers=jane_headers).status_code == 422

    messages = client.get(f"/network/connections/{jane['user_id']}/messages", headers=alan_headers).json()
    assert [m["text"] for m in messages] == ["Shall we co-author the midterm?", "Yes"]
    assert messages[0]["sender_id"] == jane["user_id"]
