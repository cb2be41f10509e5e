import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("OPENAI_API_KEY", "test-key")

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from quizly.db.base import Base
from quizly.db.sessions import SessionLocal, engine, get_db
from quizly.main import app
from quizly.models import QuestionSet, User
from quizly.models.user import ROLE_FACULTY, ROLE_STUDENT
from quizly.routes.question_sets import get_question_generator
from quizly.routes.sessions import get_registry
from quizly.schemas.mcq import MCQ
from quizly.services.session_registry import SessionRegistry


def mcq(text, options=("A", "B", "C", "D"), answer="A"):
    return {"question_text": text, "options": list(options), "correct_option": answer, "explanation": ""}


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeGenerator:
    """Returns canned questions instead of calling the provider."""

    def __init__(self):
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        return [
            MCQ(
                question_text=f"{request.topic or 'General'} question {i}",
                options=["w", "x", "y", "z"],
                correct_option="x",
                explanation="x is right",
            )
            for i in range(1, request.clamped_count + 1)
        ]


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return SessionRegistry(clock=clock)


@pytest.fixture
def generator():
    return FakeGenerator()


def override_get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(db, registry, generator):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_question_generator] = lambda: generator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# --- direct model helpers --------------------------------------------------

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name, role=ROLE_STUDENT, verified=True, college_name=None):
        counter["n"] += 1
        user = User(
            name=name,
            email=f"user{counter['n']}@example.com",
            password_hash="not-a-real-hash",
            role=role,
            faculty_handle=f"{name.replace(' ', '')}-faculty{100 + counter['n']}" if role == ROLE_FACULTY else None,
            is_id_verified=verified,
            college_name=college_name,
            created_at=datetime.utcnow(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def faculty(make_user):
    return make_user("Jane Doe", role=ROLE_FACULTY)


@pytest.fixture
def make_draft(db):
    def _make(owner, questions=None, topic="Midterm"):
        draft = QuestionSet(
            owner_id=owner.id,
            source="manual",
            topic=topic,
            questions=questions or [mcq("Q1"), mcq("Q2", answer="B"), mcq("Q3", answer="C"), mcq("Q4", answer="D")],
        )
        db.add(draft)
        db.commit()
        db.refresh(draft)
        return draft

    return _make


def follow(db, student, faculty):
    student.following.add(faculty)
    db.commit()


# --- API helpers -----------------------------------------------------------

def register(client, name, email, role="student", password="secret123", college_name=None):
    response = client.post("/auth/register", json={
        "name": name,
        "email": email,
        "password": password,
        "role": role,
        "college_name": college_name,
    })
    assert response.status_code == 201, response.text
    body = response.json()
    headers = {"Authorization": f"Bearer {body['access_token']}"}
    if role == "faculty":
        assert client.post("/auth/verify-id", headers=headers).status_code == 200
    return body, headers
