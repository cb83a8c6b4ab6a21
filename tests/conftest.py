import os

# Settings are read at import time; point the engine at SQLite and keep
# external services unconfigured before coursepath is imported.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["OPENAI_API_KEY"] = ""
os.environ["EMAIL_HOST"] = ""
os.environ["AUTO_GENERATE_QUIZZES"] = "true"

import uuid

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from coursepath.core import database
from coursepath.core.dependencies import get_current_user
from coursepath.main import app
from coursepath.models import Base, User, UserRole
from coursepath.models.course_model import Course, CourseModule, QuizQuestion
from coursepath.models.enums import CourseStatus


@pytest.fixture(autouse=True)
def test_db(monkeypatch):
    """Fresh in-memory database per test, wired into every SessionLocal user."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(database, "engine", engine)
    monkeypatch.setattr(database, "SessionLocal", sessionmaker(autocommit=False, autoflush=False, bind=engine))
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(test_db):
    with database.SessionLocal() as session:
        yield session


class AuthState:
    user_id = None


@pytest.fixture()
def auth():
    """Selects the user the API sees as authenticated: auth.user_id = user.id."""
    state = AuthState()

    def _get_db_override():
        session = database.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    def _current_user_override(session: Session = Depends(database.get_db)) -> User:
        from fastapi import HTTPException
        if state.user_id is None:
            raise HTTPException(status_code=401, detail="Not authenticated. Bearer token required.")
        return session.get(User, state.user_id)

    app.dependency_overrides[database.get_db] = _get_db_override
    app.dependency_overrides[get_current_user] = _current_user_override
    yield state
    app.dependency_overrides.clear()


@pytest.fixture()
def client(auth):
    return TestClient(app)


def _make_user(db: Session, role: str = UserRole.LEARNER.value, name: str = "learner") -> User:
    uid = uuid.uuid4().hex[:10]
    user = User(firebase_uid=f"uid-{uid}", email=f"{name}-{uid}@example.com", display_name=name, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def make_user(db):
    def _factory(role: str = UserRole.LEARNER.value, name: str = "learner") -> User:
        return _make_user(db, role, name)
    return _factory


@pytest.fixture()
def learner(make_user):
    return make_user()


@pytest.fixture()
def admin(make_user):
    return make_user(role=UserRole.ADMIN.value, name="admin")


def add_question(db: Session, module: CourseModule, text: str, correct: str = "A", order: int = 0) -> QuizQuestion:
    question = QuizQuestion(
        module_id=module.id,
        text=text,
        options=[{"id": "A", "text": "first"}, {"id": "B", "text": "second"}, {"id": "C", "text": "third"}],
        correct_option_id=correct,
        question_order=order,
    )
    db.add(question)
    module.has_quiz = True
    db.commit()
    db.refresh(question)
    return question


@pytest.fixture()
def make_course(db):
    """
    Builds an active course with `modules` modules; `questions` maps a module
    index to the number of quiz questions (correct option always "A").
    """
    def _factory(title: str = "Quality Assurance 101", modules: int = 3, questions: dict = None):
        course = Course(title=title, description="Course under test", status=CourseStatus.ACTIVE)
        db.add(course)
        db.commit()
        for idx in range(modules):
            db.add(CourseModule(course_id=course.id, title=f"Module {idx + 1}", module_order=idx + 1))
        db.commit()
        db.refresh(course)
        for idx, count in (questions or {}).items():
            module = course.modules[idx]
            for n in range(count):
                add_question(db, module, f"Question {n + 1} of {module.title}", order=n)
        db.refresh(course)
        return course
    return _factory
