import sys
from pathlib import Path

import pytest
from sqlmodel import Session, SQLModel, create_engine


def _ensure_app_on_path():
    repo_root = Path(__file__).resolve().parent.parent
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))
    return repo_root


_ensure_app_on_path()

# ============================================================================
# IN-MEMORY DATABASE FOR TESTING
# ============================================================================

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from lms_engine.models import (
    Course,
    Enrollment,
    Lesson,
    Question,
    Quiz,
    User,
)

# StaticPool makes every connection share the same in-memory database
test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create all tables in the test database once per session."""
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(autouse=True)
def cleanup_db_between_tests():
    """Clean up test data after each test."""
    yield

    # Children before parents
    with Session(test_engine) as session:
        for table in reversed(SQLModel.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()


# ============================================================================
# FASTAPI APP & TEST CLIENT
# ============================================================================

from lms_engine.database import get_session
from lms_engine.main import app


@pytest.fixture
def client():
    """Test client whose requests use the in-memory database."""

    def override_get_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def session():
    """Provide a database session for tests."""
    with Session(test_engine) as session:
        yield session


def _create(obj):
    with Session(test_engine) as session:
        session.add(obj)
        session.commit()
        session.refresh(obj)
        obj_id = obj.id
    with Session(test_engine) as session:
        return session.get(type(obj), obj_id)


# ============================================================================
# ENTITY FIXTURES
# ============================================================================


@pytest.fixture
def admin_user():
    return _create(User(name="Admin User", email="admin@example.com", role="admin"))


@pytest.fixture
def instructor_user():
    return _create(
        User(name="Dr. Jane Instructor", email="instructor@example.com", role="instructor")
    )


@pytest.fixture
def other_instructor():
    return _create(
        User(name="Dr. Sam Elsewhere", email="elsewhere@example.com", role="instructor")
    )


@pytest.fixture
def student_user():
    return _create(User(name="Alice Student", email="alice@example.com", role="student"))


@pytest.fixture
def other_student():
    return _create(User(name="Bob Student", email="bob@example.com", role="student"))


@pytest.fixture
def course(instructor_user):
    """A published course with four lessons."""
    course = _create(
        Course(
            title="Introduction to Geography",
            description="Capitals and continents",
            instructor_id=instructor_user.id,
            is_published=True,
        )
    )
    with Session(test_engine) as session:
        for i in range(1, 5):
            session.add(Lesson(course_id=course.id, title=f"Lesson {i}", position=i))
        session.commit()
    return course


@pytest.fixture
def lessons(course):
    from sqlmodel import select

    with Session(test_engine) as session:
        return session.exec(
            select(Lesson).where(Lesson.course_id == course.id).order_by(Lesson.position)
        ).all()


@pytest.fixture
def enrollment(student_user, course):
    return _create(Enrollment(student_id=student_user.id, course_id=course.id))


@pytest.fixture
def quiz(course):
    """Published quiz: multiple-choice worth 2 (answer "B"), short-answer worth 1 ("Paris")."""
    quiz = _create(
        Quiz(
            course_id=course.id,
            title="Capitals",
            passing_score=60,
            total_points=3,
            is_published=True,
        )
    )
    with Session(test_engine) as session:
        session.add(
            Question(
                quiz_id=quiz.id,
                position=1,
                prompt="Pick option B",
                type="multiple-choice",
                options=[
                    {"text": "A", "isCorrect": False},
                    {"text": "B", "isCorrect": True},
                    {"text": "C", "isCorrect": False},
                ],
                correct_answer="B",
                points=2,
            )
        )
        session.add(
            Question(
                quiz_id=quiz.id,
                position=2,
                prompt="Capital of France?",
                type="short-answer",
                options=[],
                correct_answer="Paris",
                points=1,
            )
        )
        session.commit()
    return quiz


@pytest.fixture
def quiz_questions(quiz):
    from sqlmodel import select

    with Session(test_engine) as session:
        return session.exec(
            select(Question).where(Question.quiz_id == quiz.id).order_by(Question.position)
        ).all()
