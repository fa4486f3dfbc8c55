"""Concurrent writers racing on one enrollment or one course.

These run against a file-backed SQLite database, where each thread gets its
own connection and ``SELECT ... FOR UPDATE`` is a no-op, so only the version
check on the row keeps the updates from overwriting each other.
"""

import threading

import pytest
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, SQLModel, create_engine

from lms_engine.database import retry_on_stale
from lms_engine.errors import ConflictError
from lms_engine.models import Course, Enrollment, Lesson, User
from lms_engine.services import progress_service, rating_service
from lms_engine.services.progress_service import mark_lesson_complete
from lms_engine.services.rating_service import rate_course, recalculate_course_rating


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False}
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


def seed_course(engine, lesson_count, ratings=(None,)):
    """Course with ``lesson_count`` lessons and one enrollment per entry of ``ratings``."""
    with Session(engine) as session:
        instructor = User(name="Ida Instructor", email="ida@example.com", role="instructor")
        session.add(instructor)
        session.commit()

        course = Course(title="Race conditions", instructor_id=instructor.id, is_published=True)
        session.add(course)
        session.commit()

        lesson_ids = []
        for position in range(1, lesson_count + 1):
            lesson = Lesson(course_id=course.id, title=f"Lesson {position}", position=position)
            session.add(lesson)
            session.commit()
            lesson_ids.append(lesson.id)

        enrollment_ids = []
        for i, rating in enumerate(ratings):
            student = User(name=f"Student {i}", email=f"racer{i}@example.com", role="student")
            session.add(student)
            session.commit()
            enrollment = Enrollment(student_id=student.id, course_id=course.id, rating=rating)
            session.add(enrollment)
            session.commit()
            enrollment_ids.append(enrollment.id)

        return course.id, lesson_ids, enrollment_ids


def pause_first_call(monkeypatch, module, name, parties=2):
    """Hold the first call of ``module.name`` in each thread until all threads reach it."""
    barrier = threading.Barrier(parties, timeout=10)
    original = getattr(module, name)
    paused = set()
    lock = threading.Lock()

    def wrapper(*args, **kwargs):
        result = original(*args, **kwargs)
        with lock:
            first = threading.get_ident() not in paused
            paused.add(threading.get_ident())
        if first:
            barrier.wait()
        return result

    monkeypatch.setattr(module, name, wrapper)


def run_concurrently(engine, *operations):
    errors = []

    def worker(operation):
        try:
            with Session(engine) as session:
                operation(session)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(op,)) for op in operations]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return errors


class TestConcurrentLessonCompletion:
    def test_different_lessons_are_both_kept(self, file_engine, monkeypatch):
        _, (first, second), (enrollment_id,) = seed_course(file_engine, lesson_count=2)
        # Both threads read the enrollment before either one writes
        pause_first_call(monkeypatch, progress_service, "count_course_lessons")

        errors = run_concurrently(
            file_engine,
            lambda s: mark_lesson_complete(s, enrollment_id, first),
            lambda s: mark_lesson_complete(s, enrollment_id, second),
        )

        assert errors == []
        with Session(file_engine) as session:
            enrollment = session.get(Enrollment, enrollment_id)
            assert sorted(e["lessonId"] for e in enrollment.completed_lessons) == [first, second]
            assert enrollment.progress == 100
            assert enrollment.completed is True
            assert enrollment.version == 3

    def test_same_lesson_is_recorded_once(self, file_engine, monkeypatch):
        _, (first, _), (enrollment_id,) = seed_course(file_engine, lesson_count=2)
        pause_first_call(monkeypatch, progress_service, "count_course_lessons")

        errors = run_concurrently(
            file_engine,
            lambda s: mark_lesson_complete(s, enrollment_id, first),
            lambda s: mark_lesson_complete(s, enrollment_id, first),
        )

        assert errors == []
        with Session(file_engine) as session:
            enrollment = session.get(Enrollment, enrollment_id)
            assert [e["lessonId"] for e in enrollment.completed_lessons] == [first]
            assert enrollment.progress == 50


class TestConcurrentRating:
    def test_recalculation_does_not_undo_a_new_rating(self, file_engine, monkeypatch):
        course_id, _, (rated_five, rated_three) = seed_course(
            file_engine, lesson_count=1, ratings=(5, 3)
        )
        with Session(file_engine) as session:
            recalculate_course_rating(session, course_id)

        # The recalculation reads the old ratings while the new one is in flight
        pause_first_call(monkeypatch, rating_service, "aggregate_ratings")

        errors = run_concurrently(
            file_engine,
            lambda s: rate_course(s, rated_three, 1),
            lambda s: recalculate_course_rating(s, course_id),
        )

        assert errors == []
        with Session(file_engine) as session:
            course = session.get(Course, course_id)
            assert (course.rating, course.rating_count) == (3.0, 2)


class TestRetryOnStale:
    def test_gives_up_with_conflict(self, session):
        calls = []

        def always_stale():
            calls.append(1)
            raise StaleDataError("row changed")

        with pytest.raises(ConflictError):
            retry_on_stale(session, always_stale, "Enrollment 1", retries=3)
        assert len(calls) == 3

    def test_returns_once_an_attempt_succeeds(self, session):
        outcomes = iter([StaleDataError("row changed"), None])

        def flaky():
            outcome = next(outcomes)
            if outcome is not None:
                raise outcome
            return "done"

        assert retry_on_stale(session, flaky, "Course 1") == "done"

    def test_other_errors_are_not_retried(self, session):
        calls = []

        def broken():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            retry_on_stale(session, broken, "Course 1")
        assert len(calls) == 1
