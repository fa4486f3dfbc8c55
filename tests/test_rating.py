"""Tests for course rating aggregation."""

import pytest

from lms_engine.errors import InvalidInputError, NotFoundError, PreconditionError
from lms_engine.models import Course, Enrollment, User
from lms_engine.services.rating_service import (
    aggregate_ratings,
    rate_course,
    recalculate_course_rating,
    validate_rating,
)


def enroll_students(session, course, count):
    enrollments = []
    for i in range(count):
        user = User(name=f"Student {i}", email=f"s{i}@example.com", role="student")
        session.add(user)
        session.commit()
        enrollment = Enrollment(student_id=user.id, course_id=course.id)
        session.add(enrollment)
        session.commit()
        session.refresh(enrollment)
        enrollments.append(enrollment)
    return enrollments


class TestAggregateRatings:
    def test_mean_and_count(self):
        assert aggregate_ratings([5, 3, 4]) == (4.0, 3)

    def test_rounds_to_one_decimal(self):
        assert aggregate_ratings([5, 1, 4]) == (3.3, 3)

    def test_rounds_half_up(self):
        # 9 / 4 = 2.25
        assert aggregate_ratings([1, 2, 3, 3]) == (2.3, 4)

    def test_no_ratings(self):
        assert aggregate_ratings([]) == (0.0, 0)


class TestValidateRating:
    @pytest.mark.parametrize("value", [1, 3, 5])
    def test_accepts_range(self, value):
        assert validate_rating(value) == value

    @pytest.mark.parametrize("value", [0, 6, -1, 4.5, 4.0, "4", None, True])
    def test_rejects_invalid(self, value):
        with pytest.raises(InvalidInputError):
            validate_rating(value)


class TestRateCourse:
    def test_rescan_after_each_rating(self, session, course):
        first, second, third = enroll_students(session, course, 3)

        rate_course(session, first.id, 5)
        rate_course(session, second.id, 3)
        summary = rate_course(session, third.id, 4)

        assert summary.rating == 4.0
        assert summary.rating_count == 3
        stored = session.get(Course, course.id)
        session.refresh(stored)
        assert (stored.rating, stored.rating_count) == (4.0, 3)

    def test_overwriting_a_rating(self, session, course):
        first, second, third = enroll_students(session, course, 3)
        for enrollment, value in zip((first, second, third), (5, 3, 4)):
            rate_course(session, enrollment.id, value)

        summary = rate_course(session, second.id, 1)

        assert summary.rating == 3.3
        assert summary.rating_count == 3
        session.refresh(second)
        assert second.rating == 1

    def test_sets_comment_and_timestamp(self, session, enrollment):
        rate_course(session, enrollment.id, 4, comment="<b>Great</b> course")
        stored = session.get(Enrollment, enrollment.id)
        session.refresh(stored)
        assert stored.rating == 4
        assert stored.rating_comment == "Great course"
        assert stored.rated_at is not None

    def test_invalid_rating_changes_nothing(self, session, enrollment, course):
        with pytest.raises(InvalidInputError):
            rate_course(session, enrollment.id, 6)

        stored = session.get(Enrollment, enrollment.id)
        session.refresh(stored)
        assert stored.rating is None
        stored_course = session.get(Course, course.id)
        session.refresh(stored_course)
        assert (stored_course.rating, stored_course.rating_count) == (0.0, 0)

    def test_other_courses_are_not_counted(self, session, course, instructor_user):
        other = Course(title="Other", instructor_id=instructor_user.id, is_published=True)
        session.add(other)
        session.commit()
        (mine,) = enroll_students(session, course, 1)
        theirs = Enrollment(student_id=mine.student_id, course_id=other.id, rating=1)
        session.add(theirs)
        session.commit()

        summary = rate_course(session, mine.id, 5)
        assert (summary.rating, summary.rating_count) == (5.0, 1)

    def test_only_owner_can_rate(self, session, enrollment, other_student):
        with pytest.raises(PreconditionError):
            rate_course(session, enrollment.id, 5, student_id=other_student.id)

    def test_missing_enrollment(self, session):
        with pytest.raises(NotFoundError):
            rate_course(session, 12345, 5)


class TestRecalculate:
    def test_repairs_drift(self, session, course):
        first, second = enroll_students(session, course, 2)
        rate_course(session, first.id, 5)
        rate_course(session, second.id, 2)

        drifted = session.get(Course, course.id)
        drifted.rating = 1.0
        drifted.rating_count = 99
        session.add(drifted)
        session.commit()

        summary = recalculate_course_rating(session, course.id)
        assert (summary.rating, summary.rating_count) == (3.5, 2)

    def test_is_idempotent(self, session, course):
        (only,) = enroll_students(session, course, 1)
        rate_course(session, only.id, 4)

        first = recalculate_course_rating(session, course.id)
        second = recalculate_course_rating(session, course.id)
        assert first == second
        assert (second.rating, second.rating_count) == (4.0, 1)

    def test_course_without_ratings(self, session, course, enrollment):
        summary = recalculate_course_rating(session, course.id)
        assert (summary.rating, summary.rating_count) == (0.0, 0)

    def test_counts_ratings_written_outside_the_service(self, session, course):
        enrollments = enroll_students(session, course, 3)
        for enrollment, value in zip(enrollments, (5, None, 4)):
            enrollment.rating = value
            session.add(enrollment)
        session.commit()

        summary = recalculate_course_rating(session, course.id)
        assert (summary.rating, summary.rating_count) == (4.5, 2)

    def test_missing_course(self, session):
        with pytest.raises(NotFoundError):
            recalculate_course_rating(session, 777)
