"""Rebuild every course's rating and rating count from its enrollments.

Run after manual data edits or to heal drift left by older code:

    python scripts/recalculate_ratings.py
"""

from sqlmodel import Session, select

from lms_engine.database import create_db_and_tables, engine
from lms_engine.logging_config import configure_logging
from lms_engine.models import Course
from lms_engine.services.rating_service import recalculate_course_rating

logger = configure_logging()

create_db_and_tables()

with Session(engine) as session:
    course_ids = session.exec(select(Course.id)).all()
    if not course_ids:
        logger.info("No courses found.")
    for course_id in course_ids:
        summary = recalculate_course_rating(session, course_id)
        logger.info(
            "Course %s: rating=%s count=%s", course_id, summary.rating, summary.rating_count
        )
    logger.info("Recalculated ratings for %d course(s)", len(course_ids))
