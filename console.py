"""Admin console operations.

These functions edit in-memory models the way the console forms do. Nothing
here writes to the store; callers persist the result through a repository.
"""

import base64
import logging
from datetime import datetime, timezone
from typing import List, Optional

from config import MAX_UPLOAD_BYTES
from exceptions import OversizeUploadError, TopStarNotFoundError
from schemas import (
    MAX_STARS_PER_YEAR,
    Course,
    CourseVideo,
    ExamYearStars,
    LiveSession,
    Mark,
    SiteSettings,
    TopStudent,
    User,
)
from security import hash_password

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


# ----------------------
# Students
# ----------------------

def add_mark(user: User, score: int, label: Optional[str] = None) -> Mark:
    """Append a mark; an empty label becomes "Exam <n>"."""
    mark = Mark(
        label=label or f"Exam {len(user.marks) + 1}",
        score=score,
        date=_now_iso(),
    )
    user.marks.append(mark)
    return mark


def reset_password(user: User, new_password: str) -> None:
    user.password_hash = hash_password(new_password)


def grant_course(user: User, course_id: str) -> None:
    if course_id not in user.active_courses:
        user.active_courses.append(course_id)


def revoke_course(user: User, course_id: str) -> None:
    user.active_courses = [c for c in user.active_courses if c != course_id]


def toggle_course(user: User, course_id: str) -> bool:
    """Grant the course if missing, revoke it otherwise.

    Returns:
        True if the user has access afterwards.
    """
    if course_id in user.active_courses:
        revoke_course(user, course_id)
        return False
    grant_course(user, course_id)
    return True


# ----------------------
# Top stars
# ----------------------

def _find_year(settings: SiteSettings, year: str) -> Optional[ExamYearStars]:
    for entry in settings.top_stars:
        if entry.year == year:
            return entry
    return None


def _year_with_star(settings: SiteSettings, year: str, position: int) -> ExamYearStars:
    entry = _find_year(settings, year)
    if entry is None or not 0 <= position < len(entry.students):
        raise TopStarNotFoundError(year, position)
    return entry


def _year_stars(settings: SiteSettings, year: str) -> ExamYearStars:
    entry = _find_year(settings, year)
    if entry is not None:
        return entry
    entry = ExamYearStars(year=year)
    settings.top_stars.append(entry)
    return entry


def add_star(settings: SiteSettings, year: str) -> Optional[TopStudent]:
    """Append a blank top-student slot for ``year``.

    A year that already lists the maximum is left unchanged and None is
    returned.
    """
    entry = _year_stars(settings, year)
    if len(entry.students) >= MAX_STARS_PER_YEAR:
        return None
    star = TopStudent(rank=len(entry.students) + 1)
    entry.students.append(star)
    return star


def update_star(settings: SiteSettings, year: str, position: int, **fields) -> TopStudent:
    """Set fields on the star at ``position`` (0-based).

    Raises:
        TopStarNotFoundError: If the year has no star at that position.
        ValidationError: If a field value is invalid; nothing is changed.
    """
    entry = _year_with_star(settings, year, position)
    star = entry.students[position]
    updated = TopStudent.model_validate({**star.model_dump(), **fields})
    entry.students[position] = updated
    return updated


def remove_star(settings: SiteSettings, year: str, position: int) -> None:
    entry = _year_with_star(settings, year, position)
    entry.students = [s for i, s in enumerate(entry.students) if i != position]


# ----------------------
# Courses
# ----------------------

def new_course() -> Course:
    return Course(
        id=f"course-{_now_ms()}",
        title="New Module",
        description="Module description...",
        price=3500,
        thumbnail="https://images.unsplash.com/photo-1635070041078-e363dbe005cb?auto=format&fit=crop&q=80&w=800",
        duration_minutes=120,
        videos=[CourseVideo(id="", title="Lesson 1")],
    )


def add_video(course: Course) -> CourseVideo:
    video = CourseVideo(id="", title=f"Lesson {len(course.videos) + 1}")
    course.videos.append(video)
    return video


def remove_course(courses: List[Course], course_id: str) -> List[Course]:
    return [c for c in courses if c.id != course_id]


# ----------------------
# Site content
# ----------------------

def add_live_session(settings: SiteSettings, exam_year: str = "2026") -> LiveSession:
    session = LiveSession(
        id=f"live-{_now_ms()}",
        title="Live Now",
        exam_year=exam_year,
        start_time=_now_iso(),
        duration_minutes=60,
    )
    settings.live_sessions.append(session)
    return session


def remove_live_session(settings: SiteSettings, session_id: str) -> None:
    settings.live_sessions = [s for s in settings.live_sessions if s.id != session_id]


def encode_upload(data: bytes, content_type: str, limit: int = MAX_UPLOAD_BYTES) -> str:
    """Turn an uploaded image into a data URL.

    Raises:
        OversizeUploadError: If ``data`` is larger than ``limit`` bytes.
    """
    if len(data) > limit:
        logger.warning("Rejected upload of %d bytes (limit %d)", len(data), limit)
        raise OversizeUploadError(len(data), limit)
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type or 'application/octet-stream'};base64,{encoded}"


def apply_upload(settings: SiteSettings, target: str, data_url: str) -> None:
    if target == "logo":
        settings.logo_url = data_url
    elif target == "background":
        settings.background_images = [data_url]
    elif target == "tutor":
        settings.hero_tutor_image = data_url
    else:
        raise ValueError(f"Unknown upload target: {target}")
