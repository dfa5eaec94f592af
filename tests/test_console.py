import base64

import pytest
from pydantic import ValidationError

import console
from exceptions import OversizeUploadError, TopStarNotFoundError
from schemas import Course, CourseVideo, ExamYearStars, SiteSettings, TopStudent
from security import verify_password


def test_add_mark_defaults_label_to_exam_number(student):
    console.add_mark(student, 70)
    mark = console.add_mark(student, 82)
    named = console.add_mark(student, 90, "Paper 3")

    assert [m.label for m in student.marks] == ["Exam 1", "Exam 2", "Paper 3"]
    assert mark.score == 82
    assert named.date


def test_reset_password_stores_hash(student):
    console.reset_password(student, "n3w-pass!")

    assert "n3w-pass!" not in student.password_hash
    assert verify_password("n3w-pass!", student.password_hash)


def test_toggle_course_grants_then_revokes(student):
    assert console.toggle_course(student, "c1") is True
    assert student.active_courses == ["c1"]
    assert console.toggle_course(student, "c1") is False
    assert student.active_courses == []


def test_grant_course_is_idempotent(student):
    console.grant_course(student, "c1")
    console.grant_course(student, "c1")

    assert student.active_courses == ["c1"]


def test_add_star_ranks_sequentially():
    settings = SiteSettings(top_stars=[ExamYearStars(year="2026")])

    console.add_star(settings, "2026")
    console.add_star(settings, "2026")

    assert [s.rank for s in settings.top_stars[0].students] == [1, 2]


def test_sixth_star_is_a_no_op():
    settings = SiteSettings(top_stars=[ExamYearStars(year="2026")])
    for _ in range(5):
        assert console.add_star(settings, "2026") is not None

    assert console.add_star(settings, "2026") is None
    assert len(settings.top_stars[0].students) == 5


def test_add_star_creates_missing_year():
    settings = SiteSettings()

    console.add_star(settings, "2030")

    assert settings.top_stars[0].year == "2030"
    assert len(settings.top_stars[0].students) == 1


def test_model_rejects_more_than_five_stars():
    with pytest.raises(ValidationError):
        ExamYearStars(year="2026", students=[TopStudent(rank=i) for i in range(1, 7)])


def test_update_and_remove_star():
    settings = SiteSettings()
    console.add_star(settings, "2026")
    console.add_star(settings, "2026")

    console.update_star(settings, "2026", 1, name="Tharushi", index="1004", score="98%")
    assert settings.top_stars[0].students[1].name == "Tharushi"

    console.remove_star(settings, "2026", 0)
    assert [s.name for s in settings.top_stars[0].students] == ["Tharushi"]

    with pytest.raises(TopStarNotFoundError):
        console.update_star(settings, "2026", 4, name="x")
    with pytest.raises(TopStarNotFoundError):
        console.update_star(settings, "2026", -1, name="x")


def test_star_edits_on_unknown_year_leave_settings_alone():
    settings = SiteSettings()
    console.add_star(settings, "2026")
    before = settings.model_copy(deep=True)

    with pytest.raises(TopStarNotFoundError):
        console.update_star(settings, "2031", 0, name="x")
    with pytest.raises(TopStarNotFoundError):
        console.remove_star(settings, "2031", 0)
    with pytest.raises(TopStarNotFoundError):
        console.remove_star(settings, "2026", 3)

    assert settings == before
    assert [y.year for y in settings.top_stars] == ["2026"]


def test_update_star_validates_fields():
    settings = SiteSettings()
    console.add_star(settings, "2026")

    with pytest.raises(ValidationError):
        console.update_star(settings, "2026", 0, rank="not-a-number")

    assert settings.top_stars[0].students[0].rank == 1


def test_new_course_and_videos():
    course = console.new_course()

    assert course.id.startswith("course-")
    assert course.price == 3500
    assert course.duration_minutes == 120
    assert [v.title for v in course.videos] == ["Lesson 1"]

    console.add_video(course)
    assert [v.title for v in course.videos] == ["Lesson 1", "Lesson 2"]


def test_video_title_must_not_be_blank():
    with pytest.raises(ValidationError):
        CourseVideo(id="abc", title="  ")


def test_remove_course():
    courses = [Course(id="a", title="A"), Course(id="b", title="B")]

    assert [c.id for c in console.remove_course(courses, "a")] == ["b"]


def test_live_sessions():
    settings = SiteSettings()
    session = console.add_live_session(settings, exam_year="2027")

    assert session.id.startswith("live-")
    assert settings.live_sessions[0].exam_year == "2027"

    console.remove_live_session(settings, session.id)
    assert settings.live_sessions == []


def test_encode_upload_returns_data_url():
    data_url = console.encode_upload(b"\x89PNG", "image/png")

    assert data_url == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()


def test_encode_upload_rejects_oversize():
    with pytest.raises(OversizeUploadError) as exc_info:
        console.encode_upload(b"x" * 11, "image/png", limit=10)

    assert exc_info.value.size == 11
    assert console.encode_upload(b"x" * 10, "image/png", limit=10)


def test_apply_upload_targets():
    settings = SiteSettings(background_images=["old"])

    console.apply_upload(settings, "logo", "data:logo")
    console.apply_upload(settings, "background", "data:bg")
    console.apply_upload(settings, "tutor", "data:tutor")

    assert settings.logo_url == "data:logo"
    assert settings.background_images == ["data:bg"]
    assert settings.hero_tutor_image == "data:tutor"
    with pytest.raises(ValueError):
        console.apply_upload(settings, "favicon", "data:x")
