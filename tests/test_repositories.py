from concurrent.futures import ThreadPoolExecutor

import pytest

from console import add_mark
from exceptions import DuplicateContactError, StaleOverwriteError, UserNotFoundError
from schemas import Course, CourseVideo, RegisterRequest, SiteSettings
from security import SessionContext, verify_password


def _profile(i, **overrides):
    data = {"name": f"Student {i}", "contact": f"07100000{i:02d}", "password": "pw"}
    data.update(overrides)
    return RegisterRequest(**data)


# --- Users ---


def test_register_builds_fresh_student(student, profile_data):
    assert student.index_number == "1000"
    assert student.role == "student"
    assert student.active_courses == []
    assert student.marks == []
    assert student.watch_time == {}
    assert student.capabilities == []
    assert student.password_hash != profile_data["password"]
    assert verify_password(profile_data["password"], student.password_hash)


def test_register_persists_by_index(users, student):
    assert users.find_by_index("1000") == student
    assert users.find_by_contact(student.contact) == student


def test_lookups_of_unknown_users_return_none(users):
    assert users.find_by_index("9999") is None
    assert users.find_by_contact("nobody") is None
    with pytest.raises(UserNotFoundError):
        users.get("9999")


def test_register_rejects_duplicate_contact(users, student, profile_data):
    with pytest.raises(DuplicateContactError):
        users.register(RegisterRequest(**profile_data))


def test_repeated_registrations_never_collide(users):
    indexes = [users.register(_profile(i)).index_number for i in range(6)]

    assert indexes == ["1000", "1001", "1002", "1003", "1004", "1005"]


def test_concurrent_registrations_get_distinct_indexes(users):
    with ThreadPoolExecutor(max_workers=3) as pool:
        registered = list(pool.map(lambda i: users.register(_profile(i)), range(3)))

    assert {u.index_number for u in registered} == {"1000", "1001", "1002"}
    assert {u.contact for u in registered} == {p.contact for p in map(_profile, range(3))}


def test_update_round_trip(users, student):
    add_mark(student, 87, "Paper 1")
    student.active_courses.append("course-mechanics")
    student.watch_time["course-mechanics"] = 15

    users.update(student)

    assert users.find_by_index(student.index_number) == student
    assert student.revision == 1


def test_update_unknown_user_raises(users, student):
    ghost = student.model_copy(update={"index_number": "4242"})

    with pytest.raises(UserNotFoundError):
        users.update(ghost)


def test_update_refreshes_matching_session(users, student):
    session = SessionContext(student.model_copy(deep=True))
    add_mark(student, 55)

    users.update(student, session=session)

    assert session.user.marks == student.marks
    assert session.user.revision == student.revision


def test_update_leaves_other_sessions_alone(users, student):
    other = users.register(_profile(7))
    session = SessionContext(other)
    add_mark(student, 55)

    users.update(student, session=session)

    assert session.user.index_number == other.index_number
    assert session.user.marks == []


def test_concurrent_edits_are_last_writer_wins(users, student):
    first = users.get(student.index_number)
    second = users.get(student.index_number)
    add_mark(first, 10, "first")
    add_mark(second, 20, "second")

    users.update(first)
    users.update(second)

    stored = users.get(student.index_number)
    assert [m.label for m in stored.marks] == ["second"]


def test_unchecked_writes_still_advance_the_revision(users, student):
    first = users.get(student.index_number)
    second = users.get(student.index_number)
    add_mark(first, 10, "first")
    add_mark(second, 20, "second")

    users.update(first)
    users.update(second)

    assert (first.revision, second.revision) == (1, 2)
    assert users.get(student.index_number).revision == 2
    with pytest.raises(StaleOverwriteError) as exc_info:
        users.update(first, check_revision=True)
    assert (exc_info.value.expected, exc_info.value.actual) == (1, 2)
    assert [m.label for m in users.get(student.index_number).marks] == ["second"]


def test_revision_check_rejects_stale_overwrite(users, student):
    first = users.get(student.index_number)
    second = users.get(student.index_number)
    add_mark(first, 10, "first")
    add_mark(second, 20, "second")

    users.update(first, check_revision=True)
    with pytest.raises(StaleOverwriteError) as exc_info:
        users.update(second, check_revision=True)

    assert exc_info.value.expected == 0
    assert exc_info.value.actual == 1
    assert [m.label for m in users.get(student.index_number).marks] == ["first"]


def test_record_watch_time_accumulates(users, student):
    session = SessionContext(student)

    users.record_watch_time(student.index_number, "course-mechanics", 10, session=session)
    users.record_watch_time(student.index_number, "course-mechanics", 5, session=session)

    assert users.get(student.index_number).watch_time == {"course-mechanics": 15}
    assert session.user.watch_time == {"course-mechanics": 15}


def test_authenticate(users, student, profile_data):
    assert users.authenticate(profile_data["contact"], profile_data["password"]) == student
    assert users.authenticate(profile_data["contact"], "wrong") is None
    assert users.authenticate("nobody", profile_data["password"]) is None


def test_search_matches_name_index_and_contact(users):
    users.register(_profile(1, name="Kasun Silva"))
    users.register(_profile(2, name="Amaya Fernando"))
    users.create_admin(_profile(3, name="Kasun Admin"), capabilities=["manage_site"])

    assert [u.name for u in users.search("kasun")] == ["Kasun Silva"]
    assert [u.name for u in users.search("1001")] == ["Amaya Fernando"]
    assert [u.name for u in users.search("0710000001")] == ["Kasun Silva"]
    assert len(users.search("")) == 2


# --- Settings ---


def test_settings_default_when_unsaved(settings_repo):
    settings = settings_repo.get()

    assert settings.revision == 0
    assert settings.hero_title
    assert [y.year for y in settings.top_stars] == ["2026", "2027", "2028", "2029"]


def test_settings_save_then_get(settings_repo):
    settings = settings_repo.get()
    settings.hero_title = "X"

    settings_repo.save(settings)

    loaded = settings_repo.get()
    assert loaded.hero_title == "X"
    assert loaded == settings


def test_settings_revision_check(settings_repo):
    a = settings_repo.get()
    b = settings_repo.get()
    a.hero_badge = "A"
    b.hero_badge = "B"

    settings_repo.save(a, check_revision=True)
    with pytest.raises(StaleOverwriteError):
        settings_repo.save(b, check_revision=True)
    assert settings_repo.get().hero_badge == "A"


def test_settings_revision_never_goes_backwards(settings_repo):
    settings = settings_repo.get()
    for _ in range(4):
        settings_repo.save(settings)
    assert settings.revision == 4

    fresh = settings_repo.save(SiteSettings(hero_title="Reset"))

    assert fresh.revision == 5
    assert settings_repo.get().revision == 5
    with pytest.raises(StaleOverwriteError):
        settings_repo.save(SiteSettings(revision=1), check_revision=True)
    assert settings_repo.get().hero_title == "Reset"


# --- Courses ---


def test_courses_default_catalog(courses_repo):
    courses = courses_repo.list()

    assert [c.id for c in courses] == ["course-mechanics"]
    assert courses_repo.get("course-mechanics") is not None
    assert courses_repo.get("nope") is None


def test_courses_save_preserves_order_and_removes_missing(courses_repo):
    a = Course(id="a", title="A", videos=[CourseVideo(id="v1", title="Intro")])
    b = Course(id="b", title="B")
    courses_repo.save([b, a])
    assert [c.id for c in courses_repo.list()] == ["b", "a"]

    courses_repo.save([a])

    assert courses_repo.list() == [a]
    assert courses_repo.store.get("courses", "b") is None


def test_courses_saved_empty_stays_empty(courses_repo):
    courses_repo.save([])

    assert courses_repo.list() == []
