"""Typed record repositories layered on the document store.

Writes are whole-document overwrites. Unless a caller asks for a revision
check, two admins saving the same document concurrently silently lose one of
the two edits (last writer wins).
"""

import logging
from typing import List, Optional

from allocator import IndexAllocator
from config import ALLOCATION_MAX_RETRIES
from database import DocumentStore
from defaults import default_courses, default_settings
from exceptions import (
    AllocationConflictError,
    DuplicateContactError,
    KeyConflictError,
    StaleOverwriteError,
    TutorPlatformError,
    UserNotFoundError,
)
from schemas import Course, RegisterRequest, SiteSettings, User
from security import SessionContext, hash_password, verify_password

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
SITE_COLLECTION = "site"
SETTINGS_KEY = "settings"
COURSES_COLLECTION = "courses"
METADATA_COLLECTION = "metadata"
COURSE_ORDER_KEY = "course_order"


def _write_revisioned(
    store: DocumentStore,
    collection: str,
    key: str,
    doc: dict,
    expected_revision: Optional[int],
    missing_error: Optional[TutorPlatformError] = None,
) -> int:
    """Persist ``doc`` and return the revision it was stored under.

    Without ``expected_revision`` the write always lands and its revision is
    one past whatever is stored, so revisions never repeat or go backwards.
    With ``expected_revision`` the write lands only if the stored revision
    still matches.

    Raises:
        StaleOverwriteError: If the stored revision differs from
            ``expected_revision``.
        AllocationConflictError: If concurrent writers kept winning.
        missing_error: If given and the document does not exist.
    """
    if expected_revision is None:
        def stamp(current: Optional[dict]) -> dict:
            if current is None and missing_error is not None:
                raise missing_error
            base = 0 if current is None else int(current.get("revision", 0))
            return {**doc, "revision": base + 1}

        for attempt in range(1, ALLOCATION_MAX_RETRIES + 1):
            try:
                return store.transact(collection, key, stamp)["revision"]
            except AllocationConflictError:
                if attempt == ALLOCATION_MAX_RETRIES:
                    raise
                logger.debug("%s/%s changed during write (attempt %d)", collection, key, attempt)

    new_doc = {**doc, "revision": expected_revision + 1}
    if store.replace_if(collection, key, {"revision": expected_revision}, new_doc):
        return expected_revision + 1

    current = store.get(collection, key)
    if current is None and missing_error is not None:
        raise missing_error
    if current is None and expected_revision == 0:
        try:
            store.insert(collection, key, new_doc)
            return 1
        except KeyConflictError:
            current = store.get(collection, key)
    actual = -1 if current is None else int(current.get("revision", 0))
    raise StaleOverwriteError(f"{collection}/{key}", expected_revision, actual)


class UsersRepository:
    """Manages user documents keyed by index number."""

    def __init__(self, store: DocumentStore, allocator: Optional[IndexAllocator] = None):
        """Initialize UsersRepository.

        Args:
            store: Backing document store.
            allocator: Index allocator; defaults to one on the same store.
        """
        self.store = store
        self.allocator = allocator or IndexAllocator(store)

    def _create(
        self,
        profile: RegisterRequest,
        role: str = "student",
        capabilities: Optional[List[str]] = None,
    ) -> User:
        if self.find_by_contact(profile.contact) is not None:
            raise DuplicateContactError(profile.contact)

        index_number = str(self.allocator.allocate())
        user = User(
            index_number=index_number,
            name=profile.name,
            contact=profile.contact,
            password_hash=hash_password(profile.password),
            school=profile.school,
            birthday=profile.birthday,
            exam_year=profile.exam_year,
            role=role,
            capabilities=capabilities or [],
        )
        self.store.insert(USERS_COLLECTION, index_number, user.model_dump())
        logger.info("Registered %s %s", role, index_number)
        return user

    def register(self, profile: RegisterRequest) -> User:
        """Create a student with a freshly allocated index number.

        Raises:
            DuplicateContactError: If the contact is already registered.
            AllocationFailedError: If no index number could be allocated.
        """
        return self._create(profile)

    def create_admin(self, profile: RegisterRequest, capabilities: List[str]) -> User:
        return self._create(profile, role="admin", capabilities=capabilities)

    def find_by_contact(self, contact: str) -> Optional[User]:
        # Full collection scan on the local store; fine for a few thousand users
        docs = self.store.find(USERS_COLLECTION, {"contact": contact})
        return User.model_validate(docs[0]) if docs else None

    def find_by_index(self, index_number: str) -> Optional[User]:
        doc = self.store.get(USERS_COLLECTION, index_number)
        return User.model_validate(doc) if doc else None

    def get(self, index_number: str) -> User:
        """Like find_by_index, but raises UserNotFoundError when absent."""
        user = self.find_by_index(index_number)
        if user is None:
            raise UserNotFoundError(index_number)
        return user

    def list_all(self) -> List[User]:
        users = [User.model_validate(d) for d in self.store.find(USERS_COLLECTION)]
        return sorted(users, key=lambda u: int(u.index_number))

    def list_students(self) -> List[User]:
        return [u for u in self.list_all() if u.role == "student"]

    def search(self, query: str) -> List[User]:
        """Filter students by name (case-insensitive), index number or contact."""
        q = query.strip()
        students = self.list_students()
        if not q:
            return students
        return [
            s
            for s in students
            if q.lower() in s.name.lower() or q in s.index_number or q in s.contact
        ]

    def update(
        self,
        user: User,
        session: Optional[SessionContext] = None,
        check_revision: bool = False,
    ) -> User:
        """Overwrite the stored user with ``user``.

        On success ``user.revision`` is set in place to the stored revision,
        which is always one past the revision it replaced. If ``session``
        holds the same account its snapshot is refreshed as well.

        Args:
            user: Full user document to store.
            session: Optional session to keep in sync.
            check_revision: Reject the write if the stored revision differs
                from ``user.revision``.

        Raises:
            UserNotFoundError: If no user has this index number.
            StaleOverwriteError: If check_revision is set and another write
                landed first.
        """
        user.revision = _write_revisioned(
            self.store,
            USERS_COLLECTION,
            user.index_number,
            user.model_dump(),
            user.revision if check_revision else None,
            missing_error=UserNotFoundError(user.index_number),
        )

        if session is not None and session.refresh(user):
            logger.debug("Refreshed session snapshot for %s", user.index_number)
        return user

    def record_watch_time(
        self,
        index_number: str,
        course_id: str,
        minutes: int,
        session: Optional[SessionContext] = None,
    ) -> User:
        """Add watched minutes for a course to the user's total."""
        user = self.get(index_number)
        user.watch_time[course_id] = user.watch_time.get(course_id, 0) + minutes
        return self.update(user, session=session)

    def authenticate(self, contact: str, password: str) -> Optional[User]:
        user = self.find_by_contact(contact)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user


class SettingsRepository:
    """Reads and writes the site settings singleton."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self) -> SiteSettings:
        doc = self.store.get(SITE_COLLECTION, SETTINGS_KEY)
        if doc is None:
            return default_settings()
        return SiteSettings.model_validate(doc)

    def save(self, settings: SiteSettings, check_revision: bool = False) -> SiteSettings:
        """Replace the stored settings wholesale; advances ``settings.revision``.

        Raises:
            StaleOverwriteError: If check_revision is set and the stored
                revision differs from ``settings.revision``.
        """
        settings.revision = _write_revisioned(
            self.store,
            SITE_COLLECTION,
            SETTINGS_KEY,
            settings.model_dump(),
            settings.revision if check_revision else None,
        )
        logger.info("Saved site settings (revision %d)", settings.revision)
        return settings


class CoursesRepository:
    """Course catalog: one document per course plus a stored ordering."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def _order(self) -> Optional[List[str]]:
        doc = self.store.get(METADATA_COLLECTION, COURSE_ORDER_KEY)
        return None if doc is None else list(doc.get("ids", []))

    def list(self) -> List[Course]:
        order = self._order()
        if order is None:
            return default_courses()
        courses = []
        for course_id in order:
            doc = self.store.get(COURSES_COLLECTION, course_id)
            if doc is not None:
                courses.append(Course.model_validate(doc))
        return courses

    def get(self, course_id: str) -> Optional[Course]:
        for course in self.list():
            if course.id == course_id:
                return course
        return None

    def save(self, courses: List[Course]) -> List[Course]:
        """Persist the catalog; courses left out of ``courses`` are removed."""
        ids = [c.id for c in courses]
        for course in courses:
            self.store.put(COURSES_COLLECTION, course.id, course.model_dump())
        for stale_id in set(self.store.keys(COURSES_COLLECTION)) - set(ids):
            self.store.delete(COURSES_COLLECTION, stale_id)
            logger.info("Removed course %s", stale_id)
        self.store.put(METADATA_COLLECTION, COURSE_ORDER_KEY, {"ids": ids})
        logger.info("Saved %d courses", len(courses))
        return courses
