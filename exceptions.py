"""Exception classes for the tutoring platform admin API.

Lookups that find nothing return None instead of raising; the classes here
cover conditions a caller has to act on.
"""


class TutorPlatformError(Exception):
    """Base exception for all platform errors."""

    pass


class StoreUnavailableError(TutorPlatformError):
    """Raised when the backing document store cannot be reached."""

    pass


class KeyConflictError(TutorPlatformError):
    """Raised by a store when inserting a key that already exists."""

    def __init__(self, collection: str, key: str):
        self.collection = collection
        self.key = key
        super().__init__(f"Document '{collection}/{key}' already exists")


class AllocationConflictError(TutorPlatformError):
    """Raised when a concurrent writer changed a document mid-transaction.

    The index allocator catches this and retries; it never reaches callers.
    """

    pass


class AllocationFailedError(TutorPlatformError):
    """Raised when the counter stayed contended for every retry attempt."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Could not allocate an index number after {attempts} attempts"
        )


class UserNotFoundError(TutorPlatformError):
    """Raised when an operation needs a user that does not exist."""

    def __init__(self, index_number: str):
        self.index_number = index_number
        super().__init__(f"User '{index_number}' not found")


class CourseNotFoundError(TutorPlatformError):
    """Raised when an operation needs a course that does not exist."""

    def __init__(self, course_id: str):
        self.course_id = course_id
        super().__init__(f"Course '{course_id}' not found")


class TopStarNotFoundError(TutorPlatformError):
    """Raised when editing a top-student slot that does not exist."""

    def __init__(self, year: str, position: int):
        self.year = year
        self.position = position
        super().__init__(f"No top student at position {position} for {year}")


class DuplicateContactError(TutorPlatformError):
    """Raised when registering a contact that is already in use."""

    def __init__(self, contact: str):
        self.contact = contact
        super().__init__(f"Contact '{contact}' is already registered")


class StaleOverwriteError(TutorPlatformError):
    """Raised when a write carries a revision older than the stored one."""

    def __init__(self, key: str, expected: int, actual: int):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Document '{key}' is at revision {actual}, write expected {expected}"
        )


class OversizeUploadError(TutorPlatformError):
    """Raised when an uploaded image exceeds the size ceiling."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Upload is {size} bytes, max size is {limit} bytes")


class PermissionDeniedError(TutorPlatformError):
    """Raised when a session lacks the capability an operation requires."""

    pass
