"""Password hashing, access tokens and explicit session context."""

import logging
from datetime import datetime, timedelta, timezone

import jwt
from passlib.hash import bcrypt

from config import BCRYPT_ROUNDS, JWT_EXP_MIN, SECRET_KEY
from exceptions import PermissionDeniedError
from schemas import User

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

_hasher = bcrypt.using(rounds=BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return _hasher.verify(password, password_hash)
    except ValueError:
        # Malformed hash in the store
        logger.warning("Stored password hash could not be parsed")
        return False


def create_token(user: User) -> str:
    payload = {
        "sub": user.index_number,
        "role": user.role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=JWT_EXP_MIN),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> str:
    """Return the index number carried by a token.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired.
        jwt.InvalidTokenError: If the token is malformed or has no subject.
    """
    payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    sub = payload.get("sub")
    if not sub:
        raise jwt.InvalidTokenError("No sub in token")
    return sub


class SessionContext:
    """The logged-in identity, passed explicitly to the code that needs it.

    Holds a full snapshot of the user so callers do not need a store round
    trip for their own record. Repositories call ``refresh`` after writing a
    user so the snapshot follows admin edits.
    """

    def __init__(self, user: User):
        self.user = user

    @property
    def index_number(self) -> str:
        return self.user.index_number

    def refresh(self, user: User) -> bool:
        """Replace the snapshot if ``user`` is the same account."""
        if user.index_number != self.user.index_number:
            return False
        self.user = user.model_copy(deep=True)
        return True

    def has_capability(self, capability: str) -> bool:
        return self.user.role == "admin" and capability in self.user.capabilities

    def require(self, capability: str) -> None:
        if not self.has_capability(capability):
            raise PermissionDeniedError(
                f"User '{self.index_number}' lacks capability '{capability}'"
            )
