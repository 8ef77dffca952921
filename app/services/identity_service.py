"""
Identity resolution.

Raw identifiers arrive in three shapes: a canonical user id (UUID), a guest
id (``guest_`` prefix) or an external chat-platform id. They are parsed into a
``UserRef`` and resolved once, at the API boundary, into the canonical id
used everywhere else.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.models import User

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
GUEST_PREFIX = "guest_"


class UserRefKind(str, Enum):
    CANONICAL = "canonical"
    EXTERNAL = "external"
    GUEST = "guest"


@dataclass(frozen=True)
class UserRef:
    kind: UserRefKind
    value: str

    @classmethod
    def parse(cls, raw: str) -> "UserRef":
        value = (raw or "").strip()
        if not value:
            raise ValidationError("User identifier is required")
        if value.startswith(GUEST_PREFIX):
            return cls(UserRefKind.GUEST, value)
        if UUID_PATTERN.match(value):
            return cls(UserRefKind.CANONICAL, value.lower())
        return cls(UserRefKind.EXTERNAL, value)


class IdentityResolver:

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, identifier: str) -> str:
        """Idempotent: resolving the same identifier always yields the same id."""
        ref = UserRef.parse(identifier)
        if ref.kind != UserRefKind.EXTERNAL:
            return ref.value
        return self._get_or_create_external(ref.value).id

    def _get_or_create_external(self, external_id: str) -> User:
        user = self.db.query(User).filter(User.external_id == external_id).first()
        if user:
            return user

        user = User(external_id=external_id)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            user = self.db.query(User).filter(User.external_id == external_id).first()
            if user is None:
                raise
            return user

        self.db.refresh(user)
        logger.info(f"Registered user {user.id} for external id {external_id}")
        return user
