"""User directory and role checks."""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from doctors_portal.api.database_models import User
from doctors_portal.api.models import (
    PromotionResult,
    UserIn,
    UserOut,
    UserRegistration,
    normalize_email,
)
from doctors_portal.database import Storage, retry_reads
from doctors_portal.errors import ForbiddenError, NotFoundError
from doctors_portal.logging_config import get_logger

logger = get_logger(__name__)

ROLE_PATIENT = "patient"
ROLE_ADMIN = "admin"


class UserDirectory:
    """
    Persists users and answers role questions.

    Pattern: Thin wrapper around SQLAlchemy; email is the natural key.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    def register(self, payload: UserIn) -> UserRegistration:
        """
        Create a user on first login, or refresh the name of a known one.

        The role of an existing user is never touched here.
        """
        email = normalize_email(str(payload.email))
        with self.storage.session() as db:
            user = db.scalars(select(User).where(User.email == email)).first()
            if user is not None:
                if payload.name and payload.name != user.name:
                    user.name = payload.name
                    db.commit()
                return UserRegistration(user_id=user.id, created=False)

            user = User(email=email, name=payload.name, role=ROLE_PATIENT)
            db.add(user)
            try:
                db.commit()
            except IntegrityError:
                # Lost a registration race for the same email
                db.rollback()
                existing = db.scalars(select(User).where(User.email == email)).one()
                return UserRegistration(user_id=existing.id, created=False)

            logger.info("user_registered", user_id=user.id)
            return UserRegistration(user_id=user.id, created=True)

    @retry_reads
    def get_by_email(self, email: str) -> Optional[UserOut]:
        email = normalize_email(email)
        with self.storage.session() as db:
            user = db.scalars(select(User).where(User.email == email)).first()
            return UserOut.model_validate(user) if user else None

    def exists(self, email: str) -> bool:
        return self.get_by_email(email) is not None

    def is_admin(self, email: str) -> bool:
        """True only for a known user whose role is admin."""
        user = self.get_by_email(email)
        return user is not None and user.role == ROLE_ADMIN

    def require_admin(self, email: str) -> None:
        """
        Raises:
            ForbiddenError: If the identity is not an admin
        """
        if not self.is_admin(email):
            raise ForbiddenError("forbidden access")

    @retry_reads
    def list_users(self) -> List[UserOut]:
        with self.storage.session() as db:
            users = db.scalars(select(User).order_by(User.created_at)).all()
            return [UserOut.model_validate(user) for user in users]

    def promote(self, acting_email: str, user_id: str) -> PromotionResult:
        """
        Elevate a user to admin.

        The acting identity is checked before the target is looked up, so
        a non-admin is refused whatever id it sends.

        Raises:
            ForbiddenError: If the acting identity is not an admin
            NotFoundError: If the target user does not exist
        """
        self.require_admin(acting_email)

        with self.storage.session() as db:
            user = db.get(User, user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            modified = user.role != ROLE_ADMIN
            user.role = ROLE_ADMIN
            db.commit()

        logger.info("user_promoted", user_id=user_id, by=acting_email, modified=modified)
        return PromotionResult(user_id=user_id, role=ROLE_ADMIN, modified=modified)

    def grant_admin(self, email: str, name: Optional[str] = None) -> UserOut:
        """Bootstrap an admin without an acting admin (operator tooling only)."""
        email = normalize_email(email)
        with self.storage.session() as db:
            user = db.scalars(select(User).where(User.email == email)).first()
            if user is None:
                user = User(email=email, name=name, role=ROLE_ADMIN)
                db.add(user)
            else:
                user.role = ROLE_ADMIN
            db.commit()
            result = UserOut.model_validate(user)

        logger.info("admin_granted", email=email)
        return result
