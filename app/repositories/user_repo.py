# app/repositories/user_repo.py
import uuid
from datetime import datetime

from sqlalchemy import update
from sqlmodel import Session, select

from app.models.user import User, SETTING_FIELDS


class UserRepository:
    """
    Data access layer for User.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic

    Token and settings writes are single UPDATE statements so concurrent
    requests never observe a half-applied change.
    """

    # ----- Basic CRUD -----

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def get_by_username(self, session: Session, username: str) -> User | None:
        """Return a User by unique username, or None if not found."""
        stmt = select(User).where(User.username == username)
        return session.exec(stmt).first()

    def get_by_google_id(self, session: Session, google_id: str) -> User | None:
        stmt = select(User).where(User.google_id == google_id)
        return session.exec(stmt).first()

    def create(self, session: Session, user: User) -> User:
        """
        Insert a new User and return the persisted row.

        Raises sqlalchemy.exc.IntegrityError if the username is taken.
        """
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    # ----- Atomic single-row updates -----

    def _update_returning(self, session: Session, stmt) -> User | None:
        stmt = stmt.returning(User.id).execution_options(synchronize_session=False)
        user_id = session.exec(stmt).scalar_one_or_none()
        session.commit()
        if user_id is None:
            return None
        # Objects were expired by the commit, so this reloads the row.
        return session.get(User, user_id)

    def set_reset_token(
        self,
        session: Session,
        username: str,
        token: str,
        expires_at: datetime,
    ) -> User | None:
        """
        Store a reset token on the user, replacing any earlier one.

        Returns the updated User, or None if no such username exists.
        """
        stmt = (
            update(User)
            .where(User.username == username)
            .values(reset_token=token, reset_token_expires_at=expires_at)
        )
        return self._update_returning(session, stmt)

    def consume_reset_token(
        self,
        session: Session,
        token: str,
        now: datetime,
        password_hash: str,
    ) -> User | None:
        """
        Set a new password hash for the holder of an unexpired reset token.

        The token and its expiry are cleared in the same statement, so a
        token can be consumed at most once. Returns None if the token is
        unknown or expired.
        """
        stmt = (
            update(User)
            .where(User.reset_token == token, User.reset_token_expires_at > now)
            .values(
                password_hash=password_hash,
                reset_token=None,
                reset_token_expires_at=None,
            )
        )
        return self._update_returning(session, stmt)

    def update_setting(
        self,
        session: Session,
        username: str,
        field: str,
        value: str,
    ) -> User | None:
        """Change one settings column. Returns None if the user is missing."""
        if field not in SETTING_FIELDS:
            raise ValueError(f"Unknown setting: {field}")
        stmt = update(User).where(User.username == username).values({field: value})
        return self._update_returning(session, stmt)
