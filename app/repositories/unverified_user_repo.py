# app/repositories/unverified_user_repo.py
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete
from sqlmodel import Session

from app.models.unverified_user import UnverifiedUser


@dataclass(frozen=True)
class ConsumedSignup:
    """Fields of a pending signup that was deleted by token consumption."""

    username: str
    email: str
    password_hash: str
    created_at: datetime


class UnverifiedUserRepository:

    def create(self, session: Session, pending: UnverifiedUser) -> UnverifiedUser:
        session.add(pending)
        session.commit()
        session.refresh(pending)
        return pending

    def consume_token(
        self, session: Session, token: str, now: datetime
    ) -> ConsumedSignup | None:
        """
        Delete the pending signup holding an unexpired `token` and return it.

        Lookup and delete are one statement: of two concurrent calls with the
        same token, at most one gets a row back.
        """
        stmt = (
            delete(UnverifiedUser)
            .where(
                UnverifiedUser.verification_token == token,
                UnverifiedUser.verification_token_expires_at > now,
            )
            .returning(
                UnverifiedUser.username,
                UnverifiedUser.email,
                UnverifiedUser.password_hash,
                UnverifiedUser.created_at,
            )
            .execution_options(synchronize_session=False)
        )
        row = session.exec(stmt).first()
        session.commit()
        if row is None:
            return None
        return ConsumedSignup(
            username=row.username,
            email=row.email,
            password_hash=row.password_hash,
            created_at=row.created_at,
        )
