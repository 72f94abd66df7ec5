"""
RefreshToken model: stores every issued refresh token so it can be rotated and revoked.
A token is valid only while its row exists; consuming or revoking it deletes the row.
Fields:
- id (primary key)
- user_id (String(36)) - FK to users.id, cascades on account deletion
- token (the signed refresh token, unique)
- created_at
"""
from __future__ import annotations

import models
from sqlalchemy import Column, String, ForeignKey
from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(512), nullable=False, unique=True, index=True)

    def __repr__(self):
        return f"<RefreshToken user={self.user_id}>"

    @classmethod
    def create(cls, user_id: str, token: str) -> "RefreshToken":
        record = cls(user_id=str(user_id), token=token)
        models.storage.new(record)
        models.storage.save()
        return record

    @classmethod
    def find(cls, token: str) -> RefreshToken | None:
        session = models.storage.get_session()
        return session.query(cls).filter(cls.token == token).first()

    @classmethod
    def consume(cls, token: str) -> bool:
        """
        Delete the record for token in a single statement.
        Returns True only for the caller whose delete removed the row, so a
        token raced by two refresh calls is spent exactly once.
        """
        session = models.storage.get_session()
        removed = session.query(cls).filter(cls.token == token).delete(synchronize_session=False)
        models.storage.save()
        return removed == 1

    # logout goes through consume() too: a missing row is not an error there
    revoke = consume

    @classmethod
    def revoke_all(cls, user_id: str, commit: bool = True) -> int:
        session = models.storage.get_session()
        removed = session.query(cls).filter(cls.user_id == str(user_id)).delete(synchronize_session=False)
        if commit:
            models.storage.save()
        return removed

    @classmethod
    def count_for_user(cls, user_id: str) -> int:
        session = models.storage.get_session()
        return session.query(cls).filter(cls.user_id == str(user_id)).count()
