from __future__ import annotations

import models
from models.base_model import Base, BaseModel
from sqlalchemy import Column, String


class User(BaseModel, Base):
    """Credential record: a unique username and its argon2 hash."""
    __tablename__ = "users"
    username = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)

    @classmethod
    def create(cls, username: str, password_hash: str) -> "User":
        user = cls(username=username, password_hash=password_hash)
        models.storage.new(user)
        models.storage.save()
        return user

    @classmethod
    def find_by_username(cls, username: str) -> User | None:
        session = models.storage.get_session()
        return session.query(cls).filter(cls.username == username).first()

    @classmethod
    def find_by_id(cls, user_id: str) -> User | None:
        return models.storage.get(cls, user_id)

    @classmethod
    def delete_by_id(cls, user_id: str, commit: bool = True) -> bool:
        """Hard delete; False when no such user exists."""
        session = models.storage.get_session()
        removed = session.query(cls).filter(cls.id == user_id).delete(synchronize_session=False)
        if commit:
            models.storage.save()
        return removed == 1
