"""
SQLAlchemy models base and User model.

This module defines the declarative base for all models and the User model
that maps external chat-platform identifiers onto canonical user ids.
"""
from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class User(Base):
    """
    Users table - canonical identities.

    Every usage counter, subscription and debt is keyed by ``users.id``.
    External identifiers (e.g. a Telegram chat id) are resolved into this id
    once, at the API boundary.

    Attributes:
        id: Canonical user id (UUID4 string)
        external_id: Chat-platform identifier, unique when present
        created_at: Creation timestamp
    """

    __tablename__ = "users"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
        comment="Canonical user identifier (UUID)",
    )
    external_id = Column(
        String(64),
        unique=True,
        index=True,
        nullable=True,
        comment="External identifier (chat-platform id)",
    )
    created_at = Column(
        DateTime, default=datetime.utcnow, comment="Date and time of creation"
    )
