from sqlalchemy import Column, Integer, String, Boolean, DateTime
from datetime import datetime
from .user import Base
import hashlib


class AdminApiKey(Base):
    __tablename__ = "admin_api_keys"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)  # Admin identity, recorded as granted_by
    hashed_key = Column(String, unique=True, index=True, nullable=False)
    prefix = Column(String, nullable=False)  # To show the admin part of the key
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_used_at = Column(DateTime, nullable=True)

    @staticmethod
    def hash_key(plain_key: str) -> str:
        return hashlib.sha256(plain_key.encode()).hexdigest()

    @staticmethod
    def verify_key(plain_key: str, hashed_key: str) -> bool:
        """Verifies if a plain key matches the hash."""
        return AdminApiKey.hash_key(plain_key) == hashed_key
