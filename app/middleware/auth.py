import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import ValidationError
from app.models import AdminApiKey
from app.services.identity_service import IdentityResolver

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser:
    """Authenticated caller, already resolved to the canonical user id."""
    def __init__(self, id: str, identifier: str):
        self.id = id
        self.identifier = identifier


class AdminKeyData:
    """Admin key information detached from the SQLAlchemy session."""
    def __init__(self, id: int, name: str, prefix: str, last_used_at: Optional[datetime]):
        self.id = id
        self.name = name
        self.prefix = prefix
        self.last_used_at = last_used_at


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


async def get_current_user(
    bearer: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """
    Bearer JWT issued by the chat bot or the web app. ``sub`` carries any
    identifier shape (canonical id, guest id or external chat id); it is
    resolved here so that handlers only ever see canonical ids.
    """
    if not bearer or not bearer.credentials:
        raise _unauthorized("Authentication required")

    settings = get_settings()
    try:
        payload = jwt.decode(
            bearer.credentials,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
        identifier = str(payload["sub"])
    except (JWTError, KeyError):
        raise _unauthorized("Invalid or expired token")

    try:
        user_id = IdentityResolver(db).resolve(identifier)
    except ValidationError:
        raise _unauthorized("Invalid token subject")

    return CurrentUser(id=user_id, identifier=identifier)


async def require_admin(
    api_key: Optional[str] = Security(api_key_header),
    db: Session = Depends(get_db),
) -> AdminKeyData:
    if not api_key:
        raise HTTPException(status_code=401, detail="Admin API key required")

    key_record = db.query(AdminApiKey).filter(
        AdminApiKey.hashed_key == AdminApiKey.hash_key(api_key),
        AdminApiKey.is_active == True,
    ).first()

    if not key_record:
        logger.warning("Rejected admin request with an invalid API key")
        raise HTTPException(status_code=403, detail="Invalid API Key")

    key_record.last_used_at = datetime.utcnow()
    db.commit()

    return AdminKeyData(
        id=key_record.id,
        name=key_record.name,
        prefix=key_record.prefix,
        last_used_at=key_record.last_used_at,
    )
