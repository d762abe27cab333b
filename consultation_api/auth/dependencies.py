import logging

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from consultation_api.auth import jwt_handler
from consultation_api.core import config
from consultation_api.database import get_db
from consultation_api.models.user import User

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)


def resolve_user(token: str, db: Session) -> User:
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Non autorisé") from exc

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Non autorisé")

    user = db.get(User, int(subject))
    if user is None:
        raise HTTPException(status_code=401, detail="Non autorisé")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    return resolve_user(credentials.credentials, db)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
    db: Session = Depends(get_db),
) -> User | None:
    if credentials is None:
        return None
    try:
        return resolve_user(credentials.credentials, db)
    except HTTPException:
        # A stale or foreign token falls back to an anonymous caller.
        logger.info("Ignoring unusable bearer token on optional authentication")
        return None


def require_staff(user: User = Depends(get_current_user)) -> User:
    if (user.role or "").upper() not in config.STAFF_ROLES:
        raise HTTPException(status_code=401, detail="Non autorisé")
    return user
