"""FastAPI dependencies shared by the routers."""

from typing import Iterator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from fishstore import crud, models, security
from fishstore.config import Settings
from fishstore.errors import Forbidden, Unauthenticated
from fishstore.images import ImageHost
from fishstore.mail import MailSender

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Iterator[Session]:
    # One session per request, always closed
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_mailer(request: Request) -> MailSender:
    return request.app.state.mailer


def get_image_host(request: Request) -> ImageHost:
    return request.app.state.image_host


def _resolve_user(db: Session, token: str, settings: Settings) -> models.User:
    user_id = security.decode_token(token, settings.jwt_secret)
    user = crud.get_user(db, user_id)
    if user is None:
        raise Unauthenticated()
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> models.User:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("No token, authorization denied")
    return _resolve_user(db, credentials.credentials, settings)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[models.User]:
    """The caller's user when a valid token is sent; guests get None."""
    if credentials is None or not credentials.credentials:
        return None
    return _resolve_user(db, credentials.credentials, settings)


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != models.UserRole.ADMIN:
        raise Forbidden()
    return user
