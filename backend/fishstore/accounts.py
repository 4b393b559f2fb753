"""
User accounts: registration, login, profile and password reset.

Login never tells the caller whether an email is registered: unknown email
and wrong password both raise InvalidCredentials, and a dummy bcrypt check
runs for unknown emails so both paths cost the same time. Password reset
requests answer identically for known and unknown emails.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fishstore import crud, models, schemas, security
from fishstore.config import Settings
from fishstore.errors import DuplicateEmail, InvalidCredentials, InvalidOrExpiredToken, UpstreamServiceFailure
from fishstore.mail import MailSender

logger = structlog.get_logger(__name__)

RESET_REQUESTED_MESSAGE = "If an account exists for that email, a password reset link has been sent."

_DUMMY_HASHES = {}


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def issue_token_for(user: models.User, settings: Settings) -> str:
    return security.issue_token(user.id, settings.jwt_secret, settings.jwt_expires_days)


def register(db: Session, request: schemas.RegisterRequest, settings: Settings) -> Tuple[models.User, str]:
    email = str(request.email).strip().lower()
    if crud.get_user_by_email(db, email) is not None:
        raise DuplicateEmail()

    user = models.User(
        email=email,
        password_hash=security.hash_password(request.password, settings.bcrypt_rounds),
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        role=models.UserRole.CUSTOMER,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration of the same email
        db.rollback()
        raise DuplicateEmail() from exc
    db.refresh(user)

    logger.info("User registered", user_id=user.id)
    return user, issue_token_for(user, settings)


def authenticate(db: Session, email: str, password: str, settings: Settings) -> Tuple[models.User, str]:
    user = crud.get_user_by_email(db, email)
    if user is None:
        security.verify_password(password, _dummy_hash(settings.bcrypt_rounds))
        raise InvalidCredentials()
    if not security.verify_password(password, user.password_hash):
        raise InvalidCredentials()

    return user, issue_token_for(user, settings)


def _dummy_hash(rounds: int) -> str:
    if rounds not in _DUMMY_HASHES:
        _DUMMY_HASHES[rounds] = security.hash_password("not-a-real-password", rounds)
    return _DUMMY_HASHES[rounds]


def update_profile(db: Session, user: models.User, profile: schemas.ProfileUpdate) -> models.User:
    for field, value in profile.model_dump(exclude_unset=True).items():
        if value is None and field != "phone":
            continue
        setattr(user, field, value.strip() if isinstance(value, str) else value)

    db.commit()
    db.refresh(user)
    return user


@dataclass(frozen=True)
class ResetEmail:
    """A reset link waiting to be mailed once the response has gone out."""

    user_id: int
    to: str
    first_name: str
    link: str
    ttl_minutes: int


def request_password_reset(
    db: Session,
    email: str,
    settings: Settings,
    now: Optional[datetime] = None,
) -> Optional[ResetEmail]:
    """
    Issue a reset token for ``email`` if it belongs to a user.

    Only the token is written here. The caller answers with
    RESET_REQUESTED_MESSAGE either way and hands the returned ResetEmail
    to ``send_reset_email`` after the response, so a known email costs the
    caller no more time than an unknown one.
    """
    user = crud.get_user_by_email(db, email)
    if user is None:
        logger.info("Password reset requested for unknown email")
        return None

    token = security.new_reset_token()
    issued_at = now or datetime.now(timezone.utc)
    user.reset_token_hash = security.digest_reset_token(token)
    user.reset_token_expires = issued_at + timedelta(minutes=settings.reset_token_ttl_minutes)
    db.commit()

    return ResetEmail(
        user_id=user.id,
        to=user.email,
        first_name=user.first_name,
        link=f"{settings.client_url.rstrip('/')}/reset-password/{token}",
        ttl_minutes=settings.reset_token_ttl_minutes,
    )


def send_reset_email(mailer: MailSender, reset: ResetEmail) -> None:
    """Mail a reset link; a delivery failure is logged, never raised."""
    try:
        mailer.send(
            to=reset.to,
            subject="Reset your FreshFish password",
            body=(
                f"Hello {reset.first_name},\n\n"
                f"Use the link below to choose a new password. It expires in "
                f"{reset.ttl_minutes} minutes.\n\n{reset.link}\n\n"
                "If you did not ask for this, you can ignore this email."
            ),
            html_body=(
                f"<p>Hello {reset.first_name},</p>"
                f"<p><a href=\"{reset.link}\">Choose a new password</a>. "
                f"The link expires in {reset.ttl_minutes} minutes.</p>"
                "<p>If you did not ask for this, you can ignore this email.</p>"
            ),
        )
    except UpstreamServiceFailure as exc:
        logger.warning("Password reset email not delivered", user_id=reset.user_id, error=exc.message)
    else:
        logger.info("Password reset email sent", user_id=reset.user_id)


def complete_password_reset(
    db: Session,
    token: str,
    new_password: str,
    settings: Settings,
    now: Optional[datetime] = None,
) -> models.User:
    """Set a new password for the holder of a live reset token; the token is consumed."""
    digest = security.digest_reset_token(token)
    user = db.query(models.User).filter(models.User.reset_token_hash == digest).first()

    current_time = now or datetime.now(timezone.utc)
    if user is None or user.reset_token_expires is None or _as_utc(user.reset_token_expires) <= current_time:
        raise InvalidOrExpiredToken()

    user.password_hash = security.hash_password(new_password, settings.bcrypt_rounds)
    user.reset_token_hash = None
    user.reset_token_expires = None
    db.commit()

    logger.info("Password reset completed", user_id=user.id)
    return user
