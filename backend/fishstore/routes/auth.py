"""Registration, login, profile and password reset endpoints."""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from fishstore import accounts, models, schemas
from fishstore.config import Settings
from fishstore.deps import get_current_user, get_db, get_mailer, get_settings
from fishstore.mail import MailSender

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=schemas.AuthResponse, status_code=201)
def register(
    body: schemas.RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user, token = accounts.register(db, body, settings)
    return {"message": "User registered successfully", "token": token, "user": user}


@router.post("/login", response_model=schemas.AuthResponse)
def login(
    body: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user, token = accounts.authenticate(db, str(body.email), body.password, settings)
    return {"message": "Login successful", "token": token, "user": user}


@router.get("/me", response_model=schemas.UserEnvelope)
def me(user: models.User = Depends(get_current_user)):
    return {"user": user}


@router.put("/profile", response_model=schemas.ProfileResponse)
def update_profile(
    body: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    user = accounts.update_profile(db, user, body)
    return {"message": "Profile updated successfully", "user": user}


@router.post("/forgot-password", response_model=schemas.MessageResponse)
def forgot_password(
    body: schemas.ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mailer: MailSender = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
):
    reset = accounts.request_password_reset(db, str(body.email), settings)
    if reset is not None:
        # Mailed after the response so known and unknown emails answer alike
        background_tasks.add_task(accounts.send_reset_email, mailer, reset)
    return {"message": accounts.RESET_REQUESTED_MESSAGE}


@router.post("/reset-password", response_model=schemas.MessageResponse)
def reset_password(
    body: schemas.ResetPasswordRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    accounts.complete_password_reset(db, body.token, body.password, settings)
    return {"message": "Password has been reset successfully"}
