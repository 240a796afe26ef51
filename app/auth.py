import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from . import config
from .database import get_session
from .mailer import MailerError, ResendMailer, get_mailer, render_action_email
from .models import User, UserSession, Verification
from .schemas import LoginRequest, RegisterRequest, UserOut

logger = logging.getLogger(__name__)

VERIFICATION_TTL = timedelta(hours=24)
SESSION_TTL = timedelta(days=7)

router = APIRouter()


def generate_token() -> str:
    """64 hex characters of randomness for email verification links."""
    return secrets.token_hex(32)


def _verify_link(token: str) -> str:
    return f"{config.APP_BASE_URL.rstrip('/')}/verify-email?token={token}"


def _user_out(user: User) -> dict:
    return UserOut(
        user_id=user.user_id,
        full_name=user.full_name,
        email=user.email,
        email_verified=bool(user.email_verified),
    ).model_dump(by_alias=True)


def _issue_verification(session: AsyncSession, email: str) -> str:
    token = generate_token()
    session.add(
        Verification(
            identifier=email,
            value=token,
            expires_at=datetime.utcnow() + VERIFICATION_TTL,
        )
    )
    return token


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_session),
    mailer: ResendMailer = Depends(get_mailer),
):
    user = User(
        full_name=body.full_name,
        phone_number=body.phone_number,
        phone_number_verified=False,
        email=body.email,
        email_verified=False,
        age=body.age,
        exam=body.exam,
        image=body.image,
    )
    session.add(user)
    token = _issue_verification(session, body.email)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise HTTPException(
            status_code=409,
            detail="A user with this email or phone number already exists.",
        ) from exc

    logger.info("Registered user %s", user.user_id)

    html = render_action_email(
        heading="Welcome to Student Sahayak",
        full_name=user.full_name,
        intro="Thank you for signing up! Please verify your email by clicking the button below:",
        link=_verify_link(token),
        button_label="Verify Email",
        disclaimer="If you didn't create this account, you can safely ignore this email.",
    )
    try:
        await mailer.send(user.email, "Verify your email - Student Sahayak", html)
    except MailerError:
        # The account exists; the student can ask for a new link via /login.
        logger.exception("Failed to send verification email to %s", user.email)

    return {
        "message": "User created successfully. Please check your email for verification.",
        "user": _user_out(user),
    }


@router.post("/login")
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
    mailer: ResendMailer = Depends(get_mailer),
):
    user = await session.scalar(select(User).where(User.email == body.email))
    if not user:
        raise HTTPException(
            status_code=404, detail="User not found. Please register first."
        )

    await session.execute(delete(Verification).where(Verification.identifier == body.email))
    token = _issue_verification(session, body.email)
    await session.commit()

    html = render_action_email(
        heading="Login to Student Sahayak",
        full_name=user.full_name,
        intro="Click the button below to login to your account:",
        link=_verify_link(token),
        button_label="Login",
        disclaimer="If you didn't request this login, you can safely ignore this email.",
    )
    try:
        await mailer.send(user.email, "Login verification - Student Sahayak", html)
    except MailerError as exc:
        logger.error("Failed to send login email to %s: %s", user.email, exc)
        raise HTTPException(status_code=502, detail="Failed to send login email.") from exc

    return {
        "message": "Login email sent successfully. Please check your email.",
        "success": True,
    }


@router.post("/verify")
async def verify(
    request: Request,
    token: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    if not token:
        raise HTTPException(status_code=400, detail="Token is required")

    record = await session.scalar(select(Verification).where(Verification.value == token))
    if not record:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")

    if datetime.utcnow() > record.expires_at:
        raise HTTPException(status_code=400, detail="Verification token has expired")

    user = await session.scalar(select(User).where(User.email == record.identifier))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    user.email_verified = True
    session_token = str(uuid.uuid4())
    session.add(
        UserSession(
            token=session_token,
            user_id=user.user_id,
            expires_at=datetime.utcnow() + SESSION_TTL,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
    )
    await session.delete(record)
    await session.commit()

    logger.info("Email verified for user %s", user.user_id)

    return {
        "message": "Email verified successfully",
        "success": True,
        "sessionToken": session_token,
        "user": _user_out(user),
    }
