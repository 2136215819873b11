"""
Authentication endpoints.

Registration and login hand out a bearer token; everything else under
/api/v1 expects it in the Authorization header. Password reset is a
three-step flow over email: request a code, verify it, then set the new
password presenting the same code.
"""

import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.accounts.models import (
    Account,
    Athlete,
    Coach,
    Gender,
    Official,
    Role,
    normalize_email,
)
from ...core.accounts.otp import OneTimePassword, OtpOutcome
from ...core.accounts.security import (
    MIN_PASSWORD_LENGTH,
    create_access_token,
    hash_password,
    verify_password,
)
from ...config.settings import Settings
from ...infrastructure.email.client import (
    EmailClient,
    EmailDeliveryError,
    otp_message,
    password_changed_message,
)
from ...infrastructure.snowflake.repositories import (
    AccountRepository,
    DuplicateRecordError,
    OtpRepository,
)
from ..dependencies import (
    AccountRepositoryDep,
    CurrentAccount,
    EmailClientDep,
    OtpRepositoryDep,
    SettingsDep,
)
from .users import ProfileUpdateRequest, save_profile_update

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    """New account. Fields after `city` only apply to the matching user_type."""
    name: str = Field(min_length=2, max_length=100)
    email: str = Field(description="Unique across athletes, coaches and officials")
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    user_type: Role
    phone: str = Field(min_length=1)
    date_of_birth: date
    gender: Gender
    state: str = Field(min_length=1)
    city: str = Field(min_length=1)

    sport: Optional[str] = Field(None, description="Athlete's primary sport")
    category: Optional[str] = Field(None, description="Athlete's event or category")
    specialization: Optional[list[str]] = Field(None, description="Coach's sports")
    experience_years: int = Field(0, ge=0, description="Coach's years of experience")
    employee_id: Optional[str] = Field(None, description="Official's employee id")
    department: Optional[str] = None
    designation: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str = Field(min_length=1)
    user_type: Role


class AuthResponse(BaseModel):
    message: str
    token: str
    user: dict[str, Any]


class EmailRequest(BaseModel):
    email: str = Field(min_length=3)


class VerifyOtpRequest(BaseModel):
    email: str = Field(min_length=3)
    otp: str = Field(pattern=r"^\d{6}$")


class ResetPasswordRequest(BaseModel):
    email: str = Field(min_length=3)
    otp: str = Field(pattern=r"^\d{6}$")
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class MessageResponse(BaseModel):
    message: str


class OtpSentResponse(BaseModel):
    message: str
    expires_in_minutes: int
    debug_otp: Optional[str] = Field(None, description="Only returned in development")


class EmailExistsResponse(BaseModel):
    email: str
    exists: bool
    user_type: Optional[Role] = None


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def _build_account(request: RegisterRequest, password_hash: str) -> Account:
    common = dict(
        name=request.name,
        email=request.email,
        password_hash=password_hash,
        phone=request.phone,
        date_of_birth=request.date_of_birth,
        gender=request.gender,
        state=request.state,
        city=request.city,
    )
    if request.user_type == Role.ATHLETE:
        return Athlete(**common, sport=request.sport, category=request.category)
    if request.user_type == Role.COACH:
        return Coach(
            **common,
            specializations=request.specialization or [],
            experience_years=request.experience_years,
        )
    return Official(
        **common,
        employee_id=request.employee_id,
        department=request.department,
        designation=request.designation,
    )


def _issue_token(account: Account, settings: Settings) -> str:
    return create_access_token(
        account.id,
        account.role,
        settings.jwt_secret,
        expire_days=settings.jwt_expire_days,
        algorithm=settings.jwt_algorithm,
    )


def _send_otp(
    email: str,
    accounts: AccountRepository,
    otps: OtpRepository,
    mailer: EmailClient,
    settings: Settings,
    message: str,
) -> OtpSentResponse:
    """Replace any live code for this email with a fresh one and email it."""
    account = accounts.find_by_email(email)
    if account is None or not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Email not found in our system",
        )

    otp = otps.save(OneTimePassword.issue(account.email, ttl_minutes=settings.otp_ttl_minutes))

    try:
        mailer.send(otp_message(account.email, otp.code, settings.otp_ttl_minutes))
    except EmailDeliveryError as e:
        logger.error("Failed to send OTP email", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send OTP email. Please try again.",
        )

    logger.info("Password reset code sent", extra={"account_id": str(account.id)})

    return OtpSentResponse(
        message=message,
        expires_in_minutes=settings.otp_ttl_minutes,
        debug_otp=otp.code if settings.is_development else None,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
)
async def register(
    request: RegisterRequest,
    accounts: AccountRepositoryDep,
    settings: SettingsDep,
) -> AuthResponse:
    """
    Create an athlete, coach or official account and log it in.

    Email is unique across all three roles, so an athlete cannot later
    register the same address as a coach.
    """
    try:
        account = _build_account(request, hash_password(request.password))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    account.record_login()

    try:
        accounts.create(account)
    except DuplicateRecordError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return AuthResponse(
        message="User registered successfully",
        token=_issue_token(account, settings),
        user=account.summary(),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in",
)
async def login(
    request: LoginRequest,
    accounts: AccountRepositoryDep,
    settings: SettingsDep,
) -> AuthResponse:
    account = accounts.find_by_email(request.email, role=request.user_type)

    if account is None or not account.is_active:
        holder = accounts.email_exists(request.email)
        if holder is not None and holder != request.user_type:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"User exists but registered as {holder.value}, not {request.user_type.value}",
            )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials or user type",
        )

    if not verify_password(account.password_hash, request.password):
        logger.info("Failed login", extra={"account_id": str(account.id)})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    account.record_login()
    accounts.save(account)

    return AuthResponse(
        message="Login successful",
        token=_issue_token(account, settings),
        user=account.summary(),
    )


@router.post(
    "/forgot-password",
    response_model=OtpSentResponse,
    summary="Email a password reset code",
)
async def forgot_password(
    request: EmailRequest,
    accounts: AccountRepositoryDep,
    otps: OtpRepositoryDep,
    mailer: EmailClientDep,
    settings: SettingsDep,
) -> OtpSentResponse:
    return _send_otp(
        request.email, accounts, otps, mailer, settings,
        message="OTP sent successfully to your email",
    )


@router.post(
    "/resend-otp",
    response_model=OtpSentResponse,
    summary="Replace the password reset code",
)
async def resend_otp(
    request: EmailRequest,
    accounts: AccountRepositoryDep,
    otps: OtpRepositoryDep,
    mailer: EmailClientDep,
    settings: SettingsDep,
) -> OtpSentResponse:
    return _send_otp(
        request.email, accounts, otps, mailer, settings,
        message="New OTP sent successfully to your email",
    )


@router.post(
    "/verify-otp",
    response_model=MessageResponse,
    summary="Check a password reset code",
)
async def verify_otp(
    request: VerifyOtpRequest,
    otps: OtpRepositoryDep,
    settings: SettingsDep,
) -> MessageResponse:
    """
    Wrong codes count against the record; after otp_max_attempts the code
    is discarded and a new one must be requested.
    """
    otp = otps.find(request.email)
    if otp is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No OTP requested for this email",
        )

    check = otp.check(request.otp, max_attempts=settings.otp_max_attempts)

    if check.discard:
        otps.delete(request.email)
        detail = (
            "OTP has expired. Please request a new one."
            if check.outcome == OtpOutcome.EXPIRED
            else "Too many failed attempts. Please request a new OTP."
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    otps.save(otp)

    if check.outcome == OtpOutcome.MISMATCH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid OTP", "attempts_remaining": check.attempts_remaining},
        )

    return MessageResponse(message="OTP verified successfully")


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Set a new password with a verified code",
)
async def reset_password(
    request: ResetPasswordRequest,
    accounts: AccountRepositoryDep,
    otps: OtpRepositoryDep,
    mailer: EmailClientDep,
) -> MessageResponse:
    otp = otps.find(request.email)
    if otp is None or not otp.verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OTP not verified. Please verify OTP first.",
        )
    if otp.is_expired():
        otps.delete(request.email)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OTP has expired. Please request a new one.",
        )
    if not otp.can_reset_password(request.otp):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP")

    account = accounts.find_by_email(request.email)
    if account is None or not account.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    account.password_hash = hash_password(request.new_password)
    accounts.save(account)
    otps.delete(request.email)

    try:
        mailer.send(password_changed_message(account.email, account.name))
    except EmailDeliveryError as e:
        # The password has already changed; the confirmation is informational.
        logger.warning("Failed to send password change email", extra={"error": str(e)})

    logger.info("Password reset", extra={"account_id": str(account.id)})

    return MessageResponse(message="Password reset successfully")


@router.get(
    "/me",
    summary="Current account",
)
async def me(account: CurrentAccount) -> dict[str, Any]:
    return {"user": account.to_public_dict()}


@router.put(
    "/profile",
    summary="Update my profile",
)
async def update_profile(
    request: ProfileUpdateRequest,
    account: CurrentAccount,
    accounts: AccountRepositoryDep,
) -> dict[str, Any]:
    return save_profile_update(account, request, accounts)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Log out",
)
async def logout(account: CurrentAccount) -> MessageResponse:
    """Tokens are stateless; the client drops its copy."""
    logger.info("Logout", extra={"account_id": str(account.id)})
    return MessageResponse(message="Logged out successfully")


@router.get(
    "/debug/email-exists",
    response_model=EmailExistsResponse,
    summary="Which role holds an email (development only)",
)
async def debug_email_exists(
    accounts: AccountRepositoryDep,
    settings: SettingsDep,
    email: Optional[str] = Query(None),
) -> EmailExistsResponse:
    if not settings.is_development:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Debug endpoints are disabled in production",
        )
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")

    holder = accounts.email_exists(email)
    return EmailExistsResponse(
        email=normalize_email(email),
        exists=holder is not None,
        user_type=holder,
    )
